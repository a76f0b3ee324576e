"""
Death Report Export Service: concurrent fetch, fixed-order CSV assembly

Flow:
1. Fetch every payload the selected categories need, concurrently. The first
   failure cancels the remaining fetches and aborts the export.
2. Render the blocks synchronously in EXPORT_ORDER.
3. Join the blocks with one blank line and hand the document to emit().

Nothing is emitted unless every fetch succeeded, and the default emitter
writes through a temp file plus atomic replace, so a failed export never
leaves a partial file behind. The archived file is shared by exports with the
same name; ExportResult.content is the document this call produced.
File work runs in a worker thread.
"""

import asyncio
import contextlib
import functools
import os
import tempfile
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from civreg_reports.core.config import settings
from civreg_reports.core.errors import ReportExportError
from civreg_reports.core.logging import setup_logger
from civreg_reports.reporting.categories import (
    EXPORT_ORDER,
    RESIDENCE_SOURCE,
    CausesSort,
    ReportCategory,
    export_filename,
    sources_for,
)
from civreg_reports.reporting.csv_serializer import (
    RenderedBlock,
    render_burial_method,
    render_causes,
    render_death_by_barangay,
    render_deaths_by_demographic,
    render_place_of_death,
    render_statistics,
)
from civreg_reports.reporting.reconciler import decode_residence
from civreg_reports.reporting.roster import default_roster

logger = setup_logger(settings.LOG_LEVEL)

Emitter = Callable[[str, str], str]


@dataclass
class ExportOptions:
    """Per-request rendering options."""
    causes_sort: CausesSort = CausesSort.COUNT
    # paper-form exports list every barangay by default
    show_all: bool = True
    roster: Optional[Sequence[str]] = None
    demographic_month: Optional[int] = None

    @classmethod
    def from_settings(cls) -> "ExportOptions":
        return cls(
            causes_sort=CausesSort(settings.CAUSES_SORT),
            show_all=settings.SHOW_ALL_BARANGAYS,
        )


@dataclass
class ExportResult:
    filename: str
    path: Optional[str]
    content: str
    categories: List[str]
    year: int
    inconsistencies: List[str] = field(default_factory=list)
    latency_ms: int = 0


def write_export_file(export_dir: str, filename: str, text: str) -> str:
    """
    Write an export document atomically.

    Args:
        export_dir: Directory to write into (created if missing)
        filename: Target file name
        text: Full CSV document

    Returns:
        Path of the written file
    """
    directory = Path(export_dir)
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / filename

    fd, tmp_path = tempfile.mkstemp(dir=str(directory), prefix=f".{filename}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        os.replace(tmp_path, target)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_path)
        raise

    logger.info(f"export_written=true path={target} bytes={len(text.encode('utf-8'))}")
    return str(target)


async def _cancel_all(tasks: Sequence["asyncio.Future[Any]"]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


async def fetch_payloads(fetcher: Any, year: int, sources: Sequence[str]) -> Dict[str, Dict[str, Any]]:
    """
    Fetch all sources concurrently, failing fast.

    Args:
        fetcher: Object with an async fetch(source, year) method
        year: Report year
        sources: Payload keys to fetch

    Returns:
        Mapping of source -> payload

    Raises:
        The first fetch error, in source order; other fetches are cancelled
    """
    tasks = {source: asyncio.ensure_future(fetcher.fetch(source, year)) for source in sources}
    if not tasks:
        return {}

    try:
        done, pending = await asyncio.wait(tasks.values(), return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        await _cancel_all(list(tasks.values()))
        raise

    errors = {
        source: task.exception()
        for source, task in tasks.items()
        if task in done and not task.cancelled() and task.exception() is not None
    }
    if errors:
        await _cancel_all(list(pending))
        first_source = next(source for source in sources if source in errors)
        logger.error(
            f"export_fetch_aborted=true year={year} failed_source={first_source} "
            f"failures={len(errors)} cancelled={len(pending)}"
        )
        raise errors[first_source]

    return {source: task.result() for source, task in tasks.items()}


def render_blocks(
    year: int,
    categories: Sequence[ReportCategory],
    payloads: Dict[str, Dict[str, Any]],
    options: ExportOptions
) -> List[RenderedBlock]:
    """Render the selected categories in fixed export order."""
    roster = options.roster if options.roster is not None else default_roster()
    blocks = []
    for category in EXPORT_ORDER:
        if category not in categories:
            continue
        payload = payloads.get(category.value, {})
        if category == ReportCategory.STATISTICS:
            block = render_statistics(payload, year)
        elif category == ReportCategory.DEATH_BY_BARANGAY:
            residence = decode_residence(payloads.get(RESIDENCE_SOURCE))
            block = render_death_by_barangay(
                payload, year, roster=roster, residence=residence, show_all=options.show_all
            )
        elif category == ReportCategory.PLACE_OF_DEATH:
            block = render_place_of_death(payload, year)
        elif category == ReportCategory.BURIAL_METHOD:
            block = render_burial_method(payload, year)
        elif category == ReportCategory.CAUSES:
            block = render_causes(payload, year, order=options.causes_sort)
        else:
            block = render_deaths_by_demographic(
                payload, year, roster=roster,
                month=options.demographic_month, show_all=options.show_all
            )
        blocks.append(block)
    return blocks


async def export_death_report(
    year: int,
    categories: Sequence[ReportCategory],
    fetcher: Any,
    *,
    options: Optional[ExportOptions] = None,
    emit: Optional[Emitter] = None
) -> ExportResult:
    """
    Export the selected death report categories for one year as CSV.

    Args:
        year: Report year
        categories: Categories to include (rendered in EXPORT_ORDER)
        fetcher: Object with an async fetch(source, year) method
        options: Rendering options (defaults from settings)
        emit: Callable(filename, text) -> path; defaults to an atomic write
            under settings.EXPORT_DIR

    Returns:
        ExportResult with the document and where it was written

    Raises:
        ReportExportError: any payload could not be fetched; nothing emitted
    """
    start_time = time.time()
    options = options or ExportOptions.from_settings()
    selected = [c for c in EXPORT_ORDER if c in set(categories)]
    slugs = [c.value for c in selected]
    emit = emit or functools.partial(write_export_file, settings.EXPORT_DIR)

    logger.info(f"export_started=true year={year} categories={','.join(slugs)}")

    try:
        payloads = await fetch_payloads(fetcher, year, sources_for(selected))
    except asyncio.CancelledError:
        logger.warning(f"export_cancelled=true year={year}")
        raise
    except Exception as e:
        raise ReportExportError(year, slugs, e) from e

    if options.roster is None:
        roster = await asyncio.to_thread(default_roster)
        options = replace(options, roster=roster)

    blocks = render_blocks(year, selected, payloads, options)
    content = "\n".join(block.text for block in blocks)
    filename = export_filename(selected, year)
    path = await asyncio.to_thread(emit, filename, content)

    inconsistencies = [msg for block in blocks for msg in block.inconsistencies]
    latency_ms = int((time.time() - start_time) * 1000)
    logger.info(
        f"export_completed=true year={year} filename={filename} "
        f"blocks={len(blocks)} inconsistencies={len(inconsistencies)} latency_ms={latency_ms}"
    )
    return ExportResult(
        filename=filename,
        path=path,
        content=content,
        categories=slugs,
        year=year,
        inconsistencies=inconsistencies,
        latency_ms=latency_ms,
    )
