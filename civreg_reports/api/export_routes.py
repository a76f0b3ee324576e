"""
Death Report Export Routes

REST endpoints that assemble the yearly death report CSV from the civil
registry's category endpoints and return it as a file download.
"""

from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field

from civreg_reports.core.config import settings
from civreg_reports.core.errors import ReportExportError
from civreg_reports.core.logging import setup_logger
from civreg_reports.export.fetcher import HttpCategoryFetcher
from civreg_reports.export.service import ExportOptions, export_death_report
from civreg_reports.reporting.categories import (
    BLOCK_TITLES,
    EXPORT_ORDER,
    CausesSort,
    parse_categories,
)

logger = setup_logger(settings.LOG_LEVEL)

router = APIRouter(prefix="/reports/death", tags=["Death Reports"])


class CategoryInfo(BaseModel):
    """One exportable category."""
    slug: str
    title: str
    position: int = Field(..., description="Block position in the combined export")


class CategoriesResponse(BaseModel):
    categories: List[CategoryInfo]
    default_causes_sort: str
    show_all_barangays: bool


async def get_fetcher() -> AsyncIterator[HttpCategoryFetcher]:
    """One registry client per export request."""
    async with HttpCategoryFetcher() as fetcher:
        yield fetcher


@router.get("/categories", response_model=CategoriesResponse)
async def list_categories():
    """List exportable categories in the order they appear in the combined CSV."""
    return CategoriesResponse(
        categories=[
            CategoryInfo(slug=category.value, title=BLOCK_TITLES[category], position=i + 1)
            for i, category in enumerate(EXPORT_ORDER)
        ],
        default_causes_sort=settings.CAUSES_SORT,
        show_all_barangays=settings.SHOW_ALL_BARANGAYS,
    )


@router.get("/export")
async def export_report(
    year: int = Query(..., ge=1900, le=9999, description="Report year"),
    categories: Optional[str] = Query(
        None,
        description="Comma-separated category slugs; all categories when omitted"
    ),
    causes_sort: Optional[str] = Query(None, description="count or alphabetical"),
    show_all: Optional[bool] = Query(None, description="Pad tables with zero-count barangays"),
    month: Optional[int] = Query(
        None, ge=1, le=12, description="Render the demographic cross-tab for one month"
    ),
    fetcher: HttpCategoryFetcher = Depends(get_fetcher),
):
    """
    Export the death report for one year as a CSV file.

    Example:
        GET /reports/death/export?year=2024&categories=statistics,causes

    Errors:
    - 400: unknown category or sort order
    - 502: a registry endpoint failed; no file is produced
    """
    try:
        selected = parse_categories((categories or "").split(","))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    sort_value = (causes_sort or settings.CAUSES_SORT).lower()
    try:
        sort_order = CausesSort(sort_value)
    except ValueError:
        valid = ", ".join(s.value for s in CausesSort)
        raise HTTPException(
            status_code=400,
            detail=f"Unknown causes sort '{sort_value}'. Valid: {valid}"
        )

    options = ExportOptions(
        causes_sort=sort_order,
        show_all=settings.SHOW_ALL_BARANGAYS if show_all is None else show_all,
        demographic_month=month,
    )

    try:
        result = await export_death_report(year, selected, fetcher, options=options)
    except ReportExportError as e:
        logger.error(f"export_failed=true year={year} error_class={e.error_class} error={e}")
        raise HTTPException(status_code=502, detail=str(e))

    # This request's own document, not the shared archived file
    return Response(
        content=result.content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-Report-Inconsistencies": str(len(result.inconsistencies)),
        },
    )
