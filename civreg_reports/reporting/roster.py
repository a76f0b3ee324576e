"""
Barangay roster loading.

The roster pads report tables with zero-count barangays. It is configuration,
not code: callers pass a roster explicitly, and the default comes from the
JSON file named by BARANGAY_ROSTER_PATH.

Accepted file shapes:
- a plain JSON list of names
- {"<CITY>": {"barangay_list": [...]}} as exported by the registry app
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Tuple

from civreg_reports.core.config import settings
from civreg_reports.core.logging import setup_logger

logger = setup_logger(settings.LOG_LEVEL)

Roster = Tuple[str, ...]


def parse_roster(raw: Any, city: Optional[str] = None) -> Roster:
    """
    Normalize a decoded roster document into an ordered tuple of names.

    Args:
        raw: Decoded JSON (list, or mapping of city -> {"barangay_list": [...]})
        city: City key to pick when the document holds several cities

    Returns:
        Tuple of unique barangay names in file order
    """
    if isinstance(raw, dict):
        if city is None:
            if len(raw) != 1:
                raise ValueError(f"Roster holds {len(raw)} cities; pass city= to choose one")
            city = next(iter(raw))
        entry = raw.get(city)
        if not isinstance(entry, dict) or "barangay_list" not in entry:
            raise ValueError(f"Roster has no barangay_list for city {city!r}")
        names = entry["barangay_list"]
    elif isinstance(raw, list):
        names = raw
    else:
        raise ValueError(f"Unsupported roster document type: {type(raw).__name__}")

    seen = set()
    ordered = []
    for name in names:
        name = str(name).strip()
        if name and name not in seen:
            seen.add(name)
            ordered.append(name)
    return tuple(ordered)


def load_barangay_roster(path: Optional[str] = None, city: Optional[str] = None) -> Roster:
    """
    Read a roster file from disk.

    Args:
        path: JSON file path (defaults to settings.BARANGAY_ROSTER_PATH)
        city: Optional city key for multi-city files

    Returns:
        Tuple of barangay names
    """
    roster_path = Path(path or settings.BARANGAY_ROSTER_PATH)
    with roster_path.open("r", encoding="utf-8") as f:
        raw = json.load(f)
    roster = parse_roster(raw, city=city)
    logger.debug(f"roster_loaded=true path={roster_path} barangays={len(roster)}")
    return roster


@lru_cache(maxsize=1)
def default_roster() -> Roster:
    """Roster from the configured file, read once per process."""
    return load_barangay_roster()
