from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Optional, Tuple

from fuelboard.config import Config
from fuelboard.errors import MalformedPersistedState

logger = logging.getLogger(__name__)

ALL_SITES = "all"

MONTH_LABELS: Tuple[str, ...] = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)


@dataclass(frozen=True)
class Selection:
    site_id: str = ALL_SITES
    months: Tuple[int, ...] = field(default_factory=tuple)
    years: Tuple[int, ...] = field(default_factory=tuple)


def month_label(code: int) -> str:
    return MONTH_LABELS[int(code) - 1]


def month_code(label: object) -> Optional[int]:
    """Translate ``"january"``, ``"Jan"`` or ``"1"`` into a month code, or None."""
    if isinstance(label, bool):
        return None
    if isinstance(label, int):
        return label if 1 <= label <= 12 else None
    text = str(label or "").strip().lower()
    if not text:
        return None
    if text.isdigit():
        code = int(text)
        return code if 1 <= code <= 12 else None
    for idx, name in enumerate(MONTH_LABELS, start=1):
        if name == text or (len(text) >= 3 and name.startswith(text)):
            return idx
    return None


def _as_int(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _as_int_list(values: Optional[Iterable[object]]) -> List[int]:
    if values is None or isinstance(values, (str, bytes)):
        values = [values] if values else []
    out: List[int] = []
    for v in values:
        parsed = _as_int(v)
        if parsed is not None:
            out.append(parsed)
    return out


def normalize_selection(raw_site: object, raw_months: Optional[Iterable[object]], raw_years: Optional[Iterable[object]]) -> Selection:
    site = "" if raw_site is None else str(raw_site).strip()
    if not site:
        site = ALL_SITES
    months = sorted({m for m in _as_int_list(raw_months) if 1 <= m <= 12})
    years = sorted(set(_as_int_list(raw_years)))
    return Selection(site_id=site, months=tuple(months), years=tuple(years))


def is_queryable(selection: Selection) -> bool:
    if not selection.site_id or selection.site_id == ALL_SITES:
        return False
    return bool(selection.months) and bool(selection.years)


def default_selection() -> Selection:
    return Selection(site_id=Config.DEFAULT_SITE, months=tuple(Config.DEFAULT_MONTHS), years=tuple(Config.DEFAULT_YEARS))


def to_persisted(selection: Selection) -> Dict[str, Any]:
    return {"site": selection.site_id, "months": list(selection.months), "years": list(selection.years)}


def _parse_persisted(shape: object) -> Selection:
    if isinstance(shape, (str, bytes)):
        try:
            shape = json.loads(shape)
        except ValueError as exc:
            raise MalformedPersistedState(f"stored filters are not JSON: {exc}") from exc
    if not isinstance(shape, Mapping):
        raise MalformedPersistedState(f"stored filters must be an object, got {type(shape).__name__}")

    defaults = default_selection()
    site = shape.get("site")
    if site is not None and not isinstance(site, (str, int)):
        raise MalformedPersistedState("site must be a string")

    raw_months = shape.get("months")
    if raw_months is None:
        months: List[object] = list(defaults.months)
    elif isinstance(raw_months, list):
        # labels are only accepted here, at the persistence boundary
        months = [month_code(m) for m in raw_months]
    else:
        raise MalformedPersistedState("months must be a list")

    raw_years = shape.get("years")
    if raw_years is None:
        years: List[object] = list(defaults.years)
    elif isinstance(raw_years, list):
        years = raw_years
    else:
        raise MalformedPersistedState("years must be a list")

    return normalize_selection(site if site is not None else defaults.site_id, months, years)


def from_persisted(shape: object) -> Selection:
    if shape is None:
        return default_selection()
    try:
        return _parse_persisted(shape)
    except MalformedPersistedState as exc:
        logger.debug("Discarding stored filters: %s", exc)
        return default_selection()


class FilterStore:
    """Session-scoped persistence for the current Selection.

    ``storage`` is any mutable mapping: ``st.session_state`` in the UI, a plain
    dict in tests. The stored value is read once and written on every change.
    """

    def __init__(self, storage: MutableMapping[str, Any], key: str = Config.FILTER_STORAGE_KEY):
        self._storage = storage
        self.key = key
        self._current: Optional[Selection] = None

    def load(self) -> Selection:
        if self._current is None:
            self._current = from_persisted(self._storage.get(self.key))
        return self._current

    def save(self, selection: Selection) -> Selection:
        self._current = selection
        self._storage[self.key] = json.dumps(to_persisted(selection))
        return selection

    def update(self, raw_site: object, raw_months: Optional[Iterable[object]], raw_years: Optional[Iterable[object]]) -> Selection:
        return self.save(normalize_selection(raw_site, raw_months, raw_years))

    def clear(self) -> Selection:
        self._storage.pop(self.key, None)
        self._current = default_selection()
        return self._current


__all__ = [
    "ALL_SITES",
    "MONTH_LABELS",
    "FilterStore",
    "Selection",
    "default_selection",
    "from_persisted",
    "is_queryable",
    "month_code",
    "month_label",
    "normalize_selection",
    "to_persisted",
]
