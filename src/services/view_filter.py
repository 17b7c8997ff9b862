"""Dashboard view filtering and sorting over property records.

Pure functions: no I/O and no mutation of the input records. Records may be
ORM ``Property`` objects or plain mappings with the same field names.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from core.exceptions import ValidationError
from core.utils import ensure_aware

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SortOption(str, enum.Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    PRICE_ASC = "price-asc"
    PRICE_DESC = "price-desc"
    SQFT_DESC = "sqft-desc"
    RATING_DESC = "rating-desc"


# (filter field, record field) for minimum thresholds
_MINIMUMS = (
    ("min_rooms", "rooms"),
    ("min_bathrooms", "bathrooms"),
    ("min_environments", "environments"),
    ("min_sqft", "sqft"),
    ("min_parking", "parking"),
)


@dataclass(frozen=True)
class FilterSet:
    """
    Structured filters. ``None`` means unset; ``0`` is a real threshold.

    ``min_rating`` only applies when greater than zero.
    """

    max_price: Optional[float] = None
    min_rooms: Optional[int] = None
    min_bathrooms: Optional[int] = None
    min_environments: Optional[int] = None
    min_sqft: Optional[float] = None
    min_parking: Optional[int] = None
    status: Optional[str] = None
    min_rating: Optional[int] = None

    def active_filter_count(self) -> int:
        count = 0
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or value == "":
                continue
            if f.name == "min_rating" and value <= 0:
                continue
            count += 1
        return count

    @classmethod
    def from_query_params(cls, params: Mapping[str, Any]) -> "FilterSet":
        """Build a filter set from string query parameters; blanks are unset."""

        def number(name: str, cast: type) -> Optional[Any]:
            raw = params.get(name)
            if raw is None or str(raw).strip() == "":
                return None
            try:
                return cast(float(raw)) if cast is int else cast(raw)
            except (ValueError, OverflowError) as e:
                raise ValidationError(f"Filter {name} must be a number, got {raw!r}") from e

        status = params.get("status")
        return cls(
            max_price=number("max_price", float),
            min_rooms=number("min_rooms", int),
            min_bathrooms=number("min_bathrooms", int),
            min_environments=number("min_environments", int),
            min_sqft=number("min_sqft", float),
            min_parking=number("min_parking", int),
            status=status if status else None,
            min_rating=number("min_rating", int),
        )


def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _num(record: Any, name: str) -> float:
    value = _field(record, name)
    return float(value) if value is not None else 0.0


def _created(record: Any) -> datetime:
    value = _field(record, "created_at")
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return ensure_aware(value) or _EPOCH


def _matches_query(record: Any, needle: str) -> bool:
    for name in ("title", "address", "notes"):
        value = _field(record, name)
        if value and needle in str(value).lower():
            return True
    return False


def _passes_filters(record: Any, filters: FilterSet) -> bool:
    if filters.max_price is not None and _num(record, "price") > filters.max_price:
        return False
    for filter_name, record_name in _MINIMUMS:
        threshold = getattr(filters, filter_name)
        if threshold is not None and _num(record, record_name) < threshold:
            return False
    if filters.status and _field(record, "status") != filters.status:
        return False
    if filters.min_rating and filters.min_rating > 0 and _num(record, "rating") < filters.min_rating:
        return False
    return True


def sort_properties(records: Iterable[Any], sort: SortOption | str = SortOption.NEWEST) -> List[Any]:
    """Stable sort by the selected key; ties keep their input order."""
    option = SortOption(sort)
    items = list(records)
    if option == SortOption.NEWEST:
        return sorted(items, key=_created, reverse=True)
    if option == SortOption.OLDEST:
        return sorted(items, key=_created)
    if option == SortOption.PRICE_ASC:
        return sorted(items, key=lambda r: _num(r, "price"))
    if option == SortOption.PRICE_DESC:
        return sorted(items, key=lambda r: _num(r, "price"), reverse=True)
    if option == SortOption.SQFT_DESC:
        return sorted(items, key=lambda r: _num(r, "sqft"), reverse=True)
    return sorted(items, key=lambda r: _num(r, "rating"), reverse=True)


def apply_view_filters(
    properties: Sequence[Any],
    query: str = "",
    filters: Optional[FilterSet] = None,
    sort: SortOption | str = SortOption.NEWEST,
    active_folder_id: Optional[str] = None,
) -> List[Any]:
    """
    Filter and order ``properties`` for display.

    Pipeline: active folder, free-text query over title/address/notes,
    numeric thresholds, exact status, minimum rating, then sort. The result
    is always a subset of the input and re-applying the same arguments to it
    returns it unchanged.
    """
    filters = filters or FilterSet()
    result: Iterable[Any] = properties

    if active_folder_id:
        result = [r for r in result if _field(r, "folder_id") == active_folder_id]

    needle = (query or "").strip().lower()
    if needle:
        result = [r for r in result if _matches_query(r, needle)]

    result = [r for r in result if _passes_filters(r, filters)]
    return sort_properties(result, sort)


__all__ = ["SortOption", "FilterSet", "apply_view_filters", "sort_properties"]
