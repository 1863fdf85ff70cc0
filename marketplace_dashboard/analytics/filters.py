"""
Dashboard Filter Resolution

Normalizes raw query parameters into a filter context. Unknown or
malformed values fall back to defaults instead of being rejected: the
dashboard always renders, whatever the query string says.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence


class TableMode(str, Enum):
    """Which product table the dashboard shows"""
    TOP = "top"
    GAP = "gap"


class ConversionSort(str, Enum):
    """Ratio the conversion table is ordered by"""
    VIEW_TO_CART = "view_to_cart"
    VIEW_TO_ORDER = "view_to_order"
    CART_TO_ORDER = "cart_to_order"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


DEFAULT_RANGE_OPTIONS = (7, 30, 90)
DEFAULT_RANGE = 30


@dataclass
class DashboardFilters:
    """Resolved, always-valid dashboard query"""
    range_days: int
    table_mode: TableMode
    conversion_sort: ConversionSort
    conversion_direction: SortDirection
    conversion_page: int
    start: datetime
    end: datetime
    dates: List[str] = field(default_factory=list)

    @property
    def start_date(self) -> str:
        return self.start.date().isoformat()

    @property
    def end_date(self) -> str:
        return self.end.date().isoformat()


def _to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def resolve_range(value: Any, options: Sequence[int] = DEFAULT_RANGE_OPTIONS, default: int = DEFAULT_RANGE) -> int:
    """Window length in days, restricted to the allowed options"""
    days = _to_int(value)
    return days if days in options else default


def resolve_table_mode(value: Any) -> TableMode:
    try:
        return TableMode(value)
    except ValueError:
        return TableMode.TOP


def resolve_conversion_sort(value: Any) -> ConversionSort:
    try:
        return ConversionSort(value)
    except ValueError:
        return ConversionSort.VIEW_TO_ORDER


def resolve_direction(value: Any) -> SortDirection:
    return SortDirection.ASC if value == SortDirection.ASC.value else SortDirection.DESC


def resolve_page(value: Any) -> int:
    page = _to_int(value)
    return max(1, page) if page is not None else 1


def window_bounds(now: datetime, range_days: int) -> tuple:
    """
    Calendar window ending today.

    Returns the start of the first day and the last instant of the
    current day, so the window holds exactly `range_days` calendar days.
    """
    first_day = (now - timedelta(days=range_days - 1)).date()
    start = datetime.combine(first_day, time.min)
    end = datetime.combine(now.date(), time.max)
    return start, end


def build_date_range(start: datetime, end: datetime) -> List[str]:
    """Every calendar day in [start, end] as ISO date strings"""
    dates = []
    cursor: date = start.date()
    last: date = end.date()
    while cursor <= last:
        dates.append(cursor.isoformat())
        cursor += timedelta(days=1)
    return dates


def resolve_filters(
    params: Mapping[str, Any],
    now: datetime,
    range_options: Sequence[int] = DEFAULT_RANGE_OPTIONS,
    default_range: int = DEFAULT_RANGE,
) -> DashboardFilters:
    """
    Build the filter context from raw query parameters.

    Args:
        params: Query parameters (`range`, `table`, `conv_sort`, `conv_dir`, `conv_page`)
        now: Current time from the injected clock
        range_options: Allowed window lengths
        default_range: Window used for anything outside range_options

    Returns:
        DashboardFilters with the window and its calendar days
    """
    range_days = resolve_range(params.get("range"), range_options, default_range)
    start, end = window_bounds(now, range_days)

    return DashboardFilters(
        range_days=range_days,
        table_mode=resolve_table_mode(params.get("table")),
        conversion_sort=resolve_conversion_sort(params.get("conv_sort")),
        conversion_direction=resolve_direction(params.get("conv_dir")),
        conversion_page=resolve_page(params.get("conv_page")),
        start=start,
        end=end,
        dates=build_date_range(start, end),
    )
