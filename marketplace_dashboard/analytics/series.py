"""
Series Merging

Charts need one point per calendar day. Daily aggregations only return
days that had activity, so these helpers lay the sparse rows over the
full date list and zero-fill the gaps.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Sequence


SALES_FIELDS = {"revenue": float, "orders": int, "units": int}
INTEREST_FIELDS = {"views": int, "clicks": int, "add_to_cart": int}


def day_key(value: Any) -> str:
    """Normalize a grouped DATE() value to an ISO date string"""
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:10]


def merge_series(
    dates: Sequence[str],
    daily: Mapping[str, Mapping[str, Any]],
    fields: Mapping[str, type],
) -> List[Dict[str, Any]]:
    """
    Dense series over `dates`.

    Args:
        dates: Ordered calendar days
        daily: Aggregated rows keyed by ISO day
        fields: Metric name -> numeric type used for casting and zero-filling

    Returns:
        One entry per date, missing days zeroed
    """
    series = []
    for day in dates:
        row = daily.get(day) or {}
        entry: Dict[str, Any] = {"date": day}
        for name, cast in fields.items():
            entry[name] = cast(row.get(name) or 0)
        series.append(entry)
    return series


def merge_sales_series(dates: Sequence[str], daily: Mapping[str, Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return merge_series(dates, daily, SALES_FIELDS)


def merge_interest_series(dates: Sequence[str], daily: Mapping[str, Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return merge_series(dates, daily, INTEREST_FIELDS)


def empty_sales_series(dates: Sequence[str]) -> List[Dict[str, Any]]:
    return merge_sales_series(dates, {})


def empty_interest_series(dates: Sequence[str]) -> List[Dict[str, Any]]:
    return merge_interest_series(dates, {})
