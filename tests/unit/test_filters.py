"""
Unit Tests - Dashboard Filter Resolution
"""
from datetime import date, datetime, time, timedelta

import pytest

from marketplace_dashboard.analytics.filters import (
    ConversionSort,
    SortDirection,
    TableMode,
    build_date_range,
    resolve_filters,
    window_bounds,
)

NOW = datetime(2025, 6, 15, 12, 0, 0)


class TestRange:
    """Tests for the window length"""

    @pytest.mark.parametrize("raw,expected", [("7", 7), ("30", 30), ("90", 90), (7, 7)])
    def test_allowed_values(self, raw, expected):
        assert resolve_filters({"range": raw}, NOW).range_days == expected

    @pytest.mark.parametrize("raw", ["15", "0", "-7", "abc", "7.5", "", None])
    def test_invalid_falls_back_to_30(self, raw):
        filters = resolve_filters({"range": raw}, NOW)

        assert filters.range_days == 30
        assert filters.dates == resolve_filters({"range": "30"}, NOW).dates

    def test_absent(self):
        assert resolve_filters({}, NOW).range_days == 30


class TestWindow:
    """Tests for window bounds and the calendar day list"""

    @pytest.mark.parametrize("days", [7, 30, 90])
    def test_dates_are_contiguous_and_complete(self, days):
        filters = resolve_filters({"range": str(days)}, NOW)

        assert len(filters.dates) == days
        parsed = [date.fromisoformat(d) for d in filters.dates]
        assert all(b - a == timedelta(days=1) for a, b in zip(parsed, parsed[1:]))
        assert parsed[-1] == NOW.date()

    def test_bounds_cover_whole_days(self):
        start, end = window_bounds(NOW, 7)

        assert start == datetime(2025, 6, 9, 0, 0, 0)
        assert end == datetime.combine(date(2025, 6, 15), time.max)

    def test_meta_dates(self):
        filters = resolve_filters({"range": "7"}, NOW)

        assert filters.start_date == "2025-06-09"
        assert filters.end_date == "2025-06-15"

    def test_date_range_across_month_boundary(self):
        dates = build_date_range(datetime(2025, 2, 27), datetime(2025, 3, 2, 23, 59))

        assert dates == ["2025-02-27", "2025-02-28", "2025-03-01", "2025-03-02"]


class TestTableAndConversionParams:
    """Tests for table mode, sort, direction and page"""

    def test_defaults(self):
        filters = resolve_filters({}, NOW)

        assert filters.table_mode == TableMode.TOP
        assert filters.conversion_sort == ConversionSort.VIEW_TO_ORDER
        assert filters.conversion_direction == SortDirection.DESC
        assert filters.conversion_page == 1

    def test_valid_values(self):
        filters = resolve_filters(
            {"table": "gap", "conv_sort": "cart_to_order", "conv_dir": "asc", "conv_page": "3"},
            NOW,
        )

        assert filters.table_mode == TableMode.GAP
        assert filters.conversion_sort == ConversionSort.CART_TO_ORDER
        assert filters.conversion_direction == SortDirection.ASC
        assert filters.conversion_page == 3

    def test_invalid_values_degrade(self):
        filters = resolve_filters(
            {"table": "bottom", "conv_sort": "revenue", "conv_dir": "up", "conv_page": "x"},
            NOW,
        )

        assert filters.table_mode == TableMode.TOP
        assert filters.conversion_sort == ConversionSort.VIEW_TO_ORDER
        assert filters.conversion_direction == SortDirection.DESC
        assert filters.conversion_page == 1

    @pytest.mark.parametrize("raw", ["0", "-4"])
    def test_page_clamps_to_one(self, raw):
        assert resolve_filters({"conv_page": raw}, NOW).conversion_page == 1

    def test_direction_is_case_sensitive(self):
        assert resolve_filters({"conv_dir": "ASC"}, NOW).conversion_direction == SortDirection.DESC

    def test_custom_range_options(self):
        filters = resolve_filters({"range": "14"}, NOW, range_options=(14, 28), default_range=28)

        assert filters.range_days == 14
        assert len(filters.dates) == 14
