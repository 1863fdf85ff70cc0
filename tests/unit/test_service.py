"""
Unit Tests - Dashboard Service Shaping
"""
import pytest

from marketplace_dashboard.analytics.service import (
    NO_BRAND_ERROR,
    DashboardService,
    TenantContext,
    build_metrics,
    health_score,
)
from marketplace_dashboard.config.settings import DashboardSettings


class TestHealthScore:

    def test_example(self):
        assert health_score(10, 3) == 70.0

    def test_no_active_orders_is_no_signal(self):
        assert health_score(0, 0) is None

    def test_all_stale(self):
        assert health_score(4, 4) == 0.0

    def test_none_stale(self):
        assert health_score(4, 0) == 100.0

    def test_clamped(self):
        assert health_score(2, 5) == 0.0


class TestBuildMetrics:

    def test_aov_and_conversions(self):
        metrics = build_metrics(
            {"orders": 4, "revenue": 100.0, "units": 9},
            {"views": 200, "add_to_cart": 20},
        )

        assert metrics["aov"] == 25.0
        assert metrics["units"] == 9
        assert metrics["conversion_view_to_atc"] == 10.0
        assert metrics["conversion_view_to_order"] == 2.0

    def test_zero_denominators(self):
        metrics = build_metrics({"orders": 0, "revenue": 0}, {"views": 0, "add_to_cart": 3})

        assert metrics["aov"] == 0
        assert metrics["conversion_view_to_atc"] == 0
        assert metrics["conversion_view_to_order"] == 0


class TestTenantContext:

    @pytest.mark.parametrize("brand_id,is_admin,expected", [
        ("brand-1", False, True),
        (None, True, True),
        ("brand-1", True, True),
        (None, False, False),
    ])
    def test_has_scope(self, brand_id, is_admin, expected):
        assert TenantContext(brand_id=brand_id, is_admin=is_admin).has_scope is expected


class TestNoTenantPayload:
    """The short-circuit payload never touches the database or cache"""

    @pytest.fixture
    def service(self, storage, clock):
        return DashboardService(None, None, storage, settings=DashboardSettings(), clock=clock)

    async def test_zeroed_payload_with_error(self, service):
        payload = await service.build({"range": "7", "table": "gap"}, TenantContext())

        assert payload["error"] == NO_BRAND_ERROR
        assert payload["range"] == 7
        assert payload["table_mode"] == "gap"
        assert len(payload["series"]["sales"]) == 7
        assert len(payload["series"]["interest"]) == 7
        assert all(p["revenue"] == 0 and p["orders"] == 0 and p["units"] == 0 for p in payload["series"]["sales"])
        assert payload["metrics"]["revenue"] == 0
        assert payload["top_products"] == []
        assert payload["meta"] == {"start_date": "2025-06-09", "end_date": "2025-06-15", "currency": "BYN"}

    async def test_empty_order_status(self, service):
        payload = await service.build({}, TenantContext())
        widget = payload["order_status"]

        assert widget["health"] is None
        assert widget["status_total"] == 0
        assert set(widget["status_counts"]) == {"pending", "confirmed", "processing", "completed", "cancelled", "archived"}
        assert [(a["key"], a["days"]) for a in widget["attention"]] == [("pending", 2), ("processing", 5), ("unpaid", 3)]

    async def test_empty_conversion_keeps_requested_shape(self, service):
        payload = await service.build({"conv_sort": "cart_to_order", "conv_dir": "asc", "conv_page": "4"}, TenantContext())

        assert payload["top_conversion"] == {
            "data": [],
            "pagination": {
                "page": 4,
                "per_page": 10,
                "total": 0,
                "last_page": 1,
                "sort": "cart_to_order",
                "direction": "asc",
            },
        }
