"""
Dashboard Service

Builds the analytics dashboard payload for one request: resolve filters,
run the aggregations for the caller's brand, gap-fill the series and
shape everything into a single JSON-ready dict.

The order-status widget and the conversion table are memoized in Redis
for a few minutes; the other aggregations are single-pass queries and
are recomputed on every request.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_dashboard.analytics import queries
from marketplace_dashboard.analytics.filters import (
    ConversionSort,
    DashboardFilters,
    SortDirection,
    TableMode,
    resolve_filters,
)
from marketplace_dashboard.analytics.series import (
    empty_interest_series,
    empty_sales_series,
    merge_interest_series,
    merge_sales_series,
)
from marketplace_dashboard.config.settings import DashboardSettings
from marketplace_dashboard.serving.cache import CacheManager
from marketplace_dashboard.serving.storage import StorageUrlResolver

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

NO_BRAND_ERROR = "No brand is associated with this user"
MISSING_TITLE = "—"


def utcnow() -> datetime:
    """Naive UTC now, matching how order timestamps are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class TenantContext:
    """Who is asking: their brand (if any) and whether they are a platform admin"""
    brand_id: Optional[str] = None
    is_admin: bool = False

    @property
    def has_scope(self) -> bool:
        return self.brand_id is not None or self.is_admin


def health_score(active_total: int, needs_attention: int) -> Optional[float]:
    """
    Share of active orders that are not stale, as 0-100.

    None when there are no active orders: no orders is no signal, not
    0% or 100% healthy.
    """
    if active_total <= 0:
        return None
    score = (active_total - needs_attention) * 100 / active_total
    return max(0.0, min(100.0, float(score)))


def build_metrics(sales: Mapping[str, Any], interest: Mapping[str, Any]) -> Dict[str, Any]:
    """Headline KPIs from the sales and interest totals"""
    orders = int(sales.get("orders", 0))
    revenue = float(sales.get("revenue", 0))
    views = int(interest.get("views", 0))
    add_to_cart = int(interest.get("add_to_cart", 0))

    return {
        "revenue": revenue,
        "orders": orders,
        "aov": revenue / orders if orders > 0 else 0,
        "units": int(sales.get("units", 0)),
        "views": views,
        "add_to_cart": add_to_cart,
        "conversion_view_to_atc": queries.ratio(add_to_cart, views),
        "conversion_view_to_order": queries.ratio(orders, views),
    }


def empty_metrics() -> Dict[str, Any]:
    return build_metrics({}, {})


def attention_buckets(settings: DashboardSettings, summary: Mapping[str, int]) -> List[Dict[str, Any]]:
    return [
        {"key": "pending", "count": int(summary.get("pending_overdue", 0)), "days": settings.pending_stale_days},
        {"key": "processing", "count": int(summary.get("processing_overdue", 0)), "days": settings.processing_stale_days},
        {"key": "unpaid", "count": int(summary.get("unpaid_overdue", 0)), "days": settings.unpaid_stale_days},
    ]


def empty_order_status(settings: DashboardSettings) -> Dict[str, Any]:
    return {
        "health": None,
        "active_total": 0,
        "needs_attention": 0,
        "status_total": 0,
        "status_counts": {status.value: 0 for status in queries.STATUS_BUCKETS},
        "attention": attention_buckets(settings, {}),
    }


def empty_top_conversion(filters: DashboardFilters, per_page: int) -> Dict[str, Any]:
    return {
        "data": [],
        "pagination": {
            "page": filters.conversion_page,
            "per_page": per_page,
            "total": 0,
            "last_page": 1,
            "sort": filters.conversion_sort.value,
            "direction": filters.conversion_direction.value,
        },
    }


class DashboardService:
    """
    Request-scoped dashboard builder.

    Collaborators are injected so the aggregation logic can run against a
    fixed clock, a fake cache and a test database.

    Example:
        service = DashboardService(db, cache, storage, settings.dashboard)
        payload = await service.build(request.query_params, tenant)
    """

    def __init__(
        self,
        db: AsyncSession,
        cache: CacheManager,
        storage: StorageUrlResolver,
        settings: Optional[DashboardSettings] = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.cache = cache
        self.storage = storage
        self.settings = settings or DashboardSettings()
        self.clock = clock

    def resolve(self, params: Mapping[str, Any]) -> DashboardFilters:
        return resolve_filters(
            params,
            now=self.clock(),
            range_options=self.settings.range_options,
            default_range=self.settings.default_range,
        )

    async def build(self, params: Mapping[str, Any], tenant: TenantContext) -> Dict[str, Any]:
        """
        Full dashboard payload.

        Callers without a brand who are not admins get an all-zero payload
        with an `error` message instead of an exception.
        """
        filters = self.resolve(params)

        if not tenant.has_scope:
            logger.info("Dashboard requested without brand context", range=filters.range_days)
            payload = self._empty_payload(filters)
            payload["error"] = NO_BRAND_ERROR
            return payload

        brand_id = tenant.brand_id
        start, end = filters.start, filters.end

        logger.info(
            "Building dashboard",
            brand_id=brand_id or "all",
            range=filters.range_days,
            table_mode=filters.table_mode.value,
        )

        sales_totals = await queries.get_sales_totals(self.db, start, end, brand_id)
        sales_daily = await queries.get_sales_daily(self.db, start, end, brand_id)
        interest_totals = await queries.get_interest_totals(self.db, start, end, brand_id)
        interest_daily = await queries.get_interest_daily(self.db, start, end, brand_id)
        order_status = await self.order_status(filters, brand_id)
        top_products = await self.top_products(filters, brand_id)

        if filters.table_mode == TableMode.GAP:
            top_conversion = await self.top_conversion(filters, brand_id)
        else:
            top_conversion = empty_top_conversion(filters, self.settings.conversion_per_page)

        return {
            "range": filters.range_days,
            "table_mode": filters.table_mode.value,
            "metrics": build_metrics(sales_totals, interest_totals),
            "series": {
                "sales": merge_sales_series(filters.dates, sales_daily),
                "interest": merge_interest_series(filters.dates, interest_daily),
            },
            "order_status": order_status,
            "top_products": top_products,
            "top_conversion": top_conversion,
            "meta": self._meta(filters),
        }

    async def order_status(self, filters: DashboardFilters, brand_id: Optional[str]) -> Dict[str, Any]:
        """Order health widget, cached per brand and window"""
        key = f"order_status:{brand_id or 'all'}:{filters.start_date}:{filters.end_date}"

        async def compute() -> Dict[str, Any]:
            counts = await queries.get_status_counts(self.db, filters.start, filters.end, brand_id)
            summary = await queries.get_attention_summary(
                self.db,
                filters.start,
                filters.end,
                now=self.clock(),
                brand_id=brand_id,
                pending_days=self.settings.pending_stale_days,
                processing_days=self.settings.processing_stale_days,
                unpaid_days=self.settings.unpaid_stale_days,
            )
            return {
                "health": health_score(summary["active_total"], summary["needs_attention"]),
                "active_total": summary["active_total"],
                "needs_attention": summary["needs_attention"],
                "status_total": sum(counts.values()),
                "status_counts": counts,
                "attention": attention_buckets(self.settings, summary),
            }

        return await self.cache.get_or_set(key, compute, ttl=self.settings.cache_ttl_seconds)

    async def top_products(self, filters: DashboardFilters, brand_id: Optional[str]) -> List[Dict[str, Any]]:
        rows = await queries.get_top_products(
            self.db,
            filters.start,
            filters.end,
            brand_id,
            limit=self.settings.top_products_limit,
        )
        return [self._with_image(row) for row in rows]

    async def top_conversion(self, filters: DashboardFilters, brand_id: Optional[str]) -> Dict[str, Any]:
        """Paginated conversion table, cached per brand, window and page shape"""
        sort: ConversionSort = filters.conversion_sort
        direction: SortDirection = filters.conversion_direction
        per_page = self.settings.conversion_per_page
        key = (
            f"top_conversion:{brand_id or 'all'}:{filters.start_date}:{filters.end_date}"
            f":{sort.value}:{direction.value}:{filters.conversion_page}:{per_page}"
        )

        async def compute() -> Dict[str, Any]:
            page = await queries.get_conversion_page(
                self.db,
                filters.start,
                filters.end,
                brand_id,
                sort=sort,
                direction=direction,
                page=filters.conversion_page,
                per_page=per_page,
            )
            page["data"] = [self._with_image(row) for row in page["data"]]
            return page

        return await self.cache.get_or_set(key, compute, ttl=self.settings.cache_ttl_seconds)

    def _with_image(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Replace the raw image reference with a renderable URL"""
        shaped = dict(row)
        shaped["image_url"] = self.storage.resolve(shaped.pop("image_src", None))
        if shaped.get("title") is None:
            shaped["title"] = MISSING_TITLE
        return shaped

    def _meta(self, filters: DashboardFilters) -> Dict[str, Any]:
        return {
            "start_date": filters.start_date,
            "end_date": filters.end_date,
            "currency": self.settings.currency,
        }

    def _empty_payload(self, filters: DashboardFilters) -> Dict[str, Any]:
        return {
            "range": filters.range_days,
            "table_mode": filters.table_mode.value,
            "metrics": empty_metrics(),
            "series": {
                "sales": empty_sales_series(filters.dates),
                "interest": empty_interest_series(filters.dates),
            },
            "order_status": empty_order_status(self.settings),
            "top_products": [],
            "top_conversion": empty_top_conversion(filters, self.settings.conversion_per_page),
            "meta": self._meta(filters),
        }
