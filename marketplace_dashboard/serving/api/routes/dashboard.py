"""
Dashboard API Endpoint

Serves the brand analytics dashboard: KPIs, daily series, order health,
top products and the conversion table in one payload.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
import structlog

from marketplace_dashboard.analytics.service import DashboardService, TenantContext
from marketplace_dashboard.serving.api.dependencies import (
    get_dashboard_service,
    get_tenant_context,
)

router = APIRouter()
logger = structlog.get_logger(__name__)


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class DashboardMetrics(BaseModel):
    """Headline KPIs for the window"""
    revenue: float
    orders: int
    aov: float
    units: int
    views: int
    add_to_cart: int
    conversion_view_to_atc: float
    conversion_view_to_order: float


class SalesPoint(BaseModel):
    date: str
    revenue: float
    orders: int
    units: int


class InterestPoint(BaseModel):
    date: str
    views: int
    clicks: int
    add_to_cart: int


class DashboardSeries(BaseModel):
    """One point per calendar day of the window"""
    sales: List[SalesPoint]
    interest: List[InterestPoint]


class StatusCounts(BaseModel):
    pending: int
    confirmed: int
    processing: int
    completed: int
    cancelled: int
    archived: int


class AttentionBucket(BaseModel):
    key: str
    count: int
    days: int


class OrderStatusWidget(BaseModel):
    """Order backlog health"""
    health: Optional[float]
    active_total: int
    needs_attention: int
    status_total: int
    status_counts: StatusCounts
    attention: List[AttentionBucket]


class TopProduct(BaseModel):
    product_id: int
    title: str
    category: Optional[str]
    image_url: Optional[str]
    revenue: float
    orders: int
    units: int
    views: int
    add_to_cart: int
    conversion: float


class ConversionRow(BaseModel):
    product_id: int
    title: str
    category: Optional[str]
    image_url: Optional[str]
    views: int
    add_to_cart: int
    orders: int
    revenue: float
    view_to_cart: float
    view_to_order: float
    cart_to_order: float


class ConversionPagination(BaseModel):
    page: int
    per_page: int
    total: int
    last_page: int
    sort: str
    direction: str


class TopConversion(BaseModel):
    data: List[ConversionRow]
    pagination: ConversionPagination


class DashboardMeta(BaseModel):
    start_date: str
    end_date: str
    currency: str


class DashboardResponse(BaseModel):
    """Complete dashboard view-model"""
    range: int
    table_mode: str
    metrics: DashboardMetrics
    series: DashboardSeries
    order_status: OrderStatusWidget
    top_products: List[TopProduct]
    top_conversion: TopConversion
    meta: DashboardMeta
    error: Optional[str] = None


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("", response_model=DashboardResponse, response_model_exclude_unset=True)
async def get_dashboard(
    request: Request,
    range_days: Optional[str] = Query(None, alias="range", description="Window in days: 7, 30 or 90"),
    table: Optional[str] = Query(None, description="Product table mode: top or gap"),
    conv_sort: Optional[str] = Query(None, description="view_to_cart, view_to_order or cart_to_order"),
    conv_dir: Optional[str] = Query(None, description="asc or desc"),
    conv_page: Optional[str] = Query(None, description="Conversion table page, 1-based"),
    tenant: TenantContext = Depends(get_tenant_context),
    service: DashboardService = Depends(get_dashboard_service),
) -> DashboardResponse:
    """
    Get the analytics dashboard.

    Parameters are taken as plain strings: anything unrecognised falls
    back to its default rather than failing validation.
    """
    params = {
        "range": range_days,
        "table": table,
        "conv_sort": conv_sort,
        "conv_dir": conv_dir,
        "conv_page": conv_page,
    }
    logger.info("get_dashboard called", path=request.url.path, **{k: v for k, v in params.items() if v is not None})

    payload = await service.build(params, tenant)
    return DashboardResponse.model_validate(payload)
