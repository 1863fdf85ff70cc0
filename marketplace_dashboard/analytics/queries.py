"""
Dashboard Aggregation Queries

Read-only aggregations behind the dashboard widgets. Every query takes a
time window and an optional brand id; with no brand the query runs
platform-wide.

Sales figures ignore cancelled/archived orders and refunded payments.
The order-status breakdown counts every status on purpose, since the
excluded buckets are part of what it reports.
"""

import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

import structlog
from sqlalchemy import and_, case, distinct, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_dashboard.analytics.filters import ConversionSort, SortDirection
from marketplace_dashboard.analytics.series import day_key
from marketplace_dashboard.database.models import (
    Category,
    FinancialStatus,
    Image,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductImage,
    ProductStatistic,
    StatisticType,
)

logger = structlog.get_logger(__name__)

EXCLUDED_STATUSES = (OrderStatus.CANCELLED, OrderStatus.ARCHIVED)
STATUS_BUCKETS = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
    OrderStatus.ARCHIVED,
)


# =============================================================================
# EXPRESSION HELPERS
# =============================================================================

def _count_where(condition):
    """SUM(CASE WHEN condition THEN 1 ELSE 0 END), never NULL"""
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def _event_count(event_type: StatisticType):
    return _count_where(ProductStatistic.type == event_type)


def _revenue():
    return func.coalesce(func.sum(OrderItem.final_price * OrderItem.quantity), 0)


def _units():
    return func.coalesce(func.sum(OrderItem.quantity), 0)


def _sales_conditions(start: datetime, end: datetime, brand_id: Optional[str]) -> list:
    """Orders that count toward sales in the window"""
    conditions = [
        Order.created_at.between(start, end),
        Order.status.not_in(EXCLUDED_STATUSES),
        Order.financial_status != FinancialStatus.REFUNDED,
    ]
    if brand_id:
        conditions.append(Order.brand_id == brand_id)
    return conditions


def first_image_subquery():
    """
    (product_id, image_id) of each product's first gallery image.

    Lowest position wins, ties broken by link id.
    """
    ranked = select(
        ProductImage.product_id.label("product_id"),
        ProductImage.image_id.label("image_id"),
        func.row_number().over(
            partition_by=ProductImage.product_id,
            order_by=(ProductImage.position, ProductImage.id),
        ).label("rn"),
    ).subquery("ranked_images")

    return (
        select(ranked.c.product_id, ranked.c.image_id)
        .where(ranked.c.rn == 1)
        .subquery("pi")
    )


def ratio(numerator: float, denominator: float) -> float:
    """Percentage of numerator over denominator, 0 when there is no denominator"""
    return (numerator / denominator) * 100 if denominator > 0 else 0


# =============================================================================
# SALES
# =============================================================================

async def get_sales_totals(
    db: AsyncSession,
    start: datetime,
    end: datetime,
    brand_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Distinct orders, units sold and revenue across the window"""
    stmt = (
        select(
            func.count(distinct(Order.id)).label("orders_count"),
            _units().label("units_sold"),
            _revenue().label("revenue"),
        )
        .select_from(Order)
        .join(OrderItem, OrderItem.order_id == Order.id)
        .where(*_sales_conditions(start, end, brand_id))
    )
    row = (await db.execute(stmt)).one()

    return {
        "orders": int(row.orders_count or 0),
        "units": int(row.units_sold or 0),
        "revenue": float(row.revenue or 0),
    }


async def get_sales_daily(
    db: AsyncSession,
    start: datetime,
    end: datetime,
    brand_id: Optional[str] = None,
) -> Dict[str, Dict[str, Any]]:
    """Sales metrics per order creation day, keyed by ISO date"""
    day = func.date(Order.created_at)
    stmt = (
        select(
            day.label("date"),
            func.count(distinct(Order.id)).label("orders"),
            _units().label("units"),
            _revenue().label("revenue"),
        )
        .select_from(Order)
        .outerjoin(OrderItem, OrderItem.order_id == Order.id)
        .where(*_sales_conditions(start, end, brand_id))
        .group_by(day)
        .order_by(day)
    )
    result = await db.execute(stmt)

    return {
        day_key(row.date): {
            "revenue": float(row.revenue or 0),
            "orders": int(row.orders or 0),
            "units": int(row.units or 0),
        }
        for row in result.all()
    }


# =============================================================================
# INTEREST
# =============================================================================

def _interest_columns():
    return (
        _event_count(StatisticType.VIEW).label("views"),
        _event_count(StatisticType.CLICK).label("clicks"),
        _event_count(StatisticType.ADD_TO_CART).label("add_to_cart"),
    )


def _interest_conditions(start: datetime, end: datetime, brand_id: Optional[str]) -> list:
    conditions = [ProductStatistic.created_at.between(start, end)]
    if brand_id:
        conditions.append(Product.brand_id == brand_id)
    return conditions


async def get_interest_totals(
    db: AsyncSession,
    start: datetime,
    end: datetime,
    brand_id: Optional[str] = None,
) -> Dict[str, int]:
    """View, click and add-to-cart event counts across the window"""
    stmt = (
        select(*_interest_columns())
        .select_from(ProductStatistic)
        .join(Product, Product.id == ProductStatistic.product_id)
        .where(*_interest_conditions(start, end, brand_id))
    )
    row = (await db.execute(stmt)).one()

    return {
        "views": int(row.views or 0),
        "clicks": int(row.clicks or 0),
        "add_to_cart": int(row.add_to_cart or 0),
    }


async def get_interest_daily(
    db: AsyncSession,
    start: datetime,
    end: datetime,
    brand_id: Optional[str] = None,
) -> Dict[str, Dict[str, int]]:
    """Interest event counts per day, keyed by ISO date"""
    day = func.date(ProductStatistic.created_at)
    stmt = (
        select(day.label("date"), *_interest_columns())
        .select_from(ProductStatistic)
        .join(Product, Product.id == ProductStatistic.product_id)
        .where(*_interest_conditions(start, end, brand_id))
        .group_by(day)
        .order_by(day)
    )
    result = await db.execute(stmt)

    return {
        day_key(row.date): {
            "views": int(row.views or 0),
            "clicks": int(row.clicks or 0),
            "add_to_cart": int(row.add_to_cart or 0),
        }
        for row in result.all()
    }


# =============================================================================
# ORDER HEALTH
# =============================================================================

async def get_status_counts(
    db: AsyncSession,
    start: datetime,
    end: datetime,
    brand_id: Optional[str] = None,
) -> Dict[str, int]:
    """Orders per status bucket in the window, every status included"""
    conditions = [Order.created_at.between(start, end)]
    if brand_id:
        conditions.append(Order.brand_id == brand_id)

    stmt = (
        select(Order.status.label("status"), func.count().label("total"))
        .where(*conditions)
        .group_by(Order.status)
    )
    result = await db.execute(stmt)

    counts = {status.value: 0 for status in STATUS_BUCKETS}
    for row in result.all():
        status = OrderStatus(row.status).value
        if status in counts:
            counts[status] = int(row.total)
    return counts


async def get_attention_summary(
    db: AsyncSession,
    start: datetime,
    end: datetime,
    now: datetime,
    brand_id: Optional[str] = None,
    pending_days: int = 2,
    processing_days: int = 5,
    unpaid_days: int = 3,
) -> Dict[str, int]:
    """
    Active order count and stale-order counts.

    Staleness thresholds are measured back from `now`, not from the
    window end, so the alerts reflect the current backlog whatever range
    is selected. An order matching several overdue rules counts once in
    needs_attention.
    """
    pending_overdue = and_(
        Order.status.in_((OrderStatus.PENDING, OrderStatus.CONFIRMED)),
        Order.created_at <= now - timedelta(days=pending_days),
    )
    processing_overdue = and_(
        Order.status == OrderStatus.PROCESSING,
        Order.created_at <= now - timedelta(days=processing_days),
    )
    unpaid_overdue = and_(
        Order.financial_status == FinancialStatus.UNPAID,
        Order.created_at <= now - timedelta(days=unpaid_days),
    )

    conditions = [
        Order.created_at.between(start, end),
        Order.status.not_in(EXCLUDED_STATUSES),
    ]
    if brand_id:
        conditions.append(Order.brand_id == brand_id)

    stmt = select(
        func.count().label("active_total"),
        _count_where(pending_overdue).label("pending_overdue"),
        _count_where(processing_overdue).label("processing_overdue"),
        _count_where(unpaid_overdue).label("unpaid_overdue"),
        _count_where(or_(pending_overdue, processing_overdue, unpaid_overdue)).label("needs_attention"),
    ).select_from(Order).where(*conditions)
    row = (await db.execute(stmt)).one()

    return {
        "active_total": int(row.active_total or 0),
        "pending_overdue": int(row.pending_overdue or 0),
        "processing_overdue": int(row.processing_overdue or 0),
        "unpaid_overdue": int(row.unpaid_overdue or 0),
        "needs_attention": int(row.needs_attention or 0),
    }


# =============================================================================
# PRODUCTS
# =============================================================================

async def get_product_stats(
    db: AsyncSession,
    start: datetime,
    end: datetime,
    product_ids: Sequence[int],
) -> Dict[int, Dict[str, int]]:
    """Views and add-to-cart counts for the given products"""
    if not product_ids:
        return {}

    stmt = (
        select(
            ProductStatistic.product_id.label("product_id"),
            _event_count(StatisticType.VIEW).label("views"),
            _event_count(StatisticType.ADD_TO_CART).label("add_to_cart"),
        )
        .where(
            ProductStatistic.created_at.between(start, end),
            ProductStatistic.product_id.in_(list(product_ids)),
        )
        .group_by(ProductStatistic.product_id)
    )
    result = await db.execute(stmt)

    return {
        int(row.product_id): {
            "views": int(row.views or 0),
            "add_to_cart": int(row.add_to_cart or 0),
        }
        for row in result.all()
    }


async def get_top_products(
    db: AsyncSession,
    start: datetime,
    end: datetime,
    brand_id: Optional[str] = None,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    """
    Best-selling products by revenue, enriched with interest counts.

    Rows carry the raw `image_src`; products without any signal are
    dropped.
    """
    pi = first_image_subquery()
    revenue = _revenue().label("revenue")

    stmt = (
        select(
            OrderItem.product_id.label("product_id"),
            Product.title.label("title"),
            Category.name.label("category_name"),
            Image.src.label("image_src"),
            func.count(distinct(Order.id)).label("orders_count"),
            _units().label("units_sold"),
            revenue,
        )
        .select_from(OrderItem)
        .join(Order, Order.id == OrderItem.order_id)
        .outerjoin(Product, Product.id == OrderItem.product_id)
        .outerjoin(Category, Category.id == Product.category_id)
        .outerjoin(pi, pi.c.product_id == Product.id)
        .outerjoin(Image, Image.id == pi.c.image_id)
        .where(*_sales_conditions(start, end, brand_id), OrderItem.product_id.is_not(None))
        .group_by(OrderItem.product_id, Product.title, Category.name, Image.src)
        .order_by(revenue.desc(), OrderItem.product_id.desc())
        .limit(limit)
    )
    rows = (await db.execute(stmt)).all()

    stats = await get_product_stats(db, start, end, [int(row.product_id) for row in rows])

    products = []
    for row in rows:
        product_id = int(row.product_id)
        stat = stats.get(product_id, {})
        views = stat.get("views", 0)
        add_to_cart = stat.get("add_to_cart", 0)
        orders = int(row.orders_count or 0)
        row_revenue = float(row.revenue or 0)

        if not (views > 0 or add_to_cart > 0 or orders > 0 or row_revenue > 0):
            continue

        products.append({
            "product_id": product_id,
            "title": row.title,
            "category": row.category_name,
            "image_src": row.image_src,
            "revenue": row_revenue,
            "orders": orders,
            "units": int(row.units_sold or 0),
            "views": views,
            "add_to_cart": add_to_cart,
            "conversion": ratio(orders, views),
        })

    return products


async def get_conversion_page(
    db: AsyncSession,
    start: datetime,
    end: datetime,
    brand_id: Optional[str] = None,
    sort: ConversionSort = ConversionSort.VIEW_TO_ORDER,
    direction: SortDirection = SortDirection.DESC,
    page: int = 1,
    per_page: int = 10,
) -> Dict[str, Any]:
    """
    One page of the conversion table.

    Covers every product of the brand, not only those that sold, and
    keeps the ones with at least one non-zero ratio. Ordered by the
    requested ratio, then views descending, then product id descending.
    Pages past the end clamp to the last page.
    """
    stats = (
        select(
            ProductStatistic.product_id.label("product_id"),
            _event_count(StatisticType.VIEW).label("views"),
            _event_count(StatisticType.ADD_TO_CART).label("add_to_cart"),
        )
        .where(ProductStatistic.created_at.between(start, end))
        .group_by(ProductStatistic.product_id)
        .subquery("ps")
    )
    sales = (
        select(
            OrderItem.product_id.label("product_id"),
            func.count(distinct(Order.id)).label("orders"),
            _revenue().label("revenue"),
        )
        .select_from(OrderItem)
        .join(Order, Order.id == OrderItem.order_id)
        .where(*_sales_conditions(start, end, brand_id))
        .group_by(OrderItem.product_id)
        .subquery("os")
    )

    views = func.coalesce(stats.c.views, 0)
    add_to_cart = func.coalesce(stats.c.add_to_cart, 0)
    orders = func.coalesce(sales.c.orders, 0)

    ratios = {
        ConversionSort.VIEW_TO_CART: case((views > 0, add_to_cart * 100.0 / views), else_=0),
        ConversionSort.VIEW_TO_ORDER: case((views > 0, orders * 100.0 / views), else_=0),
        ConversionSort.CART_TO_ORDER: case((add_to_cart > 0, orders * 100.0 / add_to_cart), else_=0),
    }

    conditions = [or_(*(expr > 0 for expr in ratios.values()))]
    if brand_id:
        conditions.append(Product.brand_id == brand_id)

    count_stmt = (
        select(func.count(Product.id))
        .select_from(Product)
        .outerjoin(stats, stats.c.product_id == Product.id)
        .outerjoin(sales, sales.c.product_id == Product.id)
        .where(*conditions)
    )
    total = int((await db.execute(count_stmt)).scalar() or 0)

    last_page = max(1, math.ceil(total / per_page))
    current_page = min(max(1, page), last_page)
    offset = (current_page - 1) * per_page

    sort_expr = ratios[sort]
    pi = first_image_subquery()
    stmt = (
        select(
            Product.id.label("product_id"),
            Product.title.label("title"),
            Category.name.label("category_name"),
            Image.src.label("image_src"),
            views.label("views"),
            add_to_cart.label("add_to_cart"),
            orders.label("orders"),
            func.coalesce(sales.c.revenue, 0).label("revenue"),
        )
        .select_from(Product)
        .outerjoin(stats, stats.c.product_id == Product.id)
        .outerjoin(sales, sales.c.product_id == Product.id)
        .outerjoin(pi, pi.c.product_id == Product.id)
        .outerjoin(Image, Image.id == pi.c.image_id)
        .outerjoin(Category, Category.id == Product.category_id)
        .where(*conditions)
        .order_by(
            sort_expr.asc() if direction == SortDirection.ASC else sort_expr.desc(),
            views.desc(),
            Product.id.desc(),
        )
        .offset(offset)
        .limit(per_page)
    )
    rows = (await db.execute(stmt)).all()

    logger.debug(
        "Conversion page queried",
        brand_id=brand_id,
        total=total,
        page=current_page,
        sort=sort.value,
        direction=direction.value,
    )

    data = []
    for row in rows:
        row_views = int(row.views or 0)
        row_carts = int(row.add_to_cart or 0)
        row_orders = int(row.orders or 0)
        data.append({
            "product_id": int(row.product_id),
            "title": row.title,
            "category": row.category_name,
            "image_src": row.image_src,
            "views": row_views,
            "add_to_cart": row_carts,
            "orders": row_orders,
            "revenue": float(row.revenue or 0),
            "view_to_cart": ratio(row_carts, row_views),
            "view_to_order": ratio(row_orders, row_views),
            "cart_to_order": ratio(row_orders, row_carts),
        })

    return {
        "data": data,
        "pagination": {
            "page": current_page,
            "per_page": per_page,
            "total": total,
            "last_page": last_page,
            "sort": sort.value,
            "direction": direction.value,
        },
    }
