"""
Database Models - Marketplace Catalog & Orders

Read-side mapping of the marketplace tables the dashboard aggregates over.
The tables are owned and written by the admin panel; this service only
selects from them.

Tenancy:
- Brands are the tenant boundary; orders and products carry a brand_id

Sales:
- Orders / OrderItems: purchases and their lines

Catalog:
- Products, Categories, Images, ProductImages (position-ordered gallery)

Interest:
- ProductStatistics: append-only view/click/add-to-cart event log
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    BigInteger,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"


class FinancialStatus(str, Enum):
    """Order payment state"""
    UNPAID = "unpaid"
    PAID = "paid"
    PARTIAL_PAID = "partial_paid"
    REFUNDED = "refunded"


class StatisticType(str, Enum):
    """Product interest event type"""
    VIEW = "view"
    CLICK = "click"
    ADD_TO_CART = "add_to_cart"


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


# Identity column that stays an autoincrementing INTEGER PRIMARY KEY on SQLite
BigIntId = BigInteger().with_variant(Integer, "sqlite")


# =============================================================================
# TENANCY & CATALOG
# =============================================================================

class Brand(Base):
    """
    Brand (tenant)

    Owned by a single user account. Every order and product belongs to
    exactly one brand.
    """
    __tablename__ = "brands"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    products: Mapped[List["Product"]] = relationship(back_populates="brand")
    orders: Mapped[List["Order"]] = relationship(back_populates="brand")


class Category(Base):
    """Product category"""
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class Image(Base):
    """
    Stored media file

    `src` is either an absolute URL or a storage-relative key.
    """
    __tablename__ = "images"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    src: Mapped[str] = mapped_column(String(1024), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class Product(Base):
    """Catalog product"""
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    brand_id: Mapped[str] = mapped_column(ForeignKey("brands.id"), nullable=False)
    category_id: Mapped[Optional[int]] = mapped_column(ForeignKey("categories.id"))
    title: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    brand: Mapped["Brand"] = relationship(back_populates="products")
    category: Mapped[Optional["Category"]] = relationship()
    images: Mapped[List["ProductImage"]] = relationship(
        back_populates="product", order_by="ProductImage.position"
    )

    __table_args__ = (
        Index("ix_products_brand", "brand_id"),
    )


class ProductImage(Base):
    """Position-ordered link between a product and its gallery images"""
    __tablename__ = "product_images"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    image_id: Mapped[int] = mapped_column(ForeignKey("images.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    product: Mapped["Product"] = relationship(back_populates="images")
    image: Mapped["Image"] = relationship()

    __table_args__ = (
        Index("ix_product_images_product_position", "product_id", "position"),
    )


# =============================================================================
# SALES
# =============================================================================

class Order(Base):
    """
    Customer order

    Exactly one brand per order. Revenue is derived from the items.
    """
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    brand_id: Mapped[str] = mapped_column(ForeignKey("brands.id"), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255))

    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(
            OrderStatus,
            name="order_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        default=OrderStatus.PENDING,
        nullable=False,
    )
    financial_status: Mapped[FinancialStatus] = mapped_column(
        SQLEnum(
            FinancialStatus,
            name="financial_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        default=FinancialStatus.UNPAID,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    brand: Mapped["Brand"] = relationship(back_populates="orders")
    items: Mapped[List["OrderItem"]] = relationship(back_populates="order")

    __table_args__ = (
        Index("ix_orders_brand_created", "brand_id", "created_at"),
        Index("ix_orders_status", "status"),
    )


class OrderItem(Base):
    """
    Order line

    product_id is nulled when the product is deleted; the line survives.
    """
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), nullable=False)
    product_id: Mapped[Optional[int]] = mapped_column(ForeignKey("products.id"))
    title: Mapped[Optional[str]] = mapped_column(String(255))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    final_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    order: Mapped["Order"] = relationship(back_populates="items")

    __table_args__ = (
        Index("ix_order_items_order", "order_id"),
        Index("ix_order_items_product", "product_id"),
    )


# =============================================================================
# INTEREST
# =============================================================================

class ProductStatistic(Base):
    """
    Product interest event

    Append-only; one row per (product, client, type).
    """
    __tablename__ = "product_statistics"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    client_id: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[StatisticType] = mapped_column(
        SQLEnum(
            StatisticType,
            name="statistic_type",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("product_id", "client_id", "type", name="statistics"),
        Index("ix_product_statistics_created", "created_at"),
    )
