"""
SQLModel table definitions for the production network.

This module defines the database tables for lines, work centers, operations,
products, their routing join tables and production orders. Uniqueness,
foreign keys and numeric precision are declared here and enforced by the
database, not by application code.

Parent-side collections use ``passive_deletes="all"`` so that deleting a
parent never makes the ORM null out or load its children: the foreign key
``RESTRICT`` rule in the database decides whether the delete may proceed.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Protocol, runtime_checkable

from sqlalchemy import DateTime, Double, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def next_timestamp(previous: datetime | None = None) -> datetime:
    """
    Return a timestamp strictly later than ``previous``.

    Falls back to ``previous`` plus one microsecond when the clock has not
    advanced since the last stamp.
    """
    now = utc_now()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


@runtime_checkable
class AuditedEntity(Protocol):
    """What the stamping rules need from an entity."""

    id: int | None
    enabled: bool
    created_at: datetime
    last_update: datetime


# Base classes for shared fields
# Timestamps are naive UTC, so columns are declared as plain DateTime
class AuditedModel(SQLModel):
    """Base model with integer identity, audit timestamps and enabled flag."""

    id: int | None = Field(default=None, primary_key=True)
    enabled: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    last_update: datetime = Field(default_factory=utc_now, sa_type=DateTime)


class RouteModel(AuditedModel):
    """Ordering and validity window shared by routing join tables."""

    order: int = Field(default=0, ge=0)
    version: int = Field(default=1, ge=1)
    effective_start_date: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    effective_end_date: datetime | None = Field(default=None, sa_type=DateTime)


# Operation types
class OperationType(AuditedModel, table=True):
    __tablename__ = "operation_types"

    name: str = Field(max_length=100, unique=True, index=True)

    operations: list["Operation"] = Relationship(
        back_populates="operation_type", passive_deletes="all"
    )
    work_center_routes: list["WorkCenterOperationRoute"] = Relationship(
        back_populates="operation_type", passive_deletes="all"
    )
    product_routes: list["ProductOperationRoute"] = Relationship(
        back_populates="operation_type", passive_deletes="all"
    )


# Lines
class Line(AuditedModel, table=True):
    __tablename__ = "lines"

    name: str = Field(max_length=100, unique=True, index=True)

    work_centers: list["WorkCenter"] = Relationship(
        back_populates="line", passive_deletes="all"
    )
    work_center_routes: list["LineWorkCenterRoute"] = Relationship(
        back_populates="line",
        passive_deletes="all",
        sa_relationship_kwargs={"order_by": "LineWorkCenterRoute.order"},
    )
    available_products: list["ProductAvailablePerLine"] = Relationship(
        back_populates="line", passive_deletes="all"
    )


# Work centers
class WorkCenter(AuditedModel, table=True):
    __tablename__ = "work_centers"

    name: str = Field(max_length=100)
    optimal_batch: Decimal = Field(max_digits=18, decimal_places=2)
    line_id: int = Field(foreign_key="lines.id", ondelete="RESTRICT", index=True)

    line: Optional["Line"] = Relationship(back_populates="work_centers")
    operations: list["Operation"] = Relationship(
        back_populates="work_center", passive_deletes="all"
    )
    line_routes: list["LineWorkCenterRoute"] = Relationship(
        back_populates="work_center", passive_deletes="all"
    )
    operation_routes: list["WorkCenterOperationRoute"] = Relationship(
        back_populates="work_center",
        passive_deletes="all",
        sa_relationship_kwargs={"order_by": "WorkCenterOperationRoute.order"},
    )
    surplus_stocks: list["SurplusPerProductAndWorkCenter"] = Relationship(
        back_populates="work_center", passive_deletes="all"
    )


# Operations
class Operation(AuditedModel, table=True):
    __tablename__ = "operations"

    name: str = Field(max_length=100)
    setup_time_in_minutes: int = Field(default=0, ge=0)
    capacity: float = Field(sa_type=Double)
    operation_type_id: int = Field(
        foreign_key="operation_types.id", ondelete="RESTRICT", index=True
    )
    work_center_id: int = Field(
        foreign_key="work_centers.id", ondelete="RESTRICT", index=True
    )

    operation_type: Optional["OperationType"] = Relationship(back_populates="operations")
    work_center: Optional["WorkCenter"] = Relationship(back_populates="operations")


# Products
class Product(AuditedModel, table=True):
    __tablename__ = "products"

    name: str = Field(max_length=100, unique=True, index=True)
    unit_price_per_ton: Decimal = Field(max_digits=18, decimal_places=2)
    profit_margin: Decimal = Field(max_digits=18, decimal_places=4)
    priority: int = Field(default=0)
    penalty_cost: Decimal = Field(max_digits=18, decimal_places=2)

    operation_routes: list["ProductOperationRoute"] = Relationship(
        back_populates="product",
        passive_deletes="all",
        sa_relationship_kwargs={"order_by": "ProductOperationRoute.order"},
    )
    available_on_lines: list["ProductAvailablePerLine"] = Relationship(
        back_populates="product", passive_deletes="all"
    )
    production_order_items: list["ProductionOrderItem"] = Relationship(
        back_populates="product", passive_deletes="all"
    )
    surplus_stocks: list["SurplusPerProductAndWorkCenter"] = Relationship(
        back_populates="product", passive_deletes="all"
    )


# Routing and availability join tables
class ProductAvailablePerLine(AuditedModel, table=True):
    """A product may be made on a line at most once."""

    __tablename__ = "products_available_per_line"
    __table_args__ = (
        UniqueConstraint(
            "product_id", "line_id", name="uq_products_available_per_line_product_line"
        ),
    )

    product_id: int = Field(foreign_key="products.id", ondelete="RESTRICT", index=True)
    line_id: int = Field(foreign_key="lines.id", ondelete="RESTRICT", index=True)

    product: Optional["Product"] = Relationship(back_populates="available_on_lines")
    line: Optional["Line"] = Relationship(back_populates="available_products")


class ProductOperationRoute(RouteModel, table=True):
    """Operation types a product requires, in processing order."""

    __tablename__ = "product_operation_routes"

    product_id: int = Field(foreign_key="products.id", ondelete="RESTRICT", index=True)
    operation_type_id: int = Field(
        foreign_key="operation_types.id", ondelete="RESTRICT", index=True
    )

    product: Optional["Product"] = Relationship(back_populates="operation_routes")
    operation_type: Optional["OperationType"] = Relationship(
        back_populates="product_routes"
    )


class WorkCenterOperationRoute(RouteModel, table=True):
    """Operation types a work center performs."""

    __tablename__ = "work_center_operation_routes"

    name: str | None = Field(default=None, max_length=50)
    transport_time_in_minutes: int = Field(default=0, ge=0)
    work_center_id: int = Field(
        foreign_key="work_centers.id", ondelete="RESTRICT", index=True
    )
    operation_type_id: int = Field(
        foreign_key="operation_types.id", ondelete="RESTRICT", index=True
    )

    work_center: Optional["WorkCenter"] = Relationship(back_populates="operation_routes")
    operation_type: Optional["OperationType"] = Relationship(
        back_populates="work_center_routes"
    )


class LineWorkCenterRoute(RouteModel, table=True):
    """Work centers a line routes through."""

    __tablename__ = "line_work_center_routes"

    transport_time_in_minutes: int = Field(default=0, ge=0)
    line_id: int = Field(foreign_key="lines.id", ondelete="RESTRICT", index=True)
    work_center_id: int = Field(
        foreign_key="work_centers.id", ondelete="RESTRICT", index=True
    )

    line: Optional["Line"] = Relationship(back_populates="work_center_routes")
    work_center: Optional["WorkCenter"] = Relationship(back_populates="line_routes")


# Production orders
class ProductionOrder(AuditedModel, table=True):
    __tablename__ = "production_orders"

    order_number: str = Field(max_length=100, index=True)
    earliest_start_date: datetime = Field(sa_type=DateTime)
    deadline: datetime = Field(sa_type=DateTime)

    items: list["ProductionOrderItem"] = Relationship(
        back_populates="production_order",
        passive_deletes="all",
        sa_relationship_kwargs={"order_by": "ProductionOrderItem.id"},
    )


class ProductionOrderItem(AuditedModel, table=True):
    __tablename__ = "production_order_items"

    production_order_id: int = Field(
        foreign_key="production_orders.id", ondelete="RESTRICT", index=True
    )
    product_id: int = Field(foreign_key="products.id", ondelete="RESTRICT", index=True)
    quantity: Decimal = Field(max_digits=18, decimal_places=2)

    production_order: Optional["ProductionOrder"] = Relationship(back_populates="items")
    product: Optional["Product"] = Relationship(back_populates="production_order_items")


class SurplusPerProductAndWorkCenter(AuditedModel, table=True):
    __tablename__ = "surplus_per_product_and_work_center"

    product_id: int = Field(foreign_key="products.id", ondelete="RESTRICT", index=True)
    work_center_id: int = Field(
        foreign_key="work_centers.id", ondelete="RESTRICT", index=True
    )
    surplus: Decimal = Field(max_digits=18, decimal_places=2)

    product: Optional["Product"] = Relationship(back_populates="surplus_stocks")
    work_center: Optional["WorkCenter"] = Relationship(back_populates="surplus_stocks")
