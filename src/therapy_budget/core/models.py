"""SQLAlchemy ORM models for the therapy budget service.

All tables use the `tb_` prefix and extend TimestampedModel, which supplies
id, created_at, and updated_at columns.

Domain model:
  BudgetPlan   : a client's funding plan with an available-funds ceiling
  BudgetItem   : a unit_price x quantity line drawn against one plan
  CatalogItem  : predefined item codes with a default unit price
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from therapy_budget.database import TimestampedModel


class BudgetPlan(TimestampedModel):
    """A funding plan for one client.

    At most one plan per client is active at a time; BudgetPlanService
    deactivates the client's other plans whenever one is activated.

    Table: tb_budget_plans
    """

    __tablename__ = "tb_budget_plans"

    client_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="Client (patient) this plan funds",
    )
    plan_serial_number: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Funding body's plan serial number",
    )
    plan_code: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Internal plan code",
    )
    available_funds: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Funding ceiling for all items on this plan",
    )
    end_of_plan: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        comment="Plan end date (ISO 8601)",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether this is the client's current plan",
    )

    __table_args__ = (
        CheckConstraint("available_funds >= 0", name="ck_tb_budget_plans_funds_non_negative"),
        Index("ix_tb_budget_plans_client_active", "client_id", "is_active"),
    )


class BudgetItem(TimestampedModel):
    """A budget line (unit_price x quantity) allocated against a plan.

    Table: tb_budget_items
    """

    __tablename__ = "tb_budget_items"

    plan_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tb_budget_plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
    )
    item_code: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Price per unit; at least 0.01",
    )
    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Allocated units; at least 1",
    )
    used_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Units already consumed by therapy sessions",
    )
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        CheckConstraint("unit_price >= 0.01", name="ck_tb_budget_items_unit_price"),
        CheckConstraint("quantity >= 1", name="ck_tb_budget_items_quantity"),
        CheckConstraint("used_quantity >= 0", name="ck_tb_budget_items_used_quantity"),
    )


class CatalogItem(TimestampedModel):
    """A predefined budget item that plans can draw from.

    Table: tb_catalog_items
    """

    __tablename__ = "tb_catalog_items"

    item_code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    default_unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
