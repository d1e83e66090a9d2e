"""Create initial tb_ schema tables.

Revision ID: 001_tb_initial
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = "001_tb_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    """Create all tb_ tables."""

    # tb_budget_plans
    op.create_table(
        "tb_budget_plans",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column("client_id", sa.Integer, nullable=False),
        sa.Column("plan_serial_number", sa.String(100), nullable=True),
        sa.Column("plan_code", sa.String(100), nullable=True),
        sa.Column("available_funds", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("end_of_plan", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.CheckConstraint("available_funds >= 0", name="ck_tb_budget_plans_funds_non_negative"),
    )
    op.create_index("ix_tb_budget_plans_client_id", "tb_budget_plans", ["client_id"])
    op.create_index("ix_tb_budget_plans_client_active", "tb_budget_plans", ["client_id", "is_active"])
    # At most one active plan per client
    op.create_index(
        "uq_tb_budget_plans_one_active_per_client",
        "tb_budget_plans",
        ["client_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    # tb_budget_items
    op.create_table(
        "tb_budget_items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column(
            "plan_id",
            sa.Integer,
            sa.ForeignKey("tb_budget_plans.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("client_id", sa.Integer, nullable=False),
        sa.Column("item_code", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("used_quantity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("category", sa.String(100), nullable=True),
        sa.CheckConstraint("unit_price >= 0.01", name="ck_tb_budget_items_unit_price"),
        sa.CheckConstraint("quantity >= 1", name="ck_tb_budget_items_quantity"),
        sa.CheckConstraint("used_quantity >= 0", name="ck_tb_budget_items_used_quantity"),
    )
    op.create_index("ix_tb_budget_items_plan_id", "tb_budget_items", ["plan_id"])
    op.create_index("ix_tb_budget_items_client_id", "tb_budget_items", ["client_id"])

    # tb_catalog_items
    op.create_table(
        "tb_catalog_items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column("item_code", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("default_unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_tb_catalog_items_category", "tb_catalog_items", ["category"])


def downgrade() -> None:
    """Drop all tb_ tables."""
    op.drop_table("tb_catalog_items")
    op.drop_table("tb_budget_items")
    op.drop_table("tb_budget_plans")
