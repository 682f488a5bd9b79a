"""initial stock ledger schema (users, warehouses, inventory_items, stock_activities)

Revision ID: 3f2a9c1d7b10
Revises:
Create Date: 2026-10-02
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ROLE = sa.Enum("admin", "manager", "staff", name="role")
ACTIVITY_TYPE = sa.Enum(
    "RECEIVE", "TRANSFER", "SALE", "ADJUSTMENT", "UPDATE", "DELETE",
    name="activity_type",
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("role", ROLE, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "warehouses",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("max_capacity", sa.Numeric(14, 2), nullable=False),
        sa.Column("current_capacity", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("capacity_alert_threshold", sa.Numeric(5, 2), nullable=False, server_default="80.00"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("max_capacity > 0", name="ck_warehouse_max_capacity_pos"),
        sa.CheckConstraint("current_capacity >= 0", name="ck_warehouse_current_capacity_nonneg"),
        sa.CheckConstraint("current_capacity <= max_capacity", name="ck_warehouse_capacity_le_max"),
        sa.CheckConstraint(
            "capacity_alert_threshold >= 0 AND capacity_alert_threshold <= 100",
            name="ck_warehouse_alert_threshold_0_100",
        ),
    )

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "warehouse_id",
            sa.BigInteger(),
            sa.ForeignKey("warehouses.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("sku", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("category", sa.String(100)),
        sa.Column("brand", sa.String(100)),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("volume_per_unit", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("unit_price", sa.Numeric(10, 2)),
        sa.Column("reorder_level", sa.Integer()),
        sa.Column("barcode", sa.String(100)),
        sa.Column("warranty_end_date", sa.Date()),
        sa.Column("expiration_date", sa.Date()),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("warehouse_id", "sku", name="uq_inventory_item_warehouse_sku"),
        sa.CheckConstraint("quantity >= 0", name="ck_inventory_item_qty_nonneg"),
        sa.CheckConstraint("volume_per_unit >= 0", name="ck_inventory_item_volume_nonneg"),
    )
    op.create_index("ix_inventory_items_warehouse_id", "inventory_items", ["warehouse_id"])
    op.create_index("ix_inventory_items_sku", "inventory_items", ["sku"])

    op.create_table(
        "stock_activities",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "item_id",
            sa.BigInteger(),
            sa.ForeignKey("inventory_items.id", ondelete="SET NULL"),
        ),
        sa.Column("item_sku", sa.String(50), nullable=False),
        sa.Column("activity_type", ACTIVITY_TYPE, nullable=False),
        sa.Column("quantity_change", sa.Integer(), nullable=False),
        sa.Column("previous_quantity", sa.Integer(), nullable=False),
        sa.Column("new_quantity", sa.Integer(), nullable=False),
        sa.Column(
            "source_warehouse_id",
            sa.BigInteger(),
            sa.ForeignKey("warehouses.id", ondelete="RESTRICT"),
        ),
        sa.Column(
            "destination_warehouse_id",
            sa.BigInteger(),
            sa.ForeignKey("warehouses.id", ondelete="RESTRICT"),
        ),
        sa.Column(
            "performed_by",
            sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.CheckConstraint(
            "activity_type != 'TRANSFER' OR ("
            "source_warehouse_id IS NOT NULL "
            "AND destination_warehouse_id IS NOT NULL "
            "AND source_warehouse_id != destination_warehouse_id)",
            name="ck_stock_activity_transfer_warehouses",
        ),
        sa.CheckConstraint("new_quantity >= 0", name="ck_stock_activity_new_qty_nonneg"),
    )
    op.create_index("ix_stock_activities_item_id", "stock_activities", ["item_id"])
    op.create_index("ix_stock_activities_item_sku", "stock_activities", ["item_sku"])
    op.create_index("ix_stock_activities_item_time", "stock_activities", ["item_id", "timestamp"])
    op.create_index("ix_stock_activities_time", "stock_activities", ["timestamp"])


def downgrade() -> None:
    op.drop_table("stock_activities")
    op.drop_table("inventory_items")
    op.drop_table("warehouses")
    op.drop_table("users")
    ACTIVITY_TYPE.drop(op.get_bind(), checkfirst=True)
    ROLE.drop(op.get_bind(), checkfirst=True)
