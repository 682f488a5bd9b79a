from __future__ import annotations

from datetime import datetime, date, timezone
from decimal import Decimal

from sqlalchemy import (
    String,
    Integer,
    BigInteger,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Numeric,
    Text,
    Enum,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.db.base import Base
from backend.app.db.models.core_types import Role, ActivityType


# BIGINT en Postgres ; INTEGER sous SQLite pour garder l'auto-incrément (rowid)
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls) -> list[str]:
    # On persiste les valeurs ("TRANSFER"), pas les noms python
    return [m.value for m in enum_cls]


# ---------- AUTH ----------
class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    role: Mapped[Role] = mapped_column(Enum(Role, name="role"), default=Role.staff, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


# ---------- MASTER DATA ----------
class Warehouse(Base):
    __tablename__ = "warehouses"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)

    # Capacité volumique (ex: ft3), pas un nombre d'articles
    max_capacity: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    current_capacity: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    capacity_alert_threshold: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        default=Decimal("80.00"),
        nullable=False,
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    items: Mapped[list["InventoryItem"]] = relationship(back_populates="warehouse")

    __mapper_args__ = {"version_id_col": version_id}
    __table_args__ = (
        CheckConstraint("max_capacity > 0", name="ck_warehouse_max_capacity_pos"),
        CheckConstraint("current_capacity >= 0", name="ck_warehouse_current_capacity_nonneg"),
        CheckConstraint("current_capacity <= max_capacity", name="ck_warehouse_capacity_le_max"),
        CheckConstraint(
            "capacity_alert_threshold >= 0 AND capacity_alert_threshold <= 100",
            name="ck_warehouse_alert_threshold_0_100",
        ),
    )


class InventoryItem(Base):
    __tablename__ = "inventory_items"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    warehouse_id: Mapped[int] = mapped_column(
        ForeignKey("warehouses.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(String(100))
    brand: Mapped[str | None] = mapped_column(String(100))

    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    volume_per_unit: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    reorder_level: Mapped[int | None] = mapped_column(Integer)

    barcode: Mapped[str | None] = mapped_column(String(100))
    warranty_end_date: Mapped[date | None] = mapped_column(Date)
    expiration_date: Mapped[date | None] = mapped_column(Date)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    warehouse: Mapped[Warehouse] = relationship(back_populates="items")

    __mapper_args__ = {"version_id_col": version_id}
    __table_args__ = (
        # SKU unique par entrepôt, pas globalement
        UniqueConstraint("warehouse_id", "sku", name="uq_inventory_item_warehouse_sku"),
        CheckConstraint("quantity >= 0", name="ck_inventory_item_qty_nonneg"),
        CheckConstraint("volume_per_unit >= 0", name="ck_inventory_item_volume_nonneg"),
        Index("ix_inventory_items_sku", "sku"),
    )

    @property
    def total_volume(self) -> Decimal:
        return Decimal(self.quantity) * Decimal(self.volume_per_unit or 0)

    @property
    def is_low_stock(self) -> bool:
        return self.reorder_level is not None and self.quantity <= self.reorder_level


# ---------- LEDGER ----------
class StockActivity(Base):
    """
    Journal append-only des mouvements de stock.

    Une ligne est écrite une seule fois par mutation acceptée, jamais modifiée
    ni supprimée (voir backend.app.db.immutability). item_sku est dénormalisé
    pour que l'historique survive à la suppression de l'article.
    """

    __tablename__ = "stock_activities"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)

    item_id: Mapped[int | None] = mapped_column(
        ForeignKey("inventory_items.id", ondelete="SET NULL"),
        index=True,
    )
    item_sku: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    activity_type: Mapped[ActivityType] = mapped_column(
        Enum(ActivityType, name="activity_type", values_callable=_enum_values),
        nullable=False,
    )
    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    new_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    source_warehouse_id: Mapped[int | None] = mapped_column(ForeignKey("warehouses.id", ondelete="RESTRICT"))
    destination_warehouse_id: Mapped[int | None] = mapped_column(ForeignKey("warehouses.id", ondelete="RESTRICT"))

    performed_by: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    item: Mapped[InventoryItem | None] = relationship()
    source_warehouse: Mapped[Warehouse | None] = relationship(foreign_keys=[source_warehouse_id])
    destination_warehouse: Mapped[Warehouse | None] = relationship(foreign_keys=[destination_warehouse_id])
    actor: Mapped[User] = relationship()

    __table_args__ = (
        CheckConstraint(
            "activity_type != 'TRANSFER' OR ("
            "source_warehouse_id IS NOT NULL "
            "AND destination_warehouse_id IS NOT NULL "
            "AND source_warehouse_id != destination_warehouse_id)",
            name="ck_stock_activity_transfer_warehouses",
        ),
        CheckConstraint("new_quantity >= 0", name="ck_stock_activity_new_qty_nonneg"),
        Index("ix_stock_activities_item_time", "item_id", "timestamp"),
        Index("ix_stock_activities_time", "timestamp"),
    )
