"""
Fertigwaren-Lager: Chargen (ProductInventory), Buchungsjournal und Reservierungen
"""
import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Integer, Numeric, DateTime, Date, ForeignKey, Text, Index, event, Enum as SQLEnum
from sqlalchemy.types import Uuid, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sprout.database import Base
from sprout.models.enums import InventoryTransactionType, ProductInventoryStatus, ReferenceKind
from sprout.models.lookup import InventoryReservationStatus


class ProductInventory(Base):
    """
    Fertigwaren-Charge eines Produkts.
    Verfügbar = quantity - reserved_quantity (nie negativ)
    """
    __tablename__ = "product_inventories"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id"), nullable=False, index=True
    )

    # Chargenidentifikation
    batch_number: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    lot_number: Mapped[Optional[str]] = mapped_column(String(50))

    # Mengen
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    reserved_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    cost_per_unit: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))

    # Datum
    production_date: Mapped[Optional[date]] = mapped_column(Date)
    expiration_date: Mapped[Optional[date]] = mapped_column(Date, index=True)  # MHD

    location: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[ProductInventoryStatus] = mapped_column(
        SQLEnum(ProductInventoryStatus), default=ProductInventoryStatus.ACTIVE
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Beziehungen
    product: Mapped["Product"] = relationship("Product", back_populates="batches")
    transactions: Mapped[list["InventoryTransaction"]] = relationship(
        "InventoryTransaction", back_populates="batch", cascade="all, delete-orphan"
    )
    reservations: Mapped[list["InventoryReservation"]] = relationship(
        "InventoryReservation", back_populates="batch", cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def available_quantity(self) -> Decimal:
        return (self.quantity or Decimal("0")) - (self.reserved_quantity or Decimal("0"))

    @property
    def value(self) -> Decimal:
        return (self.quantity or Decimal("0")) * (self.cost_per_unit or Decimal("0"))

    @property
    def is_expired(self) -> bool:
        return self.expiration_date is not None and self.expiration_date < date.today()

    @property
    def days_until_expiration(self) -> int | None:
        if self.expiration_date is None:
            return None
        return (self.expiration_date - date.today()).days

    def __repr__(self) -> str:
        return f"<ProductInventory(batch='{self.batch_number}', qty={self.quantity}, reserved={self.reserved_quantity})>"


class InventoryTransaction(Base):
    """
    Unveränderliche Buchung im Fertigwaren-Journal.
    balance_after = Chargenmenge nach der Buchung
    """
    __tablename__ = "inventory_transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    product_inventory_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("product_inventories.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )

    type: Mapped[InventoryTransactionType] = mapped_column(
        SQLEnum(InventoryTransactionType), nullable=False
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)  # + Zugang, - Abgang
    balance_after: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    unit_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    total_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))

    reference_kind: Mapped[Optional[ReferenceKind]] = mapped_column(SQLEnum(ReferenceKind))
    reference_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)

    user_id: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    extra: Mapped[Optional[dict]] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    batch: Mapped["ProductInventory"] = relationship("ProductInventory", back_populates="transactions")

    __table_args__ = (
        Index("ix_inventory_transactions_product_type", "product_id", "type"),
        Index("ix_inventory_transactions_reference", "reference_kind", "reference_id"),
    )

    def __repr__(self) -> str:
        return f"<InventoryTransaction(type={self.type.value}, quantity={self.quantity})>"


@event.listens_for(InventoryTransaction, "before_update")
def prevent_transaction_update(mapper, connection, target):
    """Journalbuchungen sind nach dem Speichern unveränderlich"""
    raise ValueError(
        "Buchungen sind unveränderlich. Korrekturen nur über eine Gegenbuchung."
    )


class InventoryReservation(Base):
    """
    Reservierung einer Teilmenge einer Charge für eine Bestellposition.
    Nur pending/confirmed binden Bestand.
    """
    __tablename__ = "inventory_reservations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    product_inventory_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("product_inventories.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), index=True
    )
    order_item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("order_items.id", ondelete="CASCADE")
    )

    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(30), default=InventoryReservationStatus.PENDING, index=True
    )

    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, index=True)
    fulfilled_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    batch: Mapped["ProductInventory"] = relationship("ProductInventory", back_populates="reservations")

    @property
    def holds_inventory(self) -> bool:
        return self.status in InventoryReservationStatus.HOLDING

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and self.expires_at < datetime.utcnow()

    @property
    def is_active(self) -> bool:
        return self.holds_inventory and not self.is_expired

    def __repr__(self) -> str:
        return f"<InventoryReservation(status='{self.status}', quantity={self.quantity})>"


# Imports für Type Hints
from sprout.models.product import Product
