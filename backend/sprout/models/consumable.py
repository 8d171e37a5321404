"""
Verbrauchsmaterial-Models: Consumable und ConsumableTransaction
Bestandsführung ausschließlich über das Buchungsjournal mit materialisiertem Saldo
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Integer, Numeric, Boolean, DateTime, ForeignKey, Text, Index, event, Enum as SQLEnum
from sqlalchemy.types import Uuid, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from sprout.database import Base
from sprout.models.enums import (
    ConsumableTransactionType, ReferenceKind,
    CONSUMABLE_INBOUND_TYPES, CONSUMABLE_OUTBOUND_TYPES,
)


class Consumable(Base):
    """
    Verbrauchsmaterial (Saatgut, Substrat, Verpackung, Etiketten, ...).

    Alle Mengenfelder werden aus dem Journal abgeleitet:
    - initial_stock: Summe aller Zugänge
    - consumed_quantity: Summe aller Abgänge (Betrag)
    - current_balance: Summe aller Buchungen
    - total_quantity: bei Saatgut maßgeblicher Bestand, sonst Bestand * Menge pro Einheit
    """
    __tablename__ = "consumables"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )

    # Identifikation
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    consumable_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("consumable_types.id"), nullable=False
    )
    consumable_unit_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("consumable_units.id"), nullable=False
    )
    lot_no: Mapped[Optional[str]] = mapped_column(String(50), index=True)  # Immer Großbuchstaben
    supplier_name: Mapped[Optional[str]] = mapped_column(String(200))

    # Mengen (aus Journal abgeleitet)
    initial_stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=Decimal("0"))
    consumed_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=Decimal("0"))
    total_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=Decimal("0"))
    current_balance: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=Decimal("0"))
    quantity_per_unit: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 3))  # z.B. 50 Schalen je Karton

    # Nachbestellung
    restock_threshold: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=Decimal("0"))
    restock_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=Decimal("0"))
    cost_per_unit: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 4))

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Optimistische Sperre
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Beziehungen
    consumable_type: Mapped["ConsumableType"] = relationship("ConsumableType", lazy="joined", innerjoin=True)
    consumable_unit: Mapped["ConsumableUnit"] = relationship("ConsumableUnit", lazy="joined", innerjoin=True)
    transactions: Mapped[list["ConsumableTransaction"]] = relationship(
        "ConsumableTransaction",
        back_populates="consumable",
        order_by="ConsumableTransaction.created_at",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    @validates("lot_no")
    def _normalize_lot_no(self, key, value):
        return value.strip().upper() if value else value

    @property
    def is_seed(self) -> bool:
        return self.consumable_type is not None and self.consumable_type.is_seed

    @property
    def unit_code(self) -> str | None:
        return self.consumable_unit.code if self.consumable_unit else None

    @property
    def current_stock(self) -> Decimal:
        """Verfügbarer Bestand in der Einheit des Materials"""
        if self.is_seed:
            return self.total_quantity or Decimal("0")
        return max(Decimal("0"), (self.initial_stock or Decimal("0")) - (self.consumed_quantity or Decimal("0")))

    @property
    def needs_restock(self) -> bool:
        return self.current_stock <= (self.restock_threshold or Decimal("0"))

    @property
    def is_out_of_stock(self) -> bool:
        return self.current_stock <= 0

    @property
    def total_value(self) -> Decimal:
        return self.current_stock * (self.cost_per_unit or Decimal("0"))

    def __repr__(self) -> str:
        return f"<Consumable(name='{self.name}', stock={self.current_stock})>"


class ConsumableTransaction(Base):
    """
    Unveränderliche Buchung im Verbrauchsmaterial-Journal.
    Menge vorzeichenbehaftet: Zugänge positiv, Abgänge negativ.
    """
    __tablename__ = "consumable_transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    consumable_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("consumables.id", ondelete="CASCADE"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)  # Laufende Nummer je Material

    type: Mapped[ConsumableTransactionType] = mapped_column(
        SQLEnum(ConsumableTransactionType), nullable=False
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)

    # Bezug (z.B. Crop, Bestellung)
    reference_kind: Mapped[Optional[ReferenceKind]] = mapped_column(SQLEnum(ReferenceKind))
    reference_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)

    user_id: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    extra: Mapped[Optional[dict]] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    consumable: Mapped["Consumable"] = relationship("Consumable", back_populates="transactions")

    __table_args__ = (
        Index("ix_consumable_transactions_reference", "reference_kind", "reference_id"),
        Index("ix_consumable_transactions_sequence", "consumable_id", "sequence", unique=True),
    )

    @property
    def is_inbound(self) -> bool:
        if self.type == ConsumableTransactionType.ADJUSTMENT:
            return self.quantity > 0
        return self.type in CONSUMABLE_INBOUND_TYPES

    @property
    def is_outbound(self) -> bool:
        if self.type == ConsumableTransactionType.ADJUSTMENT:
            return self.quantity < 0
        return self.type in CONSUMABLE_OUTBOUND_TYPES

    @property
    def type_label(self) -> str:
        return self.type.label

    def __repr__(self) -> str:
        return f"<ConsumableTransaction(type={self.type.value}, quantity={self.quantity})>"


@event.listens_for(ConsumableTransaction, "before_update")
def prevent_transaction_update(mapper, connection, target):
    """Journalbuchungen sind nach dem Speichern unveränderlich"""
    raise ValueError(
        "Buchungen sind unveränderlich. Korrekturen nur über eine Gegenbuchung."
    )


# Imports für Type Hints
from sprout.models.lookup import ConsumableType, ConsumableUnit
