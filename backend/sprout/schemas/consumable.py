"""
Pydantic Schemas für Verbrauchsmaterial und Buchungsjournal
"""
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict

from sprout.models.enums import ConsumableTransactionType, ReferenceKind


# ============================================================
# CONSUMABLE SCHEMAS
# ============================================================

class ConsumableBase(BaseModel):
    """Basis-Schema für Verbrauchsmaterial"""
    name: str = Field(..., min_length=1, max_length=200, description="Bezeichnung")
    lot_no: str | None = Field(None, max_length=50, description="Losnummer")
    supplier_name: str | None = Field(None, max_length=200, description="Lieferant")
    quantity_per_unit: Decimal | None = Field(None, gt=0, description="Menge pro Einheit")
    restock_threshold: Decimal = Field(default=Decimal("0"), ge=0, description="Meldebestand")
    restock_quantity: Decimal = Field(default=Decimal("0"), ge=0, description="Bestellmenge")
    cost_per_unit: Decimal | None = Field(None, ge=0, description="Kosten pro Einheit")
    notes: str | None = None


class ConsumableCreate(ConsumableBase):
    """Schema zum Erstellen eines Verbrauchsmaterials"""
    type_code: str = Field(..., description="Typ-Code (seed, soil, packaging, ...)")
    unit_code: str = Field(..., description="Einheiten-Code (g, kg, unit, ...)")
    initial_stock: Decimal = Field(default=Decimal("0"), ge=0, description="Anfangsbestand")


class ConsumableUpdate(BaseModel):
    """Stammdaten; Mengen nur über Buchungen"""
    name: str | None = Field(None, min_length=1, max_length=200)
    supplier_name: str | None = None
    quantity_per_unit: Decimal | None = Field(None, gt=0)
    restock_threshold: Decimal | None = Field(None, ge=0)
    restock_quantity: Decimal | None = Field(None, ge=0)
    cost_per_unit: Decimal | None = Field(None, ge=0)
    is_active: bool | None = None
    notes: str | None = None


class ConsumableResponse(ConsumableBase):
    """Schema für Verbrauchsmaterial-Antwort"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    consumable_type_id: UUID
    consumable_unit_id: UUID
    unit_code: str | None
    is_seed: bool
    initial_stock: Decimal
    consumed_quantity: Decimal
    total_quantity: Decimal
    current_balance: Decimal
    current_stock: Decimal
    needs_restock: bool
    is_active: bool
    version: int
    created_at: datetime


class ConsumableListResponse(BaseModel):
    items: list[ConsumableResponse]
    total: int


# ============================================================
# BUCHUNGEN
# ============================================================

class StockMovementRequest(BaseModel):
    """Zugang, Verbrauch, Schwund oder Ablauf"""
    amount: Decimal = Field(..., gt=0, description="Menge")
    unit: str | None = Field(None, description="Einheit der Menge (Standard: Einheit des Materials)")
    lot_no: str | None = Field(None, description="Losnummer (nur Zugang)")
    notes: str | None = None


class AdjustmentRequest(BaseModel):
    """Manuelle Korrektur mit Vorzeichen"""
    quantity: Decimal = Field(..., description="+ Zugang, - Abgang")
    unit: str | None = None
    notes: str | None = None


class TransferRequest(BaseModel):
    target_id: UUID
    amount: Decimal = Field(..., gt=0)
    unit: str | None = None
    notes: str | None = None


class ConsumableTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    consumable_id: UUID
    sequence: int
    type: ConsumableTransactionType
    type_label: str
    quantity: Decimal
    balance_after: Decimal
    reference_kind: ReferenceKind | None = None
    reference_id: UUID | None = None
    user_id: str | None = None
    notes: str | None = None
    created_at: datetime


class SeedAvailabilityResponse(BaseModel):
    can_create: bool
    message: str
    required: Decimal
    available: Decimal
