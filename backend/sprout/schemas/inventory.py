"""
Pydantic Schemas für Produkte, Fertigwaren-Chargen und Reservierungen
"""
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict

from sprout.models.enums import InventoryTransactionType, ProductInventoryStatus, ReferenceKind


# ============================================================
# PRODUCT SCHEMAS
# ============================================================

class ProductBase(BaseModel):
    """Basis-Schema für Produkt"""
    sku: str = Field(..., min_length=1, max_length=50, description="Artikelnummer")
    name: str = Field(..., min_length=1, max_length=200, description="Produktname")
    description: str | None = None
    recipe_id: UUID | None = Field(None, description="Anbaurezept")
    net_weight_grams: Decimal | None = Field(None, gt=0, description="Nettogewicht pro Einheit (g)")
    reorder_threshold: Decimal = Field(default=Decimal("0"), ge=0, description="Meldebestand")
    base_price: Decimal | None = Field(None, ge=0, description="Grundpreis pro Einheit")
    wholesale_price: Decimal | None = Field(None, ge=0, description="Großhandelspreis pro Einheit")
    wholesale_discount_percentage: Decimal | None = Field(None, ge=0, le=100, description="Standard-Großhandelsrabatt (%)")


class ProductCreate(ProductBase):
    """Schema zum Erstellen eines Produkts"""
    pass


class ProductUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    recipe_id: UUID | None = None
    net_weight_grams: Decimal | None = Field(None, gt=0)
    reorder_threshold: Decimal | None = Field(None, ge=0)
    base_price: Decimal | None = Field(None, ge=0)
    wholesale_price: Decimal | None = Field(None, ge=0)
    wholesale_discount_percentage: Decimal | None = Field(None, ge=0, le=100)
    is_active: bool | None = None


class ProductResponse(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    total_stock: Decimal
    reserved_stock: Decimal
    available_stock: Decimal
    stock_status: str
    is_active: bool
    created_at: datetime


class ProductListResponse(BaseModel):
    items: list[ProductResponse]
    total: int


# ============================================================
# BATCH SCHEMAS
# ============================================================

class BatchCreate(BaseModel):
    """Schema zum Anlegen einer Fertigwaren-Charge"""
    product_id: UUID
    quantity: Decimal = Field(..., ge=0, description="Anfangsmenge")
    cost_per_unit: Decimal | None = Field(None, ge=0)
    batch_number: str | None = Field(None, max_length=50, description="Leer = automatisch")
    lot_number: str | None = Field(None, max_length=50)
    production_date: date | None = None
    expiration_date: date | None = Field(None, description="MHD")
    location: str | None = Field(None, max_length=100)
    notes: str | None = None


class BatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    batch_number: str | None
    lot_number: str | None
    quantity: Decimal
    reserved_quantity: Decimal
    available_quantity: Decimal
    cost_per_unit: Decimal | None
    production_date: date | None
    expiration_date: date | None
    days_until_expiration: int | None
    location: str | None
    status: ProductInventoryStatus
    version: int
    created_at: datetime


class BatchStockRequest(BaseModel):
    """Zu- oder Abgang einer Charge"""
    quantity: Decimal = Field(..., gt=0)
    transaction_type: InventoryTransactionType = InventoryTransactionType.ADJUSTMENT
    notes: str | None = None


class InventoryTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_inventory_id: UUID
    product_id: UUID
    type: InventoryTransactionType
    quantity: Decimal
    balance_after: Decimal
    unit_cost: Decimal | None = None
    total_cost: Decimal | None = None
    reference_kind: ReferenceKind | None = None
    reference_id: UUID | None = None
    notes: str | None = None
    created_at: datetime


# ============================================================
# RESERVATION SCHEMAS
# ============================================================

class ReservationCreate(BaseModel):
    """Reservierung auf einer Charge"""
    batch_id: UUID
    quantity: Decimal = Field(..., gt=0)
    order_id: UUID | None = None
    order_item_id: UUID | None = None
    expires_at: datetime | None = None
    notes: str | None = None


class ReservationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_inventory_id: UUID
    product_id: UUID
    order_id: UUID | None
    order_item_id: UUID | None
    quantity: Decimal
    status: str
    is_active: bool
    expires_at: datetime | None
    fulfilled_at: datetime | None
    cancelled_at: datetime | None
    notes: str | None
    created_at: datetime


class ReservationCancelRequest(BaseModel):
    reason: str | None = None
