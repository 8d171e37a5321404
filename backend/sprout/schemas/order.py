"""
Pydantic Schemas für Aufträge
"""
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class OrderItemCreate(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(..., gt=0)
    price: Decimal | None = Field(None, ge=0, description="Einzelpreis; leer = Preis nach Kundentyp")


class OrderItemResponse(OrderItemCreate):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    line_total: Decimal


class OrderCreate(BaseModel):
    """Schema zum Erstellen eines Auftrags"""
    customer_name: str | None = Field(None, min_length=1, max_length=200)
    customer_id: UUID | None = Field(None, description="Kunde; bestimmt die Preise der Positionen")
    delivery_date: date | None = None
    status: str = Field(default="draft", description="draft oder template")
    notes: str | None = None
    items: list[OrderItemCreate] = Field(default_factory=list)


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_name: str
    customer_id: UUID | None = None
    status: str
    delivery_date: date | None
    notes: str | None
    items: list[OrderItemResponse]
    total_amount: Decimal
    created_at: datetime


class OrderStatusUpdate(BaseModel):
    status: str = Field(..., description="Ziel-Statuscode")
