"""
Pydantic Schemas für Kunden
"""
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class CustomerBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    business_name: str | None = Field(None, max_length=200)
    contact_name: str | None = Field(None, max_length=200)
    email: str | None = Field(None, max_length=200)
    phone: str | None = Field(None, max_length=50)
    customer_type: str | None = Field(None, description="Code des Kundentyps, z.B. wholesale")
    wholesale_discount_percentage: Decimal | None = Field(None, ge=0, le=100)
    notes: str | None = None


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    business_name: str | None = Field(None, max_length=200)
    contact_name: str | None = Field(None, max_length=200)
    email: str | None = Field(None, max_length=200)
    phone: str | None = Field(None, max_length=50)
    customer_type: str | None = None
    wholesale_discount_percentage: Decimal | None = Field(None, ge=0, le=100)
    notes: str | None = None
    is_active: bool | None = None


class CustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    business_name: str | None
    contact_name: str | None
    email: str | None
    phone: str | None
    customer_type_code: str | None
    wholesale_discount_percentage: Decimal | None
    qualifies_for_wholesale_pricing: bool
    effective_discount: Decimal
    notes: str | None
    is_active: bool
    created_at: datetime


class ProductPriceResponse(BaseModel):
    product_id: UUID
    customer_id: UUID
    price: Decimal
