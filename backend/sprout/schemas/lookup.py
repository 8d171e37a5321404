"""
Pydantic Schemas für Stammdaten-Tabellen
"""
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, ConfigDict

from sprout.models.enums import UnitCategory, OrderStage


class LookupResponse(BaseModel):
    """Gemeinsames Antwort-Schema aller Lookups"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    description: str | None = None
    color: str | None = None
    sort_order: int
    is_active: bool


class CropStageResponse(LookupResponse):
    typical_duration_days: int | None = None
    requires_light: bool
    requires_watering: bool


class ConsumableUnitResponse(LookupResponse):
    symbol: str
    category: UnitCategory
    conversion_factor: Decimal


class OrderStatusResponse(LookupResponse):
    stage: OrderStage
    allows_modifications: bool
    is_final: bool


class CustomerTypeResponse(LookupResponse):
    qualifies_for_wholesale: bool
