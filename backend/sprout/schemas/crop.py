"""
Pydantic Schemas für Rezepte, Crops, Phasenwechsel und Anbaupläne
"""
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict

from sprout.models.enums import CropPlanStatus, CropTaskStatus, CropTaskType, StageTransitionType


# ============================================================
# RECIPE SCHEMAS
# ============================================================

class RecipeBase(BaseModel):
    """Basis-Schema für Anbaurezept"""
    name: str = Field(..., min_length=1, max_length=200)
    seed_consumable_id: UUID | None = Field(None, description="Verknüpftes Saatgut")
    seed_density_grams_per_tray: Decimal | None = Field(None, gt=0, description="Saatdichte (g/Tray)")
    seed_soak_hours: int = Field(default=0, ge=0)
    germination_days: Decimal = Field(default=Decimal("0"), ge=0)
    blackout_days: Decimal = Field(default=Decimal("0"), ge=0)
    light_days: Decimal = Field(default=Decimal("0"), ge=0)
    days_to_maturity: Decimal | None = Field(None, gt=0)
    expected_yield_grams: Decimal | None = Field(None, gt=0, description="Ertrag pro Tray (g)")
    suspend_watering_hours: int | None = Field(None, ge=0, description="Gießstopp vor Ernte (h)")
    notes: str | None = None


class RecipeCreate(RecipeBase):
    pass


class RecipeResponse(RecipeBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    requires_soaking: bool
    total_days: Decimal
    is_active: bool
    created_at: datetime


# ============================================================
# CROP SCHEMAS
# ============================================================

class CropCreate(BaseModel):
    """Schema zum Anlegen eines Crops"""
    recipe_id: UUID
    planting_at: datetime | None = Field(None, description="Aussaat (Standard: jetzt)")
    tray_number: str | None = Field(None, max_length=50)
    tray_count: int = Field(default=1, ge=1)
    order_id: UUID | None = None
    crop_plan_id: UUID | None = None
    notes: str | None = None


class CropBulkCreate(BaseModel):
    crops: list[CropCreate] = Field(..., min_length=1)


class CropUpdate(BaseModel):
    """Zeitstempel werden beim Speichern auf Reihenfolge geprüft"""
    tray_number: str | None = Field(None, max_length=50)
    planting_at: datetime | None = None
    soaking_at: datetime | None = None
    germination_at: datetime | None = None
    blackout_at: datetime | None = None
    light_at: datetime | None = None
    harvested_at: datetime | None = None
    notes: str | None = None


class CropResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recipe_id: UUID
    order_id: UUID | None
    crop_plan_id: UUID | None
    tray_number: str | None
    tray_count: int
    current_stage: str
    requires_soaking: bool
    planting_at: datetime
    soaking_at: datetime | None
    germination_at: datetime | None
    blackout_at: datetime | None
    light_at: datetime | None
    harvested_at: datetime | None
    watering_suspended_at: datetime | None
    harvest_weight_grams: Decimal | None
    expected_harvest_at: datetime | None
    notes: str | None
    created_at: datetime


class HarvestRequest(BaseModel):
    weight_grams: Decimal = Field(..., gt=0)
    harvested_at: datetime | None = None


class StageResetRequest(BaseModel):
    stage_code: str
    reason: str | None = None


# ============================================================
# PHASENWECHSEL
# ============================================================

class StageAdvanceRequest(BaseModel):
    crop_ids: list[UUID] = Field(..., min_length=1)
    at: datetime | None = Field(None, description="Zeitpunkt (Standard: jetzt)")
    reason: str | None = None


class StageRevertRequest(BaseModel):
    crop_ids: list[UUID] = Field(..., min_length=1)
    reason: str | None = None


class FailedCrop(BaseModel):
    crop_id: str
    tray_number: str | None = None
    error: str


class StageTransitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: StageTransitionType
    from_stage: str | None
    to_stage: str | None
    transition_at: datetime
    crop_count: int
    succeeded_count: int
    failed_count: int
    failed_crops: list[FailedCrop] | None = None
    validation_warnings: list[str] | None = None
    reason: str | None = None


class StageTransitionResult(BaseModel):
    succeeded: int
    failed: list[FailedCrop]
    warnings: list[str]
    crops: list[CropResponse]
    transition: StageTransitionResponse


class CropTimeResponse(BaseModel):
    stage_age_minutes: int
    stage_age_display: str
    total_age_minutes: int
    total_age_display: str
    time_to_next_stage: dict


# ============================================================
# AUFGABEN
# ============================================================

class CropTaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    crop_id: UUID
    task_type: CropTaskType
    name: str
    target_stage: str | None
    batch_key: str | None
    scheduled_for: datetime
    status: CropTaskStatus
    completed_at: datetime | None
    extra: dict | None = None


# ============================================================
# CROP PLAN SCHEMAS
# ============================================================

class CropPlanCreate(BaseModel):
    order_item_id: UUID
    recipe_id: UUID | None = Field(None, description="Standard: Rezept des Produkts")
    delivery_date: date | None = Field(None, description="Standard: Liefertermin des Auftrags")
    notes: str | None = None


class CropPlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID | None
    recipe_id: UUID
    status: CropPlanStatus
    trays_needed: int
    grams_needed: Decimal
    grams_per_tray: Decimal | None
    plant_by_date: date | None
    seed_soak_date: date | None
    expected_harvest_date: date | None
    delivery_date: date | None
    approved_by: str | None
    approved_at: datetime | None
    calculation_details: dict | None
    notes: str | None
    created_at: datetime
