"""
Anbau-Models: Crop (Tray), Phasen-Historie, Phasenwechsel-Protokoll und geplante Aufgaben
"""
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Integer, Numeric, Boolean, DateTime, ForeignKey, Text, Index, event, Enum as SQLEnum
from sqlalchemy.types import Uuid, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship, Session

from sprout.database import Base
from sprout.models.enums import CropTaskType, CropTaskStatus, StageTransitionType
from sprout.models.lookup import CropStage


# Reihenfolge der Zeitstempel; Phase = Name ohne "_at"
STAGE_TIMESTAMP_FIELDS = [
    "planting_at",
    "soaking_at",
    "germination_at",
    "blackout_at",
    "light_at",
    "harvested_at",
]

STAGE_FIELD_BY_CODE = {
    CropStage.SOAKING: "soaking_at",
    CropStage.GERMINATION: "germination_at",
    CropStage.BLACKOUT: "blackout_at",
    CropStage.LIGHT: "light_at",
    CropStage.HARVESTED: "harvested_at",
}

STAGE_ORDER = list(STAGE_FIELD_BY_CODE)


class Crop(Base):
    """
    Ein physischer Tray in Produktion.
    current_stage entspricht immer dem spätesten gesetzten Phasen-Zeitstempel.
    """
    __tablename__ = "crops"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    recipe_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("recipes.id"), nullable=False, index=True
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="SET NULL"), index=True
    )
    crop_plan_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("crop_plans.id", ondelete="SET NULL"), index=True
    )

    tray_number: Mapped[Optional[str]] = mapped_column(String(50))
    tray_count: Mapped[int] = mapped_column(Integer, default=1)

    current_stage: Mapped[str] = mapped_column(String(30), default=CropStage.GERMINATION, index=True)
    requires_soaking: Mapped[bool] = mapped_column(Boolean, default=False)

    # Phasen-Zeitstempel
    planting_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    soaking_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    germination_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    blackout_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    light_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    harvested_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    watering_suspended_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    harvest_weight_grams: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Beziehungen
    recipe: Mapped["Recipe"] = relationship("Recipe")
    order: Mapped[Optional["Order"]] = relationship("Order", back_populates="crops")
    crop_plan: Mapped[Optional["CropPlan"]] = relationship("CropPlan", back_populates="crops")
    stage_history: Mapped[list["CropStageHistory"]] = relationship(
        "CropStageHistory", back_populates="crop", cascade="all, delete-orphan",
        order_by="CropStageHistory.changed_at",
    )
    tasks: Mapped[list["CropTask"]] = relationship(
        "CropTask", back_populates="crop", cascade="all, delete-orphan"
    )

    def stage_timestamp(self, stage_code: str) -> datetime | None:
        field = STAGE_FIELD_BY_CODE.get(stage_code)
        return getattr(self, field) if field else None

    def derive_stage(self) -> str:
        """Phase des spätesten gesetzten Zeitstempels (Standard: Keimung)"""
        for code in reversed(list(STAGE_FIELD_BY_CODE)):
            if self.stage_timestamp(code) is not None:
                return code
        return CropStage.GERMINATION

    def validate_timestamp_sequence(self) -> None:
        """
        Prüft, dass alle gesetzten Zeitstempel chronologisch sind.
        Gleiche Zeitpunkte sind erlaubt, leere werden übersprungen.
        """
        previous_field = None
        previous_value = None
        for field in STAGE_TIMESTAMP_FIELDS:
            value = getattr(self, field)
            if value is None:
                continue
            if previous_value is not None and value < previous_value:
                label = field.removesuffix("_at").replace("_", " ")
                previous_label = previous_field.removesuffix("_at").replace("_", " ")
                raise ValueError(
                    f"Wachstumsphasen müssen chronologisch sein. "
                    f"{label} darf nicht vor {previous_label} liegen."
                )
            previous_field, previous_value = field, value

    @property
    def is_ready_to_harvest(self) -> bool:
        return self.current_stage == CropStage.LIGHT

    @property
    def is_harvested(self) -> bool:
        return self.current_stage == CropStage.HARVESTED

    @property
    def is_watering_suspended(self) -> bool:
        return self.watering_suspended_at is not None

    @property
    def stage_started_at(self) -> datetime | None:
        return self.stage_timestamp(self.current_stage) or self.planting_at

    @property
    def latest_stage_timestamp(self) -> datetime | None:
        stamps = [getattr(self, field) for field in STAGE_TIMESTAMP_FIELDS]
        return max((stamp for stamp in stamps if stamp is not None), default=None)

    @property
    def expected_harvest_at(self) -> datetime | None:
        """Aussaat + Reifezeit des Rezepts"""
        if self.recipe is None or self.planting_at is None:
            return None
        return self.planting_at + timedelta(days=float(self.recipe.total_days))

    def __repr__(self) -> str:
        return f"<Crop(tray='{self.tray_number}', stage='{self.current_stage}')>"


class CropStageHistory(Base):
    """Einzelner Phasenwechsel eines Trays"""
    __tablename__ = "crop_stage_history"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    crop_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crops.id", ondelete="CASCADE"), nullable=False, index=True
    )
    transition_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("crop_stage_transitions.id", ondelete="SET NULL")
    )
    from_stage: Mapped[Optional[str]] = mapped_column(String(30))
    to_stage: Mapped[str] = mapped_column(String(30), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    user_id: Mapped[Optional[str]] = mapped_column(String(100))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    crop: Mapped["Crop"] = relationship("Crop", back_populates="stage_history")


class CropStageTransition(Base):
    """
    Protokoll eines (Sammel-)Phasenwechsels mit Teilfehlern.
    failed_crops: [{"crop_id", "tray_number", "error"}]
    """
    __tablename__ = "crop_stage_transitions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    type: Mapped[StageTransitionType] = mapped_column(SQLEnum(StageTransitionType), nullable=False)
    from_stage: Mapped[Optional[str]] = mapped_column(String(30))
    to_stage: Mapped[Optional[str]] = mapped_column(String(30))
    transition_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    crop_count: Mapped[int] = mapped_column(Integer, default=0)
    succeeded_count: Mapped[int] = mapped_column(Integer, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, default=0)
    failed_crops: Mapped[Optional[list]] = mapped_column(JSON)
    validation_warnings: Mapped[Optional[list]] = mapped_column(JSON)

    reason: Mapped[Optional[str]] = mapped_column(Text)
    user_id: Mapped[Optional[str]] = mapped_column(String(100))
    extra: Mapped[Optional[dict]] = mapped_column("metadata", JSON)

    @property
    def is_bulk(self) -> bool:
        return self.type in (StageTransitionType.BULK_ADVANCE, StageTransitionType.BULK_REVERT)

    @property
    def is_partial_failure(self) -> bool:
        return self.succeeded_count > 0 and self.failed_count > 0


class CropTask(Base):
    """Geplante Aufgabe (Phasenwechsel, Gießstopp) für einen Tray"""
    __tablename__ = "crop_tasks"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    crop_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("crops.id", ondelete="CASCADE"), nullable=False
    )
    task_type: Mapped[CropTaskType] = mapped_column(SQLEnum(CropTaskType), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)  # z.B. advance_to_light
    target_stage: Mapped[Optional[str]] = mapped_column(String(30))
    batch_key: Mapped[Optional[str]] = mapped_column(String(120), index=True)  # {recipe}_{datum}_{phase}

    scheduled_for: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[CropTaskStatus] = mapped_column(
        SQLEnum(CropTaskStatus), default=CropTaskStatus.PENDING
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    extra: Mapped[Optional[dict]] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    crop: Mapped["Crop"] = relationship("Crop", back_populates="tasks")

    __table_args__ = (
        Index("ix_crop_tasks_due", "scheduled_for", "status"),
    )

    def __repr__(self) -> str:
        return f"<CropTask(name='{self.name}', status={self.status.value})>"


@event.listens_for(Session, "before_flush")
def validate_crops_before_flush(session, flush_context, instances):
    """Zeitstempel-Reihenfolge prüfen und Phase synchronisieren, bevor Crops gespeichert werden"""
    for obj in list(session.new) + list(session.dirty):
        if isinstance(obj, Crop):
            obj.validate_timestamp_sequence()
            obj.current_stage = obj.derive_stage()


# Imports für Type Hints
from sprout.models.recipe import Recipe
from sprout.models.order import Order
from sprout.models.crop_plan import CropPlan
