"""
Anbauplan: Bedarf an Trays und Saatgut für eine Bestellposition, unabhängig von echten Crops
"""
import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Integer, Numeric, DateTime, Date, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.types import Uuid, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sprout.database import Base
from sprout.models.enums import CropPlanStatus


class CropPlan(Base):
    """
    Anbauplan mit eigenem Statusablauf:
    draft → approved → generating → completed, oder → cancelled
    """
    __tablename__ = "crop_plans"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), index=True
    )
    recipe_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("recipes.id"), nullable=False
    )
    status: Mapped[CropPlanStatus] = mapped_column(
        SQLEnum(CropPlanStatus), default=CropPlanStatus.DRAFT, index=True
    )

    # Bedarf
    trays_needed: Mapped[int] = mapped_column(Integer, default=0)
    grams_needed: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    grams_per_tray: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2))

    # Termine
    plant_by_date: Mapped[Optional[date]] = mapped_column(Date, index=True)
    seed_soak_date: Mapped[Optional[date]] = mapped_column(Date)
    expected_harvest_date: Mapped[Optional[date]] = mapped_column(Date)
    delivery_date: Mapped[Optional[date]] = mapped_column(Date)

    # Freigabe
    approved_by: Mapped[Optional[str]] = mapped_column(String(100))
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    calculation_details: Mapped[Optional[dict]] = mapped_column(JSON)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Beziehungen
    recipe: Mapped["Recipe"] = relationship("Recipe")
    order: Mapped[Optional["Order"]] = relationship("Order", back_populates="crop_plans")
    crops: Mapped[list["Crop"]] = relationship("Crop", back_populates="crop_plan")

    @property
    def can_be_approved(self) -> bool:
        return self.status == CropPlanStatus.DRAFT

    @property
    def can_generate_crops(self) -> bool:
        return self.status == CropPlanStatus.APPROVED

    @property
    def is_final(self) -> bool:
        return self.status in (CropPlanStatus.COMPLETED, CropPlanStatus.CANCELLED)

    def approve(self, user_id: str | None = None) -> None:
        if not self.can_be_approved:
            raise ValueError(
                f"Anbauplan kann im Status '{self.status.value}' nicht freigegeben werden."
            )
        self.status = CropPlanStatus.APPROVED
        self.approved_by = user_id
        self.approved_at = datetime.utcnow()

    def mark_as_generating(self) -> None:
        if not self.can_generate_crops:
            raise ValueError("Anbauplan muss freigegeben sein, bevor Crops erzeugt werden.")
        self.status = CropPlanStatus.GENERATING

    def mark_as_completed(self) -> None:
        if self.status != CropPlanStatus.GENERATING:
            raise ValueError(
                f"Anbauplan kann im Status '{self.status.value}' nicht abgeschlossen werden."
            )
        self.status = CropPlanStatus.COMPLETED

    def cancel(self) -> None:
        if self.is_final:
            raise ValueError(
                f"Anbauplan im Status '{self.status.value}' kann nicht storniert werden."
            )
        self.status = CropPlanStatus.CANCELLED

    def days_until_planting(self, today: date | None = None) -> int | None:
        if self.plant_by_date is None:
            return None
        return (self.plant_by_date - (today or date.today())).days

    def is_overdue(self, today: date | None = None) -> bool:
        days = self.days_until_planting(today)
        return (
            days is not None
            and days < 0
            and self.status in (CropPlanStatus.DRAFT, CropPlanStatus.APPROVED)
        )

    def is_urgent(self, today: date | None = None, urgent_days: int = 2) -> bool:
        days = self.days_until_planting(today)
        return days is not None and days <= urgent_days and not self.is_final

    def __repr__(self) -> str:
        return f"<CropPlan(status={self.status.value}, trays={self.trays_needed})>"


# Imports für Type Hints
from sprout.models.recipe import Recipe
from sprout.models.order import Order
from sprout.models.crop import Crop
