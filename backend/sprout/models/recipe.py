"""
Rezept-Model: Anbauparameter einer Microgreens-Sorte
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Integer, Numeric, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.types import Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sprout.database import Base


class Recipe(Base):
    """
    Anbaurezept - Phasendauern, Saatdichte und verknüpftes Saatgut.

    Ablauf: [Einweichen] → Keimung → [Dunkelphase] → Lichtphase → Ernte
    """
    __tablename__ = "recipes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Saatgut
    seed_consumable_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("consumables.id", ondelete="SET NULL")
    )
    seed_density_grams_per_tray: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2))

    # Phasendauern
    seed_soak_hours: Mapped[int] = mapped_column(Integer, default=0)
    germination_days: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    blackout_days: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    light_days: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    days_to_maturity: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2))

    # Ernte
    expected_yield_grams: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2))  # pro Tray
    suspend_watering_hours: Mapped[Optional[int]] = mapped_column(Integer)  # Gießstopp vor Ernte

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    seed_consumable: Mapped[Optional["Consumable"]] = relationship("Consumable")

    @property
    def requires_soaking(self) -> bool:
        return (self.seed_soak_hours or 0) > 0

    @property
    def total_days(self) -> Decimal:
        """Tage von Aussaat bis Ernte"""
        if self.days_to_maturity:
            return self.days_to_maturity
        return (
            Decimal(self.germination_days or 0)
            + Decimal(self.blackout_days or 0)
            + Decimal(self.light_days or 0)
        )

    def __repr__(self) -> str:
        return f"<Recipe(name='{self.name}')>"


# Imports für Type Hints
from sprout.models.consumable import Consumable
