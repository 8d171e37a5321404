"""
Anbauplanung - Tray- und Saatgutbedarf aus Bestellpositionen

Rückwärtsrechnung ab Liefertermin:
    Ernte = Lieferung - 1 Tag
    Aussaat = Ernte - Reifezeit des Rezepts
"""
import logging
import math
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_CEILING
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import select

from sprout.config import get_settings
from sprout.models.crop import Crop
from sprout.models.crop_plan import CropPlan
from sprout.models.enums import CropPlanStatus
from sprout.models.order import OrderItem
from sprout.models.recipe import Recipe
from sprout.services.activity import log_activity
from sprout.services.crop_service import CropService
from sprout.services.events import EventDispatcher

logger = logging.getLogger(__name__)

HARVEST_BUFFER_DAYS = 1
PLANTING_TIME = time(8, 0)


class CropPlanService:
    """Service für Anbaupläne"""

    def __init__(self, db: Session, dispatcher: EventDispatcher | None = None):
        self.db = db
        self.dispatcher = dispatcher
        self.settings = get_settings()

    def get_plan(self, plan_id: UUID) -> CropPlan:
        plan = self.db.get(CropPlan, plan_id)
        if not plan:
            raise ValueError("Anbauplan nicht gefunden")
        return plan

    def create_from_order_item(
        self,
        order_item_id: UUID,
        recipe_id: UUID | None = None,
        delivery_date: date | None = None,
        notes: str | None = None,
    ) -> CropPlan:
        """Berechnet Bedarf und Termine für eine Bestellposition"""
        item = self.db.get(OrderItem, order_item_id)
        if not item:
            raise ValueError("Bestellposition nicht gefunden")

        recipe = self.db.get(Recipe, recipe_id) if recipe_id else item.product.recipe
        if not recipe:
            raise ValueError(f"Kein Rezept für Produkt {item.product.name} hinterlegt")
        if not recipe.expected_yield_grams:
            raise ValueError(f"Rezept {recipe.name} hat keinen erwarteten Ertrag pro Tray")

        delivery_date = delivery_date or item.order.delivery_date
        if not delivery_date:
            raise ValueError("Liefertermin fehlt")

        product_grams = item.quantity * (item.product.net_weight_grams or Decimal("1"))
        trays_needed = int((product_grams / recipe.expected_yield_grams).to_integral_value(rounding=ROUND_CEILING))
        grams_per_tray = recipe.seed_density_grams_per_tray or Decimal("0")

        harvest_date = delivery_date - timedelta(days=HARVEST_BUFFER_DAYS)
        plant_by_date = harvest_date - timedelta(days=math.ceil(recipe.total_days))

        plan = CropPlan(
            order_id=item.order_id,
            recipe_id=recipe.id,
            status=CropPlanStatus.DRAFT,
            trays_needed=trays_needed,
            grams_per_tray=grams_per_tray,
            grams_needed=grams_per_tray * trays_needed,
            plant_by_date=plant_by_date,
            seed_soak_date=plant_by_date if recipe.requires_soaking else None,
            expected_harvest_date=harvest_date,
            delivery_date=delivery_date,
            calculation_details={
                "order_item_id": str(item.id),
                "product_grams": str(product_grams),
                "yield_per_tray": str(recipe.expected_yield_grams),
                "total_days": str(recipe.total_days),
                "harvest_buffer_days": HARVEST_BUFFER_DAYS,
            },
            notes=notes,
        )
        self.db.add(plan)
        self.db.flush()

        log_activity(
            self.db, log_name="crop_plans", action="created", subject=plan,
            description=f"{trays_needed} Trays {recipe.name}, Aussaat bis {plant_by_date}",
        )
        logger.info(f"Anbauplan {plan.id}: {trays_needed} Trays {recipe.name} bis {plant_by_date}")
        return plan

    def approve(self, plan_id: UUID, user_id: str | None = None) -> CropPlan:
        plan = self.get_plan(plan_id)
        plan.approve(user_id)
        log_activity(self.db, log_name="crop_plans", action="approved", subject=plan, causer_id=user_id)
        self.db.flush()
        return plan

    def cancel(self, plan_id: UUID, user_id: str | None = None) -> CropPlan:
        plan = self.get_plan(plan_id)
        plan.cancel()
        log_activity(self.db, log_name="crop_plans", action="cancelled", subject=plan, causer_id=user_id)
        self.db.flush()
        return plan

    def generate_crops(
        self,
        plan_id: UUID,
        planting_at: datetime | None = None,
        user_id: str | None = None,
        now: datetime | None = None,
    ) -> list[Crop]:
        """
        Legt die geplanten Trays als Sammelanlage an und schließt den Plan ab.
        Ohne Aussaatzeit: PLANTING_TIME am Aussaattag, höchstens aber jetzt.
        """
        plan = self.get_plan(plan_id)
        plan.mark_as_generating()

        if planting_at is None:
            now = now or datetime.utcnow()
            planting_at = now
            if plan.plant_by_date and plan.plant_by_date <= now.date():
                planting_at = min(datetime.combine(plan.plant_by_date, PLANTING_TIME), now)

        prefix = planting_at.strftime("%m%d")
        specs = [
            {
                "recipe_id": plan.recipe_id,
                "planting_at": planting_at,
                "tray_number": f"{prefix}-{index:02d}",
                "order_id": plan.order_id,
                "crop_plan_id": plan.id,
                "user_id": user_id,
            }
            for index in range(1, plan.trays_needed + 1)
        ]
        crops = CropService(self.db, self.dispatcher).create_crops(specs)

        plan.mark_as_completed()
        log_activity(
            self.db, log_name="crop_plans", action="completed", subject=plan, causer_id=user_id,
            description=f"{len(crops)} Crops erzeugt",
        )
        self.db.flush()
        return crops

    def urgent_plans(self, today: date | None = None) -> list[CropPlan]:
        today = today or date.today()
        return [
            plan for plan in self._open_plans()
            if plan.is_urgent(today, self.settings.crop_plan_urgent_days)
        ]

    def overdue_plans(self, today: date | None = None) -> list[CropPlan]:
        today = today or date.today()
        return [plan for plan in self._open_plans() if plan.is_overdue(today)]

    def _open_plans(self) -> list[CropPlan]:
        return list(self.db.execute(
            select(CropPlan).where(
                CropPlan.status.in_([CropPlanStatus.DRAFT, CropPlanStatus.APPROVED, CropPlanStatus.GENERATING])
            ).order_by(CropPlan.plant_by_date)
        ).scalars().all())
