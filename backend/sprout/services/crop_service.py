"""
Crop-Service - Anlage von Trays einzeln oder als Sammelanlage
"""
import logging
from datetime import datetime
from uuid import UUID
from sqlalchemy.orm import Session

from sprout.models.crop import Crop, CropStageHistory
from sprout.models.recipe import Recipe
from sprout.services.activity import log_activity, changes_for
from sprout.services.events import EventDispatcher, BulkContext, CropCreated, crop_events

logger = logging.getLogger(__name__)


class CropService:
    """Service für das Anlegen und Pflegen von Crops"""

    def __init__(self, db: Session, dispatcher: EventDispatcher | None = None):
        self.db = db
        self.dispatcher = dispatcher or crop_events

    def get_crop(self, crop_id: UUID) -> Crop:
        crop = self.db.get(Crop, crop_id)
        if not crop:
            raise ValueError("Crop nicht gefunden")
        return crop

    def create_crop(
        self,
        recipe_id: UUID,
        planting_at: datetime | None = None,
        tray_number: str | None = None,
        tray_count: int = 1,
        order_id: UUID | None = None,
        crop_plan_id: UUID | None = None,
        notes: str | None = None,
        user_id: str | None = None,
        context: BulkContext | None = None,
    ) -> Crop:
        """
        Legt einen Crop an.
        Mit Einweichen startet er in 'soaking', sonst in 'germination';
        der Zeitstempel der Startphase ist der Aussaatzeitpunkt.
        Innerhalb eines BulkContext wird das Ereignis gesammelt.
        """
        recipe = self.db.get(Recipe, recipe_id)
        if not recipe:
            raise ValueError("Rezept nicht gefunden")
        if tray_count < 1:
            raise ValueError("Anzahl Trays muss mindestens 1 sein")

        planting_at = planting_at or datetime.utcnow()
        crop = Crop(
            recipe=recipe,
            order_id=order_id,
            crop_plan_id=crop_plan_id,
            tray_number=tray_number,
            tray_count=tray_count,
            requires_soaking=recipe.requires_soaking,
            planting_at=planting_at,
            notes=notes,
        )
        if recipe.requires_soaking:
            crop.soaking_at = planting_at
        else:
            crop.germination_at = planting_at

        self.db.add(crop)
        self.db.flush()

        self.db.add(CropStageHistory(
            crop_id=crop.id,
            from_stage=None,
            to_stage=crop.current_stage,
            changed_at=planting_at,
            reason="Aussaat",
            user_id=user_id,
        ))
        log_activity(
            self.db, log_name="crops", action="created", subject=crop, causer_id=user_id,
            description=f"Crop angelegt: {recipe.name}, Tray {tray_number or '-'}",
        )
        self.db.flush()
        logger.info(f"Crop {crop.id} angelegt ({recipe.name}, Phase {crop.current_stage})")

        if context is not None:
            context.record(crop)
        else:
            self.dispatcher.dispatch(self.db, CropCreated(crop.id))
        return crop

    def create_crops(self, specs: list[dict], context: BulkContext | None = None) -> list[Crop]:
        """
        Sammelanlage. Ohne übergebenen Kontext wird ein eigener BulkContext
        geöffnet; die Nebenwirkungen laufen dann einmal für alle Crops.
        """
        if context is not None:
            return [self.create_crop(**spec, context=context) for spec in specs]

        with BulkContext(self.db, self.dispatcher) as bulk:
            crops = [self.create_crop(**spec, context=bulk) for spec in specs]
        return crops

    def update_crop(self, crop_id: UUID, data: dict, user_id: str | None = None) -> Crop:
        """
        Ändert Stammdaten oder Zeitstempel eines Crops.
        Reihenfolge der Zeitstempel und aktuelle Phase prüft der Flush.
        """
        if "planting_at" in data and data["planting_at"] is None:
            raise ValueError("Aussaatzeitpunkt darf nicht entfernt werden.")

        crop = self.get_crop(crop_id)
        for field, value in data.items():
            setattr(crop, field, value)

        changes = changes_for(crop)
        self.db.flush()
        if changes:
            log_activity(
                self.db, log_name="crops", action="updated", subject=crop,
                causer_id=user_id, changes=changes,
            )
        return crop

    def record_harvest(
        self, crop_id: UUID, weight_grams, harvested_at: datetime | None = None, user_id: str | None = None
    ) -> Crop:
        """Erfasst Erntegewicht und setzt den Crop auf 'harvested'"""
        crop = self.get_crop(crop_id)
        from_stage = crop.current_stage
        harvested_at = crop.harvested_at or harvested_at or datetime.utcnow()
        crop.harvested_at = harvested_at
        crop.harvest_weight_grams = weight_grams
        self.db.flush()

        if from_stage != crop.current_stage:
            self.db.add(CropStageHistory(
                crop_id=crop.id, from_stage=from_stage, to_stage=crop.current_stage,
                changed_at=harvested_at, reason="Ernte", user_id=user_id,
            ))
        log_activity(
            self.db, log_name="crops", action="harvested", subject=crop, causer_id=user_id,
            description=f"Ernte erfasst: {weight_grams}g",
        )
        self.db.flush()
        return crop
