"""
Geplante Anbau-Aufgaben - automatische Phasenwechsel und Gießstopp

Aus dem Rezept werden die Zeitpunkte der kommenden Phasen berechnet:
    [Einweichen → Keimung] → Dunkelphase → Lichtphase → Ernte
Die Celery-Task process_due_crop_tasks arbeitet fällige Aufgaben ab.
"""
import logging
from datetime import datetime, timedelta
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import select, delete

from sprout.models.crop import Crop, CropTask, STAGE_ORDER
from sprout.models.enums import CropTaskType, CropTaskStatus
from sprout.models.lookup import CropStage
from sprout.services.crop_lifecycle import CropLifecycleService

logger = logging.getLogger(__name__)


def batch_key_for(crop: Crop) -> str:
    """{recipe}_{aussaat}_{phase} - gemeinsamer Schlüssel aller Crops eines Batches"""
    return f"{crop.recipe_id}_{crop.planting_at.strftime('%Y%m%d%H%M')}_{crop.current_stage}"


class CropTaskService:
    """Service für geplante Anbau-Aufgaben"""

    def __init__(self, db: Session):
        self.db = db
        self.lifecycle = CropLifecycleService(db)

    def stage_schedule(self, crop: Crop) -> list[tuple[str, datetime]]:
        """Geplante Startzeitpunkte der Phasen nach der Aussaat"""
        recipe = crop.recipe
        schedule = []
        at = crop.planting_at
        if crop.requires_soaking:
            at = at + timedelta(hours=recipe.seed_soak_hours or 0)
            schedule.append((CropStage.GERMINATION, at))

        at = at + timedelta(days=float(recipe.germination_days or 0))
        if (recipe.blackout_days or 0) > 0:
            schedule.append((CropStage.BLACKOUT, at))
            at = at + timedelta(days=float(recipe.blackout_days))
        schedule.append((CropStage.LIGHT, at))

        at = at + timedelta(days=float(recipe.light_days or 0))
        schedule.append((CropStage.HARVESTED, at))
        return schedule

    def schedule_stage_tasks(self, crop: Crop, now: datetime | None = None) -> list[CropTask]:
        """
        Ersetzt die offenen Aufgaben eines Crops durch neu berechnete.
        Angelegt werden nur Aufgaben in der Zukunft und nach der aktuellen Phase.
        """
        if crop.recipe is None:
            raise ValueError("Crop hat kein Rezept")

        now = now or datetime.utcnow()
        self.db.execute(
            delete(CropTask).where(
                CropTask.crop_id == crop.id,
                CropTask.status == CropTaskStatus.PENDING,
            )
        )

        current_index = STAGE_ORDER.index(crop.current_stage)
        batch_key = batch_key_for(crop)
        tasks = []
        harvest_at = None
        for stage_code, scheduled_for in self.stage_schedule(crop):
            if stage_code == CropStage.HARVESTED:
                harvest_at = scheduled_for
            if STAGE_ORDER.index(stage_code) <= current_index or scheduled_for <= now:
                continue
            tasks.append(CropTask(
                crop_id=crop.id,
                task_type=CropTaskType.ADVANCE_STAGE,
                name=f"advance_to_{stage_code}",
                target_stage=stage_code,
                batch_key=batch_key,
                scheduled_for=scheduled_for,
                extra={"target_stage": stage_code},
            ))

        if harvest_at is not None and not crop.is_harvested and not crop.is_watering_suspended:
            suspend_at = harvest_at - timedelta(hours=self.lifecycle.suspend_watering_hours(crop))
            if suspend_at > now:
                tasks.append(CropTask(
                    crop_id=crop.id,
                    task_type=CropTaskType.SUSPEND_WATERING,
                    name="suspend_watering",
                    batch_key=batch_key,
                    scheduled_for=suspend_at,
                ))

        self.db.add_all(tasks)
        self.db.flush()
        logger.info(f"{len(tasks)} Aufgaben für Crop {crop.id} geplant")
        return tasks

    def pending_tasks(self, crop_id: UUID) -> list[CropTask]:
        return list(self.db.execute(
            select(CropTask).where(
                CropTask.crop_id == crop_id,
                CropTask.status == CropTaskStatus.PENDING,
            ).order_by(CropTask.scheduled_for)
        ).scalars().all())

    def due_tasks(self, now: datetime | None = None) -> list[CropTask]:
        now = now or datetime.utcnow()
        return list(self.db.execute(
            select(CropTask).where(
                CropTask.status == CropTaskStatus.PENDING,
                CropTask.scheduled_for <= now,
            ).order_by(CropTask.scheduled_for)
        ).scalars().all())

    def process_due_tasks(self, now: datetime | None = None) -> dict:
        """
        Führt fällige Aufgaben aus.
        Nicht ausführbare Aufgaben werden mit Fehlermeldung übersprungen.
        """
        result = {"completed": 0, "skipped": 0}
        for task in self.due_tasks(now):
            if task.status != CropTaskStatus.PENDING:
                continue
            try:
                note = self._execute(task)
            except ValueError as e:
                task.status = CropTaskStatus.SKIPPED
                task.extra = {**(task.extra or {}), "error": str(e)}
                result["skipped"] += 1
                logger.warning(f"Aufgabe {task.name} für Crop {task.crop_id} übersprungen: {e}")
            else:
                task.status = CropTaskStatus.COMPLETED
                if note:
                    task.extra = {**(task.extra or {}), "note": note}
                result["completed"] += 1
            task.completed_at = datetime.utcnow()
            self.db.flush()
        return result

    def _execute(self, task: CropTask) -> str | None:
        crop = task.crop
        if task.task_type == CropTaskType.SUSPEND_WATERING:
            if crop.is_watering_suspended or crop.is_harvested:
                return "Gießstopp nicht mehr erforderlich"
            self.lifecycle.suspend_watering(crop.id, at=task.scheduled_for)
            return None

        if STAGE_ORDER.index(crop.current_stage) >= STAGE_ORDER.index(task.target_stage):
            return "Phase bereits erreicht"
        self.lifecycle.advance_stage(crop.id, at=task.scheduled_for, reason="Automatischer Phasenwechsel")
        return None
