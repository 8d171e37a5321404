"""
Anbau-Lebenszyklus - Phasenwechsel, Zurücksetzen und Gießstopp

Ein Batch sind alle Crops mit gleichem Rezept, gleichem Aussaatzeitpunkt und
gleicher aktueller Phase. Phasenwechsel und Gießstopp wirken immer auf den
ganzen Batch.
"""
import logging
from datetime import datetime, timedelta
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import select

from sprout.config import get_settings
from sprout.models.crop import Crop, CropStageHistory, STAGE_FIELD_BY_CODE, STAGE_ORDER
from sprout.models.lookup import CropStage
from sprout.services.activity import log_activity
from sprout.services.events import EventDispatcher, CropStageChanged, crop_events

logger = logging.getLogger(__name__)


class CropLifecycleService:
    """Service für Phasenwechsel von Crops"""

    def __init__(self, db: Session, dispatcher: EventDispatcher | None = None):
        self.db = db
        self.dispatcher = dispatcher or crop_events
        self.settings = get_settings()

    def get_crop(self, crop_id: UUID) -> Crop:
        crop = self.db.get(Crop, crop_id)
        if not crop:
            raise ValueError("Crop nicht gefunden")
        return crop

    def batch_for(self, crop: Crop) -> list[Crop]:
        """Alle Crops desselben Batches (inkl. crop selbst)"""
        self.db.flush()
        return list(self.db.execute(
            select(Crop).where(
                Crop.recipe_id == crop.recipe_id,
                Crop.planting_at == crop.planting_at,
                Crop.current_stage == crop.current_stage,
            ).order_by(Crop.tray_number)
        ).scalars().all())

    # ========================================
    # PHASENWECHSEL
    # ========================================

    def advance_stage(
        self,
        crop_id: UUID,
        at: datetime | None = None,
        reason: str | None = None,
        user_id: str | None = None,
    ) -> list[Crop]:
        """
        Setzt den Batch des Crops in die nächste zu durchlaufende Phase.
        In der letzten Phase passiert nichts (Warnung im Log).
        """
        crop = self.get_crop(crop_id)
        stage = CropStage.find_by_code(self.db, crop.current_stage)
        if stage is None:
            raise ValueError(f"Unbekannte Phase: {crop.current_stage}")

        target = stage.next_viable_stage(crop.recipe)
        if target is None:
            logger.warning(
                f"Crop {crop.id} (Tray {crop.tray_number or '-'}) ist bereits in der letzten Phase"
            )
            return []

        at = at or datetime.utcnow()
        batch = self.batch_for(crop)
        for member in batch:
            self.check_stage_time(member, at)
        for member in batch:
            self.apply_stage(member, target.code, at, reason=reason, user_id=user_id)
        self.db.flush()

        log_activity(
            self.db, log_name="crops", action="stage_advanced", subject=crop, causer_id=user_id,
            description=f"{len(batch)} Crops: {stage.code} → {target.code}",
        )
        logger.info(f"Batch von Crop {crop.id}: {stage.code} → {target.code} ({len(batch)} Crops)")
        return batch

    def check_stage_time(self, crop: Crop, at: datetime) -> None:
        """Ein neuer Phasenbeginn darf nicht vor einem bereits gesetzten liegen"""
        latest = crop.latest_stage_timestamp
        if latest is not None and at < latest:
            raise ValueError(
                f"Zeitpunkt {at:%d.%m.%Y %H:%M} liegt vor dem Beginn der aktuellen Phase "
                f"({latest:%d.%m.%Y %H:%M})."
            )

    def apply_stage(
        self,
        crop: Crop,
        stage_code: str,
        at: datetime,
        reason: str | None = None,
        user_id: str | None = None,
        transition_id: UUID | None = None,
    ) -> CropStageHistory:
        """Setzt den Zeitstempel der Phase und protokolliert den Wechsel"""
        from_stage = crop.current_stage
        setattr(crop, STAGE_FIELD_BY_CODE[stage_code], at)
        crop.current_stage = stage_code

        history = CropStageHistory(
            crop_id=crop.id,
            transition_id=transition_id,
            from_stage=from_stage,
            to_stage=stage_code,
            changed_at=at,
            reason=reason,
            user_id=user_id,
        )
        self.db.add(history)
        return history

    def reset_to_stage(
        self,
        crop_id: UUID,
        stage_code: str,
        at: datetime | None = None,
        reason: str | None = None,
        user_id: str | None = None,
    ) -> Crop:
        """
        Setzt einen Crop auf eine Phase zurück.
        Spätere Zeitstempel werden gelöscht, der Zeitstempel der Zielphase
        wird gesetzt, falls er fehlt.
        """
        target = CropStage.find_by_code(self.db, stage_code)
        if target is None:
            raise ValueError(f"Unbekannte Phase: {stage_code}")

        crop = self.get_crop(crop_id)
        from_stage = crop.current_stage
        for code in STAGE_ORDER[STAGE_ORDER.index(target.code) + 1:]:
            setattr(crop, STAGE_FIELD_BY_CODE[code], None)
        if crop.stage_timestamp(target.code) is None:
            setattr(crop, STAGE_FIELD_BY_CODE[target.code], at or datetime.utcnow())
        crop.current_stage = target.code

        self.db.add(CropStageHistory(
            crop_id=crop.id,
            from_stage=from_stage,
            to_stage=target.code,
            changed_at=at or datetime.utcnow(),
            reason=reason or "Zurückgesetzt",
            user_id=user_id,
        ))
        self.db.flush()

        log_activity(
            self.db, log_name="crops", action="stage_reset", subject=crop, causer_id=user_id,
            description=f"{from_stage} → {target.code}",
        )
        logger.info(f"Crop {crop.id} zurückgesetzt: {from_stage} → {target.code}")
        self.dispatcher.dispatch(self.db, CropStageChanged(crop.id, from_stage, target.code))
        return crop

    # ========================================
    # GIESSSTOPP
    # ========================================

    def suspend_watering(self, crop_id: UUID, at: datetime | None = None) -> int:
        """Gießstopp für den Batch; liefert die Anzahl betroffener Crops"""
        crop = self.get_crop(crop_id)
        at = at or datetime.utcnow()
        affected = 0
        for member in self.batch_for(crop):
            if member.watering_suspended_at is None:
                member.watering_suspended_at = at
                affected += 1
        self.db.flush()
        logger.info(f"Gießstopp für {affected} Crops gesetzt")
        return affected

    def resume_watering(self, crop_id: UUID) -> int:
        crop = self.get_crop(crop_id)
        affected = 0
        for member in self.batch_for(crop):
            if member.watering_suspended_at is not None:
                member.watering_suspended_at = None
                affected += 1
        self.db.flush()
        logger.info(f"Gießstopp für {affected} Crops aufgehoben")
        return affected

    # ========================================
    # BERECHNUNGEN
    # ========================================

    def expected_harvest_date(self, crop: Crop) -> datetime | None:
        return crop.expected_harvest_at

    def suspend_watering_hours(self, crop: Crop) -> int:
        if crop.recipe is not None and crop.recipe.suspend_watering_hours:
            return crop.recipe.suspend_watering_hours
        return self.settings.suspend_watering_hours

    def should_suspend_watering(self, crop: Crop, now: datetime | None = None) -> bool:
        if crop.is_harvested or crop.is_watering_suspended:
            return False
        harvest_at = self.expected_harvest_date(crop)
        if harvest_at is None:
            return False
        now = now or datetime.utcnow()
        return now >= harvest_at - timedelta(hours=self.suspend_watering_hours(crop))

    def days_in_current_stage(self, crop: Crop, now: datetime | None = None) -> int:
        started = crop.stage_started_at
        if started is None:
            return 0
        return max(0, ((now or datetime.utcnow()) - started).days)
