"""
Phasenwechsel-Service - Vor- und Zurücksetzen ausgewählter Crops mit Protokoll

Jeder Aufruf prüft alle Crops einzeln, wendet den Wechsel auf die gültigen an
und schreibt genau einen CropStageTransition-Eintrag mit Teilfehlern.
"""
import logging
from collections import Counter
from datetime import datetime, timedelta
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import select

from sprout.models.crop import Crop, CropStageHistory, CropStageTransition, STAGE_FIELD_BY_CODE, STAGE_ORDER
from sprout.models.enums import StageTransitionType
from sprout.models.lookup import CropStage
from sprout.services.activity import log_activity
from sprout.services.crop_lifecycle import CropLifecycleService
from sprout.services.events import EventDispatcher, CropStageChanged, crop_events

logger = logging.getLogger(__name__)

# Toleranz für Uhrabweichungen der Clients
FUTURE_TOLERANCE = timedelta(minutes=5)


class CropStageTransitionService:
    """Service für protokollierte (Sammel-)Phasenwechsel"""

    def __init__(self, db: Session, dispatcher: EventDispatcher | None = None):
        self.db = db
        self.dispatcher = dispatcher or crop_events
        self.lifecycle = CropLifecycleService(db, dispatcher=self.dispatcher)

    # ========================================
    # VORWÄRTS
    # ========================================

    def advance(
        self,
        crop_ids: list[UUID],
        at: datetime | None = None,
        reason: str | None = None,
        user_id: str | None = None,
    ) -> dict:
        """
        Setzt jeden Crop in seine nächste Phase.
        Ergebnis: {"advanced", "failed", "warnings", "crops", "transition"}
        """
        at = at or datetime.utcnow()
        crops, failed = self._load(crop_ids)
        warnings = self.validate_batch(crops)
        tray_counts = Counter(crop.tray_number for crop in crops if crop.tray_number)

        planned = []
        for crop in crops:
            try:
                target = self._validate_advance(crop, at, tray_counts)
            except ValueError as e:
                failed.append(self._failure(crop, e))
            else:
                planned.append((crop, target))

        transition = self._start_transition(
            StageTransitionType.BULK_ADVANCE if len(crop_ids) > 1 else StageTransitionType.ADVANCE,
            crops, [target for _, target in planned], at, reason, user_id, len(crop_ids),
        )
        for crop, target in planned:
            self.lifecycle.apply_stage(
                crop, target, at, reason=reason, user_id=user_id, transition_id=transition.id
            )
        advanced = [crop for crop, _ in planned]
        return self._finish(transition, "advanced", advanced, failed, warnings, user_id)

    def _validate_advance(self, crop: Crop, at: datetime, tray_counts: Counter) -> str:
        if at > datetime.utcnow() + FUTURE_TOLERANCE:
            raise ValueError("Zeitpunkt des Phasenwechsels darf nicht in der Zukunft liegen.")

        stage = CropStage.find_by_code(self.db, crop.current_stage)
        if stage is None:
            raise ValueError(f"Unbekannte Phase: {crop.current_stage}")
        target = stage.next_viable_stage(crop.recipe)
        if target is None:
            raise ValueError("Crop ist bereits geerntet.")

        self.lifecycle.check_stage_time(crop, at)

        if stage.is_soaking:
            if not crop.tray_number:
                raise ValueError("Für den Wechsel aus dem Einweichen ist eine Tray-Nummer erforderlich.")
            if tray_counts[crop.tray_number] > 1:
                raise ValueError(f"Tray-Nummer {crop.tray_number} ist im Batch doppelt vergeben.")
        return target.code

    # ========================================
    # RÜCKWÄRTS
    # ========================================

    def revert(
        self,
        crop_ids: list[UUID],
        reason: str | None = None,
        user_id: str | None = None,
    ) -> dict:
        """
        Setzt jeden Crop in die vorherige durchlaufene Phase zurück; der
        Zeitstempel der aktuellen Phase wird gelöscht.
        Ergebnis: {"reverted", "failed", "warnings", "crops", "transition"}
        """
        at = datetime.utcnow()
        crops, failed = self._load(crop_ids)
        warnings = self.validate_batch(crops)

        planned = []
        for crop in crops:
            try:
                target = self._validate_revert(crop)
            except ValueError as e:
                failed.append(self._failure(crop, e))
            else:
                planned.append((crop, target))

        transition = self._start_transition(
            StageTransitionType.BULK_REVERT if len(crop_ids) > 1 else StageTransitionType.REVERT,
            crops, [target for _, target in planned], at, reason, user_id, len(crop_ids),
        )
        changes = []
        for crop, target in planned:
            from_stage = crop.current_stage
            setattr(crop, STAGE_FIELD_BY_CODE[from_stage], None)
            crop.current_stage = target
            self.db.add(self._history(crop, from_stage, target, at, reason, user_id, transition.id))
            changes.append(CropStageChanged(crop.id, from_stage, target))

        reverted = [crop for crop, _ in planned]
        result = self._finish(transition, "reverted", reverted, failed, warnings, user_id)
        for event in changes:
            self.dispatcher.dispatch(self.db, event)
        return result

    def _validate_revert(self, crop: Crop) -> str:
        if crop.is_harvested and crop.harvest_weight_grams:
            raise ValueError(
                "Geernteter Crop mit erfasstem Erntegewicht kann nicht zurückgesetzt werden."
            )
        earlier = [
            code for code in STAGE_ORDER[:STAGE_ORDER.index(crop.current_stage)]
            if crop.stage_timestamp(code) is not None
        ]
        if not earlier:
            raise ValueError("Crop ist bereits in der ersten Phase.")
        return earlier[-1]

    # ========================================
    # PRÜFUNG
    # ========================================

    def validate_batch(self, crops: list[Crop]) -> list[str]:
        """Hinweise zur Auswahl; blockieren den Wechsel nicht"""
        warnings = []
        stages = sorted({crop.current_stage for crop in crops})
        if len(stages) > 1:
            warnings.append(f"Crops befinden sich in unterschiedlichen Phasen: {', '.join(stages)}")
        if len({crop.recipe_id for crop in crops}) > 1:
            warnings.append("Crops gehören zu unterschiedlichen Rezepten.")
        suspended = sum(1 for crop in crops if crop.is_watering_suspended)
        if suspended:
            warnings.append(f"{suspended} Crop(s) mit aktivem Gießstopp.")
        return warnings

    # ========================================
    # INTERN
    # ========================================

    def _load(self, crop_ids: list[UUID]) -> tuple[list[Crop], list[dict]]:
        if not crop_ids:
            raise ValueError("Keine Crops ausgewählt")
        found = {
            crop.id: crop
            for crop in self.db.execute(select(Crop).where(Crop.id.in_(crop_ids))).scalars().all()
        }
        crops, failed = [], []
        for crop_id in crop_ids:
            if crop_id in found:
                crops.append(found[crop_id])
            else:
                failed.append({"crop_id": str(crop_id), "tray_number": None, "error": "Crop nicht gefunden"})
        return crops, failed

    @staticmethod
    def _failure(crop: Crop, error: Exception) -> dict:
        return {"crop_id": str(crop.id), "tray_number": crop.tray_number, "error": str(error)}

    def _history(self, crop, from_stage, to_stage, at, reason, user_id, transition_id):
        return CropStageHistory(
            crop_id=crop.id, transition_id=transition_id, from_stage=from_stage,
            to_stage=to_stage, changed_at=at, reason=reason, user_id=user_id,
        )

    def _start_transition(
        self, transition_type, crops, targets, at, reason, user_id, crop_count
    ) -> CropStageTransition:
        from_stages = {crop.current_stage for crop in crops}
        to_stages = set(targets)
        transition = CropStageTransition(
            type=transition_type,
            from_stage=from_stages.pop() if len(from_stages) == 1 else None,
            to_stage=to_stages.pop() if len(to_stages) == 1 else None,
            transition_at=at,
            crop_count=crop_count,
            reason=reason,
            user_id=user_id,
        )
        self.db.add(transition)
        self.db.flush()
        return transition

    def _finish(self, transition, key, changed, failed, warnings, user_id) -> dict:
        transition.succeeded_count = len(changed)
        transition.failed_count = len(failed)
        transition.failed_crops = failed or None
        transition.validation_warnings = warnings or None
        self.db.flush()

        log_activity(
            self.db, log_name="crops", action=transition.type.value, subject=transition,
            causer_id=user_id,
            description=f"{len(changed)} von {transition.crop_count} Crops: "
                        f"{transition.from_stage or '*'} → {transition.to_stage or '*'}",
        )
        logger.info(
            f"Phasenwechsel {transition.type.value}: {len(changed)} erfolgreich, {len(failed)} fehlgeschlagen"
        )
        return {
            key: len(changed),
            "failed": failed,
            "warnings": warnings,
            "crops": changed,
            "transition": transition,
        }
