"""
Domain-Ereignisse für den Anbau.

Nebenwirkungen beim Anlegen von Crops (Saatgut ausbuchen, Aufgaben planen)
hängen als Handler an einem EventDispatcher. Sammelanlagen laufen in einem
BulkContext: Einzelereignisse werden gesammelt und beim Verlassen als ein
CropsCreated ausgelöst.

    with BulkContext(db) as bulk:
        crop_service.create_crop(..., context=bulk)
        crop_service.create_crop(..., context=bulk)
    # → ein CropsCreated mit beiden IDs

Fehler in Handlern werden als Warnung protokolliert und nie an den
Auslöser weitergereicht.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable
from uuid import UUID
from sqlalchemy.orm import Session

from sprout.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CropCreated:
    crop_id: UUID


@dataclass(frozen=True)
class CropsCreated:
    crop_ids: tuple[UUID, ...]


@dataclass(frozen=True)
class CropStageChanged:
    crop_id: UUID
    from_stage: str | None
    to_stage: str


Handler = Callable[[Session, object], None]


class EventDispatcher:
    """Verteilt Ereignisse synchron an registrierte Handler"""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def handlers_for(self, event_type: type) -> list[Handler]:
        return list(self._handlers.get(event_type, []))

    def dispatch(self, db: Session, event) -> None:
        """Jeder Handler läuft in einem eigenen Savepoint; ein Fehler verwirft nur dessen Änderungen."""
        for handler in self.handlers_for(type(event)):
            try:
                with db.begin_nested():
                    handler(db, event)
            except Exception as e:
                logger.warning(
                    f"Handler {handler.__name__} für {type(event).__name__} fehlgeschlagen: {e}"
                )


class BulkContext:
    """
    Sammelt Crop-Anlagen einer Sammeloperation.
    Bei Fehlern im Block wird kein Ereignis ausgelöst.
    """

    def __init__(self, db: Session, dispatcher: EventDispatcher | None = None):
        self.db = db
        self.dispatcher = dispatcher or crop_events
        self.crop_ids: list[UUID] = []
        self._closed = False

    def record(self, crop) -> None:
        if self._closed:
            raise ValueError("BulkContext ist bereits abgeschlossen")
        self.crop_ids.append(crop.id)

    def __enter__(self) -> "BulkContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._closed = True
        if exc_type is None and self.crop_ids:
            self.dispatcher.dispatch(self.db, CropsCreated(tuple(self.crop_ids)))
        return False


# ========================================
# STANDARD-HANDLER
# ========================================

def _load_crop(db: Session, crop_id: UUID):
    from sprout.models.crop import Crop

    crop = db.get(Crop, crop_id)
    if crop is None:
        raise ValueError(f"Crop {crop_id} nicht gefunden")
    return crop


def _each_crop(db: Session, crop_ids, action: Callable, label: str) -> None:
    """Führt action je Crop aus; Fehler einzelner Crops bleiben Warnungen"""
    for crop_id in crop_ids:
        try:
            action(db, _load_crop(db, crop_id))
        except ValueError as e:
            logger.warning(f"{label} für Crop {crop_id} fehlgeschlagen: {e}")


def _deduct_seed(db: Session, crop) -> None:
    from sprout.services.consumable_service import ConsumableService

    ConsumableService(db).deduct_seed_for_crop(crop)


def _schedule_tasks(db: Session, crop) -> None:
    from sprout.services.crop_tasks import CropTaskService

    if not get_settings().schedule_crop_tasks:
        return
    CropTaskService(db).schedule_stage_tasks(crop)


def deduct_seed_on_crop_created(db: Session, event) -> None:
    crop_ids = event.crop_ids if isinstance(event, CropsCreated) else (event.crop_id,)
    _each_crop(db, crop_ids, _deduct_seed, "Saatgut-Abbuchung")


def schedule_tasks_on_crop_created(db: Session, event) -> None:
    crop_ids = event.crop_ids if isinstance(event, CropsCreated) else (event.crop_id,)
    _each_crop(db, crop_ids, _schedule_tasks, "Aufgabenplanung")


def reschedule_tasks_on_stage_changed(db: Session, event: CropStageChanged) -> None:
    _each_crop(db, (event.crop_id,), _schedule_tasks, "Aufgabenplanung")


def register_default_handlers(dispatcher: EventDispatcher) -> EventDispatcher:
    for event_type in (CropCreated, CropsCreated):
        dispatcher.subscribe(event_type, deduct_seed_on_crop_created)
        dispatcher.subscribe(event_type, schedule_tasks_on_crop_created)
    dispatcher.subscribe(CropStageChanged, reschedule_tasks_on_stage_changed)
    return dispatcher


crop_events = register_default_handlers(EventDispatcher())
