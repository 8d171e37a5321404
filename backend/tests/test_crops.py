"""
Anbau Tests
Crop-Anlage, Ereignisse, Lebenszyklus, Zeitberechnung und geplante Aufgaben
"""
import uuid
import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from sprout.models import (
    ActivityLog, Crop, CropStage, CropStageHistory, CropTask, CropTaskStatus, CropTaskType,
)
from sprout.services.activity import log_activity
from sprout.services.crop_lifecycle import CropLifecycleService
from sprout.services.crop_service import CropService
from sprout.services.crop_tasks import CropTaskService, batch_key_for
from sprout.services.crop_time import CropTimeCalculator, format_duration
from sprout.services.events import (
    EventDispatcher, BulkContext, CropCreated, CropsCreated,
)


PLANTED = datetime(2026, 3, 2, 8, 0)


class RecordingDispatcher(EventDispatcher):
    """Dispatcher, der ausgelöste Ereignisse mitschreibt"""

    def __init__(self):
        super().__init__()
        self.events = []

    def dispatch(self, db, event):
        self.events.append(event)
        super().dispatch(db, event)


class TestCropCreation:
    """Tests für das Anlegen von Crops"""

    def test_create_crop_starts_in_germination(self, seeded_db, recipe):
        """Test: Ohne Einweichen startet der Crop in der Keimung"""
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED, tray_number="A1")
        seeded_db.commit()

        assert crop.current_stage == CropStage.GERMINATION
        assert crop.germination_at == PLANTED
        assert crop.soaking_at is None
        assert not crop.requires_soaking

        history = seeded_db.query(CropStageHistory).filter_by(crop_id=crop.id).all()
        assert [(h.from_stage, h.to_stage) for h in history] == [(None, CropStage.GERMINATION)]

    def test_create_crop_with_soaking(self, seeded_db, soaking_recipe):
        crop = CropService(seeded_db).create_crop(soaking_recipe.id, planting_at=PLANTED)
        seeded_db.commit()

        assert crop.current_stage == CropStage.SOAKING
        assert crop.soaking_at == PLANTED
        assert crop.requires_soaking

    def test_create_crop_deducts_seed(self, seeded_db, recipe, seed_consumable):
        """Test: Aussaat bucht Saatdichte * Trays vom Saatgut ab"""
        CropService(seeded_db).create_crop(recipe.id, tray_count=2)
        seeded_db.commit()

        assert seed_consumable.current_stock == Decimal("800")

    def test_create_crop_schedules_tasks(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id)
        seeded_db.commit()

        names = {task.name for task in CropTaskService(seeded_db).pending_tasks(crop.id)}
        assert names == {"advance_to_blackout", "advance_to_light", "advance_to_harvested", "suspend_watering"}

    def test_missing_seed_does_not_block_crop(self, seeded_db, recipe, seed_consumable):
        """Test: Fehlschlagende Saatgut-Abbuchung verhindert den Crop nicht"""
        crop = CropService(seeded_db).create_crop(recipe.id, tray_count=20)
        seeded_db.commit()

        assert seeded_db.get(Crop, crop.id) is not None
        assert seed_consumable.current_stock == Decimal("1000")

    def test_unknown_recipe(self, seeded_db):
        with pytest.raises(ValueError, match="Rezept nicht gefunden"):
            CropService(seeded_db).create_crop(uuid.uuid4())

    def test_invalid_tray_count(self, seeded_db, recipe):
        with pytest.raises(ValueError, match="mindestens 1"):
            CropService(seeded_db).create_crop(recipe.id, tray_count=0)

    def test_expected_harvest(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        assert crop.expected_harvest_at == PLANTED + timedelta(days=10)


class TestCropEvents:
    """Tests für Ereignisse und Sammelanlage"""

    def test_single_crop_dispatches_crop_created(self, seeded_db, recipe):
        dispatcher = RecordingDispatcher()
        crop = CropService(seeded_db, dispatcher).create_crop(recipe.id)

        assert dispatcher.events == [CropCreated(crop.id)]

    def test_bulk_dispatches_once(self, seeded_db, recipe):
        """Test: Sammelanlage löst genau ein CropsCreated aus"""
        dispatcher = RecordingDispatcher()
        crops = CropService(seeded_db, dispatcher).create_crops([
            {"recipe_id": recipe.id, "planting_at": PLANTED, "tray_number": "B1"},
            {"recipe_id": recipe.id, "planting_at": PLANTED, "tray_number": "B2"},
        ])

        assert len(dispatcher.events) == 1
        assert dispatcher.events[0] == CropsCreated(tuple(crop.id for crop in crops))

    def test_bulk_side_effects_run_for_all(self, seeded_db, recipe, seed_consumable):
        CropService(seeded_db).create_crops([
            {"recipe_id": recipe.id, "tray_number": "C1"},
            {"recipe_id": recipe.id, "tray_number": "C2"},
            {"recipe_id": recipe.id, "tray_number": "C3"},
        ])
        seeded_db.commit()

        assert seed_consumable.current_stock == Decimal("700")
        assert seeded_db.query(CropTask).count() == 12

    def test_bulk_context_without_events_on_error(self, seeded_db, recipe):
        dispatcher = RecordingDispatcher()
        service = CropService(seeded_db, dispatcher)

        with pytest.raises(ValueError):
            with BulkContext(seeded_db, dispatcher) as bulk:
                service.create_crop(recipe.id, context=bulk)
                service.create_crop(recipe.id, tray_count=0, context=bulk)

        assert dispatcher.events == []

    def test_closed_bulk_context(self, seeded_db, recipe):
        dispatcher = RecordingDispatcher()
        with BulkContext(seeded_db, dispatcher) as bulk:
            pass

        with pytest.raises(ValueError, match="bereits abgeschlossen"):
            CropService(seeded_db, dispatcher).create_crop(recipe.id, context=bulk)

    def test_handler_errors_are_swallowed(self, seeded_db):
        """Test: Fehler eines Handlers erreichen den Auslöser nicht"""
        calls = []

        def broken(db, event):
            raise RuntimeError("kaputt")

        def working(db, event):
            calls.append(event)

        dispatcher = EventDispatcher()
        dispatcher.subscribe(CropCreated, broken)
        dispatcher.subscribe(CropCreated, working)

        event = CropCreated(crop_id=None)
        dispatcher.dispatch(seeded_db, event)
        assert calls == [event]

    def test_failed_handler_discards_its_writes(self, seeded_db, recipe):
        """Test: Änderungen eines fehlgeschlagenen Handlers werden verworfen, die anderen bleiben"""
        crop = CropService(seeded_db, EventDispatcher()).create_crop(recipe.id, planting_at=PLANTED)

        def broken(db, event):
            log_activity(db, log_name="broken", action="failed")
            db.flush()
            raise RuntimeError("kaputt")

        def working(db, event):
            log_activity(db, log_name="working", action="done")

        dispatcher = EventDispatcher()
        dispatcher.subscribe(CropCreated, broken)
        dispatcher.subscribe(CropCreated, working)
        dispatcher.dispatch(seeded_db, CropCreated(crop.id))
        seeded_db.commit()

        assert seeded_db.query(ActivityLog).filter_by(log_name="broken").count() == 0
        assert seeded_db.query(ActivityLog).filter_by(log_name="working").count() == 1
        assert seeded_db.get(Crop, crop.id) is not None


class TestCropUpdate:
    """Tests für Zeitstempel und Ernte"""

    def test_timestamps_must_be_chronological(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        seeded_db.commit()

        with pytest.raises(ValueError, match="Wachstumsphasen müssen chronologisch sein"):
            CropService(seeded_db).update_crop(crop.id, {"light_at": PLANTED - timedelta(hours=1)})
        seeded_db.rollback()

    def test_stage_follows_latest_timestamp(self, seeded_db, recipe):
        """Test: Aktuelle Phase ergibt sich aus dem spätesten Zeitstempel"""
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        CropService(seeded_db).update_crop(crop.id, {"light_at": PLANTED + timedelta(days=3)})
        seeded_db.commit()

        assert crop.current_stage == CropStage.LIGHT

    def test_planting_time_cannot_be_removed(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        seeded_db.commit()

        with pytest.raises(ValueError, match="Aussaatzeitpunkt darf nicht entfernt werden"):
            CropService(seeded_db).update_crop(crop.id, {"planting_at": None})
        assert crop.planting_at == PLANTED

    def test_record_harvest(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        harvested_at = PLANTED + timedelta(days=10)
        CropService(seeded_db).record_harvest(crop.id, Decimal("340"), harvested_at=harvested_at)
        seeded_db.commit()

        assert crop.is_harvested
        assert crop.harvested_at == harvested_at
        assert crop.harvest_weight_grams == Decimal("340")
        last = crop.stage_history[-1]
        assert (last.from_stage, last.to_stage, last.reason) == (
            CropStage.GERMINATION, CropStage.HARVESTED, "Ernte"
        )


class TestCropLifecycle:
    """Tests für Batch-Phasenwechsel, Zurücksetzen und Gießstopp"""

    @pytest.fixture
    def batch(self, seeded_db, recipe):
        crops = CropService(seeded_db).create_crops([
            {"recipe_id": recipe.id, "planting_at": PLANTED, "tray_number": "D1"},
            {"recipe_id": recipe.id, "planting_at": PLANTED, "tray_number": "D2"},
        ])
        seeded_db.commit()
        return crops

    def test_advance_moves_whole_batch(self, seeded_db, batch):
        """Test: Phasenwechsel wirkt auf alle Crops des Batches"""
        at = PLANTED + timedelta(days=2)
        moved = CropLifecycleService(seeded_db).advance_stage(batch[0].id, at=at)
        seeded_db.commit()

        assert {crop.id for crop in moved} == {crop.id for crop in batch}
        assert all(crop.current_stage == CropStage.BLACKOUT for crop in batch)
        assert all(crop.blackout_at == at for crop in batch)

    def test_advance_skips_blackout(self, seeded_db, soaking_recipe):
        service = CropService(seeded_db)
        crop = service.create_crop(soaking_recipe.id, planting_at=PLANTED, tray_number="E1")
        lifecycle = CropLifecycleService(seeded_db)

        lifecycle.advance_stage(crop.id, at=PLANTED + timedelta(hours=8))
        assert crop.current_stage == CropStage.GERMINATION
        lifecycle.advance_stage(crop.id, at=PLANTED + timedelta(days=2))
        assert crop.current_stage == CropStage.LIGHT

    def test_advance_harvested_is_noop(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        CropService(seeded_db).record_harvest(crop.id, Decimal("300"), harvested_at=PLANTED + timedelta(days=10))

        assert CropLifecycleService(seeded_db).advance_stage(crop.id) == []

    def test_advance_before_current_stage(self, seeded_db, batch):
        with pytest.raises(ValueError, match="liegt vor dem Beginn der aktuellen Phase"):
            CropLifecycleService(seeded_db).advance_stage(batch[0].id, at=PLANTED - timedelta(hours=1))

    def test_reset_to_stage(self, seeded_db, batch):
        """Test: Zurücksetzen löscht spätere Zeitstempel"""
        lifecycle = CropLifecycleService(seeded_db)
        lifecycle.advance_stage(batch[0].id, at=PLANTED + timedelta(days=2))
        lifecycle.advance_stage(batch[0].id, at=PLANTED + timedelta(days=5))

        crop = lifecycle.reset_to_stage(
            batch[0].id, CropStage.GERMINATION, at=PLANTED + timedelta(days=6), reason="Falsch gebucht"
        )
        seeded_db.commit()

        assert crop.current_stage == CropStage.GERMINATION
        assert crop.blackout_at is None
        assert crop.light_at is None
        assert crop.germination_at == PLANTED
        assert crop.stage_history[-1].reason == "Falsch gebucht"

    def test_reset_unknown_stage(self, seeded_db, batch):
        with pytest.raises(ValueError, match="Unbekannte Phase"):
            CropLifecycleService(seeded_db).reset_to_stage(batch[0].id, "flowering")

    def test_suspend_and_resume_watering(self, seeded_db, batch):
        lifecycle = CropLifecycleService(seeded_db)

        assert lifecycle.suspend_watering(batch[0].id) == 2
        assert lifecycle.suspend_watering(batch[1].id) == 0
        assert all(crop.is_watering_suspended for crop in batch)
        assert lifecycle.resume_watering(batch[0].id) == 2

    def test_should_suspend_watering(self, seeded_db, batch):
        """Test: Gießstopp 12h (Rezept) vor der erwarteten Ernte"""
        lifecycle = CropLifecycleService(seeded_db)
        crop = batch[0]

        assert not lifecycle.should_suspend_watering(crop, now=PLANTED + timedelta(days=5))
        assert lifecycle.should_suspend_watering(crop, now=PLANTED + timedelta(days=9, hours=13))

    def test_suspend_hours_default(self, seeded_db, soaking_recipe):
        crop = CropService(seeded_db).create_crop(soaking_recipe.id, planting_at=PLANTED)
        assert CropLifecycleService(seeded_db).suspend_watering_hours(crop) == 24

    def test_days_in_current_stage(self, seeded_db, batch):
        lifecycle = CropLifecycleService(seeded_db)
        assert lifecycle.days_in_current_stage(batch[0], now=PLANTED + timedelta(days=3, hours=5)) == 3


class TestFormatDuration:
    """Tests für die kompakte Dauer-Anzeige"""

    @pytest.mark.parametrize("minutes,expected", [
        (0, "0m"),
        (45, "45m"),
        (200, "3h 20m"),
        (2 * 1440 + 5 * 60, "2d 5h"),
        (10080 + 3 * 1440, "1w 3d"),
        (-5, "0m"),
    ])
    def test_format(self, minutes, expected):
        assert format_duration(minutes) == expected


class TestCropTime:
    """Tests für Alter und Zeit bis zum nächsten Wechsel"""

    def test_time_in_progress(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        calculator = CropTimeCalculator(seeded_db)
        now = PLANTED + timedelta(hours=1)

        result = calculator.time_to_next_stage(crop, now)
        assert result == {"minutes": 2820, "display": "1d 23h", "status": CropTimeCalculator.IN_PROGRESS}
        assert calculator.stage_age_minutes(crop, now) == 60

    def test_time_overdue(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        result = CropTimeCalculator(seeded_db).time_to_next_stage(crop, PLANTED + timedelta(days=3))

        assert result["minutes"] == 0
        assert result["status"] == CropTimeCalculator.READY

    def test_time_harvested(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        CropService(seeded_db).record_harvest(crop.id, Decimal("300"), harvested_at=PLANTED + timedelta(days=10))

        assert CropTimeCalculator(seeded_db).status(crop) == CropTimeCalculator.HARVESTED

    def test_soaking_duration(self, seeded_db, soaking_recipe):
        crop = CropService(seeded_db).create_crop(soaking_recipe.id, planting_at=PLANTED)
        assert CropTimeCalculator(seeded_db).next_stage_at(crop) == PLANTED + timedelta(hours=8)

    def test_summary(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        CropLifecycleService(seeded_db).advance_stage(crop.id, at=PLANTED + timedelta(days=2))

        summary = CropTimeCalculator(seeded_db).summary(crop, now=PLANTED + timedelta(days=2, minutes=30))
        assert summary["stage_age_display"] == "30m"
        assert summary["total_age_display"] == "2d 0h"


class TestCropTasks:
    """Tests für geplante Aufgaben"""

    def test_stage_schedule(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        schedule = CropTaskService(seeded_db).stage_schedule(crop)

        assert schedule == [
            (CropStage.BLACKOUT, PLANTED + timedelta(days=2)),
            (CropStage.LIGHT, PLANTED + timedelta(days=5)),
            (CropStage.HARVESTED, PLANTED + timedelta(days=10)),
        ]

    def test_stage_schedule_with_soaking(self, seeded_db, soaking_recipe):
        crop = CropService(seeded_db).create_crop(soaking_recipe.id, planting_at=PLANTED)
        schedule = CropTaskService(seeded_db).stage_schedule(crop)

        assert [code for code, _ in schedule] == [CropStage.GERMINATION, CropStage.LIGHT, CropStage.HARVESTED]
        assert schedule[0][1] == PLANTED + timedelta(hours=8)

    def test_schedule_only_future_tasks(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        tasks = CropTaskService(seeded_db).schedule_stage_tasks(crop, now=PLANTED + timedelta(days=3))

        names = sorted(task.name for task in tasks)
        assert names == ["advance_to_harvested", "advance_to_light", "suspend_watering"]
        assert all(task.batch_key == batch_key_for(crop) for task in tasks)

    def test_reschedule_replaces_pending(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        service = CropTaskService(seeded_db)
        service.schedule_stage_tasks(crop, now=PLANTED)
        service.schedule_stage_tasks(crop, now=PLANTED)
        seeded_db.commit()

        assert len(service.pending_tasks(crop.id)) == 4

    def test_process_due_tasks(self, seeded_db, recipe):
        """Test: Fällige Aufgaben setzen Phasen und Gießstopp"""
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        service = CropTaskService(seeded_db)
        service.schedule_stage_tasks(crop, now=PLANTED)

        result = service.process_due_tasks(now=PLANTED + timedelta(days=3))
        assert result == {"completed": 1, "skipped": 0}
        assert crop.current_stage == CropStage.BLACKOUT
        assert crop.blackout_at == PLANTED + timedelta(days=2)

        result = service.process_due_tasks(now=PLANTED + timedelta(days=11))
        seeded_db.commit()
        assert result == {"completed": 3, "skipped": 0}
        assert crop.is_harvested
        assert crop.watering_suspended_at == PLANTED + timedelta(days=9, hours=12)
        assert service.pending_tasks(crop.id) == []

    def test_task_for_reached_stage_completes_with_note(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        service = CropTaskService(seeded_db)
        service.schedule_stage_tasks(crop, now=PLANTED)
        CropLifecycleService(seeded_db).advance_stage(crop.id, at=PLANTED + timedelta(days=1))

        service.process_due_tasks(now=PLANTED + timedelta(days=3))
        task = seeded_db.query(CropTask).filter_by(crop_id=crop.id, name="advance_to_blackout").one()
        assert task.status == CropTaskStatus.COMPLETED
        assert task.extra["note"] == "Phase bereits erreicht"

    def test_failing_task_is_skipped(self, seeded_db, recipe):
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=PLANTED)
        CropService(seeded_db).update_crop(crop.id, {"blackout_at": PLANTED + timedelta(days=4)})
        seeded_db.add(CropTask(
            crop_id=crop.id,
            task_type=CropTaskType.ADVANCE_STAGE,
            name="advance_to_light",
            target_stage=CropStage.LIGHT,
            scheduled_for=PLANTED + timedelta(days=3),
        ))
        seeded_db.flush()

        result = CropTaskService(seeded_db).process_due_tasks(now=PLANTED + timedelta(days=3, hours=1))
        assert result["skipped"] == 1
        task = seeded_db.query(CropTask).filter_by(name="advance_to_light", crop_id=crop.id).one()
        assert task.status == CropTaskStatus.SKIPPED
        assert "liegt vor dem Beginn" in task.extra["error"]
