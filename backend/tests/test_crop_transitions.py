"""
Phasenwechsel Tests
Protokollierte Vor- und Rückwärtswechsel mit Teilfehlern und Hinweisen
"""
import uuid
import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from sprout.models import CropStage, CropStageTransition, CropTask, CropTaskStatus, StageTransitionType
from sprout.services.crop_lifecycle import CropLifecycleService
from sprout.services.crop_service import CropService
from sprout.services.crop_transitions import CropStageTransitionService


PLANTED = datetime(2026, 3, 2, 8, 0)


@pytest.fixture
def service(seeded_db):
    return CropStageTransitionService(seeded_db)


@pytest.fixture
def crops(seeded_db, recipe):
    created = CropService(seeded_db).create_crops([
        {"recipe_id": recipe.id, "planting_at": PLANTED, "tray_number": "T1"},
        {"recipe_id": recipe.id, "planting_at": PLANTED, "tray_number": "T2"},
    ])
    seeded_db.commit()
    return created


class TestAdvance:
    """Tests für den Vorwärtswechsel"""

    def test_advance_single_crop(self, seeded_db, service, crops):
        """Test: Einzelwechsel nur für den gewählten Crop"""
        at = PLANTED + timedelta(days=2)
        result = service.advance([crops[0].id], at=at, reason="Keimung abgeschlossen")
        seeded_db.commit()

        assert result["advanced"] == 1
        assert result["failed"] == []
        assert crops[0].current_stage == CropStage.BLACKOUT
        assert crops[0].blackout_at == at
        assert crops[1].current_stage == CropStage.GERMINATION

        transition = result["transition"]
        assert transition.type == StageTransitionType.ADVANCE
        assert not transition.is_bulk
        assert (transition.from_stage, transition.to_stage) == (CropStage.GERMINATION, CropStage.BLACKOUT)
        assert crops[0].stage_history[-1].transition_id == transition.id

    def test_bulk_advance(self, seeded_db, service, crops):
        result = service.advance([crop.id for crop in crops], at=PLANTED + timedelta(days=2))
        seeded_db.commit()

        transition = result["transition"]
        assert result["advanced"] == 2
        assert transition.type == StageTransitionType.BULK_ADVANCE
        assert transition.crop_count == 2
        assert transition.succeeded_count == 2
        assert transition.failed_count == 0
        assert transition.failed_crops is None

    def test_future_time_fails(self, seeded_db, service, crops):
        """Test: Zeitpunkt in der Zukunft wird je Crop abgelehnt"""
        future = datetime.utcnow() + timedelta(hours=2)
        result = service.advance([crops[0].id], at=future)

        assert result["advanced"] == 0
        assert "Zukunft" in result["failed"][0]["error"]
        assert crops[0].current_stage == CropStage.GERMINATION

    def test_before_current_stage_fails(self, service, crops):
        result = service.advance([crops[0].id], at=PLANTED - timedelta(hours=1))
        assert "liegt vor dem Beginn der aktuellen Phase" in result["failed"][0]["error"]

    def test_harvested_crop_fails(self, seeded_db, service, crops):
        CropService(seeded_db).record_harvest(
            crops[0].id, Decimal("320"), harvested_at=PLANTED + timedelta(days=10)
        )
        result = service.advance([crops[0].id], at=PLANTED + timedelta(days=11))

        assert result["failed"][0]["error"] == "Crop ist bereits geerntet."

    def test_soaking_requires_tray_number(self, seeded_db, service, soaking_recipe):
        """Test: Wechsel aus dem Einweichen braucht eine Tray-Nummer"""
        crop = CropService(seeded_db).create_crop(soaking_recipe.id, planting_at=PLANTED)
        result = service.advance([crop.id], at=PLANTED + timedelta(hours=8))

        assert result["advanced"] == 0
        assert result["failed"][0]["tray_number"] is None
        assert "Tray-Nummer erforderlich" in result["failed"][0]["error"]

    def test_soaking_duplicate_tray_numbers(self, seeded_db, service, soaking_recipe):
        created = CropService(seeded_db).create_crops([
            {"recipe_id": soaking_recipe.id, "planting_at": PLANTED, "tray_number": "S1"},
            {"recipe_id": soaking_recipe.id, "planting_at": PLANTED, "tray_number": "S1"},
        ])
        result = service.advance([crop.id for crop in created], at=PLANTED + timedelta(hours=8))

        assert result["advanced"] == 0
        assert len(result["failed"]) == 2
        assert result["failed"][0]["error"] == "Tray-Nummer S1 ist im Batch doppelt vergeben."

    def test_soaking_to_germination(self, seeded_db, service, soaking_recipe):
        crop = CropService(seeded_db).create_crop(soaking_recipe.id, planting_at=PLANTED, tray_number="S2")
        service.advance([crop.id], at=PLANTED + timedelta(hours=8))

        assert crop.current_stage == CropStage.GERMINATION

    def test_partial_failure(self, seeded_db, service, crops):
        """Test: Gültige Crops wechseln, ungültige werden protokolliert"""
        CropService(seeded_db).record_harvest(
            crops[1].id, Decimal("300"), harvested_at=PLANTED + timedelta(days=10)
        )
        missing = uuid.uuid4()

        result = service.advance(
            [crops[0].id, crops[1].id, missing], at=PLANTED + timedelta(days=2)
        )
        seeded_db.commit()

        transition = result["transition"]
        assert result["advanced"] == 1
        assert transition.is_partial_failure
        assert transition.crop_count == 3
        assert transition.failed_count == 2
        errors = {entry["crop_id"]: entry["error"] for entry in transition.failed_crops}
        assert errors[str(missing)] == "Crop nicht gefunden"
        assert errors[str(crops[1].id)] == "Crop ist bereits geerntet."

    def test_empty_selection(self, service):
        with pytest.raises(ValueError, match="Keine Crops ausgewählt"):
            service.advance([])

    def test_one_transition_per_call(self, seeded_db, service, crops):
        service.advance([crop.id for crop in crops], at=PLANTED + timedelta(days=2))
        seeded_db.commit()

        assert seeded_db.query(CropStageTransition).count() == 1


class TestWarnings:
    """Tests für Hinweise zur Auswahl"""

    def test_mixed_stages_and_recipes(self, seeded_db, service, crops, soaking_recipe):
        other = CropService(seeded_db).create_crop(soaking_recipe.id, planting_at=PLANTED, tray_number="X1")

        warnings = service.validate_batch([crops[0], other])
        assert warnings == [
            "Crops befinden sich in unterschiedlichen Phasen: germination, soaking",
            "Crops gehören zu unterschiedlichen Rezepten.",
        ]

    def test_suspended_watering(self, seeded_db, service, crops):
        CropLifecycleService(seeded_db).suspend_watering(crops[0].id, at=PLANTED + timedelta(days=1))

        result = service.advance([crop.id for crop in crops], at=PLANTED + timedelta(days=2))
        assert result["warnings"] == ["2 Crop(s) mit aktivem Gießstopp."]
        assert result["transition"].validation_warnings == result["warnings"]

    def test_uniform_batch_without_warnings(self, service, crops):
        assert service.validate_batch(crops) == []


class TestRevert:
    """Tests für den Rückwärtswechsel"""

    def test_revert_to_previous_stage(self, seeded_db, service, crops):
        """Test: Zeitstempel der aktuellen Phase wird gelöscht"""
        service.advance([crops[0].id], at=PLANTED + timedelta(days=2))
        result = service.revert([crops[0].id], reason="Zu früh")
        seeded_db.commit()

        assert result["reverted"] == 1
        assert crops[0].current_stage == CropStage.GERMINATION
        assert crops[0].blackout_at is None
        assert result["transition"].type == StageTransitionType.REVERT
        last = crops[0].stage_history[-1]
        assert (last.from_stage, last.to_stage, last.reason) == (
            CropStage.BLACKOUT, CropStage.GERMINATION, "Zu früh"
        )

    def test_revert_reschedules_tasks(self, seeded_db, service, recipe):
        """Test: Nach dem Zurücksetzen werden offene Aufgaben neu geplant"""
        planted = datetime.utcnow() - timedelta(days=3)
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=planted, tray_number="U1")
        service.advance([crop.id], at=planted + timedelta(days=2))
        seeded_db.query(CropTask).filter_by(crop_id=crop.id).delete()
        seeded_db.flush()

        service.revert([crop.id])
        seeded_db.commit()

        pending = seeded_db.query(CropTask).filter_by(
            crop_id=crop.id, status=CropTaskStatus.PENDING
        ).all()
        assert {task.name for task in pending} == {
            "advance_to_light", "advance_to_harvested", "suspend_watering"
        }

    def test_revert_skips_unset_stage(self, seeded_db, service, soaking_recipe):
        """Test: Übersprungene Dunkelphase wird beim Zurücksetzen ausgelassen"""
        crop = CropService(seeded_db).create_crop(soaking_recipe.id, planting_at=PLANTED, tray_number="R1")
        lifecycle = CropLifecycleService(seeded_db)
        lifecycle.advance_stage(crop.id, at=PLANTED + timedelta(hours=8))
        lifecycle.advance_stage(crop.id, at=PLANTED + timedelta(days=2, hours=8))
        assert crop.current_stage == CropStage.LIGHT

        service.revert([crop.id])
        assert crop.current_stage == CropStage.GERMINATION

    def test_first_stage_fails(self, service, crops):
        result = service.revert([crops[0].id])

        assert result["reverted"] == 0
        assert result["failed"][0]["error"] == "Crop ist bereits in der ersten Phase."

    def test_harvested_with_weight_fails(self, seeded_db, service, crops):
        CropService(seeded_db).record_harvest(
            crops[0].id, Decimal("310"), harvested_at=PLANTED + timedelta(days=10)
        )
        result = service.revert([crops[0].id])

        assert "Erntegewicht" in result["failed"][0]["error"]
        assert crops[0].is_harvested

    def test_harvested_without_weight(self, seeded_db, service, crops):
        CropService(seeded_db).update_crop(crops[0].id, {"harvested_at": PLANTED + timedelta(days=10)})
        result = service.revert([crops[0].id])

        assert result["reverted"] == 1
        assert crops[0].current_stage == CropStage.GERMINATION
        assert crops[0].harvested_at is None

    def test_bulk_revert_type(self, seeded_db, service, crops):
        service.advance([crop.id for crop in crops], at=PLANTED + timedelta(days=2))
        result = service.revert([crop.id for crop in crops])

        assert result["transition"].type == StageTransitionType.BULK_REVERT
        assert result["transition"].is_bulk
