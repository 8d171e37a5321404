"""
Celery Task Tests
Tasks laufen synchron gegen die Test-Datenbank
"""
import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal

from sprout.models import CropStage, InventoryReservationStatus, ProductInventoryStatus
from sprout.services.consumable_service import ConsumableService
from sprout.services.crop_service import CropService
from sprout.services.crop_tasks import CropTaskService
from sprout.services.product_inventory_service import ProductInventoryService
from sprout.tasks import crop_tasks, inventory_tasks


@pytest.fixture(autouse=True)
def task_sessions(monkeypatch, session_factory):
    """Tasks öffnen ihre Sessions auf der Test-Datenbank"""
    monkeypatch.setattr(inventory_tasks, "SessionLocal", session_factory)
    monkeypatch.setattr(crop_tasks, "SessionLocal", session_factory)


class TestInventoryTasks:
    """Tests für die Lager-Tasks"""

    def test_cleanup_expired_reservations(self, seeded_db, product):
        service = ProductInventoryService(seeded_db)
        batch = service.create_batch(product.id, Decimal("10"))
        reservation = service.reserve_stock(
            batch.id, Decimal("4"), expires_at=datetime.utcnow() - timedelta(minutes=5)
        )
        seeded_db.commit()

        result = inventory_tasks.cleanup_expired_reservations()
        seeded_db.expire_all()

        assert result == {"status": "success", "cancelled_count": 1}
        assert reservation.status == InventoryReservationStatus.CANCELLED
        assert batch.reserved_quantity == Decimal("0")

    def test_expire_inventory_batches(self, seeded_db, product):
        service = ProductInventoryService(seeded_db)
        old = service.create_batch(product.id, Decimal("3"), expiration_date=date.today() - timedelta(days=1))
        fresh = service.create_batch(product.id, Decimal("3"), expiration_date=date.today() + timedelta(days=5))
        seeded_db.commit()

        result = inventory_tasks.expire_inventory_batches()
        seeded_db.expire_all()

        assert result == {"status": "success", "expired_count": 1}
        assert old.status == ProductInventoryStatus.EXPIRED
        assert fresh.status == ProductInventoryStatus.ACTIVE

    def test_check_low_stock(self, seeded_db, seed_consumable, packaging_consumable, product):
        """Test: Meldungen für Verbrauchsmaterial und Fertigware"""
        ConsumableService(seeded_db).deduct(packaging_consumable.id, Decimal("8"))
        ProductInventoryService(seeded_db).create_batch(product.id, Decimal("4"))
        seeded_db.commit()

        result = inventory_tasks.check_low_stock()

        assert result["status"] == "success"
        assert result["alerts_count"] == 2
        by_type = {alert["type"]: alert for alert in result["alerts"]}
        assert by_type["VERBRAUCHSMATERIAL"]["article_name"] == "Schale 500ml"
        assert by_type["VERBRAUCHSMATERIAL"]["current_quantity"] == 2.0
        assert by_type["FERTIGWARE"]["article_number"] == "MG-SB-50"
        assert by_type["FERTIGWARE"]["status"] == "low_stock"

    def test_check_low_stock_without_alerts(self, seeded_db, seed_consumable):
        result = inventory_tasks.check_low_stock()
        assert result == {"status": "success", "alerts_count": 0, "alerts": []}


class TestCropTasks:
    """Tests für die Anbau-Tasks"""

    def test_process_due_crop_tasks(self, seeded_db, recipe):
        planted = datetime.utcnow() - timedelta(days=3)
        crop = CropService(seeded_db).create_crop(recipe.id, planting_at=planted, tray_number="K1")
        CropTaskService(seeded_db).schedule_stage_tasks(crop, now=planted)
        seeded_db.commit()

        result = crop_tasks.process_due_crop_tasks()
        seeded_db.expire_all()

        assert result == {"status": "success", "completed": 1, "skipped": 0}
        assert crop.current_stage == CropStage.BLACKOUT
        assert crop.blackout_at == planted + timedelta(days=2)

    def test_nothing_due(self, seeded_db):
        result = crop_tasks.process_due_crop_tasks()
        assert result == {"status": "success", "completed": 0, "skipped": 0}
