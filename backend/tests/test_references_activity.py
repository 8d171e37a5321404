"""
Bezug und Protokoll Tests
Registry der Bezugsarten und Aktivitätsprotokoll
"""
import uuid
import pytest
from decimal import Decimal

from sprout.models import (
    ActivityLog, Crop, Order, Product, ReferenceKind,
)
from sprout.services.activity import changes_for, log_activity
from sprout.services.consumable_service import ConsumableService
from sprout.services.crop_service import CropService
from sprout.services.references import ReferenceRegistry, references, resolve_reference


class TestReferenceRegistry:
    """Tests für die Zuordnung Bezugsart → Model"""

    def test_default_kinds(self):
        assert set(references.kinds()) == set(ReferenceKind)
        assert references.get(ReferenceKind.CROP) is Crop
        assert references.get("order") is Order

    def test_duplicate_registration(self):
        registry = ReferenceRegistry()
        registry.register(ReferenceKind.ORDER, Order)

        with pytest.raises(ValueError, match="bereits registriert"):
            registry.register(ReferenceKind.ORDER, Product)

    def test_unregistered_kind(self):
        registry = ReferenceRegistry()
        with pytest.raises(KeyError):
            registry.get(ReferenceKind.CROP)
        with pytest.raises(KeyError):
            references.get("invoice")

    def test_kind_for(self, seed_consumable):
        assert references.kind_for(seed_consumable) == ReferenceKind.CONSUMABLE
        with pytest.raises(KeyError):
            ReferenceRegistry().kind_for(seed_consumable)

    def test_resolve(self, seeded_db, seed_consumable):
        assert references.resolve(seeded_db, ReferenceKind.CONSUMABLE, seed_consumable.id) is seed_consumable
        assert references.resolve(seeded_db, ReferenceKind.CONSUMABLE, uuid.uuid4()) is None
        assert references.resolve(seeded_db, None, seed_consumable.id) is None

    def test_seed_booking_references_crop(self, seeded_db, recipe, seed_consumable):
        """Test: Saatgut-Abbuchung verweist auf den Crop"""
        crop = CropService(seeded_db).create_crop(recipe.id)
        seeded_db.commit()

        transaction = ConsumableService(seeded_db).transaction_history(seed_consumable.id)[0]
        assert transaction.reference_kind == ReferenceKind.CROP
        assert resolve_reference(seeded_db, transaction) is crop


class TestActivityLog:
    """Tests für das Aktivitätsprotokoll"""

    def test_changes_for(self, seeded_db, seed_consumable):
        assert seed_consumable.restock_threshold == Decimal("200")
        seed_consumable.restock_threshold = Decimal("300")

        changes = changes_for(seed_consumable)
        assert list(changes) == ["restock_threshold"]
        assert Decimal(changes["restock_threshold"]["old"]) == Decimal("200")
        assert changes["restock_threshold"]["new"] == "300"

    def test_log_activity(self, seeded_db, seed_consumable):
        entry = log_activity(
            seeded_db, log_name="inventory", action="updated", subject=seed_consumable,
            causer_id="anna", description="Schwelle angepasst",
        )
        seeded_db.commit()

        assert entry.subject_type == "Consumable"
        assert entry.subject_id == str(seed_consumable.id)
        assert entry.changes is None

    def test_log_without_subject(self, seeded_db):
        entry = log_activity(seeded_db, log_name="lookups", action="seeded")
        seeded_db.commit()
        assert entry.subject_type == "unknown"
        assert entry.subject_id is None

    def test_services_write_activity(self, seeded_db, seed_consumable):
        ConsumableService(seeded_db).deduct(seed_consumable.id, Decimal("10"), user_id="ben")
        seeded_db.commit()

        actions = {
            (entry.log_name, entry.causer_id)
            for entry in seeded_db.query(ActivityLog).filter_by(subject_id=str(seed_consumable.id))
        }
        assert ("inventory", "ben") in actions
