"""
Fertigwaren Tests
Chargen, Reservierungen, MHD und Produktsummen
"""
import uuid
import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal

from sprout.models import (
    Order, InventoryTransaction, InventoryTransactionType, ProductInventoryStatus,
    ProductStockStatus, InventoryReservationStatus, ReferenceKind,
)
from sprout.services.product_inventory_service import ProductInventoryService


@pytest.fixture
def service(seeded_db):
    return ProductInventoryService(seeded_db)


@pytest.fixture
def batch(seeded_db, product, service):
    """Charge mit 30 Schalen, MHD in 7 Tagen"""
    batch = service.create_batch(
        product.id, Decimal("30"), cost_per_unit=Decimal("2.50"),
        expiration_date=date.today() + timedelta(days=7),
    )
    seeded_db.commit()
    return batch


class TestBatches:
    """Tests für Fertigwaren-Chargen"""

    def test_create_batch(self, seeded_db, product, batch, service):
        """Test: Chargennummer, Anfangsbuchung und Produktsummen"""
        assert batch.batch_number == f"MG-SB-50-{date.today():%Y%m%d}-001"
        assert batch.quantity == Decimal("30")
        assert batch.status == ProductInventoryStatus.ACTIVE

        history = service.transaction_history(batch.id)
        assert len(history) == 1
        assert history[0].type == InventoryTransactionType.PRODUCTION
        assert history[0].balance_after == Decimal("30")
        assert history[0].total_cost == Decimal("75")

        assert product.total_stock == Decimal("30")
        assert product.stock_status == ProductStockStatus.IN_STOCK

    def test_batch_numbers_count_up(self, seeded_db, product, batch, service):
        second = service.create_batch(product.id, Decimal("5"))
        assert second.batch_number.endswith("-002")

    def test_unknown_product(self, seeded_db, service):
        with pytest.raises(ValueError, match="Produkt nicht gefunden"):
            service.create_batch(uuid.uuid4(), Decimal("1"))

    def test_add_stock_reactivates_depleted(self, seeded_db, batch, service):
        service.remove_stock(batch.id, Decimal("30"))
        seeded_db.commit()
        assert batch.status == ProductInventoryStatus.DEPLETED

        service.add_stock(batch.id, Decimal("4"), transaction_type=InventoryTransactionType.RETURN)
        seeded_db.commit()
        assert batch.status == ProductInventoryStatus.ACTIVE
        assert batch.quantity == Decimal("4")

    def test_remove_more_than_available(self, seeded_db, batch, service):
        with pytest.raises(ValueError, match="Nicht genug Bestand verfügbar"):
            service.remove_stock(batch.id, Decimal("31"))

    def test_stock_status_follows_availability(self, seeded_db, product, batch, service):
        """Test: in_stock → low_stock → out_of_stock"""
        service.remove_stock(batch.id, Decimal("26"), transaction_type=InventoryTransactionType.DAMAGE)
        seeded_db.commit()
        assert product.stock_status == ProductStockStatus.LOW_STOCK

        service.remove_stock(batch.id, Decimal("4"))
        seeded_db.commit()
        assert product.stock_status == ProductStockStatus.OUT_OF_STOCK
        assert batch.status == ProductInventoryStatus.DEPLETED

    def test_discontinued_product_keeps_status(self, seeded_db, product, batch, service):
        product.stock_status = ProductStockStatus.DISCONTINUED
        seeded_db.commit()

        service.add_stock(batch.id, Decimal("10"))
        seeded_db.commit()

        assert product.stock_status == ProductStockStatus.DISCONTINUED
        assert product.total_stock == Decimal("40")

    def test_delete_batch_with_stock(self, seeded_db, batch, service):
        with pytest.raises(ValueError, match="kann nicht gelöscht werden"):
            service.delete_batch(batch.id)

    def test_delete_empty_batch(self, seeded_db, product, batch, service):
        batch_id = batch.id
        service.remove_stock(batch.id, Decimal("30"))
        service.delete_batch(batch_id)
        seeded_db.commit()

        assert seeded_db.get(type(batch), batch_id) is None
        assert product.total_stock == Decimal("0")

    def test_transaction_is_immutable(self, seeded_db, batch):
        transaction = seeded_db.query(InventoryTransaction).first()
        transaction.quantity = Decimal("99")

        with pytest.raises(ValueError, match="unveränderlich"):
            seeded_db.flush()
        seeded_db.rollback()


class TestReservations:
    """Tests für Reservierungen"""

    def test_reserve(self, seeded_db, product, batch, service):
        """Test: Reservierung bindet Menge, ändert aber die Chargenmenge nicht"""
        reservation = service.reserve_stock(batch.id, Decimal("12"))
        seeded_db.commit()

        assert reservation.status == InventoryReservationStatus.PENDING
        assert reservation.is_active
        assert batch.quantity == Decimal("30")
        assert batch.reserved_quantity == Decimal("12")
        assert batch.available_quantity == Decimal("18")
        assert product.reserved_stock == Decimal("12")

        history = service.transaction_history(batch.id)
        reserve_tx = [t for t in history if t.type == InventoryTransactionType.RESERVATION]
        assert reserve_tx[0].balance_after == Decimal("30")

    def test_default_expiry(self, seeded_db, batch, service):
        reservation = service.reserve_stock(batch.id, Decimal("1"))
        expected = datetime.utcnow() + timedelta(hours=24)
        assert abs((reservation.expires_at - expected).total_seconds()) < 60

    def test_reserve_more_than_available(self, seeded_db, batch, service):
        service.reserve_stock(batch.id, Decimal("20"))
        with pytest.raises(ValueError, match="Verfügbar: 10"):
            service.reserve_stock(batch.id, Decimal("11"))

    def test_reserve_inactive_batch(self, seeded_db, batch, service):
        service.remove_stock(batch.id, Decimal("30"))
        with pytest.raises(ValueError, match="ist nicht aktiv"):
            service.reserve_stock(batch.id, Decimal("1"))

    def test_reserved_stock_cannot_be_removed(self, seeded_db, batch, service):
        service.reserve_stock(batch.id, Decimal("25"))
        with pytest.raises(ValueError, match="Nicht genug Bestand verfügbar"):
            service.remove_stock(batch.id, Decimal("10"))

    def test_confirm(self, seeded_db, batch, service):
        reservation = service.reserve_stock(batch.id, Decimal("5"))
        service.confirm_reservation(reservation.id)
        assert reservation.status == InventoryReservationStatus.CONFIRMED

        with pytest.raises(ValueError, match="Nur offene Reservierungen"):
            service.confirm_reservation(reservation.id)

    def test_fulfill(self, seeded_db, product, batch, service):
        """Test: Erfüllung bucht einen Verkauf und löst die Reservierung"""
        reservation = service.reserve_stock(batch.id, Decimal("10"))
        service.fulfill_reservation(reservation.id, user_id="fahrer")
        seeded_db.commit()

        assert reservation.status == InventoryReservationStatus.FULFILLED
        assert reservation.fulfilled_at is not None
        assert batch.quantity == Decimal("20")
        assert batch.reserved_quantity == Decimal("0")
        assert product.total_stock == Decimal("20")

        sale = service.transaction_history(batch.id)
        assert InventoryTransactionType.SALE in {t.type for t in sale}

    def test_fulfill_whole_batch_depletes(self, seeded_db, batch, service):
        reservation = service.reserve_stock(batch.id, Decimal("30"))
        service.fulfill_reservation(reservation.id)
        assert batch.status == ProductInventoryStatus.DEPLETED

    def test_fulfill_expired_reservation(self, seeded_db, batch, service):
        reservation = service.reserve_stock(
            batch.id, Decimal("3"), expires_at=datetime.utcnow() - timedelta(minutes=1)
        )
        with pytest.raises(ValueError, match="nicht aktiv"):
            service.fulfill_reservation(reservation.id)

    def test_cancel(self, seeded_db, product, batch, service):
        """Test: Storno gibt die Menge frei und ist wiederholbar"""
        reservation = service.reserve_stock(batch.id, Decimal("8"))
        service.cancel_reservation(reservation.id, reason="Kunde abgesprungen")
        seeded_db.commit()

        assert reservation.status == InventoryReservationStatus.CANCELLED
        assert reservation.cancelled_at is not None
        assert "Kunde abgesprungen" in reservation.notes
        assert batch.reserved_quantity == Decimal("0")
        assert product.reserved_stock == Decimal("0")

        types = [t.type for t in service.transaction_history(batch.id)]
        assert InventoryTransactionType.RELEASE in types

        again = service.cancel_reservation(reservation.id)
        assert again.status == InventoryReservationStatus.CANCELLED
        types = [t.type for t in service.transaction_history(batch.id)]
        assert types.count(InventoryTransactionType.RELEASE) == 1

    def test_cancel_fulfilled(self, seeded_db, batch, service):
        reservation = service.reserve_stock(batch.id, Decimal("2"))
        service.fulfill_reservation(reservation.id)
        with pytest.raises(ValueError, match="Erfüllte Reservierungen können nicht storniert werden"):
            service.cancel_reservation(reservation.id)

    def test_fulfill_twice(self, seeded_db, product, batch, service):
        """Test: Zweite Erfüllung wird abgelehnt und bucht nichts"""
        reservation = service.reserve_stock(batch.id, Decimal("4"))
        service.fulfill_reservation(reservation.id)
        seeded_db.commit()
        quantity, reserved = batch.quantity, batch.reserved_quantity
        sales = len(service.transaction_history(batch.id))

        with pytest.raises(ValueError, match=r"nicht aktiv \(Status: fulfilled\)"):
            service.fulfill_reservation(reservation.id)
        seeded_db.rollback()

        assert batch.quantity == quantity == Decimal("26")
        assert batch.reserved_quantity == reserved == Decimal("0")
        assert product.total_stock == quantity
        assert len(service.transaction_history(batch.id)) == sales

    def test_delete_reservation_releases(self, seeded_db, batch, service):
        reservation = service.reserve_stock(batch.id, Decimal("6"))
        service.delete_reservation(reservation.id)
        seeded_db.commit()
        assert batch.reserved_quantity == Decimal("0")

    def test_release_never_below_zero(self, seeded_db, batch, service):
        service.reserve_stock(batch.id, Decimal("2"))
        service.release_reservation(batch.id, Decimal("5"))
        assert batch.reserved_quantity == Decimal("0")

    def test_reservation_references_order(self, seeded_db, batch, service):
        order = Order(customer_name="Restaurant Blattgold")
        seeded_db.add(order)
        seeded_db.flush()

        service.reserve_stock(batch.id, Decimal("1"), order_id=order.id)
        reserve_tx = [
            t for t in service.transaction_history(batch.id)
            if t.type == InventoryTransactionType.RESERVATION
        ][0]
        assert reserve_tx.reference_kind == ReferenceKind.ORDER
        assert reserve_tx.reference_id == order.id

    def test_cleanup_expired(self, seeded_db, batch, service):
        """Test: Abgelaufene Reservierungen werden storniert"""
        service.reserve_stock(batch.id, Decimal("4"))
        service.reserve_stock(batch.id, Decimal("4"), expires_at=datetime.utcnow() + timedelta(days=3))
        seeded_db.commit()

        cancelled = service.cleanup_expired_reservations(now=datetime.utcnow() + timedelta(hours=25))
        seeded_db.commit()

        assert cancelled == 1
        assert batch.reserved_quantity == Decimal("4")


class TestOrderReservation:
    """Tests für die Verteilung auf Chargen (kürzestes MHD zuerst)"""

    def test_reserve_fefo(self, seeded_db, product, batch, service):
        early = service.create_batch(
            product.id, Decimal("10"), expiration_date=date.today() + timedelta(days=2)
        )
        order = Order(customer_name="Markthalle")
        seeded_db.add(order)
        seeded_db.commit()

        reservations = service.reserve_for_order_item(product.id, Decimal("15"), order_id=order.id)
        seeded_db.commit()

        assert [(r.product_inventory_id, r.quantity) for r in reservations] == [
            (early.id, Decimal("10")),
            (batch.id, Decimal("5")),
        ]
        assert product.reserved_stock == Decimal("15")

    def test_reserve_all_or_nothing(self, seeded_db, product, batch, service):
        order = Order(customer_name="Markthalle")
        seeded_db.add(order)
        seeded_db.commit()

        with pytest.raises(ValueError, match="Nicht genug Bestand für Sonnenblume 50g"):
            service.reserve_for_order_item(product.id, Decimal("31"), order_id=order.id)
        seeded_db.rollback()
        assert batch.reserved_quantity == Decimal("0")


class TestExpiration:
    """Tests für Mindesthaltbarkeit"""

    def test_expiring_soon(self, seeded_db, product, batch, service):
        service.create_batch(product.id, Decimal("5"), expiration_date=date.today() + timedelta(days=40))
        seeded_db.commit()

        assert [b.id for b in service.expiring_soon(days=10)] == [batch.id]
        assert len(service.expiring_soon()) == 1

    def test_mark_expired_batches(self, seeded_db, product, batch, service):
        """Test: Abgelaufene Charge wird ausgebucht, Reservierungen storniert"""
        reservation = service.reserve_stock(batch.id, Decimal("5"))
        seeded_db.commit()

        expired = service.mark_expired_batches(today=date.today() + timedelta(days=8))
        seeded_db.commit()

        assert expired == 1
        assert batch.status == ProductInventoryStatus.EXPIRED
        assert batch.quantity == Decimal("0")
        assert reservation.status == InventoryReservationStatus.CANCELLED
        assert product.total_stock == Decimal("0")
        assert product.stock_status == ProductStockStatus.OUT_OF_STOCK
        assert service.expired_batches(today=date.today() + timedelta(days=8))[0].id == batch.id

    def test_available_batches_exclude_expired(self, seeded_db, product, batch, service):
        service.mark_expired_batches(today=date.today() + timedelta(days=8))
        assert service.available_batches(product.id) == []

    def test_low_stock_products(self, seeded_db, product, service):
        """Test: Produkt ohne Chargen ist nicht vorrätig"""
        service.update_product_totals(product.id)
        assert [p.sku for p in service.low_stock_products()] == ["MG-SB-50"]
