"""
Auftrags Tests
Positionen, Statuswechsel und Reservierung von Fertigware
"""
import uuid
import pytest
from datetime import date
from decimal import Decimal

from sprout.models import InventoryReservation, InventoryReservationStatus, UnifiedOrderStatus
from sprout.services.order_service import OrderService
from sprout.services.product_inventory_service import ProductInventoryService


@pytest.fixture
def service(seeded_db):
    return OrderService(seeded_db)


@pytest.fixture
def order(seeded_db, service, product):
    order = service.create_order(
        customer_name="Restaurant Lindenhof",
        items=[{"product_id": product.id, "quantity": 8, "price": Decimal("3.50")}],
        delivery_date=date(2026, 4, 20),
    )
    seeded_db.commit()
    return order


@pytest.fixture
def stock(seeded_db, product):
    batch = ProductInventoryService(seeded_db).create_batch(product.id, Decimal("10"))
    seeded_db.commit()
    return batch


class TestCreateOrder:
    """Tests für das Anlegen von Aufträgen"""

    def test_create_with_items(self, order):
        assert order.status == UnifiedOrderStatus.DRAFT
        assert len(order.items) == 1
        assert order.total_amount == Decimal("28.00")

    def test_create_template(self, seeded_db, service):
        order = service.create_order(customer_name="Wochenabo", status=UnifiedOrderStatus.TEMPLATE)
        assert order.status == UnifiedOrderStatus.TEMPLATE

    def test_create_in_other_status(self, service):
        with pytest.raises(ValueError, match="Entwurf oder Vorlage"):
            service.create_order(customer_name="X", status=UnifiedOrderStatus.CONFIRMED)

    def test_unknown_product(self, service):
        with pytest.raises(ValueError, match="Produkt nicht gefunden"):
            service.create_order(customer_name="X", items=[{"product_id": uuid.uuid4(), "quantity": 1}])

    def test_invalid_quantity(self, service, product):
        with pytest.raises(ValueError, match="größer als 0"):
            service.create_order(customer_name="X", items=[{"product_id": product.id, "quantity": 0}])


class TestItems:
    """Tests für Positionen"""

    def test_add_item(self, seeded_db, service, order, product):
        service.add_item(order.id, product.id, Decimal("2"), Decimal("3.50"))
        seeded_db.commit()

        assert len(order.items) == 2
        assert order.total_amount == Decimal("35.00")

    def test_add_item_after_production_start(self, seeded_db, service, order, product):
        """Test: Im Anbau sind keine Änderungen mehr möglich"""
        service.transition(order.id, UnifiedOrderStatus.GROWING)

        with pytest.raises(ValueError, match="Auftrag im Status 'growing' kann nicht mehr geändert werden."):
            service.add_item(order.id, product.id, Decimal("1"))

    def test_remove_item_cancels_reservations(self, seeded_db, service, order, stock):
        """Test: Entfernte Position gibt ihre Reservierung frei"""
        service.reserve_stock(order.id)
        seeded_db.commit()
        assert stock.reserved_quantity == Decimal("8")

        service.remove_item(order.id, order.items[0].id)
        seeded_db.commit()

        assert order.items == []
        assert stock.reserved_quantity == Decimal("0")
        reservation = seeded_db.query(InventoryReservation).one()
        assert reservation.status == InventoryReservationStatus.CANCELLED

    def test_remove_foreign_item(self, seeded_db, service, order, product):
        other = service.create_order(customer_name="Hofladen", items=[{"product_id": product.id, "quantity": 1}])

        with pytest.raises(ValueError, match="Bestellposition nicht gefunden"):
            service.remove_item(order.id, other.items[0].id)


class TestTransitions:
    """Tests für Statuswechsel"""

    def test_forward(self, seeded_db, service, order):
        service.transition(order.id, UnifiedOrderStatus.PENDING, user_id="anna")
        service.transition(order.id, UnifiedOrderStatus.CONFIRMED)
        seeded_db.commit()

        assert order.status == UnifiedOrderStatus.CONFIRMED

    def test_backward_in_production_rejected(self, service, order):
        service.transition(order.id, UnifiedOrderStatus.HARVESTING)

        with pytest.raises(ValueError, match="von 'harvesting' nach 'growing' ist nicht erlaubt"):
            service.transition(order.id, UnifiedOrderStatus.GROWING)

    def test_final_status(self, service, order):
        service.transition(order.id, UnifiedOrderStatus.DELIVERED)

        with pytest.raises(ValueError, match="nicht erlaubt"):
            service.transition(order.id, UnifiedOrderStatus.CANCELLED)

    def test_cancel_releases_reservations(self, seeded_db, service, order, stock, product):
        """Test: Stornierung gibt alle Reservierungen frei"""
        service.reserve_stock(order.id)
        service.transition(order.id, UnifiedOrderStatus.CANCELLED)
        seeded_db.commit()

        assert stock.reserved_quantity == Decimal("0")
        assert product.reserved_stock == Decimal("0")
        statuses = {r.status for r in seeded_db.query(InventoryReservation).all()}
        assert statuses == {InventoryReservationStatus.CANCELLED}

    def test_valid_next_statuses(self, service, order):
        codes = [status.code for status in service.valid_next_statuses(order.id)]

        assert codes[0] == UnifiedOrderStatus.PENDING
        assert UnifiedOrderStatus.DRAFT not in codes
        assert UnifiedOrderStatus.CANCELLED in codes


class TestReserveStock:
    """Tests für die Reservierung aller Positionen"""

    def test_reserve(self, seeded_db, service, order, stock, product):
        reservations = service.reserve_stock(order.id)
        seeded_db.commit()

        assert len(reservations) == 1
        assert reservations[0].order_id == order.id
        assert reservations[0].order_item_id == order.items[0].id
        assert product.available_stock == Decimal("2")

    def test_not_enough_stock(self, seeded_db, service, order, product):
        ProductInventoryService(seeded_db).create_batch(product.id, Decimal("5"))
        seeded_db.commit()

        with pytest.raises(ValueError, match="Nicht genug Bestand für Sonnenblume 50g"):
            service.reserve_stock(order.id)
