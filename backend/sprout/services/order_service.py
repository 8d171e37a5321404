"""
Auftrags-Service - Positionen, Statuswechsel und Bestandsreservierung
"""
import logging
from datetime import date
from decimal import Decimal
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import select

from sprout.models.customer import Customer
from sprout.models.inventory import InventoryReservation
from sprout.models.lookup import UnifiedOrderStatus, InventoryReservationStatus
from sprout.models.order import Order, OrderItem
from sprout.models.product import Product
from sprout.services.activity import log_activity
from sprout.services.product_inventory_service import ProductInventoryService

logger = logging.getLogger(__name__)


class OrderService:
    """Service für Kundenaufträge"""

    def __init__(self, db: Session):
        self.db = db
        self.inventory = ProductInventoryService(db)

    def get_order(self, order_id: UUID) -> Order:
        order = self.db.get(Order, order_id)
        if not order:
            raise ValueError("Auftrag nicht gefunden")
        return order

    def create_order(
        self,
        customer_name: str | None = None,
        items: list[dict] | None = None,
        delivery_date: date | None = None,
        status: str = UnifiedOrderStatus.DRAFT,
        notes: str | None = None,
        user_id: str | None = None,
        customer_id: UUID | None = None,
    ) -> Order:
        """
        items: [{"product_id", "quantity", "price"}]
        Ohne Preis wird er aus dem Produkt und dem Kundentyp ermittelt.
        """
        if status not in (UnifiedOrderStatus.DRAFT, UnifiedOrderStatus.TEMPLATE):
            raise ValueError("Neue Aufträge starten als Entwurf oder Vorlage")

        customer = None
        if customer_id is not None:
            customer = self.db.get(Customer, customer_id)
            if not customer:
                raise ValueError("Kunde nicht gefunden")
            customer_name = customer_name or customer.display_name
        if not customer_name:
            raise ValueError("Kundenname fehlt")

        order = Order(
            customer_name=customer_name, customer=customer,
            delivery_date=delivery_date, status=status, notes=notes,
        )
        self.db.add(order)
        self.db.flush()
        for item in items or []:
            self._add_item(order, **item)

        log_activity(
            self.db, log_name="orders", action="created", subject=order, causer_id=user_id,
            description=f"Auftrag für {customer_name} angelegt",
        )
        self.db.flush()
        return order

    def can_be_modified(self, order: Order) -> bool:
        status = UnifiedOrderStatus.find_by_code(self.db, order.status)
        return status is not None and status.can_be_modified

    def add_item(
        self, order_id: UUID, product_id: UUID, quantity: Decimal, price: Decimal | None = None
    ) -> OrderItem:
        order = self.get_order(order_id)
        self._ensure_modifiable(order)
        item = self._add_item(order, product_id, quantity, price)
        self.db.flush()
        return item

    def remove_item(self, order_id: UUID, item_id: UUID) -> None:
        order = self.get_order(order_id)
        self._ensure_modifiable(order)
        item = self.db.get(OrderItem, item_id)
        if not item or item.order_id != order.id:
            raise ValueError("Bestellposition nicht gefunden")

        for reservation in self._holding_reservations(order.id, order_item_id=item.id):
            self.inventory.cancel_reservation(reservation.id, reason="Position entfernt")
        order.items.remove(item)
        self.db.flush()

    def valid_next_statuses(self, order_id: UUID) -> list[UnifiedOrderStatus]:
        order = self.get_order(order_id)
        return UnifiedOrderStatus.valid_next_statuses(self.db, order.status)

    def transition(self, order_id: UUID, to_code: str, user_id: str | None = None) -> Order:
        """
        Statuswechsel nach UnifiedOrderStatus.is_valid_transition.
        Eine Stornierung gibt alle Reservierungen des Auftrags frei.
        """
        order = self.get_order(order_id)
        from_code = order.status
        if not UnifiedOrderStatus.is_valid_transition(self.db, from_code, to_code):
            raise ValueError(f"Statuswechsel von '{from_code}' nach '{to_code}' ist nicht erlaubt.")

        if to_code == UnifiedOrderStatus.CANCELLED:
            for reservation in self._holding_reservations(order.id):
                self.inventory.cancel_reservation(
                    reservation.id, reason="Auftrag storniert", user_id=user_id
                )

        order.status = to_code
        log_activity(
            self.db, log_name="orders", action="status_changed", subject=order, causer_id=user_id,
            changes={"status": {"old": from_code, "new": to_code}},
        )
        self.db.flush()
        logger.info(f"Auftrag {order.id}: {from_code} → {to_code}")
        return order

    def reserve_stock(self, order_id: UUID) -> list[InventoryReservation]:
        """Reserviert Fertigware für alle Positionen (ganz oder gar nicht je Position)"""
        order = self.get_order(order_id)
        reservations = []
        for item in order.items:
            reservations.extend(
                self.inventory.reserve_for_order_item(
                    item.product_id, item.quantity, order_id=order.id, order_item_id=item.id
                )
            )
        return reservations

    def _holding_reservations(self, order_id: UUID, order_item_id: UUID | None = None) -> list[InventoryReservation]:
        query = select(InventoryReservation).where(
            InventoryReservation.order_id == order_id,
            InventoryReservation.status.in_(InventoryReservationStatus.HOLDING),
        )
        if order_item_id:
            query = query.where(InventoryReservation.order_item_id == order_item_id)
        return list(self.db.execute(query).scalars().all())

    def _ensure_modifiable(self, order: Order) -> None:
        if not self.can_be_modified(order):
            raise ValueError(f"Auftrag im Status '{order.status}' kann nicht mehr geändert werden.")

    def _add_item(self, order: Order, product_id: UUID, quantity, price=None) -> OrderItem:
        product = self.db.get(Product, product_id)
        if not product:
            raise ValueError("Produkt nicht gefunden")
        if price is None:
            price = product.price_for_customer(order.customer)
        quantity = Decimal(str(quantity))
        if quantity <= 0:
            raise ValueError("Menge muss größer als 0 sein")
        item = OrderItem(product_id=product_id, quantity=quantity, price=Decimal(str(price)))
        order.items.append(item)
        return item
