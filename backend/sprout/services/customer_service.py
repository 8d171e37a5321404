"""
Kunden-Service - Stammdaten, Kundentyp und Preisermittlung
"""
import logging
from uuid import UUID
from decimal import Decimal
from sqlalchemy.orm import Session

from sprout.models.customer import Customer
from sprout.models.lookup import CustomerType
from sprout.models.product import Product
from sprout.services.activity import log_activity, changes_for

logger = logging.getLogger(__name__)


class CustomerService:
    """Service für Kunden"""

    def __init__(self, db: Session):
        self.db = db

    def get_customer(self, customer_id: UUID) -> Customer:
        customer = self.db.get(Customer, customer_id)
        if not customer:
            raise ValueError("Kunde nicht gefunden")
        return customer

    def create_customer(self, name: str, customer_type: str | None = None, user_id: str | None = None, **fields) -> Customer:
        customer = Customer(name=name, **fields)
        customer.customer_type = self._resolve_type(customer_type)
        self.db.add(customer)
        self.db.flush()

        log_activity(
            self.db, log_name="customers", action="created", subject=customer, causer_id=user_id,
            description=f"Kunde {customer.display_name} angelegt",
        )
        logger.info(f"Kunde {customer.id} angelegt ({customer.customer_type_code or 'ohne Typ'})")
        return customer

    def update_customer(self, customer_id: UUID, data: dict, user_id: str | None = None) -> Customer:
        customer = self.get_customer(customer_id)
        data = dict(data)
        if "customer_type" in data:
            customer.customer_type = self._resolve_type(data.pop("customer_type"))
        for field, value in data.items():
            setattr(customer, field, value)

        changes = changes_for(customer)
        self.db.flush()
        if changes:
            log_activity(
                self.db, log_name="customers", action="updated", subject=customer,
                causer_id=user_id, changes=changes,
            )
        return customer

    def price_for(self, customer_id: UUID, product_id: UUID) -> Decimal:
        """Einzelpreis eines Produkts für diesen Kunden"""
        customer = self.get_customer(customer_id)
        product = self.db.get(Product, product_id)
        if not product:
            raise ValueError("Produkt nicht gefunden")
        return product.price_for_customer(customer)

    def _resolve_type(self, code: str | None) -> CustomerType | None:
        if not code:
            return None
        customer_type = CustomerType.find_by_code(self.db, code)
        if customer_type is None:
            raise ValueError(f"Unbekannter Kundentyp '{code}'")
        return customer_type
