"""
Kunden-Model mit Kundentyp und Großhandelsrabatt
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Numeric, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.types import Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sprout.database import Base
from sprout.models.lookup import CustomerType


class Customer(Base):
    """
    Kunde. Ohne Kundentyp gilt er als Endkunde.
    Der Großhandelsrabatt wirkt nur, wenn der Typ Großhandelspreise zulässt.
    """
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    business_name: Mapped[Optional[str]] = mapped_column(String(200))
    contact_name: Mapped[Optional[str]] = mapped_column(String(200))
    email: Mapped[Optional[str]] = mapped_column(String(200))
    phone: Mapped[Optional[str]] = mapped_column(String(50))

    customer_type_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("customer_types.id", ondelete="SET NULL")
    )
    wholesale_discount_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2))

    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Beziehungen
    customer_type: Mapped[Optional["CustomerType"]] = relationship("CustomerType")
    orders: Mapped[list["Order"]] = relationship("Order", back_populates="customer")

    @property
    def display_name(self) -> str:
        return self.business_name or self.name

    @property
    def customer_type_code(self) -> str | None:
        return self.customer_type.code if self.customer_type else None

    @property
    def is_retail_customer(self) -> bool:
        if self.customer_type is None:
            return True
        return self.customer_type.is_retail

    @property
    def is_wholesale_customer(self) -> bool:
        return self.customer_type is not None and self.customer_type.is_wholesale

    @property
    def is_farmers_market_customer(self) -> bool:
        return self.customer_type is not None and self.customer_type.is_farmers_market

    @property
    def qualifies_for_wholesale_pricing(self) -> bool:
        return self.customer_type is not None and self.customer_type.qualifies_for_wholesale_pricing

    @property
    def effective_discount(self) -> Decimal:
        """Rabatt in Prozent, 0 ohne Anspruch auf Großhandelspreise"""
        if not self.qualifies_for_wholesale_pricing:
            return Decimal("0")
        return self.wholesale_discount_percentage or Decimal("0")

    def __repr__(self) -> str:
        return f"<Customer(name='{self.name}', type='{self.customer_type_code}')>"


# Imports für Type Hints
from sprout.models.order import Order
