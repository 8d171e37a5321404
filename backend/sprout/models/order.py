"""
Auftrags-Models: Order und OrderItem mit einheitlichem Auftragsstatus
"""
import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Numeric, DateTime, Date, ForeignKey, Text
from sqlalchemy.types import Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sprout.database import Base
from sprout.models.lookup import UnifiedOrderStatus


class Order(Base):
    """Kundenauftrag"""
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("customers.id", ondelete="SET NULL"), index=True
    )
    status: Mapped[str] = mapped_column(
        String(30), default=UnifiedOrderStatus.DRAFT, index=True
    )
    delivery_date: Mapped[Optional[date]] = mapped_column(Date, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Beziehungen
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan"
    )
    customer: Mapped[Optional["Customer"]] = relationship("Customer", back_populates="orders")
    crops: Mapped[list["Crop"]] = relationship("Crop", back_populates="order")
    crop_plans: Mapped[list["CropPlan"]] = relationship("CropPlan", back_populates="order")

    @property
    def total_amount(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))

    def __repr__(self) -> str:
        return f"<Order(customer='{self.customer_name}', status='{self.status}')>"


class OrderItem(Base):
    """Auftragsposition"""
    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id"), nullable=False
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))

    order: Mapped["Order"] = relationship("Order", back_populates="items")
    product: Mapped["Product"] = relationship("Product")

    @property
    def line_total(self) -> Decimal:
        return (self.quantity or Decimal("0")) * (self.price or Decimal("0"))


# Imports für Type Hints
from sprout.models.customer import Customer
from sprout.models.crop import Crop
from sprout.models.crop_plan import CropPlan
from sprout.models.product import Product
