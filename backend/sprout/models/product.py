"""
Produkt-Model mit aggregierten Bestandszahlen über alle aktiven Chargen
"""
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from sqlalchemy import String, Integer, Numeric, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.types import Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sprout.database import Base
from sprout.models.lookup import ProductStockStatus

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


class Product(Base):
    """
    Verkaufsprodukt (z.B. "Sonnenblume 100g Schale").
    total_stock, reserved_stock und stock_status werden aus den Chargen berechnet.
    """
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )

    # Identifikation
    sku: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    recipe_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("recipes.id", ondelete="SET NULL")
    )
    net_weight_grams: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))  # pro Verkaufseinheit

    # Preise pro Verkaufseinheit
    base_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    wholesale_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    wholesale_discount_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2))

    # Bestand (aggregiert)
    total_stock: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    reserved_stock: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    reorder_threshold: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    stock_status: Mapped[str] = mapped_column(String(30), default=ProductStockStatus.OUT_OF_STOCK)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Beziehungen
    batches: Mapped[list["ProductInventory"]] = relationship(
        "ProductInventory", back_populates="product"
    )
    recipe: Mapped[Optional["Recipe"]] = relationship("Recipe")

    __mapper_args__ = {"version_id_col": version}

    @property
    def available_stock(self) -> Decimal:
        return (self.total_stock or Decimal("0")) - (self.reserved_stock or Decimal("0"))

    @property
    def is_discontinued(self) -> bool:
        return self.stock_status == ProductStockStatus.DISCONTINUED

    @property
    def retail_price(self) -> Decimal:
        return self.base_price or Decimal("0")

    def wholesale_price_for(self, customer: Optional["Customer"] = None) -> Decimal:
        """
        Großhandelspreis pro Einheit.
        Der Rabatt des Kunden geht dem Standardrabatt des Produkts vor und wird
        vom Grundpreis abgezogen (höchstens 100 %). Ohne Rabatt gilt
        wholesale_price, ersatzweise der Grundpreis.
        """
        discount = None
        if customer is not None and customer.wholesale_discount_percentage is not None:
            discount = customer.wholesale_discount_percentage
        elif self.wholesale_discount_percentage:
            discount = self.wholesale_discount_percentage

        if discount and discount > 0:
            discount = min(Decimal(str(discount)), HUNDRED)
            price = self.retail_price * (HUNDRED - discount) / HUNDRED
            return max(price, Decimal("0")).quantize(CENT, rounding=ROUND_HALF_UP)
        if self.wholesale_price is not None:
            return self.wholesale_price
        return self.retail_price

    def price_for_customer(self, customer: Optional["Customer"] = None) -> Decimal:
        """Einzelpreis für den Kunden; ohne Kunde oder als Endkunde der Grundpreis"""
        if customer is not None and customer.qualifies_for_wholesale_pricing:
            return self.wholesale_price_for(customer)
        return self.retail_price

    def __repr__(self) -> str:
        return f"<Product(sku='{self.sku}', status='{self.stock_status}')>"


# Imports für Type Hints
from sprout.models.inventory import ProductInventory
from sprout.models.recipe import Recipe
from sprout.models.customer import Customer
