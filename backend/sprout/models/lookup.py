"""
Stammdaten-Tabellen (Lookups): Anbauphasen, Verbrauchsmaterial-Typen und -Einheiten,
Bestands-, Reservierungs-, Zahlungs- und Auftragsstatus sowie Kundentypen.

Jede Tabelle hat einen eindeutigen Code, wird über find_by_code() nachgeschlagen
(liefert None statt Exception) und bietet Prädikate für ihre Codes.
"""
import uuid
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Integer, Numeric, Boolean, Text, select, Enum as SQLEnum
from sqlalchemy.types import Uuid
from sqlalchemy.orm import Mapped, mapped_column, Session, object_session

from sprout.database import Base
from sprout.models.enums import UnitCategory, OrderStage


class LookupMixin:
    """Gemeinsame Spalten und Abfragen aller Lookup-Tabellen"""

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    code: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    color: Mapped[Optional[str]] = mapped_column(String(20))
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    @classmethod
    def find_by_code(cls, db: Session, code: str | None):
        if not code:
            return None
        return db.execute(select(cls).where(cls.code == code)).scalar_one_or_none()

    @classmethod
    def options(cls, db: Session) -> list:
        """Aktive Einträge in Anzeigereihenfolge"""
        return list(db.execute(
            select(cls).where(cls.is_active == True).order_by(cls.sort_order)
        ).scalars().all())

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(code='{self.code}')>"


# ========================================
# ANBAUPHASEN
# ========================================

class CropStage(LookupMixin, Base):
    """
    Anbauphase eines Trays.
    Reihenfolge über sort_order: soaking → germination → blackout → light → harvested
    """
    __tablename__ = "crop_stages"

    SOAKING = "soaking"
    GERMINATION = "germination"
    BLACKOUT = "blackout"
    LIGHT = "light"
    HARVESTED = "harvested"

    typical_duration_days: Mapped[Optional[int]] = mapped_column(Integer)
    requires_light: Mapped[bool] = mapped_column(Boolean, default=False)
    requires_watering: Mapped[bool] = mapped_column(Boolean, default=True)

    @property
    def is_soaking(self) -> bool:
        return self.code == self.SOAKING

    @property
    def is_germination(self) -> bool:
        return self.code == self.GERMINATION

    @property
    def is_blackout(self) -> bool:
        return self.code == self.BLACKOUT

    @property
    def is_light(self) -> bool:
        return self.code == self.LIGHT

    @property
    def is_harvested(self) -> bool:
        return self.code == self.HARVESTED

    @property
    def is_pre_harvest(self) -> bool:
        return not self.is_harvested

    @property
    def is_first_stage(self) -> bool:
        return self.previous_stage() is None

    @property
    def is_final_stage(self) -> bool:
        return self.next_stage() is None

    def _neighbour(self, forward: bool) -> Optional["CropStage"]:
        db = object_session(self)
        query = select(CropStage).where(CropStage.is_active == True)
        if forward:
            query = query.where(CropStage.sort_order > self.sort_order).order_by(CropStage.sort_order)
        else:
            query = query.where(CropStage.sort_order < self.sort_order).order_by(CropStage.sort_order.desc())
        return db.execute(query.limit(1)).scalar_one_or_none()

    def next_stage(self) -> Optional["CropStage"]:
        return self._neighbour(forward=True)

    def previous_stage(self) -> Optional["CropStage"]:
        return self._neighbour(forward=False)

    def next_viable_stage(self, recipe: Optional["Recipe"] = None) -> Optional["CropStage"]:
        """
        Nächste tatsächlich zu durchlaufende Phase.
        Dunkelphase entfällt, wenn das Rezept keine Blackout-Tage vorsieht.
        """
        candidate = self.next_stage()
        while (
            candidate is not None
            and candidate.is_blackout
            and recipe is not None
            and (recipe.blackout_days or 0) <= 0
        ):
            candidate = candidate.next_stage()
        return candidate

    def can_transition_to(self, other: "CropStage") -> bool:
        return other.sort_order > self.sort_order


# ========================================
# VERBRAUCHSMATERIAL
# ========================================

class ConsumableType(LookupMixin, Base):
    """Typ eines Verbrauchsmaterials"""
    __tablename__ = "consumable_types"

    PACKAGING = "packaging"
    SOIL = "soil"
    SEED = "seed"
    LABEL = "label"
    OTHER = "other"

    @property
    def is_packaging(self) -> bool:
        return self.code == self.PACKAGING

    @property
    def is_soil(self) -> bool:
        return self.code == self.SOIL

    @property
    def is_seed(self) -> bool:
        return self.code == self.SEED

    @property
    def is_label(self) -> bool:
        return self.code == self.LABEL

    @property
    def is_other(self) -> bool:
        return self.code == self.OTHER


class ConsumableUnit(LookupMixin, Base):
    """
    Maßeinheit für Verbrauchsmaterial mit Faktor zur Basiseinheit der Kategorie.
    Basis: g (Gewicht), ml (Volumen), unit (Stück)
    """
    __tablename__ = "consumable_units"

    symbol: Mapped[str] = mapped_column(String(10), nullable=False)
    category: Mapped[UnitCategory] = mapped_column(SQLEnum(UnitCategory), nullable=False)
    conversion_factor: Mapped[Decimal] = mapped_column(Numeric(15, 6), default=Decimal("1"))

    @property
    def is_base_unit(self) -> bool:
        return self.conversion_factor == Decimal("1")

    def to_base_unit(self, quantity: Decimal) -> Decimal:
        return Decimal(str(quantity)) * self.conversion_factor

    def convert_to(self, quantity: Decimal, target: "ConsumableUnit") -> Decimal | None:
        """Rechnet in eine andere Einheit um; None bei unterschiedlicher Kategorie"""
        if target.category != self.category:
            return None
        return self.to_base_unit(quantity) / target.conversion_factor


# ========================================
# STATUS-TABELLEN
# ========================================

class ProductStockStatus(LookupMixin, Base):
    """Bestandsstatus eines Produkts"""
    __tablename__ = "product_stock_statuses"

    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"

    @property
    def is_available(self) -> bool:
        return self.code in (self.IN_STOCK, self.LOW_STOCK)

    @property
    def needs_reorder(self) -> bool:
        return self.code in (self.LOW_STOCK, self.OUT_OF_STOCK)


class InventoryReservationStatus(LookupMixin, Base):
    """Status einer Bestandsreservierung"""
    __tablename__ = "inventory_reservation_statuses"

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"

    HOLDING = (PENDING, CONFIRMED)

    @property
    def is_pending(self) -> bool:
        return self.code == self.PENDING

    @property
    def is_confirmed(self) -> bool:
        return self.code == self.CONFIRMED

    @property
    def is_fulfilled(self) -> bool:
        return self.code == self.FULFILLED

    @property
    def is_cancelled(self) -> bool:
        return self.code == self.CANCELLED

    @property
    def holds_inventory(self) -> bool:
        return self.code in self.HOLDING

    @property
    def is_final(self) -> bool:
        return not self.holds_inventory


class PaymentStatus(LookupMixin, Base):
    """Zahlungsstatus"""
    __tablename__ = "payment_statuses"

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"

    @property
    def is_pending(self) -> bool:
        return self.code == self.PENDING

    @property
    def is_completed(self) -> bool:
        return self.code == self.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.code == self.FAILED

    @property
    def is_refunded(self) -> bool:
        return self.code == self.REFUNDED

    @property
    def is_final(self) -> bool:
        return self.code in (self.COMPLETED, self.REFUNDED)


class UnifiedOrderStatus(LookupMixin, Base):
    """
    Einheitlicher Auftragsstatus über Vorproduktion, Produktion und Auslieferung.

    Übergänge:
    - vorwärts (höhere sort_order) immer erlaubt
    - Storno aus jedem nicht-finalen Status
    - rückwärts nur innerhalb derselben Phase und nur wenn der Ausgangsstatus
      Änderungen zulässt
    - nie aus einem finalen Status, nie nach 'template'
    """
    __tablename__ = "unified_order_statuses"

    TEMPLATE = "template"
    DRAFT = "draft"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    GROWING = "growing"
    READY_TO_HARVEST = "ready_to_harvest"
    HARVESTING = "harvesting"
    PACKING = "packing"
    READY_FOR_DELIVERY = "ready_for_delivery"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    stage: Mapped[OrderStage] = mapped_column(SQLEnum(OrderStage), nullable=False)
    allows_modifications: Mapped[bool] = mapped_column(Boolean, default=False)
    is_final: Mapped[bool] = mapped_column(Boolean, default=False)

    @property
    def can_be_modified(self) -> bool:
        return self.allows_modifications and not self.is_final

    @property
    def is_template(self) -> bool:
        return self.code == self.TEMPLATE

    @property
    def is_pre_production(self) -> bool:
        return self.stage == OrderStage.PRE_PRODUCTION

    @property
    def is_production(self) -> bool:
        return self.stage == OrderStage.PRODUCTION

    @property
    def is_fulfillment(self) -> bool:
        return self.stage == OrderStage.FULFILLMENT

    @classmethod
    def is_valid_transition(cls, db: Session, from_code: str, to_code: str) -> bool:
        source = cls.find_by_code(db, from_code)
        target = cls.find_by_code(db, to_code)
        if source is None or target is None:
            return False
        if source.is_final:
            return False
        if target.code == cls.TEMPLATE:
            return False
        if target.code == cls.CANCELLED:
            return True
        if target.sort_order > source.sort_order:
            return True
        # Korrektur rückwärts innerhalb derselben Phase
        return (
            target.sort_order < source.sort_order
            and target.stage == source.stage
            and source.allows_modifications
        )

    @classmethod
    def valid_next_statuses(cls, db: Session, code: str) -> list["UnifiedOrderStatus"]:
        current = cls.find_by_code(db, code)
        if current is None or current.is_final:
            return []
        return [
            status for status in cls.options(db)
            if status.code != cls.TEMPLATE and cls.is_valid_transition(db, code, status.code)
        ]

    def _neighbour(self, forward: bool) -> Optional["UnifiedOrderStatus"]:
        db = object_session(self)
        cls = UnifiedOrderStatus
        query = select(cls).where(cls.is_active == True, cls.code != cls.TEMPLATE)
        if forward:
            query = query.where(cls.sort_order > self.sort_order).order_by(cls.sort_order)
        else:
            query = query.where(cls.sort_order < self.sort_order).order_by(cls.sort_order.desc())
        return db.execute(query.limit(1)).scalar_one_or_none()

    def next_status(self) -> Optional["UnifiedOrderStatus"]:
        return self._neighbour(forward=True)

    def previous_status(self) -> Optional["UnifiedOrderStatus"]:
        return self._neighbour(forward=False)

    @classmethod
    def by_stage(cls, db: Session, stage: OrderStage) -> list["UnifiedOrderStatus"]:
        return [status for status in cls.options(db) if status.stage == stage]


# ========================================
# KUNDEN
# ========================================

class CustomerType(LookupMixin, Base):
    """
    Kundentyp. qualifies_for_wholesale steuert, ob Kunden dieses Typs
    Großhandelspreise erhalten (Großhandel und Wochenmarkt).
    """
    __tablename__ = "customer_types"

    RETAIL = "retail"
    WHOLESALE = "wholesale"
    FARMERS_MARKET = "farmers_market"

    qualifies_for_wholesale: Mapped[bool] = mapped_column(Boolean, default=False)

    @property
    def is_retail(self) -> bool:
        return self.code == self.RETAIL

    @property
    def is_wholesale(self) -> bool:
        return self.code == self.WHOLESALE

    @property
    def is_farmers_market(self) -> bool:
        return self.code == self.FARMERS_MARKET

    @property
    def qualifies_for_wholesale_pricing(self) -> bool:
        return bool(self.qualifies_for_wholesale)


# ========================================
# STANDARD-EINTRÄGE
# ========================================

STANDARD_CROP_STAGES = [
    {"code": "soaking", "name": "Einweichen", "color": "blue", "sort_order": 1,
     "typical_duration_days": 0, "requires_light": False, "requires_watering": False},
    {"code": "germination", "name": "Keimung", "color": "yellow", "sort_order": 2,
     "typical_duration_days": 3, "requires_light": False, "requires_watering": True},
    {"code": "blackout", "name": "Dunkelphase", "color": "gray", "sort_order": 3,
     "typical_duration_days": 2, "requires_light": False, "requires_watering": True},
    {"code": "light", "name": "Lichtphase", "color": "green", "sort_order": 4,
     "typical_duration_days": 5, "requires_light": True, "requires_watering": True},
    {"code": "harvested", "name": "Geerntet", "color": "purple", "sort_order": 5,
     "typical_duration_days": None, "requires_light": False, "requires_watering": False},
]

STANDARD_CONSUMABLE_TYPES = [
    {"code": "packaging", "name": "Verpackung", "color": "blue", "sort_order": 1},
    {"code": "soil", "name": "Substrat", "color": "amber", "sort_order": 2},
    {"code": "seed", "name": "Saatgut", "color": "green", "sort_order": 3},
    {"code": "label", "name": "Etiketten", "color": "purple", "sort_order": 4},
    {"code": "other", "name": "Sonstiges", "color": "gray", "sort_order": 5},
]

STANDARD_CONSUMABLE_UNITS = [
    {"code": "g", "name": "Gramm", "symbol": "g", "category": UnitCategory.WEIGHT,
     "conversion_factor": Decimal("1"), "sort_order": 1},
    {"code": "kg", "name": "Kilogramm", "symbol": "kg", "category": UnitCategory.WEIGHT,
     "conversion_factor": Decimal("1000"), "sort_order": 2},
    {"code": "oz", "name": "Unze", "symbol": "oz", "category": UnitCategory.WEIGHT,
     "conversion_factor": Decimal("28.3495"), "sort_order": 3},
    {"code": "lb", "name": "Pfund (US)", "symbol": "lb", "category": UnitCategory.WEIGHT,
     "conversion_factor": Decimal("453.592"), "sort_order": 4},
    {"code": "ml", "name": "Milliliter", "symbol": "ml", "category": UnitCategory.VOLUME,
     "conversion_factor": Decimal("1"), "sort_order": 5},
    {"code": "l", "name": "Liter", "symbol": "l", "category": UnitCategory.VOLUME,
     "conversion_factor": Decimal("1000"), "sort_order": 6},
    {"code": "unit", "name": "Stück", "symbol": "Stk", "category": UnitCategory.COUNT,
     "conversion_factor": Decimal("1"), "sort_order": 7},
]

STANDARD_PRODUCT_STOCK_STATUSES = [
    {"code": "in_stock", "name": "Auf Lager", "color": "success", "sort_order": 1},
    {"code": "low_stock", "name": "Niedriger Bestand", "color": "warning", "sort_order": 2},
    {"code": "out_of_stock", "name": "Ausverkauft", "color": "danger", "sort_order": 3},
    {"code": "discontinued", "name": "Ausgelistet", "color": "gray", "sort_order": 4},
]

STANDARD_RESERVATION_STATUSES = [
    {"code": "pending", "name": "Offen", "color": "warning", "sort_order": 1},
    {"code": "confirmed", "name": "Bestätigt", "color": "info", "sort_order": 2},
    {"code": "fulfilled", "name": "Erfüllt", "color": "success", "sort_order": 3},
    {"code": "cancelled", "name": "Storniert", "color": "danger", "sort_order": 4},
]

STANDARD_PAYMENT_STATUSES = [
    {"code": "pending", "name": "Ausstehend", "color": "warning", "sort_order": 1},
    {"code": "completed", "name": "Bezahlt", "color": "success", "sort_order": 2},
    {"code": "failed", "name": "Fehlgeschlagen", "color": "danger", "sort_order": 3},
    {"code": "refunded", "name": "Erstattet", "color": "gray", "sort_order": 4},
]

_PRE, _PROD, _FULL, _FINAL = (
    OrderStage.PRE_PRODUCTION, OrderStage.PRODUCTION, OrderStage.FULFILLMENT, OrderStage.FINAL
)

STANDARD_ORDER_STATUSES = [
    {"code": "template", "name": "Vorlage", "stage": _PRE, "sort_order": 5,
     "allows_modifications": True, "is_final": False, "color": "gray"},
    {"code": "draft", "name": "Entwurf", "stage": _PRE, "sort_order": 10,
     "allows_modifications": True, "is_final": False, "color": "gray"},
    {"code": "pending", "name": "Offen", "stage": _PRE, "sort_order": 20,
     "allows_modifications": True, "is_final": False, "color": "yellow"},
    {"code": "confirmed", "name": "Bestätigt", "stage": _PRE, "sort_order": 30,
     "allows_modifications": True, "is_final": False, "color": "blue"},
    {"code": "growing", "name": "Im Anbau", "stage": _PROD, "sort_order": 40,
     "allows_modifications": False, "is_final": False, "color": "green"},
    {"code": "ready_to_harvest", "name": "Erntereif", "stage": _PROD, "sort_order": 50,
     "allows_modifications": False, "is_final": False, "color": "lime"},
    {"code": "harvesting", "name": "In Ernte", "stage": _PROD, "sort_order": 60,
     "allows_modifications": False, "is_final": False, "color": "emerald"},
    {"code": "packing", "name": "Verpackung", "stage": _FULL, "sort_order": 70,
     "allows_modifications": False, "is_final": False, "color": "indigo"},
    {"code": "ready_for_delivery", "name": "Versandbereit", "stage": _FULL, "sort_order": 80,
     "allows_modifications": False, "is_final": False, "color": "purple"},
    {"code": "out_for_delivery", "name": "In Zustellung", "stage": _FULL, "sort_order": 90,
     "allows_modifications": False, "is_final": False, "color": "violet"},
    {"code": "delivered", "name": "Zugestellt", "stage": _FINAL, "sort_order": 100,
     "allows_modifications": False, "is_final": True, "color": "success"},
    {"code": "cancelled", "name": "Storniert", "stage": _FINAL, "sort_order": 110,
     "allows_modifications": False, "is_final": True, "color": "danger"},
]

STANDARD_CUSTOMER_TYPES = [
    {"code": "retail", "name": "Endkunde", "color": "blue", "sort_order": 1,
     "qualifies_for_wholesale": False},
    {"code": "wholesale", "name": "Großhandel", "color": "green", "sort_order": 2,
     "qualifies_for_wholesale": True},
    {"code": "farmers_market", "name": "Wochenmarkt", "color": "amber", "sort_order": 3,
     "qualifies_for_wholesale": True},
]

STANDARD_LOOKUPS = [
    (CropStage, STANDARD_CROP_STAGES),
    (ConsumableType, STANDARD_CONSUMABLE_TYPES),
    (ConsumableUnit, STANDARD_CONSUMABLE_UNITS),
    (ProductStockStatus, STANDARD_PRODUCT_STOCK_STATUSES),
    (InventoryReservationStatus, STANDARD_RESERVATION_STATUSES),
    (PaymentStatus, STANDARD_PAYMENT_STATUSES),
    (UnifiedOrderStatus, STANDARD_ORDER_STATUSES),
    (CustomerType, STANDARD_CUSTOMER_TYPES),
]


# Imports für Type Hints
from sprout.models.recipe import Recipe
