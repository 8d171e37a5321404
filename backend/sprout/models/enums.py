from enum import Enum


class ReferenceKind(str, Enum):
    """Art des Bezugsobjekts einer Lagerbuchung"""
    ORDER = "order"
    ORDER_ITEM = "order_item"
    CROP = "crop"
    CROP_PLAN = "crop_plan"
    RECIPE = "recipe"
    PRODUCT = "product"
    CONSUMABLE = "consumable"


class UnitCategory(str, Enum):
    """Kategorie der Verbrauchsmaterial-Einheit"""
    WEIGHT = "weight"   # Basis: g
    VOLUME = "volume"   # Basis: ml
    COUNT = "count"     # Stück


class OrderStage(str, Enum):
    """Phase im einheitlichen Auftragsstatus"""
    PRE_PRODUCTION = "pre_production"
    PRODUCTION = "production"
    FULFILLMENT = "fulfillment"
    FINAL = "final"


class ConsumableTransactionType(str, Enum):
    """Buchungsart im Verbrauchsmaterial-Journal"""
    CONSUMPTION = "consumption"     # Verbrauch in Produktion
    ADDITION = "addition"           # Zugang
    ADJUSTMENT = "adjustment"       # Manuelle Korrektur (+/-)
    WASTE = "waste"                 # Schwund/Beschädigung
    EXPIRATION = "expiration"       # Abgelaufen
    TRANSFER_OUT = "transfer_out"   # Umlagerung (Abgang)
    TRANSFER_IN = "transfer_in"     # Umlagerung (Zugang)
    INITIAL = "initial"             # Anfangsbestand

    @property
    def label(self) -> str:
        labels = {
            ConsumableTransactionType.CONSUMPTION: "Verbrauch in Produktion",
            ConsumableTransactionType.ADDITION: "Zugang",
            ConsumableTransactionType.ADJUSTMENT: "Manuelle Korrektur",
            ConsumableTransactionType.WASTE: "Schwund/Beschädigung",
            ConsumableTransactionType.EXPIRATION: "Abgelaufen",
            ConsumableTransactionType.TRANSFER_OUT: "Umlagerung (Abgang)",
            ConsumableTransactionType.TRANSFER_IN: "Umlagerung (Zugang)",
            ConsumableTransactionType.INITIAL: "Anfangsbestand",
        }
        return labels[self]


# Immer negativ bzw. immer positiv gebucht; ADJUSTMENT behält das Vorzeichen
CONSUMABLE_OUTBOUND_TYPES = frozenset({
    ConsumableTransactionType.CONSUMPTION,
    ConsumableTransactionType.WASTE,
    ConsumableTransactionType.EXPIRATION,
    ConsumableTransactionType.TRANSFER_OUT,
})
CONSUMABLE_INBOUND_TYPES = frozenset({
    ConsumableTransactionType.ADDITION,
    ConsumableTransactionType.TRANSFER_IN,
    ConsumableTransactionType.INITIAL,
})


class InventoryTransactionType(str, Enum):
    """Buchungsart im Fertigwaren-Journal"""
    PRODUCTION = "production"
    PURCHASE = "purchase"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"
    DAMAGE = "damage"
    EXPIRATION = "expiration"
    TRANSFER = "transfer"
    RESERVATION = "reservation"
    RELEASE = "release"


class ProductInventoryStatus(str, Enum):
    """Status einer Fertigwaren-Charge"""
    ACTIVE = "active"
    DEPLETED = "depleted"
    EXPIRED = "expired"
    DAMAGED = "damaged"


class CropPlanStatus(str, Enum):
    """Status eines Anbauplans"""
    DRAFT = "draft"
    APPROVED = "approved"
    GENERATING = "generating"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CropTaskType(str, Enum):
    """Art einer geplanten Anbau-Aufgabe"""
    ADVANCE_STAGE = "advance_stage"
    SUSPEND_WATERING = "suspend_watering"


class CropTaskStatus(str, Enum):
    """Status einer geplanten Anbau-Aufgabe"""
    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class StageTransitionType(str, Enum):
    """Art eines protokollierten Phasenwechsels"""
    ADVANCE = "advance"
    REVERT = "revert"
    BULK_ADVANCE = "bulk_advance"
    BULK_REVERT = "bulk_revert"
