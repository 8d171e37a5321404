"""
SQLAlchemy Models für das Sprout ERP
Lagerbuchhaltung, Fertigwarenbestand und Anbau-Lebenszyklus
"""
# Stammdaten
from sprout.models.enums import (
    ReferenceKind,
    UnitCategory,
    OrderStage,
    ConsumableTransactionType,
    InventoryTransactionType,
    ProductInventoryStatus,
    CropPlanStatus,
    CropTaskType,
    CropTaskStatus,
    StageTransitionType,
)
from sprout.models.lookup import (
    CropStage,
    ConsumableType,
    ConsumableUnit,
    ProductStockStatus,
    InventoryReservationStatus,
    PaymentStatus,
    UnifiedOrderStatus,
    CustomerType,
    STANDARD_LOOKUPS,
)

# Verbrauchsmaterial
from sprout.models.consumable import Consumable, ConsumableTransaction

# Fertigware
from sprout.models.product import Product
from sprout.models.inventory import ProductInventory, InventoryTransaction, InventoryReservation

# Anbau
from sprout.models.recipe import Recipe
from sprout.models.crop import Crop, CropStageHistory, CropStageTransition, CropTask
from sprout.models.crop_plan import CropPlan

# Kunden und Aufträge
from sprout.models.customer import Customer
from sprout.models.order import Order, OrderItem

# Protokoll
from sprout.models.activity import ActivityLog

__all__ = [
    # Enums
    "ReferenceKind",
    "UnitCategory",
    "OrderStage",
    "ConsumableTransactionType",
    "InventoryTransactionType",
    "ProductInventoryStatus",
    "CropPlanStatus",
    "CropTaskType",
    "CropTaskStatus",
    "StageTransitionType",
    # Lookups
    "CropStage",
    "ConsumableType",
    "ConsumableUnit",
    "ProductStockStatus",
    "InventoryReservationStatus",
    "PaymentStatus",
    "UnifiedOrderStatus",
    "CustomerType",
    "STANDARD_LOOKUPS",
    # Lager
    "Consumable",
    "ConsumableTransaction",
    "Product",
    "ProductInventory",
    "InventoryTransaction",
    "InventoryReservation",
    # Anbau
    "Recipe",
    "Crop",
    "CropStageHistory",
    "CropStageTransition",
    "CropTask",
    "CropPlan",
    # Kunden und Aufträge
    "Customer",
    "Order",
    "OrderItem",
    # Protokoll
    "ActivityLog",
]
