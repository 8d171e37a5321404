"""
Business Logic Services für das Sprout ERP
"""
from sprout.services.lookup_service import seed_lookup_tables
from sprout.services.consumable_service import ConsumableService
from sprout.services.product_inventory_service import ProductInventoryService
from sprout.services.crop_service import CropService
from sprout.services.crop_lifecycle import CropLifecycleService
from sprout.services.crop_transitions import CropStageTransitionService
from sprout.services.crop_time import CropTimeCalculator, format_duration
from sprout.services.crop_tasks import CropTaskService
from sprout.services.crop_plan_service import CropPlanService
from sprout.services.customer_service import CustomerService
from sprout.services.order_service import OrderService
from sprout.services.events import BulkContext, EventDispatcher, crop_events

__all__ = [
    "seed_lookup_tables",
    "ConsumableService",
    "ProductInventoryService",
    "CropService",
    "CropLifecycleService",
    "CropStageTransitionService",
    "CropTimeCalculator",
    "format_duration",
    "CropTaskService",
    "CropPlanService",
    "CustomerService",
    "OrderService",
    "BulkContext",
    "EventDispatcher",
    "crop_events",
]
