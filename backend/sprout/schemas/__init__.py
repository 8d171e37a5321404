"""
Pydantic Schemas für die Sprout ERP API
"""
# Stammdaten
from sprout.schemas.lookup import (
    LookupResponse, CropStageResponse, ConsumableUnitResponse, OrderStatusResponse,
    CustomerTypeResponse,
)

# Verbrauchsmaterial
from sprout.schemas.consumable import (
    ConsumableBase, ConsumableCreate, ConsumableUpdate, ConsumableResponse, ConsumableListResponse,
    StockMovementRequest, AdjustmentRequest, TransferRequest,
    ConsumableTransactionResponse, SeedAvailabilityResponse,
)

# Fertigware
from sprout.schemas.inventory import (
    ProductBase, ProductCreate, ProductUpdate, ProductResponse, ProductListResponse,
    BatchCreate, BatchResponse, BatchStockRequest, InventoryTransactionResponse,
    ReservationCreate, ReservationResponse, ReservationCancelRequest,
)

# Anbau
from sprout.schemas.crop import (
    RecipeBase, RecipeCreate, RecipeResponse,
    CropCreate, CropBulkCreate, CropUpdate, CropResponse, HarvestRequest, StageResetRequest,
    StageAdvanceRequest, StageRevertRequest, FailedCrop, StageTransitionResponse,
    StageTransitionResult, CropTimeResponse, CropTaskResponse,
    CropPlanCreate, CropPlanResponse,
)

# Kunden
from sprout.schemas.customer import (
    CustomerBase, CustomerCreate, CustomerUpdate, CustomerResponse, ProductPriceResponse,
)

# Aufträge
from sprout.schemas.order import (
    OrderItemCreate, OrderItemResponse, OrderCreate, OrderResponse, OrderStatusUpdate,
)
