"""
Stammdaten-API - Anbauphasen, Einheiten, Typen und Status
"""
from fastapi import APIRouter, HTTPException

from sprout.api.deps import DBSession
from sprout.models.lookup import (
    CropStage, ConsumableType, ConsumableUnit, ProductStockStatus,
    InventoryReservationStatus, PaymentStatus, UnifiedOrderStatus, CustomerType,
)
from sprout.schemas.lookup import (
    LookupResponse, CropStageResponse, ConsumableUnitResponse, OrderStatusResponse,
    CustomerTypeResponse,
)
from sprout.services.lookup_service import seed_lookup_tables

router = APIRouter(prefix="/lookups", tags=["Stammdaten"])


@router.get("/crop-stages", response_model=list[CropStageResponse])
def list_crop_stages(db: DBSession):
    return CropStage.options(db)


@router.get("/consumable-types", response_model=list[LookupResponse])
def list_consumable_types(db: DBSession):
    return ConsumableType.options(db)


@router.get("/consumable-units", response_model=list[ConsumableUnitResponse])
def list_consumable_units(db: DBSession):
    return ConsumableUnit.options(db)


@router.get("/product-stock-statuses", response_model=list[LookupResponse])
def list_product_stock_statuses(db: DBSession):
    return ProductStockStatus.options(db)


@router.get("/reservation-statuses", response_model=list[LookupResponse])
def list_reservation_statuses(db: DBSession):
    return InventoryReservationStatus.options(db)


@router.get("/payment-statuses", response_model=list[LookupResponse])
def list_payment_statuses(db: DBSession):
    return PaymentStatus.options(db)


@router.get("/order-statuses", response_model=list[OrderStatusResponse])
def list_order_statuses(db: DBSession):
    return UnifiedOrderStatus.options(db)


@router.get("/order-statuses/{code}/next", response_model=list[OrderStatusResponse])
def list_next_order_statuses(code: str, db: DBSession):
    """Erlaubte Folgestatus eines Auftragsstatus"""
    if UnifiedOrderStatus.find_by_code(db, code) is None:
        raise HTTPException(status_code=404, detail="Auftragsstatus nicht gefunden")
    return UnifiedOrderStatus.valid_next_statuses(db, code)


@router.get("/customer-types", response_model=list[CustomerTypeResponse])
def list_customer_types(db: DBSession):
    return CustomerType.options(db)


@router.post("/seed")
def install_standard_lookups(db: DBSession):
    """Legt fehlende Standard-Einträge an."""
    created = seed_lookup_tables(db)
    db.commit()
    return {"created": created}
