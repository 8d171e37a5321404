"""
Produkt- und Fertigwaren-API - Produkte, Chargen und Reservierungen
"""
from uuid import UUID
from fastapi import APIRouter, HTTPException
from sqlalchemy import select, func

from sprout.api.deps import DBSession, Pagination, UserId
from sprout.models.inventory import ProductInventory, InventoryReservation
from sprout.models.lookup import ProductStockStatus
from sprout.models.product import Product
from sprout.schemas.inventory import (
    ProductCreate, ProductUpdate, ProductResponse, ProductListResponse,
    BatchCreate, BatchResponse, BatchStockRequest, InventoryTransactionResponse,
    ReservationCreate, ReservationResponse, ReservationCancelRequest,
)
from sprout.services.product_inventory_service import ProductInventoryService

router = APIRouter(prefix="/products", tags=["Produkte"])


@router.get("", response_model=ProductListResponse)
def list_products(db: DBSession, pagination: Pagination, stock_status: str | None = None):
    """Listet aktive Produkte."""
    query = select(Product).where(Product.is_active == True)
    if stock_status:
        query = query.where(Product.stock_status == stock_status)

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar()
    items = db.execute(
        query.order_by(Product.name).offset(pagination.offset).limit(pagination.page_size)
    ).scalars().all()
    return {"items": items, "total": total}


@router.get("/low-stock", response_model=list[ProductResponse])
def list_low_stock_products(db: DBSession):
    return ProductInventoryService(db).low_stock_products()


@router.post("", response_model=ProductResponse, status_code=201)
def create_product(data: ProductCreate, db: DBSession):
    """Erstellt ein neues Produkt."""
    existing = db.execute(select(Product).where(Product.sku == data.sku)).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=400, detail=f"Artikelnummer {data.sku} existiert bereits")

    product = Product(**data.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


# ========================================
# CHARGEN
# ========================================

@router.get("/inventory", response_model=list[BatchResponse])
def list_batches(
    db: DBSession,
    product_id: UUID | None = None,
    available_only: bool = False,
    expiring_within_days: int | None = None,
):
    """Listet Chargen; verfügbare in MHD-Reihenfolge."""
    service = ProductInventoryService(db)
    if available_only:
        return service.available_batches(product_id)
    if expiring_within_days is not None:
        return service.expiring_soon(days=expiring_within_days)

    query = select(ProductInventory).order_by(ProductInventory.created_at.desc())
    if product_id:
        query = query.where(ProductInventory.product_id == product_id)
    return db.execute(query).scalars().all()


@router.post("/inventory", response_model=BatchResponse, status_code=201)
def create_batch(data: BatchCreate, db: DBSession, user_id: UserId):
    """Legt eine Charge mit Anfangsbestand an."""
    service = ProductInventoryService(db)
    try:
        batch = service.create_batch(**data.model_dump(), user_id=user_id)
        db.commit()
        db.refresh(batch)
        return batch
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/inventory/{batch_id}", response_model=BatchResponse)
def get_batch(batch_id: UUID, db: DBSession):
    batch = db.get(ProductInventory, batch_id)
    if not batch:
        raise HTTPException(status_code=404, detail="Charge nicht gefunden")
    return batch


@router.delete("/inventory/{batch_id}", status_code=204)
def delete_batch(batch_id: UUID, db: DBSession):
    if not db.get(ProductInventory, batch_id):
        raise HTTPException(status_code=404, detail="Charge nicht gefunden")
    try:
        ProductInventoryService(db).delete_batch(batch_id)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/inventory/{batch_id}/add", response_model=InventoryTransactionResponse, status_code=201)
def add_batch_stock(batch_id: UUID, data: BatchStockRequest, db: DBSession, user_id: UserId):
    service = ProductInventoryService(db)
    try:
        transaction = service.add_stock(
            batch_id, data.quantity, transaction_type=data.transaction_type,
            notes=data.notes, user_id=user_id,
        )
        db.commit()
        return transaction
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/inventory/{batch_id}/remove", response_model=InventoryTransactionResponse, status_code=201)
def remove_batch_stock(batch_id: UUID, data: BatchStockRequest, db: DBSession, user_id: UserId):
    service = ProductInventoryService(db)
    try:
        transaction = service.remove_stock(
            batch_id, data.quantity, transaction_type=data.transaction_type,
            notes=data.notes, user_id=user_id,
        )
        db.commit()
        return transaction
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/inventory/{batch_id}/transactions", response_model=list[InventoryTransactionResponse])
def list_batch_transactions(batch_id: UUID, db: DBSession):
    return ProductInventoryService(db).transaction_history(batch_id)


# ========================================
# RESERVIERUNGEN
# ========================================

@router.post("/reservations", response_model=ReservationResponse, status_code=201)
def create_reservation(data: ReservationCreate, db: DBSession, user_id: UserId):
    service = ProductInventoryService(db)
    try:
        reservation = service.reserve_stock(
            data.batch_id, data.quantity, order_id=data.order_id,
            order_item_id=data.order_item_id, expires_at=data.expires_at,
            notes=data.notes, user_id=user_id,
        )
        db.commit()
        db.refresh(reservation)
        return reservation
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


def _reservation_action(db, reservation_id: UUID, action):
    if not db.get(InventoryReservation, reservation_id):
        raise HTTPException(status_code=404, detail="Reservierung nicht gefunden")
    try:
        reservation = action()
        db.commit()
        db.refresh(reservation)
        return reservation
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/reservations/{reservation_id}/confirm", response_model=ReservationResponse)
def confirm_reservation(reservation_id: UUID, db: DBSession):
    service = ProductInventoryService(db)
    return _reservation_action(db, reservation_id, lambda: service.confirm_reservation(reservation_id))


@router.post("/reservations/{reservation_id}/fulfill", response_model=ReservationResponse)
def fulfill_reservation(reservation_id: UUID, db: DBSession, user_id: UserId):
    service = ProductInventoryService(db)
    return _reservation_action(
        db, reservation_id, lambda: service.fulfill_reservation(reservation_id, user_id=user_id)
    )


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: UUID, data: ReservationCancelRequest, db: DBSession, user_id: UserId
):
    service = ProductInventoryService(db)
    return _reservation_action(
        db, reservation_id,
        lambda: service.cancel_reservation(reservation_id, reason=data.reason, user_id=user_id),
    )


@router.delete("/reservations/{reservation_id}", status_code=204)
def delete_reservation(reservation_id: UUID, db: DBSession):
    if not db.get(InventoryReservation, reservation_id):
        raise HTTPException(status_code=404, detail="Reservierung nicht gefunden")
    ProductInventoryService(db).delete_reservation(reservation_id)
    db.commit()


# ========================================
# PRODUKT (nach statischen Pfaden)
# ========================================

@router.get("/{product_id}", response_model=ProductResponse)
def get_product(product_id: UUID, db: DBSession):
    """Gibt ein einzelnes Produkt zurück."""
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Produkt nicht gefunden")
    return product


@router.patch("/{product_id}", response_model=ProductResponse)
def update_product(product_id: UUID, data: ProductUpdate, db: DBSession):
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Produkt nicht gefunden")

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


@router.post("/{product_id}/discontinue", response_model=ProductResponse)
def discontinue_product(product_id: UUID, db: DBSession):
    """Listet ein Produkt aus; der Status bleibt bei Bestandsänderungen erhalten."""
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Produkt nicht gefunden")
    product.stock_status = ProductStockStatus.DISCONTINUED
    db.commit()
    db.refresh(product)
    return product


@router.post("/{product_id}/recalculate", response_model=ProductResponse)
def recalculate_product(product_id: UUID, db: DBSession):
    """Berechnet Bestandssummen und Status aus den Chargen neu."""
    try:
        product = ProductInventoryService(db).update_product_totals(product_id)
        db.commit()
        db.refresh(product)
        return product
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
