"""
Verbrauchsmaterial-API - Stammdaten, Buchungen und Journal
"""
from uuid import UUID
from fastapi import APIRouter, HTTPException
from sqlalchemy import select, func

from sprout.api.deps import DBSession, Pagination, UserId
from sprout.models.consumable import Consumable
from sprout.schemas.consumable import (
    ConsumableCreate, ConsumableUpdate, ConsumableResponse, ConsumableListResponse,
    StockMovementRequest, AdjustmentRequest, TransferRequest,
    ConsumableTransactionResponse, SeedAvailabilityResponse,
)
from sprout.services.consumable_service import ConsumableService

router = APIRouter(prefix="/consumables", tags=["Verbrauchsmaterial"])


@router.get("", response_model=ConsumableListResponse)
def list_consumables(db: DBSession, pagination: Pagination, is_active: bool = True):
    """Listet Verbrauchsmaterialien."""
    query = select(Consumable).where(Consumable.is_active == is_active)
    total = db.execute(select(func.count()).select_from(query.subquery())).scalar()
    items = db.execute(
        query.order_by(Consumable.name).offset(pagination.offset).limit(pagination.page_size)
    ).unique().scalars().all()
    return {"items": items, "total": total}


@router.get("/low-stock", response_model=list[ConsumableResponse])
def list_low_stock(db: DBSession, limit: int | None = None):
    """Materialien am oder unter Meldebestand, kritischste zuerst."""
    return ConsumableService(db).low_stock_items(limit)


@router.get("/seed-availability", response_model=SeedAvailabilityResponse)
def check_seed_availability(recipe_id: UUID, db: DBSession, tray_count: int = 1):
    try:
        return ConsumableService(db).check_seed_availability(recipe_id, tray_count)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{consumable_id}", response_model=ConsumableResponse)
def get_consumable(consumable_id: UUID, db: DBSession):
    consumable = db.get(Consumable, consumable_id)
    if not consumable:
        raise HTTPException(status_code=404, detail="Verbrauchsmaterial nicht gefunden")
    return consumable


@router.post("", response_model=ConsumableResponse, status_code=201)
def create_consumable(data: ConsumableCreate, db: DBSession, user_id: UserId):
    """Legt ein Verbrauchsmaterial mit Anfangsbestand an."""
    service = ConsumableService(db)
    try:
        consumable = service.create_consumable(**data.model_dump(), user_id=user_id)
        db.commit()
        db.refresh(consumable)
        return consumable
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/{consumable_id}", response_model=ConsumableResponse)
def update_consumable(consumable_id: UUID, data: ConsumableUpdate, db: DBSession, user_id: UserId):
    """Ändert Stammdaten. Mengen nur über Buchungen."""
    if not db.get(Consumable, consumable_id):
        raise HTTPException(status_code=404, detail="Verbrauchsmaterial nicht gefunden")
    try:
        consumable = ConsumableService(db).update_consumable(
            consumable_id, data.model_dump(exclude_unset=True), user_id=user_id
        )
        db.commit()
        db.refresh(consumable)
        return consumable
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


# ========================================
# BUCHUNGEN
# ========================================

@router.post("/{consumable_id}/consume", response_model=ConsumableTransactionResponse, status_code=201)
def consume(consumable_id: UUID, data: StockMovementRequest, db: DBSession, user_id: UserId):
    service = ConsumableService(db)
    try:
        transaction = service.deduct(
            consumable_id, data.amount, unit=data.unit, notes=data.notes, user_id=user_id
        )
        db.commit()
        return transaction
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{consumable_id}/add", response_model=ConsumableResponse)
def add_stock(consumable_id: UUID, data: StockMovementRequest, db: DBSession, user_id: UserId):
    """Zugang; 409 wenn die Losnummer nicht zum Saatgut-Los passt."""
    service = ConsumableService(db)
    try:
        added = service.add(
            consumable_id, data.amount, unit=data.unit, lot_no=data.lot_no,
            notes=data.notes, user_id=user_id,
        )
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    if not added:
        db.rollback()
        raise HTTPException(
            status_code=409,
            detail="Losnummer weicht ab - bitte ein neues Saatgut-Los anlegen",
        )
    db.commit()
    return db.get(Consumable, consumable_id)


@router.post("/{consumable_id}/waste", response_model=ConsumableTransactionResponse, status_code=201)
def record_waste(consumable_id: UUID, data: StockMovementRequest, db: DBSession, user_id: UserId):
    service = ConsumableService(db)
    try:
        transaction = service.record_waste(
            consumable_id, data.amount, unit=data.unit, notes=data.notes, user_id=user_id
        )
        db.commit()
        return transaction
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{consumable_id}/expire", response_model=ConsumableTransactionResponse, status_code=201)
def record_expiration(consumable_id: UUID, data: StockMovementRequest, db: DBSession, user_id: UserId):
    service = ConsumableService(db)
    try:
        transaction = service.record_expiration(
            consumable_id, data.amount, unit=data.unit, notes=data.notes, user_id=user_id
        )
        db.commit()
        return transaction
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{consumable_id}/adjust", response_model=ConsumableTransactionResponse, status_code=201)
def record_adjustment(consumable_id: UUID, data: AdjustmentRequest, db: DBSession, user_id: UserId):
    service = ConsumableService(db)
    try:
        transaction = service.record_adjustment(
            consumable_id, data.quantity, unit=data.unit, notes=data.notes, user_id=user_id
        )
        db.commit()
        return transaction
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{consumable_id}/transfer", response_model=list[ConsumableTransactionResponse], status_code=201)
def transfer(consumable_id: UUID, data: TransferRequest, db: DBSession, user_id: UserId):
    service = ConsumableService(db)
    try:
        transactions = service.transfer(
            consumable_id, data.target_id, data.amount, unit=data.unit,
            notes=data.notes, user_id=user_id,
        )
        db.commit()
        return list(transactions)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{consumable_id}/reconcile")
def reconcile(consumable_id: UUID, db: DBSession):
    """Berechnet die Bestandsfelder aus dem Journal neu."""
    service = ConsumableService(db)
    try:
        drift = service.reconcile(consumable_id)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    return {"drift": str(drift)}


@router.get("/{consumable_id}/transactions", response_model=list[ConsumableTransactionResponse])
def list_transactions(consumable_id: UUID, db: DBSession, limit: int | None = None):
    if not db.get(Consumable, consumable_id):
        raise HTTPException(status_code=404, detail="Verbrauchsmaterial nicht gefunden")
    return ConsumableService(db).transaction_history(consumable_id, limit)
