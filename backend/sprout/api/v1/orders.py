"""
Auftrags-API - Aufträge, Positionen, Statuswechsel und Reservierung
"""
from uuid import UUID
from fastapi import APIRouter, HTTPException
from sqlalchemy import select

from sprout.api.deps import DBSession, UserId
from sprout.models.order import Order
from sprout.schemas.inventory import ReservationResponse
from sprout.schemas.lookup import OrderStatusResponse
from sprout.schemas.order import (
    OrderCreate, OrderResponse, OrderItemCreate, OrderItemResponse, OrderStatusUpdate,
)
from sprout.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Aufträge"])


@router.get("", response_model=list[OrderResponse])
def list_orders(db: DBSession, status: str | None = None):
    query = select(Order).order_by(Order.created_at.desc())
    if status:
        query = query.where(Order.status == status)
    return db.execute(query).scalars().all()


@router.post("", response_model=OrderResponse, status_code=201)
def create_order(data: OrderCreate, db: DBSession, user_id: UserId):
    service = OrderService(db)
    try:
        order = service.create_order(
            customer_name=data.customer_name,
            customer_id=data.customer_id,
            items=[item.model_dump() for item in data.items],
            delivery_date=data.delivery_date,
            status=data.status,
            notes=data.notes,
            user_id=user_id,
        )
        db.commit()
        db.refresh(order)
        return order
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: UUID, db: DBSession):
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Auftrag nicht gefunden")
    return order


@router.post("/{order_id}/items", response_model=OrderItemResponse, status_code=201)
def add_order_item(order_id: UUID, data: OrderItemCreate, db: DBSession):
    if not db.get(Order, order_id):
        raise HTTPException(status_code=404, detail="Auftrag nicht gefunden")
    try:
        item = OrderService(db).add_item(order_id, data.product_id, data.quantity, data.price)
        db.commit()
        db.refresh(item)
        return item
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{order_id}/items/{item_id}", status_code=204)
def remove_order_item(order_id: UUID, item_id: UUID, db: DBSession):
    """Entfernt eine Position und storniert ihre Reservierungen."""
    if not db.get(Order, order_id):
        raise HTTPException(status_code=404, detail="Auftrag nicht gefunden")
    try:
        OrderService(db).remove_item(order_id, item_id)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{order_id}/next-statuses", response_model=list[OrderStatusResponse])
def list_next_statuses(order_id: UUID, db: DBSession):
    if not db.get(Order, order_id):
        raise HTTPException(status_code=404, detail="Auftrag nicht gefunden")
    return OrderService(db).valid_next_statuses(order_id)


@router.post("/{order_id}/status", response_model=OrderResponse)
def change_order_status(order_id: UUID, data: OrderStatusUpdate, db: DBSession, user_id: UserId):
    if not db.get(Order, order_id):
        raise HTTPException(status_code=404, detail="Auftrag nicht gefunden")
    try:
        order = OrderService(db).transition(order_id, data.status, user_id=user_id)
        db.commit()
        db.refresh(order)
        return order
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{order_id}/reserve", response_model=list[ReservationResponse], status_code=201)
def reserve_order_stock(order_id: UUID, db: DBSession):
    """Reserviert Fertigware für alle Positionen nach MHD-Reihenfolge."""
    if not db.get(Order, order_id):
        raise HTTPException(status_code=404, detail="Auftrag nicht gefunden")
    try:
        reservations = OrderService(db).reserve_stock(order_id)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    for reservation in reservations:
        db.refresh(reservation)
    return reservations
