"""
Kunden-API - Stammdaten, Kundentyp und Preisauskunft
"""
from uuid import UUID
from fastapi import APIRouter, HTTPException
from sqlalchemy import select

from sprout.api.deps import DBSession, UserId
from sprout.models.customer import Customer
from sprout.schemas.customer import (
    CustomerCreate, CustomerUpdate, CustomerResponse, ProductPriceResponse,
)
from sprout.services.customer_service import CustomerService

router = APIRouter(prefix="/customers", tags=["Kunden"])


@router.get("", response_model=list[CustomerResponse])
def list_customers(db: DBSession, is_active: bool = True):
    query = select(Customer).where(Customer.is_active == is_active).order_by(Customer.name)
    return db.execute(query).scalars().all()


@router.post("", response_model=CustomerResponse, status_code=201)
def create_customer(data: CustomerCreate, db: DBSession, user_id: UserId):
    try:
        customer = CustomerService(db).create_customer(**data.model_dump(), user_id=user_id)
        db.commit()
        db.refresh(customer)
        return customer
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: UUID, db: DBSession):
    customer = db.get(Customer, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Kunde nicht gefunden")
    return customer


@router.patch("/{customer_id}", response_model=CustomerResponse)
def update_customer(customer_id: UUID, data: CustomerUpdate, db: DBSession, user_id: UserId):
    if not db.get(Customer, customer_id):
        raise HTTPException(status_code=404, detail="Kunde nicht gefunden")
    try:
        customer = CustomerService(db).update_customer(
            customer_id, data.model_dump(exclude_unset=True), user_id=user_id
        )
        db.commit()
        db.refresh(customer)
        return customer
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{customer_id}/prices/{product_id}", response_model=ProductPriceResponse)
def get_price(customer_id: UUID, product_id: UUID, db: DBSession):
    """Einzelpreis eines Produkts für den Kunden."""
    try:
        price = CustomerService(db).price_for(customer_id, product_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"customer_id": customer_id, "product_id": product_id, "price": price}
