"""
Anbauplanungs-API - Bedarfsrechnung aus Bestellpositionen
"""
from datetime import datetime
from uuid import UUID
from fastapi import APIRouter, HTTPException
from sqlalchemy import select

from sprout.api.deps import DBSession, UserId
from sprout.models.crop_plan import CropPlan
from sprout.schemas.crop import CropPlanCreate, CropPlanResponse, CropResponse
from sprout.services.crop_plan_service import CropPlanService

router = APIRouter(prefix="/crop-plans", tags=["Anbauplanung"])


@router.get("", response_model=list[CropPlanResponse])
def list_crop_plans(db: DBSession, status: str | None = None):
    query = select(CropPlan).order_by(CropPlan.plant_by_date)
    if status:
        query = query.where(CropPlan.status == status)
    return db.execute(query).scalars().all()


@router.get("/urgent", response_model=list[CropPlanResponse])
def list_urgent_plans(db: DBSession):
    """Offene Pläne, deren Aussaat in Kürze ansteht."""
    return CropPlanService(db).urgent_plans()


@router.get("/overdue", response_model=list[CropPlanResponse])
def list_overdue_plans(db: DBSession):
    return CropPlanService(db).overdue_plans()


@router.post("", response_model=CropPlanResponse, status_code=201)
def create_crop_plan(data: CropPlanCreate, db: DBSession):
    """Berechnet Trays, Saatgut und Termine für eine Bestellposition."""
    service = CropPlanService(db)
    try:
        plan = service.create_from_order_item(**data.model_dump())
        db.commit()
        db.refresh(plan)
        return plan
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{plan_id}", response_model=CropPlanResponse)
def get_crop_plan(plan_id: UUID, db: DBSession):
    plan = db.get(CropPlan, plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Anbauplan nicht gefunden")
    return plan


@router.post("/{plan_id}/approve", response_model=CropPlanResponse)
def approve_crop_plan(plan_id: UUID, db: DBSession, user_id: UserId):
    if not db.get(CropPlan, plan_id):
        raise HTTPException(status_code=404, detail="Anbauplan nicht gefunden")
    try:
        plan = CropPlanService(db).approve(plan_id, user_id=user_id)
        db.commit()
        db.refresh(plan)
        return plan
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{plan_id}/cancel", response_model=CropPlanResponse)
def cancel_crop_plan(plan_id: UUID, db: DBSession, user_id: UserId):
    if not db.get(CropPlan, plan_id):
        raise HTTPException(status_code=404, detail="Anbauplan nicht gefunden")
    try:
        plan = CropPlanService(db).cancel(plan_id, user_id=user_id)
        db.commit()
        db.refresh(plan)
        return plan
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{plan_id}/generate", response_model=list[CropResponse], status_code=201)
def generate_crops(plan_id: UUID, db: DBSession, user_id: UserId, planting_at: datetime | None = None):
    """Legt die geplanten Trays an und schließt den Plan ab."""
    if not db.get(CropPlan, plan_id):
        raise HTTPException(status_code=404, detail="Anbauplan nicht gefunden")
    try:
        crops = CropPlanService(db).generate_crops(plan_id, planting_at=planting_at, user_id=user_id)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    for crop in crops:
        db.refresh(crop)
    return crops
