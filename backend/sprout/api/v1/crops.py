"""
Anbau-API - Rezepte, Crops, Phasenwechsel und Aufgaben
"""
from datetime import datetime
from uuid import UUID
from fastapi import APIRouter, HTTPException
from sqlalchemy import select

from sprout.api.deps import DBSession, UserId
from sprout.models.crop import Crop, CropStageHistory
from sprout.models.recipe import Recipe
from sprout.schemas.crop import (
    RecipeCreate, RecipeResponse,
    CropCreate, CropBulkCreate, CropUpdate, CropResponse, HarvestRequest, StageResetRequest,
    StageAdvanceRequest, StageRevertRequest, StageTransitionResult, CropTimeResponse,
    CropTaskResponse,
)
from sprout.services.crop_lifecycle import CropLifecycleService
from sprout.services.crop_service import CropService
from sprout.services.crop_tasks import CropTaskService
from sprout.services.crop_time import CropTimeCalculator
from sprout.services.crop_transitions import CropStageTransitionService

router = APIRouter(tags=["Anbau"])


# ========================================
# REZEPTE
# ========================================

@router.get("/recipes", response_model=list[RecipeResponse])
def list_recipes(db: DBSession, is_active: bool = True):
    query = select(Recipe).where(Recipe.is_active == is_active).order_by(Recipe.name)
    return db.execute(query).scalars().all()


@router.post("/recipes", response_model=RecipeResponse, status_code=201)
def create_recipe(data: RecipeCreate, db: DBSession):
    recipe = Recipe(**data.model_dump())
    db.add(recipe)
    db.commit()
    db.refresh(recipe)
    return recipe


@router.get("/recipes/{recipe_id}", response_model=RecipeResponse)
def get_recipe(recipe_id: UUID, db: DBSession):
    recipe = db.get(Recipe, recipe_id)
    if not recipe:
        raise HTTPException(status_code=404, detail="Rezept nicht gefunden")
    return recipe


# ========================================
# CROPS
# ========================================

@router.get("/crops", response_model=list[CropResponse])
def list_crops(
    db: DBSession,
    stage: str | None = None,
    recipe_id: UUID | None = None,
    include_harvested: bool = False,
):
    """Listet Crops, optional gefiltert nach Phase oder Rezept."""
    query = select(Crop)
    if stage:
        query = query.where(Crop.current_stage == stage)
    elif not include_harvested:
        query = query.where(Crop.harvested_at.is_(None))
    if recipe_id:
        query = query.where(Crop.recipe_id == recipe_id)
    return db.execute(query.order_by(Crop.planting_at.desc())).scalars().all()


@router.post("/crops", response_model=CropResponse, status_code=201)
def create_crop(data: CropCreate, db: DBSession, user_id: UserId):
    """Legt einen Crop an; Saatgut und Aufgaben folgen über Ereignisse."""
    service = CropService(db)
    try:
        crop = service.create_crop(**data.model_dump(), user_id=user_id)
        db.commit()
        db.refresh(crop)
        return crop
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/crops/bulk", response_model=list[CropResponse], status_code=201)
def create_crops(data: CropBulkCreate, db: DBSession, user_id: UserId):
    """Sammelanlage mit einmaligen Nebenwirkungen für alle Crops."""
    service = CropService(db)
    specs = [{**spec.model_dump(), "user_id": user_id} for spec in data.crops]
    try:
        crops = service.create_crops(specs)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    for crop in crops:
        db.refresh(crop)
    return crops


@router.post("/crops/advance", response_model=StageTransitionResult)
def advance_crops(data: StageAdvanceRequest, db: DBSession, user_id: UserId):
    """Setzt Crops in ihre nächste Phase. Fehler einzelner Crops sind im Ergebnis."""
    service = CropStageTransitionService(db)
    try:
        result = service.advance(data.crop_ids, at=data.at, reason=data.reason, user_id=user_id)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    return {**result, "succeeded": result["advanced"]}


@router.post("/crops/revert", response_model=StageTransitionResult)
def revert_crops(data: StageRevertRequest, db: DBSession, user_id: UserId):
    service = CropStageTransitionService(db)
    try:
        result = service.revert(data.crop_ids, reason=data.reason, user_id=user_id)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    return {**result, "succeeded": result["reverted"]}


@router.post("/crops/tasks/process")
def process_due_tasks(db: DBSession):
    """Führt fällige Aufgaben sofort aus."""
    result = CropTaskService(db).process_due_tasks()
    db.commit()
    return result


@router.get("/crops/{crop_id}", response_model=CropResponse)
def get_crop(crop_id: UUID, db: DBSession):
    crop = db.get(Crop, crop_id)
    if not crop:
        raise HTTPException(status_code=404, detail="Crop nicht gefunden")
    return crop


@router.patch("/crops/{crop_id}", response_model=CropResponse)
def update_crop(crop_id: UUID, data: CropUpdate, db: DBSession, user_id: UserId):
    if not db.get(Crop, crop_id):
        raise HTTPException(status_code=404, detail="Crop nicht gefunden")
    try:
        crop = CropService(db).update_crop(crop_id, data.model_dump(exclude_unset=True), user_id=user_id)
        db.commit()
        db.refresh(crop)
        return crop
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/crops/{crop_id}/harvest", response_model=CropResponse)
def harvest_crop(crop_id: UUID, data: HarvestRequest, db: DBSession, user_id: UserId):
    if not db.get(Crop, crop_id):
        raise HTTPException(status_code=404, detail="Crop nicht gefunden")
    try:
        crop = CropService(db).record_harvest(
            crop_id, data.weight_grams, harvested_at=data.harvested_at, user_id=user_id
        )
        db.commit()
        db.refresh(crop)
        return crop
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/crops/{crop_id}/advance-batch", response_model=list[CropResponse])
def advance_batch(crop_id: UUID, db: DBSession, user_id: UserId, at: datetime | None = None):
    """Setzt alle Crops desselben Batches gemeinsam in die nächste Phase."""
    if not db.get(Crop, crop_id):
        raise HTTPException(status_code=404, detail="Crop nicht gefunden")
    try:
        crops = CropLifecycleService(db).advance_stage(crop_id, at=at, user_id=user_id)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    for crop in crops:
        db.refresh(crop)
    return crops


@router.post("/crops/{crop_id}/reset", response_model=CropResponse)
def reset_crop(crop_id: UUID, data: StageResetRequest, db: DBSession, user_id: UserId):
    if not db.get(Crop, crop_id):
        raise HTTPException(status_code=404, detail="Crop nicht gefunden")
    try:
        crop = CropLifecycleService(db).reset_to_stage(
            crop_id, data.stage_code, reason=data.reason, user_id=user_id
        )
        db.commit()
        db.refresh(crop)
        return crop
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/crops/{crop_id}/watering/suspend")
def suspend_watering(crop_id: UUID, db: DBSession):
    if not db.get(Crop, crop_id):
        raise HTTPException(status_code=404, detail="Crop nicht gefunden")
    affected = CropLifecycleService(db).suspend_watering(crop_id)
    db.commit()
    return {"affected": affected}


@router.post("/crops/{crop_id}/watering/resume")
def resume_watering(crop_id: UUID, db: DBSession):
    if not db.get(Crop, crop_id):
        raise HTTPException(status_code=404, detail="Crop nicht gefunden")
    affected = CropLifecycleService(db).resume_watering(crop_id)
    db.commit()
    return {"affected": affected}


@router.get("/crops/{crop_id}/time", response_model=CropTimeResponse)
def get_crop_time(crop_id: UUID, db: DBSession):
    """Alter in Phase und gesamt sowie Zeit bis zum nächsten Wechsel."""
    crop = db.get(Crop, crop_id)
    if not crop:
        raise HTTPException(status_code=404, detail="Crop nicht gefunden")
    return CropTimeCalculator(db).summary(crop)


@router.get("/crops/{crop_id}/tasks", response_model=list[CropTaskResponse])
def list_crop_tasks(crop_id: UUID, db: DBSession):
    if not db.get(Crop, crop_id):
        raise HTTPException(status_code=404, detail="Crop nicht gefunden")
    return CropTaskService(db).pending_tasks(crop_id)


@router.get("/crops/{crop_id}/history")
def get_stage_history(crop_id: UUID, db: DBSession):
    """Phasenverlauf eines Crops, älteste zuerst."""
    if not db.get(Crop, crop_id):
        raise HTTPException(status_code=404, detail="Crop nicht gefunden")
    entries = db.execute(
        select(CropStageHistory)
        .where(CropStageHistory.crop_id == crop_id)
        .order_by(CropStageHistory.changed_at)
    ).scalars().all()
    return [
        {
            "from_stage": entry.from_stage,
            "to_stage": entry.to_stage,
            "changed_at": entry.changed_at,
            "reason": entry.reason,
            "user_id": entry.user_id,
        }
        for entry in entries
    ]
