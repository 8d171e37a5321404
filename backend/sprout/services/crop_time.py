"""
Zeitberechnungen für Crops: Alter, Phasenalter und Zeit bis zum nächsten Wechsel
"""
from datetime import datetime, timedelta
from sqlalchemy.orm import Session

from sprout.models.crop import Crop
from sprout.models.lookup import CropStage

MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 1440
MINUTES_PER_WEEK = 10080


def format_duration(minutes: int) -> str:
    """
    Kompakte Dauer: 45m, 3h 20m, 2d 5h, 1w 3d
    """
    minutes = max(0, int(minutes))
    if minutes < MINUTES_PER_HOUR:
        return f"{minutes}m"
    if minutes < MINUTES_PER_DAY:
        hours, rest = divmod(minutes, MINUTES_PER_HOUR)
        return f"{hours}h {rest}m"
    if minutes < MINUTES_PER_WEEK:
        days, rest = divmod(minutes, MINUTES_PER_DAY)
        return f"{days}d {rest // MINUTES_PER_HOUR}h"
    weeks, rest = divmod(minutes, MINUTES_PER_WEEK)
    return f"{weeks}w {rest // MINUTES_PER_DAY}d"


def _minutes(delta: timedelta) -> int:
    return int(delta.total_seconds() // 60)


class CropTimeCalculator:
    """Zeitangaben für Anzeige und Planung"""

    READY = "Bereit zum Wechsel"
    IN_PROGRESS = "Läuft"
    HARVESTED = "Geerntet"

    def __init__(self, db: Session):
        self.db = db

    def stage_duration(self, crop: Crop, stage_code: str) -> timedelta | None:
        """Dauer einer Phase laut Rezept, sonst typische Dauer der Phase"""
        recipe = crop.recipe
        if stage_code == CropStage.SOAKING:
            hours = recipe.seed_soak_hours if recipe else 0
            return timedelta(hours=hours or 0)

        days = None
        if recipe is not None:
            days = {
                CropStage.GERMINATION: recipe.germination_days,
                CropStage.BLACKOUT: recipe.blackout_days,
                CropStage.LIGHT: recipe.light_days,
            }.get(stage_code)
        if not days:
            stage = CropStage.find_by_code(self.db, stage_code)
            days = stage.typical_duration_days if stage else None
        if days is None:
            return None
        return timedelta(days=float(days))

    def next_stage_at(self, crop: Crop) -> datetime | None:
        if crop.is_harvested:
            return None
        duration = self.stage_duration(crop, crop.current_stage)
        started = crop.stage_started_at
        if duration is None or started is None:
            return None
        return started + duration

    def stage_age_minutes(self, crop: Crop, now: datetime | None = None) -> int:
        started = crop.stage_started_at
        if started is None:
            return 0
        return max(0, _minutes((now or datetime.utcnow()) - started))

    def total_age_minutes(self, crop: Crop, now: datetime | None = None) -> int:
        return max(0, _minutes((now or datetime.utcnow()) - crop.planting_at))

    def time_to_next_stage(self, crop: Crop, now: datetime | None = None) -> dict:
        """
        {"minutes": int | None, "display": str, "status": str}
        Überfällige Crops liefern 0 Minuten und den Status 'Bereit zum Wechsel'.
        """
        now = now or datetime.utcnow()
        if crop.is_harvested:
            return {"minutes": None, "display": "-", "status": self.HARVESTED}

        next_at = self.next_stage_at(crop)
        if next_at is None:
            return {"minutes": None, "display": "-", "status": self.IN_PROGRESS}

        remaining = _minutes(next_at - now)
        if remaining <= 0:
            return {"minutes": 0, "display": self.READY, "status": self.READY}
        return {"minutes": remaining, "display": format_duration(remaining), "status": self.IN_PROGRESS}

    def status(self, crop: Crop, now: datetime | None = None) -> str:
        return self.time_to_next_stage(crop, now)["status"]

    def summary(self, crop: Crop, now: datetime | None = None) -> dict:
        now = now or datetime.utcnow()
        stage_age = self.stage_age_minutes(crop, now)
        total_age = self.total_age_minutes(crop, now)
        return {
            "stage_age_minutes": stage_age,
            "stage_age_display": format_duration(stage_age),
            "total_age_minutes": total_age,
            "total_age_display": format_duration(total_age),
            "time_to_next_stage": self.time_to_next_stage(crop, now),
        }
