"""
Celery Tasks für den Anbau
"""
import logging

from sprout.celery_app import celery_app
from sprout.database import SessionLocal
from sprout.services.crop_tasks import CropTaskService

logger = logging.getLogger(__name__)


@celery_app.task(name="sprout.tasks.crop_tasks.process_due_crop_tasks")
def process_due_crop_tasks():
    """
    Führt fällige Phasenwechsel und Gießstopps aus.
    Wird alle 15 Minuten ausgeführt.
    """
    db = SessionLocal()
    try:
        result = CropTaskService(db).process_due_tasks()
        db.commit()
        if result["completed"] or result["skipped"]:
            logger.info(
                f"Anbau-Aufgaben: {result['completed']} erledigt, {result['skipped']} übersprungen"
            )
        return {"status": "success", **result}
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
