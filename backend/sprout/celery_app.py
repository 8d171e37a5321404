"""
Celery Konfiguration für Background Tasks
"""
from celery import Celery
from celery.schedules import crontab
from sprout.config import get_settings

settings = get_settings()

celery_app = Celery(
    "sprout",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "sprout.tasks.inventory_tasks",
        "sprout.tasks.crop_tasks",
    ]
)

# Celery Konfiguration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Europe/Berlin",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 Minuten max
    worker_prefetch_multiplier=1,
)

# Scheduled Tasks (Celery Beat)
celery_app.conf.beat_schedule = {
    # ========== LAGER ==========
    # Stündliche Bereinigung abgelaufener Reservierungen
    "hourly-reservation-cleanup": {
        "task": "sprout.tasks.inventory_tasks.cleanup_expired_reservations",
        "schedule": crontab(minute=0),
    },
    # Tägliche Bestandsprüfung (7:00)
    "daily-low-stock-check": {
        "task": "sprout.tasks.inventory_tasks.check_low_stock",
        "schedule": crontab(hour=7, minute=0),
    },
    # Abgelaufene Chargen ausbuchen (3:00)
    "daily-batch-expiration": {
        "task": "sprout.tasks.inventory_tasks.expire_inventory_batches",
        "schedule": crontab(hour=3, minute=0),
    },
    # ========== ANBAU ==========
    # Fällige Phasenwechsel und Gießstopps (alle 15 Minuten)
    "crop-task-processing": {
        "task": "sprout.tasks.crop_tasks.process_due_crop_tasks",
        "schedule": crontab(minute="*/15"),
    },
}
