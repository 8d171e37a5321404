# Celery Tasks
from sprout.tasks import inventory_tasks
from sprout.tasks import crop_tasks

__all__ = [
    "inventory_tasks",
    "crop_tasks",
]
