"""
Celery Tasks für Lagerverwaltung
"""
import logging

from sprout.celery_app import celery_app
from sprout.database import SessionLocal
from sprout.services.consumable_service import ConsumableService
from sprout.services.product_inventory_service import ProductInventoryService

logger = logging.getLogger(__name__)


@celery_app.task(name="sprout.tasks.inventory_tasks.cleanup_expired_reservations")
def cleanup_expired_reservations():
    """
    Storniert abgelaufene Reservierungen und gibt die Menge frei.
    Wird stündlich ausgeführt.
    """
    logger.info("Bereinige abgelaufene Reservierungen")

    db = SessionLocal()
    try:
        cancelled = ProductInventoryService(db).cleanup_expired_reservations()
        db.commit()
        return {"status": "success", "cancelled_count": cancelled}
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@celery_app.task(name="sprout.tasks.inventory_tasks.expire_inventory_batches")
def expire_inventory_batches():
    """
    Bucht Chargen mit überschrittenem MHD aus.
    Wird täglich um 3:00 ausgeführt.
    """
    logger.info("Prüfe Chargen auf überschrittenes MHD")

    db = SessionLocal()
    try:
        expired = ProductInventoryService(db).mark_expired_batches()
        db.commit()
        if expired:
            logger.warning(f"{expired} Chargen als abgelaufen ausgebucht")
        return {"status": "success", "expired_count": expired}
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@celery_app.task(name="sprout.tasks.inventory_tasks.check_low_stock")
def check_low_stock():
    """
    Prüft Verbrauchsmaterial und Fertigware auf Meldebestand.
    Wird täglich um 7:00 ausgeführt.
    """
    logger.info("Prüfe Lagerbestände")

    db = SessionLocal()
    try:
        alerts = []

        for consumable in ConsumableService(db).low_stock_items():
            alert = {
                "type": "VERBRAUCHSMATERIAL",
                "article_name": consumable.name,
                "current_quantity": float(consumable.current_balance),
                "min_quantity": float(consumable.restock_threshold),
                "unit": consumable.unit_code,
                "reorder_quantity": float(consumable.restock_quantity) if consumable.restock_quantity else None,
            }
            alerts.append(alert)
            logger.warning(
                f"Niedriger Bestand: {alert['article_name']} "
                f"({alert['current_quantity']}{alert['unit']} / min {alert['min_quantity']}{alert['unit']})"
            )

        for product in ProductInventoryService(db).low_stock_products():
            alert = {
                "type": "FERTIGWARE",
                "article_name": product.name,
                "article_number": product.sku,
                "current_quantity": float(product.available_stock),
                "min_quantity": float(product.reorder_threshold),
                "status": product.stock_status,
            }
            alerts.append(alert)
            logger.warning(
                f"Niedriger Fertigwaren-Bestand: {alert['article_name']} "
                f"({alert['current_quantity']} / min {alert['min_quantity']})"
            )

        return {
            "status": "success",
            "alerts_count": len(alerts),
            "alerts": alerts
        }

    finally:
        db.close()
