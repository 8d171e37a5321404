"""
Fertigwaren-Service - Chargen, Buchungsjournal und Reservierungen

Jede Mengenänderung an einer Charge erzeugt eine InventoryTransaction.
Nach jeder Änderung werden die Produktsummen neu berechnet - in derselben
Transaktion und unter Sperre der Produktzeile.
"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import select, func

from sprout.config import get_settings
from sprout.models.enums import InventoryTransactionType, ProductInventoryStatus, ReferenceKind
from sprout.models.inventory import ProductInventory, InventoryTransaction, InventoryReservation
from sprout.models.lookup import ProductStockStatus, InventoryReservationStatus
from sprout.models.product import Product
from sprout.services.activity import log_activity
from sprout.services.references import references

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Buchungsarten, die nur die Reservierung betreffen, nicht die Chargenmenge
RESERVATION_TYPES = (InventoryTransactionType.RESERVATION, InventoryTransactionType.RELEASE)


def _positive(quantity) -> Decimal:
    quantity = quantity if isinstance(quantity, Decimal) else Decimal(str(quantity))
    if quantity <= 0:
        raise ValueError("Menge muss größer als 0 sein")
    return quantity


class ProductInventoryService:
    """Service für Fertigwaren-Chargen und Reservierungen"""

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    # ========================================
    # CHARGEN
    # ========================================

    def create_batch(
        self,
        product_id: UUID,
        quantity: Decimal,
        cost_per_unit: Decimal | None = None,
        batch_number: str | None = None,
        lot_number: str | None = None,
        production_date: date | None = None,
        expiration_date: date | None = None,
        location: str | None = None,
        notes: str | None = None,
        transaction_type: InventoryTransactionType = InventoryTransactionType.PRODUCTION,
        reference=None,
        user_id: str | None = None,
    ) -> ProductInventory:
        """
        Legt eine neue Charge an und bucht die Anfangsmenge.
        Chargennummer-Format: {SKU}-{YYYYMMDD}-{NNN}
        """
        product = self._lock_product(product_id)
        quantity = quantity if isinstance(quantity, Decimal) else Decimal(str(quantity))
        if quantity < 0:
            raise ValueError("Menge darf nicht negativ sein")

        production_date = production_date or date.today()
        if not batch_number:
            count = self.db.execute(
                select(func.count(ProductInventory.id)).where(ProductInventory.product_id == product_id)
            ).scalar() or 0
            batch_number = f"{product.sku}-{production_date.strftime('%Y%m%d')}-{count + 1:03d}"

        batch = ProductInventory(
            product_id=product_id,
            batch_number=batch_number,
            lot_number=lot_number,
            quantity=ZERO,
            reserved_quantity=ZERO,
            cost_per_unit=cost_per_unit,
            production_date=production_date,
            expiration_date=expiration_date,
            location=location,
            status=ProductInventoryStatus.ACTIVE,
            notes=notes,
        )
        self.db.add(batch)
        self.db.flush()

        if quantity > 0:
            self._record(
                batch, transaction_type, quantity,
                reference=reference, notes="Anfangsbestand der Charge", user_id=user_id,
            )

        self.update_product_totals(product_id)
        logger.info(f"Charge {batch_number} angelegt: {quantity} Stück von {product.sku}")
        return batch

    def get_batch_for_update(self, batch_id: UUID) -> ProductInventory:
        """Lädt eine Charge mit Zeilensperre"""
        self.db.flush()
        batch = self.db.execute(
            select(ProductInventory)
            .where(ProductInventory.id == batch_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not batch:
            raise ValueError("Charge nicht gefunden")
        return batch

    def add_stock(
        self,
        batch_id: UUID,
        quantity: Decimal,
        transaction_type: InventoryTransactionType = InventoryTransactionType.ADJUSTMENT,
        unit_cost: Decimal | None = None,
        reference=None,
        notes: str | None = None,
        user_id: str | None = None,
    ) -> InventoryTransaction:
        """Erhöht die Chargenmenge"""
        quantity = _positive(quantity)
        batch = self.get_batch_for_update(batch_id)

        transaction = self._record(
            batch, transaction_type, quantity,
            unit_cost=unit_cost, reference=reference, notes=notes, user_id=user_id,
        )
        if batch.status == ProductInventoryStatus.DEPLETED:
            batch.status = ProductInventoryStatus.ACTIVE

        self.update_product_totals(batch.product_id)
        return transaction

    def remove_stock(
        self,
        batch_id: UUID,
        quantity: Decimal,
        transaction_type: InventoryTransactionType = InventoryTransactionType.ADJUSTMENT,
        reference=None,
        notes: str | None = None,
        user_id: str | None = None,
    ) -> InventoryTransaction:
        """
        Verringert die Chargenmenge. Reservierte Mengen sind nicht verfügbar.
        Eine leere Charge wird als 'depleted' markiert.
        """
        quantity = _positive(quantity)
        batch = self.get_batch_for_update(batch_id)
        self._ensure_available(batch, quantity)

        transaction = self._record(
            batch, transaction_type, -quantity,
            reference=reference, notes=notes, user_id=user_id,
        )
        if batch.quantity <= 0:
            batch.status = ProductInventoryStatus.DEPLETED

        self.update_product_totals(batch.product_id)
        return transaction

    def delete_batch(self, batch_id: UUID) -> None:
        """Löscht eine leere Charge ohne Reservierungen"""
        batch = self.get_batch_for_update(batch_id)
        if (batch.quantity or ZERO) != 0 or (batch.reserved_quantity or ZERO) != 0:
            raise ValueError(
                "Charge mit Bestand oder Reservierungen kann nicht gelöscht werden."
            )

        product_id = batch.product_id
        log_activity(
            self.db, log_name="inventory", action="deleted", subject=batch,
            description=f"Charge {batch.batch_number} gelöscht",
        )
        self.db.delete(batch)
        self.db.flush()
        self.update_product_totals(product_id)
        logger.info(f"Charge {batch.batch_number} gelöscht")

    def mark_expired_batches(self, today: date | None = None) -> int:
        """
        Markiert aktive Chargen mit überschrittenem MHD als abgelaufen.
        Offene Reservierungen werden storniert, die Restmenge ausgebucht.
        """
        today = today or date.today()
        batch_ids = self.db.execute(
            select(ProductInventory.id).where(
                ProductInventory.status == ProductInventoryStatus.ACTIVE,
                ProductInventory.expiration_date < today,
            )
        ).scalars().all()

        for batch_id in batch_ids:
            holding = self.db.execute(
                select(InventoryReservation.id).where(
                    InventoryReservation.product_inventory_id == batch_id,
                    InventoryReservation.status.in_(InventoryReservationStatus.HOLDING),
                )
            ).scalars().all()
            for reservation_id in holding:
                self.cancel_reservation(reservation_id, reason="Charge abgelaufen")

            batch = self.get_batch_for_update(batch_id)
            if batch.quantity > 0:
                self._record(
                    batch, InventoryTransactionType.EXPIRATION, -batch.quantity,
                    notes=f"MHD {batch.expiration_date} überschritten",
                )
            batch.status = ProductInventoryStatus.EXPIRED
            self.update_product_totals(batch.product_id)
            logger.info(f"Charge {batch.batch_number} als abgelaufen markiert")

        return len(batch_ids)

    # ========================================
    # RESERVIERUNGEN
    # ========================================

    def reserve_stock(
        self,
        batch_id: UUID,
        quantity: Decimal,
        order_id: UUID | None = None,
        order_item_id: UUID | None = None,
        expires_at: datetime | None = None,
        notes: str | None = None,
        user_id: str | None = None,
    ) -> InventoryReservation:
        """
        Reserviert eine Teilmenge einer Charge.
        Die Reservierung ist zunächst 'pending' und läuft nach
        reservation_ttl_hours ab, falls kein Ablauf angegeben ist.
        """
        quantity = _positive(quantity)
        batch = self.get_batch_for_update(batch_id)
        if batch.status != ProductInventoryStatus.ACTIVE:
            raise ValueError(f"Charge {batch.batch_number} ist nicht aktiv ({batch.status.value})")
        self._ensure_available(batch, quantity)

        batch.reserved_quantity = (batch.reserved_quantity or ZERO) + quantity
        reservation = InventoryReservation(
            product_inventory_id=batch.id,
            product_id=batch.product_id,
            order_id=order_id,
            order_item_id=order_item_id,
            quantity=quantity,
            status=InventoryReservationStatus.PENDING,
            expires_at=expires_at or datetime.utcnow() + timedelta(hours=self.settings.reservation_ttl_hours),
            notes=notes,
        )
        self.db.add(reservation)

        self._record(
            batch, InventoryTransactionType.RESERVATION, quantity,
            reference_kind=ReferenceKind.ORDER if order_id else None,
            reference_id=order_id,
            notes=notes or "Reservierung",
            user_id=user_id,
        )
        self.update_product_totals(batch.product_id)
        return reservation

    def release_reservation(
        self,
        batch_id: UUID,
        quantity: Decimal,
        reason: str | None = None,
        reference_id: UUID | None = None,
        user_id: str | None = None,
    ) -> InventoryTransaction:
        """Gibt reservierte Menge frei (nie unter 0)"""
        quantity = _positive(quantity)
        batch = self.get_batch_for_update(batch_id)
        batch.reserved_quantity = max(ZERO, (batch.reserved_quantity or ZERO) - quantity)

        transaction = self._record(
            batch, InventoryTransactionType.RELEASE, -quantity,
            reference_kind=ReferenceKind.ORDER if reference_id else None,
            reference_id=reference_id,
            notes=reason or "Reservierung freigegeben",
            user_id=user_id,
        )
        self.update_product_totals(batch.product_id)
        return transaction

    def get_reservation(self, reservation_id: UUID) -> InventoryReservation:
        reservation = self.db.get(InventoryReservation, reservation_id)
        if not reservation:
            raise ValueError("Reservierung nicht gefunden")
        return reservation

    def confirm_reservation(self, reservation_id: UUID) -> InventoryReservation:
        reservation = self.get_reservation(reservation_id)
        if reservation.status != InventoryReservationStatus.PENDING:
            raise ValueError(
                f"Nur offene Reservierungen können bestätigt werden (Status: {reservation.status})"
            )
        reservation.status = InventoryReservationStatus.CONFIRMED
        log_activity(
            self.db, log_name="inventory", action="reservation_confirmed", subject=reservation,
            description=f"Reservierung über {reservation.quantity} bestätigt",
        )
        self.db.flush()
        return reservation

    def fulfill_reservation(self, reservation_id: UUID, user_id: str | None = None) -> InventoryReservation:
        """
        Erfüllt eine aktive Reservierung: reservierte Menge und Chargenmenge
        sinken um die Reservierungsmenge, gebucht wird ein Verkauf.
        """
        reservation = self.get_reservation(reservation_id)
        if not reservation.is_active:
            raise ValueError(
                f"Reservierung ist nicht aktiv (Status: {reservation.status})"
            )

        batch = self.get_batch_for_update(reservation.product_inventory_id)
        if reservation.quantity > batch.quantity:
            raise ValueError(
                f"Nicht genug Bestand verfügbar. Verfügbar: {batch.quantity}, "
                f"Angefordert: {reservation.quantity}"
            )

        batch.reserved_quantity = max(ZERO, (batch.reserved_quantity or ZERO) - reservation.quantity)
        self._record(
            batch, InventoryTransactionType.SALE, -reservation.quantity,
            reference_kind=ReferenceKind.ORDER if reservation.order_id else None,
            reference_id=reservation.order_id,
            notes="Reservierung erfüllt",
            user_id=user_id,
        )
        if batch.quantity <= 0:
            batch.status = ProductInventoryStatus.DEPLETED

        reservation.status = InventoryReservationStatus.FULFILLED
        reservation.fulfilled_at = datetime.utcnow()
        self.update_product_totals(batch.product_id)
        return reservation

    def cancel_reservation(
        self, reservation_id: UUID, reason: str | None = None, user_id: str | None = None
    ) -> InventoryReservation:
        """Storniert eine Reservierung und gibt gebundene Menge frei"""
        reservation = self.get_reservation(reservation_id)
        if reservation.status == InventoryReservationStatus.FULFILLED:
            raise ValueError("Erfüllte Reservierungen können nicht storniert werden.")
        if reservation.status == InventoryReservationStatus.CANCELLED:
            return reservation

        self.release_reservation(
            reservation.product_inventory_id, reservation.quantity,
            reason=reason or "Reservierung storniert",
            reference_id=reservation.order_id,
            user_id=user_id,
        )
        reservation.status = InventoryReservationStatus.CANCELLED
        reservation.cancelled_at = datetime.utcnow()
        if reason:
            reservation.notes = f"{reservation.notes}\n{reason}" if reservation.notes else reason
        self.db.flush()
        logger.info(f"Reservierung {reservation.id} storniert: {reason or '-'}")
        return reservation

    def delete_reservation(self, reservation_id: UUID) -> None:
        reservation = self.get_reservation(reservation_id)
        if reservation.holds_inventory:
            self.release_reservation(
                reservation.product_inventory_id, reservation.quantity,
                reason="Reservierung gelöscht", reference_id=reservation.order_id,
            )
        self.db.delete(reservation)
        self.db.flush()

    def cleanup_expired_reservations(self, now: datetime | None = None) -> int:
        """Storniert abgelaufene offene/bestätigte Reservierungen"""
        now = now or datetime.utcnow()
        expired_ids = self.db.execute(
            select(InventoryReservation.id).where(
                InventoryReservation.status.in_(InventoryReservationStatus.HOLDING),
                InventoryReservation.expires_at < now,
            )
        ).scalars().all()

        for reservation_id in expired_ids:
            self.cancel_reservation(reservation_id, reason="Reservierung abgelaufen")

        if expired_ids:
            logger.info(f"{len(expired_ids)} abgelaufene Reservierungen storniert")
        return len(expired_ids)

    def reserve_for_order_item(
        self,
        product_id: UUID,
        quantity: Decimal,
        order_id: UUID,
        order_item_id: UUID | None = None,
        expires_at: datetime | None = None,
    ) -> list[InventoryReservation]:
        """
        Verteilt eine Reservierung auf verfügbare Chargen, kürzestes MHD zuerst.
        Reicht der Gesamtbestand nicht, wird nichts reserviert.
        """
        quantity = _positive(quantity)
        product = self._lock_product(product_id)
        batches = self.available_batches(product_id)

        available = sum((batch.available_quantity for batch in batches), ZERO)
        if available < quantity:
            raise ValueError(
                f"Nicht genug Bestand für {product.name}. "
                f"Verfügbar: {available}, Angefordert: {quantity}"
            )

        reservations = []
        remaining = quantity
        for batch in batches:
            if remaining <= 0:
                break
            take = min(remaining, batch.available_quantity)
            reservations.append(
                self.reserve_stock(
                    batch.id, take, order_id=order_id, order_item_id=order_item_id,
                    expires_at=expires_at,
                )
            )
            remaining -= take
        return reservations

    # ========================================
    # PRODUKTSUMMEN
    # ========================================

    def update_product_totals(self, product_id: UUID) -> Product:
        """
        Berechnet total_stock, reserved_stock und stock_status aus allen
        aktiven Chargen. Ausgelistete Produkte behalten ihren Status.
        """
        product = self._lock_product(product_id)
        total, reserved = self.db.execute(
            select(
                func.coalesce(func.sum(ProductInventory.quantity), 0),
                func.coalesce(func.sum(ProductInventory.reserved_quantity), 0),
            ).where(
                ProductInventory.product_id == product_id,
                ProductInventory.status == ProductInventoryStatus.ACTIVE,
            )
        ).one()

        product.total_stock = Decimal(str(total))
        product.reserved_stock = Decimal(str(reserved))

        if not product.is_discontinued:
            available = product.available_stock
            if available <= 0:
                product.stock_status = ProductStockStatus.OUT_OF_STOCK
            elif available <= (product.reorder_threshold or ZERO):
                product.stock_status = ProductStockStatus.LOW_STOCK
            else:
                product.stock_status = ProductStockStatus.IN_STOCK

        self.db.flush()
        return product

    # ========================================
    # ABFRAGEN
    # ========================================

    def available_batches(self, product_id: UUID | None = None) -> list[ProductInventory]:
        """Aktive Chargen mit freier Menge, kürzestes MHD zuerst (ohne MHD zuletzt)"""
        query = select(ProductInventory).where(
            ProductInventory.status == ProductInventoryStatus.ACTIVE,
            ProductInventory.quantity - ProductInventory.reserved_quantity > 0,
        )
        if product_id:
            query = query.where(ProductInventory.product_id == product_id)
        query = query.order_by(
            ProductInventory.expiration_date.is_(None),
            ProductInventory.expiration_date,
            ProductInventory.production_date.is_(None),
            ProductInventory.production_date,
        )
        return list(self.db.execute(query).scalars().all())

    def expiring_soon(self, days: int | None = None, today: date | None = None) -> list[ProductInventory]:
        today = today or date.today()
        days = self.settings.expiring_soon_days if days is None else days
        return list(self.db.execute(
            select(ProductInventory).where(
                ProductInventory.status == ProductInventoryStatus.ACTIVE,
                ProductInventory.expiration_date >= today,
                ProductInventory.expiration_date <= today + timedelta(days=days),
            ).order_by(ProductInventory.expiration_date)
        ).scalars().all())

    def expired_batches(self, today: date | None = None) -> list[ProductInventory]:
        today = today or date.today()
        return list(self.db.execute(
            select(ProductInventory).where(
                ProductInventory.expiration_date < today,
            ).order_by(ProductInventory.expiration_date)
        ).scalars().all())

    def low_stock_products(self) -> list[Product]:
        return list(self.db.execute(
            select(Product).where(
                Product.is_active == True,
                Product.stock_status.in_([ProductStockStatus.LOW_STOCK, ProductStockStatus.OUT_OF_STOCK]),
            ).order_by(Product.name)
        ).scalars().all())

    def transaction_history(self, batch_id: UUID) -> list[InventoryTransaction]:
        return list(self.db.execute(
            select(InventoryTransaction)
            .where(InventoryTransaction.product_inventory_id == batch_id)
            .order_by(InventoryTransaction.created_at.desc())
        ).scalars().all())

    # ========================================
    # INTERN
    # ========================================

    def _lock_product(self, product_id: UUID) -> Product:
        self.db.flush()
        product = self.db.execute(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not product:
            raise ValueError("Produkt nicht gefunden")
        return product

    def _ensure_available(self, batch: ProductInventory, quantity: Decimal) -> None:
        if quantity > batch.available_quantity:
            raise ValueError(
                f"Nicht genug Bestand verfügbar. Verfügbar: {batch.available_quantity}, "
                f"Angefordert: {quantity}"
            )

    def _record(
        self,
        batch: ProductInventory,
        transaction_type: InventoryTransactionType,
        quantity: Decimal,
        unit_cost: Decimal | None = None,
        reference=None,
        reference_kind: ReferenceKind | None = None,
        reference_id: UUID | None = None,
        notes: str | None = None,
        user_id: str | None = None,
        metadata: dict | None = None,
    ) -> InventoryTransaction:
        """Schreibt eine Buchung; Reservierungsbuchungen ändern die Chargenmenge nicht"""
        if transaction_type not in RESERVATION_TYPES:
            new_quantity = (batch.quantity or ZERO) + quantity
            if new_quantity < 0:
                raise ValueError(
                    f"Buchung würde den Bestand der Charge {batch.batch_number} negativ machen"
                )
            batch.quantity = new_quantity

        if reference is not None:
            reference_kind = references.kind_for(reference)
            reference_id = reference.id

        unit_cost = unit_cost if unit_cost is not None else batch.cost_per_unit
        transaction = InventoryTransaction(
            product_inventory_id=batch.id,
            product_id=batch.product_id,
            type=transaction_type,
            quantity=quantity,
            balance_after=batch.quantity,
            unit_cost=unit_cost,
            total_cost=abs(quantity) * unit_cost if unit_cost is not None else None,
            reference_kind=reference_kind,
            reference_id=reference_id,
            user_id=user_id,
            notes=notes,
            extra=metadata,
        )
        self.db.add(transaction)
        self.db.flush()

        log_activity(
            self.db, log_name="inventory", action=transaction_type.value, subject=batch,
            causer_id=user_id,
            description=f"{transaction_type.value}: {quantity} (Charge {batch.batch_number})",
            changes={"quantity": str(quantity), "balance_after": str(batch.quantity)},
        )
        logger.info(
            f"Buchung {transaction_type.value} für Charge {batch.batch_number}: "
            f"{quantity} → Menge {batch.quantity}, reserviert {batch.reserved_quantity}"
        )
        return transaction
