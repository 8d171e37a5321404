"""
Verbrauchsmaterial-Service - Bestandsführung über das Buchungsjournal

Jede Mengenänderung schreibt genau eine ConsumableTransaction und aktualisiert
den materialisierten Saldo in derselben Transaktion. Lese-Ändere-Schreibe
läuft immer auf einer gesperrten Zeile (SELECT ... FOR UPDATE) mit
Versionsspalte.
"""
import logging
from decimal import Decimal
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import select, func, case

from sprout.models.consumable import Consumable, ConsumableTransaction
from sprout.models.enums import (
    ConsumableTransactionType, ReferenceKind, CONSUMABLE_OUTBOUND_TYPES, CONSUMABLE_INBOUND_TYPES,
)
from sprout.models.lookup import ConsumableType, ConsumableUnit
from sprout.models.recipe import Recipe
from sprout.models.crop import Crop
from sprout.services.activity import changes_for, log_activity
from sprout.services.references import references
from sprout.services.units import convert_quantity

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


class ConsumableService:
    """Service für Verbrauchsmaterial-Bestände"""

    def __init__(self, db: Session):
        self.db = db

    # ========================================
    # STAMMDATEN
    # ========================================

    def create_consumable(
        self,
        name: str,
        type_code: str,
        unit_code: str,
        initial_stock: Decimal = ZERO,
        lot_no: str | None = None,
        quantity_per_unit: Decimal | None = None,
        restock_threshold: Decimal = ZERO,
        restock_quantity: Decimal = ZERO,
        cost_per_unit: Decimal | None = None,
        supplier_name: str | None = None,
        notes: str | None = None,
        user_id: str | None = None,
    ) -> Consumable:
        """
        Legt ein Verbrauchsmaterial an.
        Ein positiver Anfangsbestand wird als 'initial'-Buchung erfasst.
        """
        consumable_type = ConsumableType.find_by_code(self.db, type_code)
        if not consumable_type:
            raise ValueError(f"Verbrauchsmaterial-Typ nicht gefunden: {type_code}")
        consumable_unit = ConsumableUnit.find_by_code(self.db, unit_code)
        if not consumable_unit:
            raise ValueError(f"Einheit nicht gefunden: {unit_code}")

        consumable = Consumable(
            name=name,
            consumable_type=consumable_type,
            consumable_unit=consumable_unit,
            lot_no=lot_no,
            quantity_per_unit=quantity_per_unit,
            restock_threshold=_decimal(restock_threshold),
            restock_quantity=_decimal(restock_quantity),
            cost_per_unit=cost_per_unit,
            supplier_name=supplier_name,
            notes=notes,
            initial_stock=ZERO,
            consumed_quantity=ZERO,
            total_quantity=ZERO,
            current_balance=ZERO,
        )
        self.db.add(consumable)
        self.db.flush()

        initial_stock = _decimal(initial_stock)
        if initial_stock < 0:
            raise ValueError("Anfangsbestand darf nicht negativ sein")
        if initial_stock > 0:
            self._record(
                consumable,
                ConsumableTransactionType.INITIAL,
                initial_stock,
                notes="Anfangsbestand",
                user_id=user_id,
            )

        log_activity(
            self.db, log_name="inventory", action="created", subject=consumable,
            causer_id=user_id, description=f"Verbrauchsmaterial angelegt: {name}",
        )
        logger.info(f"Verbrauchsmaterial angelegt: {name} ({initial_stock}{unit_code})")
        return consumable

    def get_for_update(self, consumable_id: UUID) -> Consumable:
        """Lädt ein Verbrauchsmaterial mit Zeilensperre"""
        # populate_existing überschreibt ungespeicherte Änderungen
        self.db.flush()
        consumable = self.db.execute(
            select(Consumable)
            .where(Consumable.id == consumable_id)
            .with_for_update(of=Consumable)
            .execution_options(populate_existing=True)
        ).unique().scalar_one_or_none()
        if not consumable:
            raise ValueError("Verbrauchsmaterial nicht gefunden")
        return consumable

    def update_consumable(self, consumable_id: UUID, data: dict, user_id: str | None = None) -> Consumable:
        """
        Ändert Stammdaten. Mengen nur über Buchungen; eine geänderte
        Menge pro Einheit wird sofort in total_quantity übernommen.
        """
        consumable = self.get_for_update(consumable_id)
        for field, value in data.items():
            setattr(consumable, field, value)
        if "quantity_per_unit" in data:
            consumable.total_quantity = self._total_quantity(consumable)

        changes = changes_for(consumable)
        self.db.flush()
        if changes:
            log_activity(
                self.db, log_name="inventory", action="updated", subject=consumable,
                causer_id=user_id, changes=changes,
            )
        return consumable

    # ========================================
    # BUCHUNGEN
    # ========================================

    def deduct(
        self,
        consumable_id: UUID,
        amount: Decimal,
        unit: str | None = None,
        reference=None,
        notes: str | None = None,
        user_id: str | None = None,
    ) -> ConsumableTransaction:
        """
        Bucht einen Verbrauch. Die Menge wird in die Einheit des Materials
        umgerechnet; übersteigt sie den Bestand, wird nichts gebucht.
        """
        return self.record_consumption(
            consumable_id, amount, unit=unit, reference=reference, notes=notes, user_id=user_id
        )

    def add(
        self,
        consumable_id: UUID,
        amount: Decimal,
        unit: str | None = None,
        lot_no: str | None = None,
        notes: str | None = None,
        user_id: str | None = None,
    ) -> bool:
        """
        Bucht einen Zugang.
        Bei Saatgut mit abweichender Losnummer wird nichts gebucht und False
        geliefert - der Aufrufer muss ein neues Los anlegen.
        """
        consumable = self.get_for_update(consumable_id)
        normalized_lot = lot_no.strip().upper() if lot_no else None

        if consumable.is_seed and normalized_lot and consumable.lot_no and consumable.lot_no != normalized_lot:
            logger.info(
                f"Losnummer {normalized_lot} passt nicht zu {consumable.name} "
                f"(Los {consumable.lot_no}) - neues Los erforderlich"
            )
            return False

        quantity = self._normalize(consumable, amount, unit)
        if normalized_lot and not consumable.lot_no:
            consumable.lot_no = normalized_lot
        self._record(
            consumable, ConsumableTransactionType.ADDITION, quantity,
            notes=notes, user_id=user_id,
            metadata={"lot_no": normalized_lot} if normalized_lot else None,
        )
        return True

    def record_consumption(
        self,
        consumable_id: UUID,
        amount: Decimal,
        unit: str | None = None,
        reference=None,
        notes: str | None = None,
        user_id: str | None = None,
    ) -> ConsumableTransaction:
        return self._record_outbound(
            consumable_id, ConsumableTransactionType.CONSUMPTION, amount, unit,
            reference=reference, notes=notes, user_id=user_id,
        )

    def record_addition(
        self,
        consumable_id: UUID,
        amount: Decimal,
        unit: str | None = None,
        reference=None,
        notes: str | None = None,
        user_id: str | None = None,
    ) -> ConsumableTransaction:
        consumable = self.get_for_update(consumable_id)
        quantity = self._normalize(consumable, amount, unit)
        return self._record(
            consumable, ConsumableTransactionType.ADDITION, quantity,
            reference=reference, notes=notes, user_id=user_id,
        )

    def record_waste(
        self,
        consumable_id: UUID,
        amount: Decimal,
        unit: str | None = None,
        notes: str | None = None,
        user_id: str | None = None,
    ) -> ConsumableTransaction:
        return self._record_outbound(
            consumable_id, ConsumableTransactionType.WASTE, amount, unit,
            notes=notes, user_id=user_id,
        )

    def record_expiration(
        self,
        consumable_id: UUID,
        amount: Decimal,
        unit: str | None = None,
        notes: str | None = None,
        user_id: str | None = None,
    ) -> ConsumableTransaction:
        return self._record_outbound(
            consumable_id, ConsumableTransactionType.EXPIRATION, amount, unit,
            notes=notes, user_id=user_id,
        )

    def record_adjustment(
        self,
        consumable_id: UUID,
        quantity: Decimal,
        unit: str | None = None,
        notes: str | None = None,
        user_id: str | None = None,
    ) -> ConsumableTransaction:
        """Manuelle Korrektur; positives Vorzeichen = Zugang, negatives = Abgang"""
        quantity = _decimal(quantity)
        if quantity == 0:
            raise ValueError("Korrekturmenge darf nicht 0 sein")

        consumable = self.get_for_update(consumable_id)
        magnitude = self._normalize(consumable, abs(quantity), unit)
        signed = magnitude if quantity > 0 else -magnitude
        if signed < 0:
            self._ensure_available(consumable, magnitude)
        return self._record(
            consumable, ConsumableTransactionType.ADJUSTMENT, signed,
            notes=notes or "Manuelle Korrektur", user_id=user_id,
        )

    def transfer(
        self,
        source_id: UUID,
        target_id: UUID,
        amount: Decimal,
        unit: str | None = None,
        notes: str | None = None,
        user_id: str | None = None,
    ) -> tuple[ConsumableTransaction, ConsumableTransaction]:
        """Umlagerung zwischen zwei Materialien (z.B. Lose desselben Saatguts)"""
        if source_id == target_id:
            raise ValueError("Quelle und Ziel der Umlagerung sind identisch")

        # Sperren immer in derselben Reihenfolge holen
        locked = {cid: self.get_for_update(cid) for cid in sorted([source_id, target_id], key=str)}
        source, target = locked[source_id], locked[target_id]

        outgoing = self._normalize(source, amount, unit)
        self._ensure_available(source, outgoing)
        incoming = convert_quantity(outgoing, source.unit_code, target.unit_code)

        out_tx = self._record(
            source, ConsumableTransactionType.TRANSFER_OUT, -outgoing,
            reference=target, notes=notes, user_id=user_id,
        )
        in_tx = self._record(
            target, ConsumableTransactionType.TRANSFER_IN, incoming,
            reference=source, notes=notes, user_id=user_id,
        )
        return out_tx, in_tx

    # ========================================
    # AUSWERTUNG
    # ========================================

    def stock_from_transactions(self, consumable_id: UUID) -> Decimal:
        """Bestand als Summe aller Buchungen"""
        total = self.db.execute(
            select(func.coalesce(func.sum(ConsumableTransaction.quantity), 0))
            .where(ConsumableTransaction.consumable_id == consumable_id)
        ).scalar_one()
        return _decimal(total)

    def reconcile(self, consumable_id: UUID) -> Decimal:
        """
        Berechnet alle abgeleiteten Mengenfelder neu aus dem Journal.
        Liefert die korrigierte Abweichung des Saldos (0 = konsistent).
        """
        consumable = self.get_for_update(consumable_id)
        inbound, outbound = self.db.execute(
            select(
                func.coalesce(func.sum(case((ConsumableTransaction.quantity > 0, ConsumableTransaction.quantity), else_=0)), 0),
                func.coalesce(func.sum(case((ConsumableTransaction.quantity < 0, -ConsumableTransaction.quantity), else_=0)), 0),
            ).where(ConsumableTransaction.consumable_id == consumable_id)
        ).one()

        previous = consumable.current_balance or ZERO
        previous_total = consumable.total_quantity or ZERO
        consumable.initial_stock = _decimal(inbound)
        consumable.consumed_quantity = _decimal(outbound)
        consumable.current_balance = consumable.initial_stock - consumable.consumed_quantity
        consumable.total_quantity = self._total_quantity(consumable)

        drift = consumable.current_balance - previous
        if drift != 0:
            logger.warning(f"Bestandsabweichung bei {consumable.name} korrigiert: {drift}")
        if consumable.total_quantity != previous_total:
            logger.warning(
                f"Gesamtmenge bei {consumable.name} korrigiert: {previous_total} → {consumable.total_quantity}"
            )
        return drift

    def transaction_history(self, consumable_id: UUID, limit: int | None = None) -> list[ConsumableTransaction]:
        """Buchungen, neueste zuerst"""
        query = (
            select(ConsumableTransaction)
            .where(ConsumableTransaction.consumable_id == consumable_id)
            .order_by(ConsumableTransaction.created_at.desc(), ConsumableTransaction.sequence.desc())
        )
        if limit:
            query = query.limit(limit)
        return list(self.db.execute(query).scalars().all())

    def low_stock_items(self, limit: int | None = None) -> list[Consumable]:
        """Aktive Materialien am/unter Meldebestand, kritischste zuerst"""
        query = (
            select(Consumable)
            .where(
                Consumable.is_active == True,
                Consumable.current_balance <= Consumable.restock_threshold,
            )
            .order_by(
                (Consumable.current_balance / func.nullif(Consumable.restock_threshold, 0)).asc()
            )
        )
        if limit:
            query = query.limit(limit)
        return list(self.db.execute(query).unique().scalars().all())

    # ========================================
    # SAATGUT FÜR ANBAU
    # ========================================

    def check_seed_availability(self, recipe_id: UUID, tray_count: int = 1) -> dict:
        """Prüft, ob genug Saatgut für tray_count Trays vorhanden ist"""
        recipe = self.db.get(Recipe, recipe_id)
        if not recipe:
            return {"can_create": False, "message": "Rezept nicht gefunden", "required": ZERO, "available": ZERO}
        if not recipe.seed_density_grams_per_tray:
            return {
                "can_create": False,
                "message": "Rezept hat keine Saatdichte hinterlegt",
                "required": ZERO,
                "available": ZERO,
            }

        required = _decimal(recipe.seed_density_grams_per_tray) * tray_count
        seed = recipe.seed_consumable
        if not seed:
            return {
                "can_create": False,
                "message": "Rezept hat kein Saatgut verknüpft",
                "required": required,
                "available": ZERO,
            }

        available = convert_quantity(seed.current_stock, seed.unit_code, "g")
        if available >= required:
            message = "Ausreichend Saatgut verfügbar"
        else:
            message = f"Nicht genug Saatgut: benötigt {required}g, verfügbar {available}g"
        return {
            "can_create": available >= required,
            "message": message,
            "required": required,
            "available": available,
        }

    def deduct_seed_for_crop(self, crop: Crop) -> bool:
        """
        Bucht das Saatgut für einen neuen Crop aus.
        False, wenn Rezept oder Saatdichte fehlen; ValueError bei zu wenig Bestand.
        """
        recipe = crop.recipe or self.db.get(Recipe, crop.recipe_id)
        if not recipe or not recipe.seed_density_grams_per_tray or not recipe.seed_consumable_id:
            logger.warning(f"Saatgut-Abbuchung nicht möglich: Rezept oder Saatdichte fehlt (Crop {crop.id})")
            return False

        required = _decimal(recipe.seed_density_grams_per_tray) * (crop.tray_count or 1)
        self.deduct(
            recipe.seed_consumable_id,
            required,
            unit="g",
            reference=crop,
            notes=f"Aussaat Tray {crop.tray_number or '-'}",
        )
        return True

    # ========================================
    # INTERN
    # ========================================

    def _record_outbound(
        self,
        consumable_id: UUID,
        transaction_type: ConsumableTransactionType,
        amount: Decimal,
        unit: str | None,
        reference=None,
        notes: str | None = None,
        user_id: str | None = None,
    ) -> ConsumableTransaction:
        consumable = self.get_for_update(consumable_id)
        quantity = self._normalize(consumable, amount, unit)
        self._ensure_available(consumable, quantity)
        return self._record(
            consumable, transaction_type, -quantity,
            reference=reference, notes=notes, user_id=user_id,
        )

    def _normalize(self, consumable: Consumable, amount: Decimal, unit: str | None) -> Decimal:
        amount = _decimal(amount)
        if amount <= 0:
            raise ValueError("Menge muss größer als 0 sein")
        return convert_quantity(amount, unit, consumable.unit_code)

    def _ensure_available(self, consumable: Consumable, quantity: Decimal) -> None:
        if quantity > consumable.current_stock:
            raise ValueError(
                f"Nicht genug Bestand für {consumable.name}. "
                f"Verfügbar: {consumable.current_stock}{consumable.unit_code}, "
                f"Angefordert: {quantity}{consumable.unit_code}"
            )

    def _total_quantity(self, consumable: Consumable) -> Decimal:
        if consumable.is_seed or not consumable.quantity_per_unit:
            return consumable.current_balance
        return consumable.current_balance * consumable.quantity_per_unit

    def _next_sequence(self, consumable: Consumable) -> int:
        current = self.db.execute(
            select(func.max(ConsumableTransaction.sequence))
            .where(ConsumableTransaction.consumable_id == consumable.id)
        ).scalar()
        return (current or 0) + 1

    def _record(
        self,
        consumable: Consumable,
        transaction_type: ConsumableTransactionType,
        quantity: Decimal,
        reference=None,
        notes: str | None = None,
        user_id: str | None = None,
        metadata: dict | None = None,
    ) -> ConsumableTransaction:
        """Schreibt eine Buchung und aktualisiert den materialisierten Saldo"""
        if transaction_type in CONSUMABLE_OUTBOUND_TYPES:
            quantity = -abs(quantity)
        elif transaction_type in CONSUMABLE_INBOUND_TYPES:
            quantity = abs(quantity)

        balance_after = (consumable.current_balance or ZERO) + quantity
        if balance_after < 0:
            raise ValueError(
                f"Buchung würde den Bestand von {consumable.name} negativ machen ({balance_after})"
            )

        reference_kind: ReferenceKind | None = None
        reference_id = None
        if reference is not None:
            reference_kind = references.kind_for(reference)
            reference_id = reference.id

        transaction = ConsumableTransaction(
            consumable_id=consumable.id,
            sequence=self._next_sequence(consumable),
            type=transaction_type,
            quantity=quantity,
            balance_after=balance_after,
            reference_kind=reference_kind,
            reference_id=reference_id,
            user_id=user_id,
            notes=notes,
            extra=metadata,
        )
        self.db.add(transaction)

        if quantity > 0:
            consumable.initial_stock = (consumable.initial_stock or ZERO) + quantity
        else:
            consumable.consumed_quantity = (consumable.consumed_quantity or ZERO) - quantity
        consumable.current_balance = balance_after
        consumable.total_quantity = self._total_quantity(consumable)
        self.db.flush()

        log_activity(
            self.db, log_name="inventory", action=transaction_type.value, subject=consumable,
            causer_id=user_id,
            description=f"{transaction_type.label}: {quantity}{consumable.unit_code or ''}",
            changes={"quantity": str(quantity), "balance_after": str(balance_after)},
        )
        logger.info(
            f"Buchung {transaction_type.value} für {consumable.name}: "
            f"{quantity} → Saldo {balance_after}"
        )
        return transaction
