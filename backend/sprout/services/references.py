"""
Bezugsobjekte von Lagerbuchungen.

Eine Buchung speichert (reference_kind, reference_id). Die Auflösung zum
ORM-Objekt läuft über eine explizite Registry statt über Klassennamen.
"""
from uuid import UUID
from sqlalchemy.orm import Session

from sprout.models.enums import ReferenceKind


class ReferenceRegistry:
    """
    Zuordnung ReferenceKind → Model-Klasse.

    - register() lehnt doppelte Registrierung ab (ValueError)
    - get() wirft KeyError für nicht registrierte Arten
    - resolve() liefert das Objekt oder None
    """

    def __init__(self) -> None:
        self._models: dict[ReferenceKind, type] = {}

    def register(self, kind: ReferenceKind, model: type) -> None:
        if kind in self._models:
            raise ValueError(f"Bezugsart '{kind.value}' ist bereits registriert")
        self._models[kind] = model

    def get(self, kind: ReferenceKind) -> type:
        try:
            return self._models[ReferenceKind(kind)]
        except (KeyError, ValueError):
            raise KeyError(
                f"Keine Bezugsart '{kind}' registriert. "
                f"Verfügbar: {sorted(k.value for k in self._models)}"
            ) from None

    def kinds(self) -> tuple[ReferenceKind, ...]:
        return tuple(sorted(self._models, key=lambda k: k.value))

    def resolve(self, db: Session, kind: ReferenceKind | None, reference_id: UUID | None):
        if kind is None or reference_id is None:
            return None
        return db.get(self.get(kind), reference_id)

    def kind_for(self, obj) -> ReferenceKind:
        """Bezugsart eines Model-Objekts"""
        for kind, model in self._models.items():
            if isinstance(obj, model):
                return kind
        raise KeyError(f"Keine Bezugsart für {type(obj).__name__} registriert")


def default_reference_registry() -> ReferenceRegistry:
    """Registry mit allen Bezugsarten des Systems"""
    from sprout.models import Order, OrderItem, Crop, CropPlan, Recipe, Product, Consumable

    registry = ReferenceRegistry()
    registry.register(ReferenceKind.ORDER, Order)
    registry.register(ReferenceKind.ORDER_ITEM, OrderItem)
    registry.register(ReferenceKind.CROP, Crop)
    registry.register(ReferenceKind.CROP_PLAN, CropPlan)
    registry.register(ReferenceKind.RECIPE, Recipe)
    registry.register(ReferenceKind.PRODUCT, Product)
    registry.register(ReferenceKind.CONSUMABLE, Consumable)
    return registry


references = default_reference_registry()


def resolve_reference(db: Session, transaction):
    """Löst den Bezug einer Consumable- oder Inventory-Buchung auf"""
    return references.resolve(db, transaction.reference_kind, transaction.reference_id)
