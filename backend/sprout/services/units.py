"""
Feste Umrechnungstabelle für Verbrauchsmaterial-Mengen
"""
from decimal import Decimal

from sprout.models.enums import UnitCategory

# Einheit → (Kategorie, Faktor zur Basiseinheit)
UNIT_FACTORS: dict[str, tuple[UnitCategory, Decimal]] = {
    "g": (UnitCategory.WEIGHT, Decimal("1")),
    "kg": (UnitCategory.WEIGHT, Decimal("1000")),
    "oz": (UnitCategory.WEIGHT, Decimal("28.3495")),
    "lb": (UnitCategory.WEIGHT, Decimal("453.592")),
    "ml": (UnitCategory.VOLUME, Decimal("1")),
    "l": (UnitCategory.VOLUME, Decimal("1000")),
    "unit": (UnitCategory.COUNT, Decimal("1")),
}


def _lookup(unit: str) -> tuple[UnitCategory, Decimal]:
    try:
        return UNIT_FACTORS[unit.lower()]
    except KeyError:
        raise ValueError(f"Unbekannte Einheit: {unit}") from None


def convert_quantity(amount: Decimal, from_unit: str | None, to_unit: str | None) -> Decimal:
    """
    Rechnet eine Menge zwischen Einheiten derselben Kategorie um.
    Ohne Quell- oder Zieleinheit bzw. bei gleicher Einheit bleibt die Menge unverändert.
    """
    amount = Decimal(str(amount))
    if not from_unit or not to_unit or from_unit.lower() == to_unit.lower():
        return amount

    from_category, from_factor = _lookup(from_unit)
    to_category, to_factor = _lookup(to_unit)
    if from_category != to_category:
        raise ValueError(
            f"Einheiten nicht kompatibel: {from_unit} ({from_category.value}) "
            f"→ {to_unit} ({to_category.value})"
        )
    return amount * from_factor / to_factor
