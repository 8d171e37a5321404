"""
Aktivitätsprotokoll - Audit-Einträge für alle schreibenden Service-Operationen.

Verwendung:
    log_activity(
        db, log_name="inventory", action="reserved",
        subject=batch, causer_id=user_id,
        description="Reserviert für Auftrag ...",
        changes=changes_for(batch),
    )

Der Eintrag wird nur der Session hinzugefügt und mit der umgebenden
Transaktion gespeichert.
"""
from decimal import Decimal
from datetime import date, datetime
from enum import Enum
from uuid import UUID
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from sprout.models.activity import ActivityLog


def _jsonable(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def changes_for(obj) -> dict:
    """
    Geänderte Spalten eines Objekts seit dem letzten Flush.
    Liefert {"feld": {"old": ..., "new": ...}}
    """
    state = inspect(obj)
    changes = {}
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        if not history.has_changes():
            continue
        old = history.deleted[0] if history.deleted else None
        new = history.added[0] if history.added else None
        changes[attr.key] = {"old": _jsonable(old), "new": _jsonable(new)}
    return changes


def log_activity(
    db: Session,
    *,
    log_name: str,
    action: str,
    subject=None,
    subject_type: str | None = None,
    subject_id=None,
    causer_id: str | None = None,
    description: str | None = None,
    changes: dict | None = None,
) -> ActivityLog:
    """Fügt einen Protokolleintrag der aktuellen Session hinzu."""
    if subject is not None:
        subject_type = subject_type or type(subject).__name__
        subject_id = subject_id or getattr(subject, "id", None)

    entry = ActivityLog(
        log_name=log_name,
        action=action,
        subject_type=subject_type or "unknown",
        subject_id=str(subject_id) if subject_id else None,
        causer_id=causer_id,
        description=description,
        changes=changes or None,
    )
    db.add(entry)
    return entry
