"""
Stammdaten-Service - installiert die Standard-Einträge der Lookup-Tabellen
"""
import logging
from sqlalchemy.orm import Session

from sprout.models.lookup import STANDARD_LOOKUPS

logger = logging.getLogger(__name__)


def seed_lookup_tables(db: Session) -> int:
    """
    Legt fehlende Standard-Einträge an. Bestehende Codes bleiben unverändert,
    mehrfacher Aufruf ist unkritisch. Liefert die Anzahl neu angelegter Zeilen.
    """
    created = 0
    for model, rows in STANDARD_LOOKUPS:
        for row in rows:
            if model.find_by_code(db, row["code"]) is not None:
                continue
            db.add(model(**row))
            created += 1
        db.flush()

    if created:
        logger.info(f"{created} Stammdaten-Einträge angelegt")
    return created
