"""
Aktivitätsprotokoll: wer hat wann was an welchem Objekt geändert
"""
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, DateTime, Text, Index
from sqlalchemy.types import Uuid, JSON
from sqlalchemy.orm import Mapped, mapped_column

from sprout.database import Base


class ActivityLog(Base):
    """
    Audit-Eintrag mit Attribut-Diff.
    changes: {"feld": {"old": ..., "new": ...}}
    """
    __tablename__ = "activity_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )

    log_name: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # inventory, crops, orders
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # created, updated, stage_advanced, ...

    subject_type: Mapped[str] = mapped_column(String(50), nullable=False)
    subject_id: Mapped[Optional[str]] = mapped_column(String(36))
    causer_id: Mapped[Optional[str]] = mapped_column(String(100))

    description: Mapped[Optional[str]] = mapped_column(Text)
    changes: Mapped[Optional[dict]] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index("ix_activity_logs_subject", "subject_type", "subject_id"),
    )

    def __repr__(self) -> str:
        return f"<ActivityLog({self.log_name}.{self.action} {self.subject_type})>"
