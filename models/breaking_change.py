"""SQLAlchemy ORM for detected breaking changes and their lifecycle."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, DateTime, Enum as SAEnum, Integer, String, Text

from database import Base


class ChangeType(str, Enum):
    ENDPOINT_REMOVED = "ENDPOINT_REMOVED"
    METHOD_REMOVED = "METHOD_REMOVED"
    FIELD_REMOVED = "FIELD_REMOVED"
    TYPE_CHANGED = "TYPE_CHANGED"
    SCHEMA_REMOVED = "SCHEMA_REMOVED"

    def __str__(self) -> str:  # pragma: no cover - convenience
        return self.value


class ChangeStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    RESOLVED = "RESOLVED"
    IGNORED = "IGNORED"

    def __str__(self) -> str:  # pragma: no cover - convenience
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (ChangeStatus.RESOLVED, ChangeStatus.IGNORED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BreakingChange(Base):
    """Ledger entry for one breaking change found between two spec versions."""

    __tablename__ = "breaking_changes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    service_name = Column(String(120), nullable=False, index=True)
    change_type = Column(
        SAEnum(ChangeType, name="breaking_change_type", native_enum=False, length=32),
        nullable=False,
        index=True,
    )
    path = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    old_version = Column(String(64), nullable=False)
    new_version = Column(String(64), nullable=False)
    detected_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    ai_suggestion = Column(Text, nullable=True)
    predicted_impact = Column(Text, nullable=True)
    plain_english_explanation = Column(Text, nullable=True)

    status = Column(
        SAEnum(ChangeStatus, name="breaking_change_status", native_enum=False, length=16),
        nullable=False,
        default=ChangeStatus.ACTIVE,
        index=True,
    )
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(String(255), nullable=True)
    resolution_notes = Column(Text, nullable=True)

    def __repr__(self) -> str:  # pragma: no cover - repr helper
        return f"<BreakingChange(id={self.id}, type={self.change_type}, path='{self.path}')>"


__all__ = ["BreakingChange", "ChangeStatus", "ChangeType"]
