"""SQLAlchemy ORM for per-run analysis reports."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text

from database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnalysisReport(Base):
    """Summary of one analysis run; never updated after insert."""

    __tablename__ = "analysis_reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    service_name = Column(String(120), nullable=False, index=True)
    breaking_changes_count = Column(Integer, nullable=False, default=0)
    non_breaking_changes_count = Column(Integer, nullable=False, default=0)
    summary = Column(Text, nullable=True)
    analyzed_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)


__all__ = ["AnalysisReport"]
