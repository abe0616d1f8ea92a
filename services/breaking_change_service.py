"""Ledger of detected breaking changes and their resolution lifecycle.

Records are only ever appended by analysis runs; afterwards nothing but the
status operations below touches them. ``RESOLVED`` and ``IGNORED`` are
terminal: a status update on such a record is rejected with
``InvalidStatusTransition`` rather than silently overwriting the audit fields.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.logging import get_logger
from models.breaking_change import BreakingChange, ChangeStatus, ChangeType
from services.contract_errors import InvalidInput, InvalidStatus, InvalidStatusTransition, NotFound
from services.enrichment_service import ChangeEnrichment
from services.spec_comparator import BreakingChangeCandidate

logger = get_logger(__name__)

DEFAULT_ACTOR = "system"
ACKNOWLEDGE_NOTE = "Acknowledged by team"
DEFAULT_RESOLVE_NOTE = "Resolved"
DEFAULT_IGNORE_REASON = "Marked as intentional"
_VALID_STATUS_MESSAGE = "Invalid status. Must be one of: " + ", ".join(status.value for status in ChangeStatus)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def coerce_status(value: Union[str, ChangeStatus, None]) -> ChangeStatus:
    if isinstance(value, ChangeStatus):
        return value
    normalized = (value or "").strip().upper() if isinstance(value, str) else ""
    try:
        return ChangeStatus(normalized)
    except ValueError as exc:
        raise InvalidStatus(code="breaking_changes.invalid_status", message=_VALID_STATUS_MESSAGE) from exc


def coerce_change_type(value: Union[str, ChangeType, None]) -> ChangeType:
    if isinstance(value, ChangeType):
        return value
    normalized = (value or "").strip().upper() if isinstance(value, str) else ""
    try:
        return ChangeType(normalized)
    except ValueError as exc:
        allowed = ", ".join(kind.value for kind in ChangeType)
        raise InvalidInput(
            code="breaking_changes.invalid_type",
            message=f"Invalid change type. Must be one of: {allowed}",
        ) from exc


def _newest_first(query):
    return query.order_by(BreakingChange.detected_at.desc(), BreakingChange.id.desc())


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def save_all(
    db: Session,
    candidates: Sequence[BreakingChangeCandidate],
    enrichments: Optional[Sequence[Optional[ChangeEnrichment]]] = None,
    *,
    commit: bool = True,
) -> List[BreakingChange]:
    """Append one ledger record per candidate; never deduplicates against earlier runs."""
    logger.info("Recording %d breaking changes", len(candidates))
    detected_at = _utcnow()
    records: List[BreakingChange] = []
    for index, candidate in enumerate(candidates):
        enrichment = enrichments[index] if enrichments is not None and index < len(enrichments) else None
        record = BreakingChange(
            service_name=candidate.service_name,
            change_type=candidate.change_type,
            path=candidate.path,
            description=candidate.description,
            old_version=candidate.old_version,
            new_version=candidate.new_version,
            detected_at=detected_at,
            status=ChangeStatus.ACTIVE,
        )
        if enrichment is not None:
            record.ai_suggestion = enrichment.suggestion
            record.predicted_impact = enrichment.impact
            record.plain_english_explanation = enrichment.explanation
        records.append(record)
    db.add_all(records)
    if commit:
        db.commit()
    else:
        db.flush()
    return records


def get_change(db: Session, change_id: int) -> Optional[BreakingChange]:
    return db.get(BreakingChange, change_id)


def update_status(
    db: Session,
    change_id: int,
    status: Union[str, ChangeStatus, None],
    actor: Optional[str] = None,
    notes: Optional[str] = None,
) -> BreakingChange:
    """Move a change to ``status``; ``RESOLVED`` also stamps ``resolved_at``."""
    new_status = coerce_status(status)
    logger.info("Updating status of breaking change %s to %s", change_id, new_status.value)

    change = get_change(db, change_id)
    if change is None:
        raise NotFound(
            code="breaking_changes.not_found",
            message=f"Breaking change not found with ID: {change_id}",
        )
    current = coerce_status(change.status)
    if current.is_terminal:
        raise InvalidStatusTransition(
            code="breaking_changes.terminal_status",
            message=f"Breaking change {change_id} is already {current.value} and cannot move to {new_status.value}",
            service_name=change.service_name,
        )

    change.status = new_status
    change.resolved_by = actor or DEFAULT_ACTOR
    if new_status is ChangeStatus.RESOLVED:
        change.resolved_at = _utcnow()
    if notes:
        change.resolution_notes = notes

    db.add(change)
    db.commit()
    db.refresh(change)
    logger.info("Updated status of breaking change %s to %s", change_id, new_status.value)
    return change


def acknowledge(db: Session, change_id: int, actor: Optional[str] = None) -> BreakingChange:
    return update_status(db, change_id, ChangeStatus.ACKNOWLEDGED, actor, ACKNOWLEDGE_NOTE)


def resolve(db: Session, change_id: int, actor: Optional[str] = None, notes: Optional[str] = None) -> BreakingChange:
    return update_status(db, change_id, ChangeStatus.RESOLVED, actor, notes or DEFAULT_RESOLVE_NOTE)


def ignore(db: Session, change_id: int, actor: Optional[str] = None, reason: Optional[str] = None) -> BreakingChange:
    return update_status(db, change_id, ChangeStatus.IGNORED, actor, reason or DEFAULT_IGNORE_REASON)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def list_all(db: Session) -> List[BreakingChange]:
    return _newest_first(db.query(BreakingChange)).all()


def list_by_service(db: Session, service_name: str) -> List[BreakingChange]:
    return _newest_first(db.query(BreakingChange).filter(BreakingChange.service_name == service_name)).all()


def list_by_type(db: Session, change_type: Union[str, ChangeType]) -> List[BreakingChange]:
    kind = coerce_change_type(change_type)
    return _newest_first(db.query(BreakingChange).filter(BreakingChange.change_type == kind)).all()


def list_by_service_and_type(
    db: Session,
    service_name: str,
    change_type: Union[str, ChangeType],
) -> List[BreakingChange]:
    kind = coerce_change_type(change_type)
    query = db.query(BreakingChange).filter(
        BreakingChange.service_name == service_name,
        BreakingChange.change_type == kind,
    )
    return _newest_first(query).all()


def list_by_status(db: Session, status: Union[str, ChangeStatus]) -> List[BreakingChange]:
    state = coerce_status(status)
    return _newest_first(db.query(BreakingChange).filter(BreakingChange.status == state)).all()


def list_by_service_and_status(
    db: Session,
    service_name: str,
    status: Union[str, ChangeStatus],
) -> List[BreakingChange]:
    state = coerce_status(status)
    query = db.query(BreakingChange).filter(
        BreakingChange.service_name == service_name,
        BreakingChange.status == state,
    )
    return _newest_first(query).all()


def list_active(db: Session, service_name: str) -> List[BreakingChange]:
    return list_by_service_and_status(db, service_name, ChangeStatus.ACTIVE)


def list_recent(db: Session, service_name: str, limit: int = 10) -> List[BreakingChange]:
    """Newest ``limit`` changes of a service; a plain truncation, not a cursor."""
    if limit < 0:
        raise InvalidInput(
            code="breaking_changes.invalid_limit",
            message=f"limit must be zero or greater, got {limit}",
            service_name=service_name,
        )
    query = db.query(BreakingChange).filter(BreakingChange.service_name == service_name)
    return _newest_first(query).limit(limit).all()


def count_by_service(db: Session, service_name: str) -> int:
    return db.query(BreakingChange).filter(BreakingChange.service_name == service_name).count()


def count_by_service_and_status(db: Session, service_name: str, status: Union[str, ChangeStatus]) -> int:
    state = coerce_status(status)
    return (
        db.query(BreakingChange)
        .filter(BreakingChange.service_name == service_name, BreakingChange.status == state)
        .count()
    )


def count_active(db: Session) -> int:
    return db.query(BreakingChange).filter(BreakingChange.status == ChangeStatus.ACTIVE).count()


def has_breaking_changes(db: Session, service_name: str) -> bool:
    return count_by_service(db, service_name) > 0


def _grouped_counts(query, column, enum_cls) -> Dict[str, int]:
    counts: Dict[str, int] = {member.value: 0 for member in enum_cls}
    for value, total in query.group_by(column).all():
        key = value.value if isinstance(value, enum_cls) else str(value)
        counts[key] = int(total)
    return counts


def counts_by_type(db: Session, service_name: Optional[str] = None) -> Dict[str, int]:
    query = db.query(BreakingChange.change_type, func.count(BreakingChange.id))
    if service_name is not None:
        query = query.filter(BreakingChange.service_name == service_name)
    return _grouped_counts(query, BreakingChange.change_type, ChangeType)


def counts_by_status(db: Session, service_name: Optional[str] = None) -> Dict[str, int]:
    query = db.query(BreakingChange.status, func.count(BreakingChange.id))
    if service_name is not None:
        query = query.filter(BreakingChange.service_name == service_name)
    return _grouped_counts(query, BreakingChange.status, ChangeStatus)


def get_statistics(db: Session) -> Dict[str, Any]:
    """Global aggregates across every service."""
    return {
        "totalBreakingChanges": db.query(BreakingChange).count(),
        "activeBreakingChanges": count_active(db),
        "breakingChangesByType": counts_by_type(db),
        "breakingChangesByStatus": counts_by_status(db),
    }


__all__ = [
    "ACKNOWLEDGE_NOTE",
    "DEFAULT_ACTOR",
    "acknowledge",
    "coerce_change_type",
    "coerce_status",
    "count_active",
    "count_by_service",
    "count_by_service_and_status",
    "counts_by_status",
    "counts_by_type",
    "get_change",
    "get_statistics",
    "has_breaking_changes",
    "ignore",
    "list_active",
    "list_all",
    "list_by_service",
    "list_by_service_and_status",
    "list_by_service_and_type",
    "list_by_status",
    "list_by_type",
    "list_recent",
    "resolve",
    "save_all",
    "update_status",
]
