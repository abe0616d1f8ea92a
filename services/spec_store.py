"""Persistence helpers for API descriptor snapshots."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from core.logging import get_logger
from ingest.openapi_client import DescriptorFetcher
from models.api_spec import ApiSpec
from services.contract_errors import InvalidInput

logger = get_logger(__name__)

DEFAULT_ENVIRONMENT = "development"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _history_query(db: Session, service_name: str):
    return (
        db.query(ApiSpec)
        .filter(ApiSpec.service_name == service_name)
        .order_by(ApiSpec.fetched_at.desc(), ApiSpec.id.desc())
    )


def _next_fetch_time(db: Session, service_name: str) -> datetime:
    """Fetch timestamp that is strictly later than the service's newest snapshot."""
    now = datetime.now(timezone.utc)
    latest = get_latest_spec(db, service_name)
    if latest is not None and latest.fetched_at is not None:
        previous = _as_utc(latest.fetched_at)
        if previous >= now:
            now = previous + timedelta(microseconds=1)
    return now


def generate_version(fetched_at: datetime) -> str:
    """Timestamp-based version label; sorts the same way as ``fetched_at``."""
    return _as_utc(fetched_at).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def save_spec(
    db: Session,
    service_name: str,
    spec_content: str,
    *,
    environment: Optional[str] = None,
    commit: bool = True,
) -> ApiSpec:
    """Store a new immutable snapshot for ``service_name``."""
    fetched_at = _next_fetch_time(db, service_name)
    spec = ApiSpec(
        service_name=service_name,
        version=generate_version(fetched_at),
        spec_content=spec_content,
        fetched_at=fetched_at,
        is_baseline=False,
        environment=environment or DEFAULT_ENVIRONMENT,
    )
    db.add(spec)
    if commit:
        db.commit()
        db.refresh(spec)
    else:
        db.flush()
    logger.info("Saved spec for %s with version %s", service_name, spec.version)
    return spec


def fetch_and_save_spec(
    db: Session,
    service_name: str,
    fetcher: DescriptorFetcher,
    *,
    environment: Optional[str] = None,
    commit: bool = True,
) -> ApiSpec:
    """Pull the current document from the service and persist it."""
    logger.info("Fetching and saving spec for %s", service_name)
    content = fetcher.fetch_descriptor(service_name)
    return save_spec(db, service_name, content, environment=environment, commit=commit)


def get_spec(db: Session, spec_id: int) -> Optional[ApiSpec]:
    return db.get(ApiSpec, spec_id)


def get_latest_spec(db: Session, service_name: str) -> Optional[ApiSpec]:
    return _history_query(db, service_name).first()


def get_spec_history(db: Session, service_name: str) -> List[ApiSpec]:
    """All snapshots of a service, newest first."""
    return _history_query(db, service_name).all()


def get_spec_by_version(db: Session, service_name: str, version: str) -> Optional[ApiSpec]:
    return (
        db.query(ApiSpec)
        .filter(ApiSpec.service_name == service_name, ApiSpec.version == version)
        .order_by(ApiSpec.id.desc())
        .first()
    )


def get_last_two_specs(db: Session, service_name: str) -> List[ApiSpec]:
    """``[newest, second newest]``; shorter when the history is shorter."""
    specs = _history_query(db, service_name).limit(2).all()
    if len(specs) < 2:
        logger.warning("Not enough specs to compare for %s. Found: %d", service_name, len(specs))
    return specs


def has_specs(db: Session, service_name: str) -> bool:
    return db.query(ApiSpec.id).filter(ApiSpec.service_name == service_name).first() is not None


def get_total_spec_count(db: Session) -> int:
    return db.query(ApiSpec).count()


def list_service_names(db: Session) -> List[str]:
    rows = db.query(ApiSpec.service_name).distinct().order_by(ApiSpec.service_name).all()
    return [row[0] for row in rows]


def get_all_latest_specs(db: Session) -> List[ApiSpec]:
    """Newest snapshot of every service that has at least one."""
    logger.info("Fetching all latest specs for all services")
    latest: List[ApiSpec] = []
    for service_name in list_service_names(db):
        spec = get_latest_spec(db, service_name)
        if spec is not None:
            latest.append(spec)
    logger.info("Found latest specs for %d services", len(latest))
    return latest


def cleanup_old_specs(db: Session, service_name: str, keep_count: int, *, commit: bool = True) -> int:
    """Delete all but the ``keep_count`` newest snapshots; the baseline always survives.

    Returns the number of deleted snapshots.
    """
    if keep_count < 0:
        raise InvalidInput(
            code="specs.invalid_keep",
            message=f"keep must be zero or greater, got {keep_count}",
            service_name=service_name,
        )
    history = get_spec_history(db, service_name)
    if len(history) <= keep_count:
        logger.info("No cleanup needed for %s. Total specs: %d", service_name, len(history))
        return 0

    candidates: Sequence[ApiSpec] = history[keep_count:]
    to_delete = [spec for spec in candidates if not spec.is_baseline]
    if len(to_delete) != len(candidates):
        logger.info("Keeping baseline spec for %s outside the retention window.", service_name)
    for spec in to_delete:
        db.delete(spec)
    if commit:
        db.commit()
    else:
        db.flush()
    logger.info("Deleted %d old specs for %s", len(to_delete), service_name)
    return len(to_delete)


__all__ = [
    "DEFAULT_ENVIRONMENT",
    "cleanup_old_specs",
    "fetch_and_save_spec",
    "generate_version",
    "get_all_latest_specs",
    "get_last_two_specs",
    "get_latest_spec",
    "get_spec",
    "get_spec_by_version",
    "get_spec_history",
    "get_total_spec_count",
    "has_specs",
    "list_service_names",
    "save_spec",
]
