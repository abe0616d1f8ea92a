"""Baseline pinning and comparison-target resolution."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from core.logging import get_logger
from models.api_spec import ApiSpec
from services import spec_store
from services.contract_errors import InvalidInput, NotFound

logger = get_logger(__name__)


def _clear_flags(db: Session, service_name: str) -> int:
    return (
        db.query(ApiSpec)
        .filter(ApiSpec.service_name == service_name, ApiSpec.is_baseline.is_(True))
        .update({ApiSpec.is_baseline: False}, synchronize_session="fetch")
    )


def get_baseline(db: Session, service_name: str) -> Optional[ApiSpec]:
    return (
        db.query(ApiSpec)
        .filter(ApiSpec.service_name == service_name, ApiSpec.is_baseline.is_(True))
        .order_by(ApiSpec.baseline_set_at.desc(), ApiSpec.id.desc())
        .first()
    )


def pin_baseline(db: Session, spec: ApiSpec, *, commit: bool = True) -> ApiSpec:
    """Make ``spec`` the only baseline of its service."""
    _clear_flags(db, spec.service_name)
    spec.is_baseline = True
    spec.baseline_set_at = datetime.now(timezone.utc)
    db.add(spec)
    if commit:
        db.commit()
        db.refresh(spec)
    else:
        db.flush()
    logger.info("Baseline for %s set to version %s", spec.service_name, spec.version)
    return spec


def set_baseline(db: Session, service_name: str, spec_id: int) -> ApiSpec:
    logger.info("Setting baseline for %s to spec ID %s", service_name, spec_id)
    spec = spec_store.get_spec(db, spec_id)
    if spec is None:
        raise NotFound(
            code="specs.not_found",
            message=f"Spec not found with ID: {spec_id}",
            service_name=service_name,
        )
    if spec.service_name != service_name:
        raise InvalidInput(
            code="baseline.service_mismatch",
            message=f"Spec ID {spec_id} does not belong to service {service_name}",
            service_name=service_name,
        )
    try:
        return pin_baseline(db, spec)
    except Exception:
        db.rollback()
        raise


def set_latest_as_baseline(db: Session, service_name: str) -> ApiSpec:
    latest = spec_store.get_latest_spec(db, service_name)
    if latest is None:
        raise NotFound(
            code="specs.not_found",
            message=f"No specs found for service: {service_name}",
            service_name=service_name,
        )
    return set_baseline(db, service_name, latest.id)


def clear_baseline(db: Session, service_name: str) -> int:
    logger.info("Clearing baseline for %s", service_name)
    cleared = _clear_flags(db, service_name)
    db.commit()
    return cleared


def resolve_comparison_target(db: Session, service_name: str) -> Optional[ApiSpec]:
    """Pinned baseline if any, else the snapshot preceding the newest one, else ``None``."""
    baseline = get_baseline(db, service_name)
    if baseline is not None:
        logger.info("Using baseline spec %s for comparison for %s", baseline.version, service_name)
        return baseline

    logger.info("No baseline found, using previous spec for comparison for %s", service_name)
    last_two = spec_store.get_last_two_specs(db, service_name)
    if len(last_two) >= 2:
        return last_two[1]
    return None


__all__ = [
    "clear_baseline",
    "get_baseline",
    "pin_baseline",
    "resolve_comparison_target",
    "set_baseline",
    "set_latest_as_baseline",
]
