"""FastAPI router for stored OpenAPI descriptor snapshots."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from core.logging import get_logger
from core.settings import MonitorSettings
from database import get_db
from ingest.openapi_client import DescriptorFetcher, SpecFetchError
from schemas.api.contracts import (
    ApiSpecSchema,
    SpecCleanupResponse,
    SpecCountResponse,
    SpecExistsResponse,
    SpecFetchResponse,
    spec_list,
)
from services import spec_store
from services.contract_errors import ContractMonitorError
from web.deps import get_fetcher, get_settings, http_error, not_found

router = APIRouter(prefix="/specs", tags=["Specs"])
logger = get_logger(__name__)


@router.get("/count", response_model=SpecCountResponse)
def read_total_count(db: Session = Depends(get_db)) -> SpecCountResponse:
    return SpecCountResponse(totalSpecs=spec_store.get_total_spec_count(db))


@router.get("/latest", response_model=List[ApiSpecSchema])
def read_all_latest(db: Session = Depends(get_db)) -> List[ApiSpecSchema]:
    """Newest snapshot of every service that has at least one."""
    return spec_list(spec_store.get_all_latest_specs(db))


@router.get("/{service_name}/latest", response_model=ApiSpecSchema)
def read_latest_spec(service_name: str, db: Session = Depends(get_db)) -> ApiSpecSchema:
    spec = spec_store.get_latest_spec(db, service_name)
    if spec is None:
        raise not_found("specs.not_found", f"No OpenAPI specs found for {service_name}")
    return ApiSpecSchema.from_orm_spec(spec)


@router.get("/{service_name}/history", response_model=List[ApiSpecSchema])
def read_spec_history(service_name: str, db: Session = Depends(get_db)) -> List[ApiSpecSchema]:
    return spec_list(spec_store.get_spec_history(db, service_name))


@router.get("/{service_name}/version/{version}", response_model=ApiSpecSchema)
def read_spec_version(service_name: str, version: str, db: Session = Depends(get_db)) -> ApiSpecSchema:
    spec = spec_store.get_spec_by_version(db, service_name, version)
    if spec is None:
        raise not_found("specs.not_found", f"No spec found for {service_name} version {version}")
    return ApiSpecSchema.from_orm_spec(spec)


@router.post("/{service_name}/fetch", response_model=SpecFetchResponse)
def fetch_spec(
    service_name: str,
    db: Session = Depends(get_db),
    fetcher: DescriptorFetcher = Depends(get_fetcher),
    settings: MonitorSettings = Depends(get_settings),
) -> SpecFetchResponse:
    """Pull the current descriptor and store it as a new snapshot, without comparing."""
    logger.info("Fetching and saving spec for: %s", service_name)
    if not settings.is_known(service_name):
        raise not_found("service.unknown", f"Unknown service: {service_name}")
    if not fetcher.is_available(service_name):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "code": "service.unavailable",
                "message": f"{service_name} is currently offline or unreachable",
                "serviceName": service_name,
            },
        )
    try:
        spec = spec_store.fetch_and_save_spec(
            db,
            service_name,
            fetcher,
            environment=settings.spec_environment,
        )
    except ContractMonitorError as exc:
        db.rollback()
        raise http_error(exc) from exc
    except SpecFetchError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "specs.fetch_failed", "message": str(exc), "serviceName": service_name},
        ) from exc
    return SpecFetchResponse(spec=ApiSpecSchema.from_orm_spec(spec))


@router.get("/{service_name}/exists", response_model=SpecExistsResponse)
def read_spec_exists(service_name: str, db: Session = Depends(get_db)) -> SpecExistsResponse:
    return SpecExistsResponse(serviceName=service_name, hasSpecs=spec_store.has_specs(db, service_name))


@router.delete("/{service_name}/cleanup", response_model=SpecCleanupResponse)
def cleanup_specs(
    service_name: str,
    keep: int = Query(10),
    db: Session = Depends(get_db),
) -> SpecCleanupResponse:
    logger.info("Cleaning up old specs for %s, keeping last %d", service_name, keep)
    try:
        deleted = spec_store.cleanup_old_specs(db, service_name, keep)
    except ContractMonitorError as exc:
        raise http_error(exc) from exc
    return SpecCleanupResponse(serviceName=service_name, keptVersions=keep, deletedCount=deleted)


__all__ = ["router"]
