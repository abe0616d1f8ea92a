"""FastAPI router for pinning the comparison baseline of a service."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.logging import get_logger
from database import get_db
from schemas.api.contracts import (
    ApiSpecSchema,
    BaselineClearResponse,
    BaselineResponse,
    BaselineSetResponse,
)
from services import baseline_service
from services.contract_errors import ContractMonitorError
from web.deps import http_error

router = APIRouter(prefix="/baseline", tags=["Baseline"])
logger = get_logger(__name__)


@router.get("/{service_name}", response_model=BaselineResponse)
def read_baseline(service_name: str, db: Session = Depends(get_db)) -> BaselineResponse:
    baseline = baseline_service.get_baseline(db, service_name)
    if baseline is None:
        return BaselineResponse(
            serviceName=service_name,
            hasBaseline=False,
            message="No baseline set for this service",
        )
    return BaselineResponse(
        serviceName=service_name,
        hasBaseline=True,
        baseline=ApiSpecSchema.from_orm_spec(baseline),
    )


@router.post("/{service_name}/set/{spec_id}", response_model=BaselineSetResponse)
def set_baseline(service_name: str, spec_id: int, db: Session = Depends(get_db)) -> BaselineSetResponse:
    logger.info("Setting baseline for %s to spec %s", service_name, spec_id)
    try:
        spec = baseline_service.set_baseline(db, service_name, spec_id)
    except ContractMonitorError as exc:
        raise http_error(exc) from exc
    return BaselineSetResponse(
        message="Baseline set successfully",
        serviceName=service_name,
        baselineVersion=spec.version,
        baselineSetAt=spec.baseline_set_at,
    )


@router.post("/{service_name}/set-latest", response_model=BaselineSetResponse)
def set_latest_baseline(service_name: str, db: Session = Depends(get_db)) -> BaselineSetResponse:
    logger.info("Setting latest spec as baseline for %s", service_name)
    try:
        spec = baseline_service.set_latest_as_baseline(db, service_name)
    except ContractMonitorError as exc:
        raise http_error(exc) from exc
    return BaselineSetResponse(
        message="Latest spec set as baseline successfully",
        serviceName=service_name,
        baselineVersion=spec.version,
        baselineSetAt=spec.baseline_set_at,
    )


@router.delete("/{service_name}", response_model=BaselineClearResponse)
def clear_baseline(service_name: str, db: Session = Depends(get_db)) -> BaselineClearResponse:
    cleared = baseline_service.clear_baseline(db, service_name)
    return BaselineClearResponse(serviceName=service_name, clearedCount=cleared)


__all__ = ["router"]
