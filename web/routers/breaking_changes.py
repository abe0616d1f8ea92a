"""FastAPI router for the breaking-change ledger and its status lifecycle."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from core.logging import get_logger
from database import get_db
from schemas.api.contracts import (
    AcknowledgeRequest,
    BreakingChangeCountResponse,
    BreakingChangeSchema,
    BreakingChangeStatisticsResponse,
    BreakingChangeSummaryResponse,
    BreakingChangeUpdateResponse,
    IgnoreRequest,
    ResolveRequest,
    StatusUpdateRequest,
    change_list,
)
from services import breaking_change_service as ledger
from services.contract_errors import ContractMonitorError
from web.deps import http_error

router = APIRouter(prefix="/breaking-changes", tags=["Breaking Changes"])
logger = get_logger(__name__)


def _updated(message: str, change) -> BreakingChangeUpdateResponse:
    return BreakingChangeUpdateResponse(
        message=message,
        breakingChange=BreakingChangeSchema.from_orm_change(change),
    )


@router.get("", response_model=List[BreakingChangeSchema])
def list_all_changes(db: Session = Depends(get_db)) -> List[BreakingChangeSchema]:
    return change_list(ledger.list_all(db))


@router.get("/statistics", response_model=BreakingChangeStatisticsResponse)
def read_statistics(db: Session = Depends(get_db)) -> BreakingChangeStatisticsResponse:
    return BreakingChangeStatisticsResponse(**ledger.get_statistics(db))


@router.get("/{service_name}", response_model=List[BreakingChangeSchema])
def list_service_changes(service_name: str, db: Session = Depends(get_db)) -> List[BreakingChangeSchema]:
    logger.info("Fetching breaking changes for: %s", service_name)
    return change_list(ledger.list_by_service(db, service_name))


@router.get("/{service_name}/type/{change_type}", response_model=List[BreakingChangeSchema])
def list_service_changes_by_type(
    service_name: str,
    change_type: str,
    db: Session = Depends(get_db),
) -> List[BreakingChangeSchema]:
    try:
        changes = ledger.list_by_service_and_type(db, service_name, change_type)
    except ContractMonitorError as exc:
        raise http_error(exc) from exc
    return change_list(changes)


@router.get("/{service_name}/status/{change_status}", response_model=List[BreakingChangeSchema])
def list_service_changes_by_status(
    service_name: str,
    change_status: str,
    db: Session = Depends(get_db),
) -> List[BreakingChangeSchema]:
    try:
        changes = ledger.list_by_service_and_status(db, service_name, change_status)
    except ContractMonitorError as exc:
        raise http_error(exc) from exc
    return change_list(changes)


@router.get("/{service_name}/active", response_model=List[BreakingChangeSchema])
def list_active_changes(service_name: str, db: Session = Depends(get_db)) -> List[BreakingChangeSchema]:
    return change_list(ledger.list_active(db, service_name))


@router.get("/{service_name}/recent", response_model=List[BreakingChangeSchema])
def list_recent_changes(
    service_name: str,
    limit: int = Query(10),
    db: Session = Depends(get_db),
) -> List[BreakingChangeSchema]:
    try:
        changes = ledger.list_recent(db, service_name, limit)
    except ContractMonitorError as exc:
        raise http_error(exc) from exc
    return change_list(changes)


@router.get("/{service_name}/count", response_model=BreakingChangeCountResponse)
def read_change_count(service_name: str, db: Session = Depends(get_db)) -> BreakingChangeCountResponse:
    return BreakingChangeCountResponse(
        serviceName=service_name,
        breakingChangesCount=ledger.count_by_service(db, service_name),
    )


@router.get("/{service_name}/summary", response_model=BreakingChangeSummaryResponse)
def read_change_summary(service_name: str, db: Session = Depends(get_db)) -> BreakingChangeSummaryResponse:
    return BreakingChangeSummaryResponse(
        serviceName=service_name,
        totalBreakingChanges=ledger.count_by_service(db, service_name),
        byType=ledger.counts_by_type(db, service_name),
    )


@router.put("/{change_id}/status", response_model=BreakingChangeUpdateResponse)
def update_change_status(
    change_id: int,
    payload: StatusUpdateRequest,
    db: Session = Depends(get_db),
) -> BreakingChangeUpdateResponse:
    logger.info("Updating status for breaking change: %s", change_id)
    if not payload.status:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "breaking_changes.status_required", "message": "Status is required"},
        )
    try:
        change = ledger.update_status(db, change_id, payload.status, payload.resolvedBy, payload.notes)
    except ContractMonitorError as exc:
        raise http_error(exc) from exc
    return _updated("Status updated successfully", change)


@router.post("/{change_id}/acknowledge", response_model=BreakingChangeUpdateResponse)
def acknowledge_change(
    change_id: int,
    payload: Optional[AcknowledgeRequest] = Body(None),
    db: Session = Depends(get_db),
) -> BreakingChangeUpdateResponse:
    actor = payload.acknowledgedBy if payload else None
    try:
        change = ledger.acknowledge(db, change_id, actor)
    except ContractMonitorError as exc:
        raise http_error(exc) from exc
    return _updated("Breaking change acknowledged", change)


@router.post("/{change_id}/resolve", response_model=BreakingChangeUpdateResponse)
def resolve_change(
    change_id: int,
    payload: Optional[ResolveRequest] = Body(None),
    db: Session = Depends(get_db),
) -> BreakingChangeUpdateResponse:
    actor = payload.resolvedBy if payload else None
    notes = payload.notes if payload else None
    try:
        change = ledger.resolve(db, change_id, actor, notes)
    except ContractMonitorError as exc:
        raise http_error(exc) from exc
    return _updated("Breaking change resolved", change)


@router.post("/{change_id}/ignore", response_model=BreakingChangeUpdateResponse)
def ignore_change(
    change_id: int,
    payload: Optional[IgnoreRequest] = Body(None),
    db: Session = Depends(get_db),
) -> BreakingChangeUpdateResponse:
    actor = payload.ignoredBy if payload else None
    reason = payload.reason if payload else None
    try:
        change = ledger.ignore(db, change_id, actor, reason)
    except ContractMonitorError as exc:
        raise http_error(exc) from exc
    return _updated("Breaking change ignored", change)


__all__ = ["router"]
