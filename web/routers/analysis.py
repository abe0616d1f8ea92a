"""FastAPI router triggering analysis runs and exposing their reports."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.logging import get_logger
from core.settings import MonitorSettings
from database import get_db
from ingest.openapi_client import DescriptorFetcher
from schemas.api.contracts import (
    AllServiceStatusResponse,
    AnalysisReportSchema,
    AnalysisRunResponse,
    BatchAnalysisResponse,
    ServiceStatusResponse,
    report_list,
)
from services import analysis_service
from services.contract_errors import ContractMonitorError
from services.enrichment_service import ChangeEnricher
from web.deps import get_enricher, get_fetcher, get_settings, http_error, not_found

router = APIRouter(prefix="/analysis", tags=["Analysis"])
logger = get_logger(__name__)


@router.post("/all", response_model=BatchAnalysisResponse)
def analyze_all_services(
    db: Session = Depends(get_db),
    fetcher: DescriptorFetcher = Depends(get_fetcher),
    enricher: Optional[ChangeEnricher] = Depends(get_enricher),
    settings: MonitorSettings = Depends(get_settings),
) -> BatchAnalysisResponse:
    """Analyse every monitored service and tally the outcomes."""
    logger.info("Received request to analyze all services")
    batch = analysis_service.analyze_all(db, fetcher=fetcher, enricher=enricher, settings=settings)
    return BatchAnalysisResponse(**batch.to_payload())


@router.get("/status", response_model=AllServiceStatusResponse)
def read_all_service_status(
    fetcher: DescriptorFetcher = Depends(get_fetcher),
    settings: MonitorSettings = Depends(get_settings),
) -> AllServiceStatusResponse:
    return AllServiceStatusResponse(**analysis_service.all_service_status(fetcher, settings))


@router.get("/status/{service_name}", response_model=ServiceStatusResponse)
def read_service_status(
    service_name: str,
    fetcher: DescriptorFetcher = Depends(get_fetcher),
) -> ServiceStatusResponse:
    return ServiceStatusResponse(**analysis_service.service_status(fetcher, service_name))


@router.post("/{service_name}", response_model=AnalysisRunResponse)
def analyze_service(
    service_name: str,
    db: Session = Depends(get_db),
    fetcher: DescriptorFetcher = Depends(get_fetcher),
    enricher: Optional[ChangeEnricher] = Depends(get_enricher),
    settings: MonitorSettings = Depends(get_settings),
) -> AnalysisRunResponse:
    """Fetch the current descriptor of a service and diff it against its comparison target."""
    logger.info("Received request to analyze: %s", service_name)
    try:
        report = analysis_service.analyze_service(
            db,
            service_name,
            fetcher=fetcher,
            enricher=enricher,
            settings=settings,
        )
    except ContractMonitorError as exc:
        raise http_error(exc) from exc
    return AnalysisRunResponse(report=AnalysisReportSchema.from_orm_report(report))


@router.get("/{service_name}/latest", response_model=AnalysisReportSchema)
def read_latest_report(service_name: str, db: Session = Depends(get_db)) -> AnalysisReportSchema:
    report = analysis_service.get_latest_report(db, service_name)
    if report is None:
        raise not_found("reports.not_found", f"No analysis reports found for {service_name}")
    return AnalysisReportSchema.from_orm_report(report)


@router.get("/{service_name}/history", response_model=List[AnalysisReportSchema])
def read_report_history(service_name: str, db: Session = Depends(get_db)) -> List[AnalysisReportSchema]:
    return report_list(analysis_service.get_report_history(db, service_name))


__all__ = ["router"]
