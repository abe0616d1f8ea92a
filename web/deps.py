"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, status

from core.settings import MonitorSettings
from core.settings import get_settings as _load_settings
from ingest.openapi_client import DescriptorFetcher, OpenApiClient
from services.contract_errors import (
    AnalysisFailed,
    ContractMonitorError,
    InvalidInput,
    NotFound,
    UpstreamUnavailable,
)
from services.enrichment_service import ChangeEnricher, LlmChangeEnricher

_STATUS_BY_ERROR = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InvalidInput, status.HTTP_400_BAD_REQUEST),
    (UpstreamUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (AnalysisFailed, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def get_settings() -> MonitorSettings:
    return _load_settings()


def get_fetcher(settings: MonitorSettings = Depends(get_settings)) -> DescriptorFetcher:
    """Descriptor fetch client; tests override this with an in-memory fake."""
    return OpenApiClient(settings)


def get_enricher(settings: MonitorSettings = Depends(get_settings)) -> Optional[ChangeEnricher]:
    if not settings.enrichment_enabled:
        return None
    return LlmChangeEnricher()


def http_error(exc: ContractMonitorError) -> HTTPException:
    """Translate a service-layer error into the matching HTTP status."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            status_code = code
            break
    return HTTPException(status_code=status_code, detail=exc.to_detail())


def not_found(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": code, "message": message},
    )


__all__ = ["get_enricher", "get_fetcher", "get_settings", "http_error", "not_found"]
