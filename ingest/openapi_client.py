"""Client for pulling OpenAPI documents from the monitored services."""

from __future__ import annotations

from typing import Optional, Protocol

import httpx

from core.logging import get_logger
from core.settings import MonitorSettings, get_settings
from services.contract_errors import NotFound, UpstreamUnavailable

logger = get_logger(__name__)


class SpecFetchError(RuntimeError):
    """Raised when a reachable service returned something other than a usable document."""


class DescriptorFetcher(Protocol):
    def fetch_descriptor(self, service_name: str) -> str:
        ...

    def is_available(self, service_name: str) -> bool:
        ...


class OpenApiClient:
    """Fetch ``<base url><docs path>`` for the services listed in settings."""

    def __init__(
        self,
        settings: Optional[MonitorSettings] = None,
        *,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.settings.fetch_timeout_seconds,
            transport=self._transport,
            follow_redirects=True,
        )

    def docs_url(self, service_name: str) -> str:
        base_url = self.settings.base_url(service_name)
        if not base_url:
            raise NotFound(
                code="service.unknown",
                message=f"Unknown service: {service_name}",
                service_name=service_name,
            )
        return f"{base_url}{self.settings.docs_path}"

    def fetch_descriptor(self, service_name: str) -> str:
        url = self.docs_url(service_name)
        logger.info("Fetching OpenAPI spec from: %s", url)
        try:
            with self._client() as client:
                response = client.get(url, headers={"Accept": "application/json, application/yaml"})
                response.raise_for_status()
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            logger.error("Failed to connect to %s: %s", service_name, exc)
            raise UpstreamUnavailable(
                code="service.unavailable",
                message=f"Service {service_name} is not available",
                service_name=service_name,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Error fetching spec from %s: %s", service_name, exc)
            raise SpecFetchError(f"Failed to fetch OpenAPI spec from {service_name}: {exc}") from exc

        body = response.text
        if not body.strip():
            raise SpecFetchError(f"{service_name} returned an empty OpenAPI document.")
        logger.info("Successfully fetched spec for %s (%d bytes).", service_name, len(body))
        return body

    def is_available(self, service_name: str) -> bool:
        try:
            url = self.docs_url(service_name)
        except NotFound:
            return False
        try:
            with self._client() as client:
                response = client.get(url)
                response.raise_for_status()
            return True
        except httpx.HTTPError as exc:
            logger.warning("Service %s is not available: %s", service_name, exc)
            return False


__all__ = ["DescriptorFetcher", "OpenApiClient", "SpecFetchError"]
