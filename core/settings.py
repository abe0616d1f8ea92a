"""Runtime configuration for the contract monitor."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

from core.env import env_bool, env_float, env_int, env_list, env_str

DEFAULT_MONITORED_SERVICES: Tuple[str, ...] = (
    "user-service",
    "order-service",
    "product-service",
    "notification-service",
)
_DEFAULT_BASE_PORT = 8081


def service_url_env_key(service_name: str) -> str:
    """``order-service`` -> ``SERVICE_URL_ORDER_SERVICE``."""
    normalized = "".join(ch if ch.isalnum() else "_" for ch in service_name.strip().upper())
    return f"SERVICE_URL_{normalized}"


@dataclass(frozen=True)
class MonitorSettings:
    """Known services, their base URLs and the fetch/enrichment tuning knobs."""

    monitored_services: Tuple[str, ...]
    service_urls: Dict[str, str] = field(default_factory=dict)
    docs_path: str = "/api-docs"
    fetch_timeout_seconds: float = 10.0
    spec_environment: str = "development"
    enrichment_enabled: bool = True
    enrichment_timeout_seconds: float = 60.0
    enrichment_max_workers: int = 4

    @classmethod
    def load(cls) -> "MonitorSettings":
        load_dotenv()
        services = tuple(env_list("MONITORED_SERVICES", list(DEFAULT_MONITORED_SERVICES)))
        urls: Dict[str, str] = {}
        for offset, name in enumerate(services):
            default_url = f"http://localhost:{_DEFAULT_BASE_PORT + offset}"
            urls[name] = (env_str(service_url_env_key(name), default_url) or default_url).rstrip("/")
        docs_path = env_str("SPEC_DOCS_PATH", "/api-docs") or "/api-docs"
        if not docs_path.startswith("/"):
            docs_path = f"/{docs_path}"
        return cls(
            monitored_services=services,
            service_urls=urls,
            docs_path=docs_path,
            fetch_timeout_seconds=env_float("SPEC_FETCH_TIMEOUT_SECONDS", 10.0, minimum=0.1),
            spec_environment=env_str("SPEC_ENVIRONMENT", "development") or "development",
            enrichment_enabled=env_bool("ENRICHMENT_ENABLED", True),
            enrichment_timeout_seconds=env_float("ENRICHMENT_TIMEOUT_SECONDS", 60.0, minimum=1.0),
            enrichment_max_workers=env_int("ENRICHMENT_MAX_WORKERS", 4, minimum=1),
        )

    def is_known(self, service_name: str) -> bool:
        return service_name in self.monitored_services

    def base_url(self, service_name: str) -> Optional[str]:
        return self.service_urls.get(service_name)


@lru_cache(maxsize=1)
def get_settings() -> MonitorSettings:
    return MonitorSettings.load()


def clear_settings_cache() -> None:
    get_settings.cache_clear()


__all__ = [
    "DEFAULT_MONITORED_SERVICES",
    "MonitorSettings",
    "clear_settings_cache",
    "get_settings",
    "service_url_env_key",
]
