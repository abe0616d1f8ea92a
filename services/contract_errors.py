"""Error taxonomy shared by the contract monitor services and routers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(eq=False)
class ContractMonitorError(RuntimeError):
    """Base error carrying a stable code and a user-facing message."""

    code: str
    message: str
    service_name: Optional[str] = None

    def __post_init__(self) -> None:
        RuntimeError.__init__(self, self.message)

    def __str__(self) -> str:
        return self.message

    def to_detail(self) -> Dict[str, Optional[str]]:
        detail: Dict[str, Optional[str]] = {
            "code": self.code,
            "message": self.message,
        }
        if self.service_name:
            detail["serviceName"] = self.service_name
        return detail


class NotFound(ContractMonitorError):
    """Unknown service, spec, report or breaking change id."""


class InvalidInput(ContractMonitorError):
    """Malformed request value or an id that does not belong to the named service."""


class InvalidStatus(InvalidInput):
    """Requested status is outside the lifecycle enumeration."""


class InvalidStatusTransition(InvalidInput):
    """Status update attempted on a record that already reached a terminal state."""


class UpstreamUnavailable(ContractMonitorError):
    """The remote service exposing the descriptor could not be reached."""


class EnrichmentFailed(ContractMonitorError):
    """Enrichment of a single change failed; always recovered locally."""


class AnalysisFailed(ContractMonitorError):
    """Unexpected failure during fetch, store or compare."""


__all__ = [
    "AnalysisFailed",
    "ContractMonitorError",
    "EnrichmentFailed",
    "InvalidInput",
    "InvalidStatus",
    "InvalidStatusTransition",
    "NotFound",
    "UpstreamUnavailable",
]
