"""Best-effort natural-language enrichment of detected breaking changes.

Every change is enriched independently: a failure or timeout on one change
yields sentinel texts for that change only, and the run carries on.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from core.logging import get_logger
from core.settings import MonitorSettings, get_settings
from llm import llm_service
from services.contract_errors import EnrichmentFailed
from services.contract_metrics import observe_enrichment_failure
from services.spec_comparator import BreakingChangeCandidate

logger = get_logger(__name__)

UNAVAILABLE_PREFIX = "enrichment unavailable: "


def unavailable_text(reason: str) -> str:
    return f"{UNAVAILABLE_PREFIX}{reason}"


@dataclass(frozen=True)
class ChangeEnrichment:
    suggestion: str
    impact: str
    explanation: str

    @classmethod
    def unavailable(cls, reason: str) -> "ChangeEnrichment":
        text = unavailable_text(reason)
        return cls(suggestion=text, impact=text, explanation=text)

    @property
    def failed(self) -> bool:
        return all(
            value.startswith(UNAVAILABLE_PREFIX) for value in (self.suggestion, self.impact, self.explanation)
        )


class ChangeEnricher(Protocol):
    def enrich(self, change: BreakingChangeCandidate, known_services: Sequence[str]) -> ChangeEnrichment:
        ...


def change_prompt_fields(change: BreakingChangeCandidate) -> Dict[str, str]:
    return {
        "service_name": change.service_name,
        "change_type": change.change_type.value,
        "path": change.path,
        "description": change.description,
        "old_version": change.old_version,
        "new_version": change.new_version,
    }


def _text_or_sentinel(result: Mapping[str, Any]) -> str:
    content = result.get("content")
    if isinstance(content, str) and content:
        return content
    return unavailable_text(str(result.get("error") or "empty response"))


class LlmChangeEnricher:
    """Enricher backed by the litellm prompts in :mod:`llm.llm_service`."""

    def enrich(self, change: BreakingChangeCandidate, known_services: Sequence[str]) -> ChangeEnrichment:
        fields = change_prompt_fields(change)
        enrichment = ChangeEnrichment(
            suggestion=_text_or_sentinel(llm_service.suggest_backward_compatible_fix(fields)),
            impact=_text_or_sentinel(llm_service.predict_change_impact(fields, known_services)),
            explanation=_text_or_sentinel(llm_service.explain_in_plain_english(fields)),
        )
        if enrichment.failed:
            raise EnrichmentFailed(
                code="enrichment.failed",
                message=enrichment.suggestion[len(UNAVAILABLE_PREFIX):],
                service_name=change.service_name,
            )
        return enrichment


def _enrich_one(
    enricher: ChangeEnricher,
    change: BreakingChangeCandidate,
    known_services: Sequence[str],
) -> ChangeEnrichment:
    try:
        return enricher.enrich(change, known_services)
    except Exception as exc:
        logger.warning(
            "Enrichment failed for %s at %s (%s): %s",
            change.change_type.value,
            change.path,
            change.service_name,
            exc,
        )
        observe_enrichment_failure(change.service_name)
        return ChangeEnrichment.unavailable(str(exc) or type(exc).__name__)


def enrich_changes(
    changes: Sequence[BreakingChangeCandidate],
    enricher: Optional[ChangeEnricher],
    known_services: Sequence[str],
    *,
    settings: Optional[MonitorSettings] = None,
) -> List[ChangeEnrichment]:
    """Enrich ``changes`` concurrently, one result per change in the same order."""
    if not changes:
        return []
    settings = settings or get_settings()
    if enricher is None or not settings.enrichment_enabled:
        return [ChangeEnrichment.unavailable("disabled") for _ in changes]

    executor = ThreadPoolExecutor(
        max_workers=min(settings.enrichment_max_workers, len(changes)),
        thread_name_prefix="enrichment",
    )
    futures: List[Future] = [
        executor.submit(_enrich_one, enricher, change, known_services) for change in changes
    ]
    results: List[ChangeEnrichment] = []
    try:
        # One deadline for the whole batch; stragglers get the timeout sentinel.
        done, _ = wait(futures, timeout=settings.enrichment_timeout_seconds)
        for change, future in zip(changes, futures):
            if future in done:
                results.append(future.result())
                continue
            logger.warning(
                "Enrichment timed out after %.1fs for %s at %s",
                settings.enrichment_timeout_seconds,
                change.change_type.value,
                change.path,
            )
            observe_enrichment_failure(change.service_name)
            results.append(ChangeEnrichment.unavailable("timed out"))
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    return results


__all__ = [
    "ChangeEnricher",
    "ChangeEnrichment",
    "LlmChangeEnricher",
    "UNAVAILABLE_PREFIX",
    "change_prompt_fields",
    "enrich_changes",
    "unavailable_text",
]
