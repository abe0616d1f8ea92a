"""Analysis runs: fetch, store, pick a comparison target, diff, enrich, record.

One call to :func:`analyze_service` is one transaction on the given session.
The new snapshot, the ledger records and the report are committed together;
if fetching, storing or comparing fails, the session is rolled back and the
run leaves nothing behind. Enrichment never fails a run.

Runs for the same service are serialised through an in-process lock keyed by
service name. Separate processes sharing a database are not coordinated.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from core.logging import get_logger
from core.settings import MonitorSettings, get_settings
from ingest.openapi_client import DescriptorFetcher
from models.analysis_report import AnalysisReport
from models.api_spec import ApiSpec
from services import baseline_service, breaking_change_service, spec_store
from services.contract_errors import AnalysisFailed, ContractMonitorError, NotFound, UpstreamUnavailable
from services.contract_metrics import observe_analysis_run, observe_breaking_change
from services.descriptor_tree import DescriptorParseError, parse_descriptor
from services.enrichment_service import ChangeEnricher, enrich_changes
from services.spec_comparator import BreakingChangeCandidate, ParsedDescriptor, compare

logger = get_logger(__name__)

_SERVICE_LOCKS: Dict[str, threading.Lock] = {}
_SERVICE_LOCKS_GUARD = threading.Lock()


def _service_lock(service_name: str) -> threading.Lock:
    with _SERVICE_LOCKS_GUARD:
        lock = _SERVICE_LOCKS.get(service_name)
        if lock is None:
            lock = threading.Lock()
            _SERVICE_LOCKS[service_name] = lock
        return lock


@dataclass
class BatchAnalysisResult:
    total_services: int = 0
    success_count: int = 0
    fail_count: int = 0
    results: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "totalServices": self.total_services,
            "successCount": self.success_count,
            "failCount": self.fail_count,
            "results": self.results,
        }


# ---------------------------------------------------------------------------
# Report text
# ---------------------------------------------------------------------------


def build_report_summary(
    service_name: str,
    old_version: str,
    new_version: str,
    changes: Sequence[BreakingChangeCandidate],
) -> str:
    lines = [
        f"Analysis of {service_name}: {old_version} → {new_version}\n",
        f"Breaking changes: {len(changes)}\n",
    ]
    if changes:
        lines.append("\nBreaking changes detected:\n")
        for change in changes:
            lines.append(f"- {change.change_type.value} at {change.path}: {change.description}\n")
    return "".join(lines)


def build_baseline_summary(service_name: str, version: str) -> str:
    return f"Baseline spec saved for {service_name}. Version: {version}"


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def parse_snapshot(spec: ApiSpec) -> ParsedDescriptor:
    return ParsedDescriptor(
        service_name=spec.service_name,
        version=spec.version,
        document=parse_descriptor(spec.spec_content),
    )


def compare_snapshots(old_spec: ApiSpec, new_spec: ApiSpec) -> List[BreakingChangeCandidate]:
    """Diff two stored snapshots; an unparsable document yields no changes."""
    try:
        old = parse_snapshot(old_spec)
        new = parse_snapshot(new_spec)
    except DescriptorParseError as exc:
        logger.error(
            "Error comparing specs for %s (%s → %s): %s",
            new_spec.service_name,
            old_spec.version,
            new_spec.version,
            exc,
            exc_info=True,
        )
        return []
    return compare(old, new)


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------


def _ensure_known(service_name: str, settings: MonitorSettings) -> None:
    if not settings.is_known(service_name):
        raise NotFound(
            code="service.unknown",
            message=f"Unknown service: {service_name}",
            service_name=service_name,
        )


def _record_baseline_run(db: Session, spec: ApiSpec) -> AnalysisReport:
    logger.info("Not enough history to analyze %s. Creating initial baseline.", spec.service_name)
    baseline_service.pin_baseline(db, spec, commit=False)
    report = AnalysisReport(
        service_name=spec.service_name,
        breaking_changes_count=0,
        non_breaking_changes_count=0,
        summary=build_baseline_summary(spec.service_name, spec.version),
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    return report


def _run_analysis(
    db: Session,
    service_name: str,
    fetcher: DescriptorFetcher,
    enricher: Optional[ChangeEnricher],
    settings: MonitorSettings,
) -> Tuple[AnalysisReport, str]:
    new_spec = spec_store.fetch_and_save_spec(
        db,
        service_name,
        fetcher,
        environment=settings.spec_environment,
        commit=False,
    )

    target = baseline_service.resolve_comparison_target(db, service_name)
    if target is None:
        return _record_baseline_run(db, new_spec), "baseline"

    logger.info("Comparing %s: %s → %s", service_name, target.version, new_spec.version)
    changes = compare_snapshots(target, new_spec)

    enrichments = enrich_changes(changes, enricher, settings.monitored_services, settings=settings)
    if changes:
        breaking_change_service.save_all(db, changes, enrichments, commit=False)

    report = AnalysisReport(
        service_name=service_name,
        breaking_changes_count=len(changes),
        non_breaking_changes_count=0,
        summary=build_report_summary(service_name, target.version, new_spec.version, changes),
    )
    db.add(report)
    db.commit()
    db.refresh(report)

    for change in changes:
        observe_breaking_change(service_name, change.change_type.value)
    logger.info("Analysis complete for %s. Found %d breaking changes", service_name, len(changes))
    return report, "success"


def analyze_service(
    db: Session,
    service_name: str,
    *,
    fetcher: DescriptorFetcher,
    enricher: Optional[ChangeEnricher] = None,
    settings: Optional[MonitorSettings] = None,
    check_availability: bool = True,
) -> AnalysisReport:
    """Analyse the current descriptor of ``service_name`` and return the run report."""
    settings = settings or get_settings()
    logger.info("Starting analysis for %s", service_name)
    _ensure_known(service_name, settings)

    started = time.monotonic()
    if check_availability and not fetcher.is_available(service_name):
        observe_analysis_run(service_name, "unavailable", time.monotonic() - started)
        raise UpstreamUnavailable(
            code="service.unavailable",
            message=f"{service_name} is currently offline or unreachable",
            service_name=service_name,
        )

    with _service_lock(service_name):
        try:
            report, outcome = _run_analysis(db, service_name, fetcher, enricher, settings)
        except ContractMonitorError:
            db.rollback()
            observe_analysis_run(service_name, "failed", time.monotonic() - started)
            raise
        except Exception as exc:
            db.rollback()
            observe_analysis_run(service_name, "failed", time.monotonic() - started)
            logger.error("Error analyzing %s: %s", service_name, exc, exc_info=True)
            raise AnalysisFailed(
                code="analysis.failed",
                message=f"Analysis of {service_name} failed: {exc}",
                service_name=service_name,
            ) from exc

    observe_analysis_run(service_name, outcome, time.monotonic() - started)
    return report


def analyze_all(
    db: Session,
    *,
    fetcher: DescriptorFetcher,
    enricher: Optional[ChangeEnricher] = None,
    settings: Optional[MonitorSettings] = None,
) -> BatchAnalysisResult:
    """Analyse every configured service; one failing service never stops the rest."""
    settings = settings or get_settings()
    logger.info("Analyzing all %d monitored services", len(settings.monitored_services))
    batch = BatchAnalysisResult(total_services=len(settings.monitored_services))

    for service_name in settings.monitored_services:
        try:
            if not fetcher.is_available(service_name):
                batch.results[service_name] = {"status": "offline"}
                batch.fail_count += 1
                continue
            report = analyze_service(
                db,
                service_name,
                fetcher=fetcher,
                enricher=enricher,
                settings=settings,
                check_availability=False,
            )
        except Exception as exc:
            logger.error("Error analyzing %s: %s", service_name, exc)
            status = "offline" if isinstance(exc, UpstreamUnavailable) else "error"
            entry: Dict[str, Any] = {"status": status}
            if status == "error":
                entry["message"] = str(exc)
            batch.results[service_name] = entry
            batch.fail_count += 1
            continue
        batch.results[service_name] = {
            "status": "success",
            "breakingChanges": report.breaking_changes_count,
        }
        batch.success_count += 1
    return batch


# ---------------------------------------------------------------------------
# Reports and availability
# ---------------------------------------------------------------------------


def get_latest_report(db: Session, service_name: str) -> Optional[AnalysisReport]:
    return (
        db.query(AnalysisReport)
        .filter(AnalysisReport.service_name == service_name)
        .order_by(AnalysisReport.analyzed_at.desc(), AnalysisReport.id.desc())
        .first()
    )


def get_report_history(db: Session, service_name: str) -> List[AnalysisReport]:
    return (
        db.query(AnalysisReport)
        .filter(AnalysisReport.service_name == service_name)
        .order_by(AnalysisReport.analyzed_at.desc(), AnalysisReport.id.desc())
        .all()
    )


def service_status(fetcher: DescriptorFetcher, service_name: str) -> Dict[str, Any]:
    available = fetcher.is_available(service_name)
    return {
        "serviceName": service_name,
        "available": available,
        "status": "online" if available else "offline",
    }


def all_service_status(fetcher: DescriptorFetcher, settings: Optional[MonitorSettings] = None) -> Dict[str, Any]:
    settings = settings or get_settings()
    statuses = {name: fetcher.is_available(name) for name in settings.monitored_services}
    return {
        "services": statuses,
        "onlineCount": sum(1 for available in statuses.values() if available),
        "totalCount": len(statuses),
    }


__all__ = [
    "BatchAnalysisResult",
    "all_service_status",
    "analyze_all",
    "analyze_service",
    "build_baseline_summary",
    "build_report_summary",
    "compare_snapshots",
    "get_latest_report",
    "get_report_history",
    "parse_snapshot",
    "service_status",
]
