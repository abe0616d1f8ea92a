import threading

import pytest
from prometheus_client import REGISTRY
from sqlalchemy.orm import sessionmaker

from models.analysis_report import AnalysisReport
from models.api_spec import ApiSpec
from models.breaking_change import BreakingChange, ChangeStatus, ChangeType
from services import analysis_service, baseline_service, breaking_change_service, spec_store
from services.contract_errors import AnalysisFailed, NotFound, UpstreamUnavailable
from services.enrichment_service import UNAVAILABLE_PREFIX

USERS_V1 = {
    "paths": {"/api/users": {"get": {}, "post": {}}, "/api/users/{id}": {"get": {}, "delete": {}}},
    "schemas": {"User": {"properties": {"id": {"type": "integer"}, "email": {"type": "string"}}}},
}


def _v1(make_document):
    return make_document(paths=USERS_V1["paths"], schemas=USERS_V1["schemas"])


def _without_user_by_id(make_document):
    return make_document(paths={"/api/users": {"get": {}, "post": {}}}, schemas=USERS_V1["schemas"])


def _run(db, fetcher, enricher, settings, service_name="user-service"):
    return analysis_service.analyze_service(
        db,
        service_name,
        fetcher=fetcher,
        enricher=enricher,
        settings=settings,
    )


def test_first_observation_pins_baseline(db_session, fetcher, enricher, settings, make_document):
    fetcher.documents["user-service"] = _v1(make_document)

    report = _run(db_session, fetcher, enricher, settings)

    spec = spec_store.get_latest_spec(db_session, "user-service")
    assert spec.is_baseline is True
    assert spec.baseline_set_at is not None
    assert report.breaking_changes_count == 0
    assert report.non_breaking_changes_count == 0
    assert report.summary == f"Baseline spec saved for user-service. Version: {spec.version}"
    assert db_session.query(BreakingChange).count() == 0
    assert enricher.calls == []


def test_unchanged_document_reports_zero_changes(db_session, fetcher, enricher, settings, make_document):
    fetcher.documents["user-service"] = _v1(make_document)
    _run(db_session, fetcher, enricher, settings)

    report = _run(db_session, fetcher, enricher, settings)

    assert report.breaking_changes_count == 0
    assert report.summary.startswith("Analysis of user-service: ")
    assert report.summary.endswith("Breaking changes: 0\n")
    assert spec_store.get_total_spec_count(db_session) == 2


def test_removal_is_recorded_with_enrichment(db_session, fetcher, enricher, settings, make_document):
    fetcher.documents["user-service"] = _v1(make_document)
    _run(db_session, fetcher, enricher, settings)
    baseline = baseline_service.get_baseline(db_session, "user-service")

    fetcher.documents["user-service"] = _without_user_by_id(make_document)
    report = _run(db_session, fetcher, enricher, settings)

    latest = spec_store.get_latest_spec(db_session, "user-service")
    (change,) = breaking_change_service.list_by_service(db_session, "user-service")
    assert change.change_type == ChangeType.ENDPOINT_REMOVED
    assert change.path == "/api/users/{id}"
    assert change.old_version == baseline.version
    assert change.new_version == latest.version
    assert change.status == ChangeStatus.ACTIVE
    assert change.ai_suggestion == "fix /api/users/{id}"
    assert change.predicted_impact == "impact /api/users/{id}"
    assert change.plain_english_explanation == "explain /api/users/{id}"
    assert enricher.calls == [("/api/users/{id}", tuple(settings.monitored_services))]

    assert report.breaking_changes_count == 1
    assert report.summary == (
        f"Analysis of user-service: {baseline.version} → {latest.version}\n"
        "Breaking changes: 1\n"
        "\nBreaking changes detected:\n"
        "- ENDPOINT_REMOVED at /api/users/{id}: Endpoint '/api/users/{id}' was removed\n"
    )


def test_reanalysis_appends_without_touching_existing_records(
    db_session, fetcher, enricher, settings, make_document
):
    fetcher.documents["user-service"] = _v1(make_document)
    _run(db_session, fetcher, enricher, settings)
    fetcher.documents["user-service"] = _without_user_by_id(make_document)
    _run(db_session, fetcher, enricher, settings)
    (first,) = breaking_change_service.list_by_service(db_session, "user-service")
    breaking_change_service.acknowledge(db_session, first.id, "alice")

    _run(db_session, fetcher, enricher, settings)

    changes = breaking_change_service.list_by_service(db_session, "user-service")
    assert len(changes) == 2
    assert {c.path for c in changes} == {"/api/users/{id}"}
    statuses = {c.id: c.status for c in changes}
    assert statuses[first.id] == ChangeStatus.ACKNOWLEDGED
    assert sorted(statuses.values()) == sorted([ChangeStatus.ACKNOWLEDGED, ChangeStatus.ACTIVE])
    assert len(analysis_service.get_report_history(db_session, "user-service")) == 3


def test_malformed_document_yields_zero_changes(db_session, fetcher, enricher, settings, make_document):
    fetcher.documents["user-service"] = _v1(make_document)
    _run(db_session, fetcher, enricher, settings)

    fetcher.documents["user-service"] = "this is not an OpenAPI document"
    report = _run(db_session, fetcher, enricher, settings)

    assert report.breaking_changes_count == 0
    assert spec_store.get_latest_spec(db_session, "user-service").spec_content == "this is not an OpenAPI document"
    assert db_session.query(BreakingChange).count() == 0

    deeply_nested = "[" * 50000
    fetcher.documents["user-service"] = deeply_nested
    report = _run(db_session, fetcher, enricher, settings)

    assert report.breaking_changes_count == 0
    assert spec_store.get_latest_spec(db_session, "user-service").spec_content == deeply_nested
    assert len(analysis_service.get_report_history(db_session, "user-service")) == 3


def test_unknown_service_is_rejected(db_session, fetcher, enricher, settings):
    with pytest.raises(NotFound):
        _run(db_session, fetcher, enricher, settings, service_name="billing-service")
    assert fetcher.fetch_calls == []


def test_unavailable_service_persists_nothing(db_session, fetcher, enricher, settings, make_document):
    fetcher.documents["user-service"] = _v1(make_document)
    fetcher.offline.add("user-service")

    with pytest.raises(UpstreamUnavailable):
        _run(db_session, fetcher, enricher, settings)

    assert fetcher.fetch_calls == []
    assert db_session.query(ApiSpec).count() == 0
    assert db_session.query(AnalysisReport).count() == 0


def test_unexpected_fetch_failure_is_wrapped(db_session, fetcher, enricher, settings):
    class BrokenFetcher(type(fetcher)):
        def fetch_descriptor(self, service_name):
            raise RuntimeError("socket closed")

        def is_available(self, service_name):
            return True

    with pytest.raises(AnalysisFailed) as excinfo:
        _run(db_session, BrokenFetcher(), enricher, settings)

    assert "socket closed" in excinfo.value.message
    assert excinfo.value.service_name == "user-service"


def test_persistence_failure_rolls_back_the_whole_run(
    db_session, fetcher, enricher, settings, make_document, monkeypatch
):
    fetcher.documents["user-service"] = _v1(make_document)
    _run(db_session, fetcher, enricher, settings)
    fetcher.documents["user-service"] = _without_user_by_id(make_document)

    def broken_save_all(*_args, **_kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(breaking_change_service, "save_all", broken_save_all)

    with pytest.raises(AnalysisFailed):
        _run(db_session, fetcher, enricher, settings)

    assert spec_store.get_total_spec_count(db_session) == 1
    assert db_session.query(AnalysisReport).count() == 1
    assert db_session.query(BreakingChange).count() == 0


def test_enrichment_failure_is_isolated_per_change(db_session, fetcher, enricher, settings, make_document):
    fetcher.documents["user-service"] = _v1(make_document)
    _run(db_session, fetcher, enricher, settings)
    enricher.failing_paths = {"/components/schemas/User"}
    fetcher.documents["user-service"] = make_document(
        paths={"/api/users": {"get": {}, "post": {}}},
        schemas={"User": {"properties": {"id": {"type": "integer"}}}},
    )

    report = _run(db_session, fetcher, enricher, settings)

    assert report.breaking_changes_count == 2
    by_path = {c.path: c for c in breaking_change_service.list_by_service(db_session, "user-service")}
    assert by_path["/api/users/{id}"].ai_suggestion == "fix /api/users/{id}"
    failed = by_path["/components/schemas/User"]
    assert failed.change_type == ChangeType.FIELD_REMOVED
    for text in (failed.ai_suggestion, failed.predicted_impact, failed.plain_english_explanation):
        assert text == f"{UNAVAILABLE_PREFIX}model offline"


def test_missing_enricher_stores_disabled_sentinel(db_session, fetcher, settings, make_document):
    fetcher.documents["user-service"] = _v1(make_document)
    _run(db_session, fetcher, None, settings)
    fetcher.documents["user-service"] = _without_user_by_id(make_document)

    _run(db_session, fetcher, None, settings)

    (change,) = breaking_change_service.list_by_service(db_session, "user-service")
    assert change.ai_suggestion == f"{UNAVAILABLE_PREFIX}disabled"


def test_pinned_baseline_is_used_over_previous_snapshot(db_session, fetcher, enricher, settings, make_document):
    fetcher.documents["user-service"] = _v1(make_document)
    _run(db_session, fetcher, enricher, settings)
    fetcher.documents["user-service"] = _without_user_by_id(make_document)
    _run(db_session, fetcher, enricher, settings)
    baseline_service.set_latest_as_baseline(db_session, "user-service")

    report = _run(db_session, fetcher, enricher, settings)

    assert report.breaking_changes_count == 0


def test_analyze_all_tallies_outcomes(db_session, fetcher, enricher, settings, make_document):
    fetcher.documents["user-service"] = _v1(make_document)

    batch = analysis_service.analyze_all(db_session, fetcher=fetcher, enricher=enricher, settings=settings)

    assert batch.to_payload() == {
        "totalServices": 2,
        "successCount": 1,
        "failCount": 1,
        "results": {
            "user-service": {"status": "success", "breakingChanges": 0},
            "order-service": {"status": "offline"},
        },
    }


def test_analyze_all_reports_errors_per_service(db_session, fetcher, enricher, settings, make_document, monkeypatch):
    fetcher.documents["user-service"] = _v1(make_document)
    fetcher.documents["order-service"] = _v1(make_document)
    original = spec_store.fetch_and_save_spec

    def flaky_fetch_and_save(db, service_name, *args, **kwargs):
        if service_name == "order-service":
            raise RuntimeError("store exploded")
        return original(db, service_name, *args, **kwargs)

    monkeypatch.setattr(spec_store, "fetch_and_save_spec", flaky_fetch_and_save)

    batch = analysis_service.analyze_all(db_session, fetcher=fetcher, enricher=enricher, settings=settings)

    assert batch.success_count == 1
    assert batch.fail_count == 1
    assert batch.results["order-service"]["status"] == "error"
    assert "store exploded" in batch.results["order-service"]["message"]


def test_service_status_probes(fetcher, settings, make_document):
    fetcher.documents["user-service"] = make_document()

    assert analysis_service.service_status(fetcher, "user-service") == {
        "serviceName": "user-service",
        "available": True,
        "status": "online",
    }
    overview = analysis_service.all_service_status(fetcher, settings)
    assert overview == {
        "services": {"user-service": True, "order-service": False},
        "onlineCount": 1,
        "totalCount": 2,
    }


def test_run_outcome_is_recorded_per_kind(db_session, fetcher, enricher, settings, make_document):
    def runs(outcome):
        labels = {"service": "order-service", "outcome": outcome}
        return REGISTRY.get_sample_value("contract_analysis_runs_total", labels) or 0.0

    fetcher.documents["order-service"] = make_document()
    baseline_before, success_before = runs("baseline"), runs("success")

    _run(db_session, fetcher, enricher, settings, service_name="order-service")
    _run(db_session, fetcher, enricher, settings, service_name="order-service")

    assert runs("baseline") == baseline_before + 1
    assert runs("success") == success_before + 1


def test_runs_for_the_same_service_are_serialised(engine, fetcher, enricher, settings, make_document):
    fetcher.documents["user-service"] = _v1(make_document)
    fetcher.documents["order-service"] = make_document()
    session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    entered = threading.Event()
    release = threading.Event()
    fetch_order = []
    serve = fetcher.fetch_descriptor

    def fetch_descriptor(service_name):
        fetch_order.append(service_name)
        if service_name == "user-service" and not entered.is_set():
            entered.set()
            release.wait(5)
        return serve(service_name)

    fetcher.fetch_descriptor = fetch_descriptor
    finished = []

    def run(service_name):
        session = session_factory()
        try:
            _run(session, fetcher, enricher, settings, service_name=service_name)
            finished.append(service_name)
        finally:
            session.close()

    first = threading.Thread(target=run, args=("user-service",))
    second = threading.Thread(target=run, args=("user-service",))
    other = threading.Thread(target=run, args=("order-service",))
    first.start()
    try:
        assert entered.wait(5)
        second.start()
        other.start()

        other.join(5)
        assert not other.is_alive()
        second.join(0.3)
        assert second.is_alive()
        assert fetch_order == ["user-service", "order-service"]
        assert finished == ["order-service"]
    finally:
        release.set()
        first.join(5)
        second.join(5)

    assert finished == ["order-service", "user-service", "user-service"]
    session = session_factory()
    try:
        assert len(analysis_service.get_report_history(session, "user-service")) == 2
    finally:
        session.close()
