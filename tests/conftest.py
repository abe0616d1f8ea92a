import json
import os
from typing import Dict, Generator, List, Optional, Sequence, Tuple

import pytest

os.environ.setdefault("DATABASE_ALLOW_NON_POSTGRES", "1")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("DATABASE_URL", os.getenv("DATABASE_URL", os.environ["TEST_DATABASE_URL"]))

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from core.settings import MonitorSettings
from database import Base, get_db
from services.contract_errors import UpstreamUnavailable
from services.enrichment_service import ChangeEnrichment
from services.spec_comparator import BreakingChangeCandidate
from web import deps
from web.routers import analysis, baseline, breaking_changes, health, specs

SERVICES = ("user-service", "order-service")


def openapi_document(paths: Optional[Dict] = None, schemas: Optional[Dict] = None) -> str:
    """Serialise a minimal OpenAPI 3 document with the given ``paths`` and schemas."""
    document: Dict = {
        "openapi": "3.0.1",
        "info": {"title": "test", "version": "v0"},
        "paths": paths if paths is not None else {},
        "components": {"schemas": schemas if schemas is not None else {}},
    }
    return json.dumps(document)


class FakeFetcher:
    """In-memory descriptor source; ``documents[service]`` is served on each fetch."""

    def __init__(self) -> None:
        self.documents: Dict[str, str] = {}
        self.offline: set = set()
        self.fetch_calls: List[str] = []

    def fetch_descriptor(self, service_name: str) -> str:
        self.fetch_calls.append(service_name)
        if service_name in self.offline:
            raise UpstreamUnavailable(
                code="service.unavailable",
                message=f"Service {service_name} is not available",
                service_name=service_name,
            )
        return self.documents[service_name]

    def is_available(self, service_name: str) -> bool:
        return service_name in self.documents and service_name not in self.offline


class FakeEnricher:
    """Returns canned texts; changes whose path is listed in ``failing_paths`` raise."""

    def __init__(self, failing_paths: Sequence[str] = ()) -> None:
        self.failing_paths = set(failing_paths)
        self.calls: List[Tuple[str, Tuple[str, ...]]] = []

    def enrich(self, change: BreakingChangeCandidate, known_services: Sequence[str]) -> ChangeEnrichment:
        self.calls.append((change.path, tuple(known_services)))
        if change.path in self.failing_paths:
            raise RuntimeError("model offline")
        return ChangeEnrichment(
            suggestion=f"fix {change.path}",
            impact=f"impact {change.path}",
            explanation=f"explain {change.path}",
        )


@pytest.fixture()
def make_document():
    return openapi_document


@pytest.fixture()
def settings() -> MonitorSettings:
    return MonitorSettings(
        monitored_services=SERVICES,
        service_urls={name: f"http://{name}.test" for name in SERVICES},
        enrichment_enabled=True,
        enrichment_timeout_seconds=5.0,
        enrichment_max_workers=2,
    )


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    test_engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Generator[Session, None, None]:
    session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture()
def enricher() -> FakeEnricher:
    return FakeEnricher()


@pytest.fixture()
def api_client(db_session, fetcher, enricher, settings):
    app = FastAPI()
    for module in (analysis, specs, baseline, breaking_changes, health):
        app.include_router(module.router, prefix="/api")

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_fetcher] = lambda: fetcher
    app.dependency_overrides[deps.get_enricher] = lambda: enricher
    app.dependency_overrides[deps.get_settings] = lambda: settings

    client = TestClient(app)
    try:
        yield client
    finally:
        client.close()
        app.dependency_overrides.clear()
