from fastapi import Depends, FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.orm import Session

import models  # noqa: F401  (registers tables on Base.metadata)
from core.env import env_list
from core.logging import get_logger, setup_logging
from database import Base, engine, get_db
from web import routers

setup_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="Contract Monitor API",
    description="Detects breaking changes between OpenAPI snapshots of monitored services.",
    version="0.1.0",
)

origins = env_list(
    "CORS_ALLOWED_ORIGINS",
    [
        "http://localhost:3000",
        "http://localhost:5173",
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def create_tables() -> None:
    """Create missing tables; the schema is managed by ``create_all`` only."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured.")


@app.get("/", summary="Health Check", tags=["Default"])
def health_check():
    return {"status": "ok", "message": "Contract Monitor API is running."}


@app.get("/healthz", include_in_schema=False)
def liveness_probe(db: Session = Depends(get_db)):
    """Lightweight health probe backed by a database ping."""
    db_ok, db_error = routers.health.ping_database(db)
    payload = {"status": "ok" if db_ok else "unhealthy", "database": {"ok": db_ok}}
    if db_error:
        payload["database"]["error"] = db_error
    status_code = status.HTTP_200_OK if db_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=payload)


@app.get("/metrics", include_in_schema=False)
def prometheus_metrics():
    """Expose Prometheus metrics."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(routers.analysis.router, prefix="/api")
app.include_router(routers.specs.router, prefix="/api")
app.include_router(routers.baseline.router, prefix="/api")
app.include_router(routers.breaking_changes.router, prefix="/api")
app.include_router(routers.health.router, prefix="/api")
