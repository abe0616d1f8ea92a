"""Engine, session factory and declarative base for the contract monitor tables."""

from typing import Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from core.env import env_bool, env_str

load_dotenv()


def resolve_database_url() -> str:
    url: Optional[str] = env_str("DATABASE_URL") or env_str("TEST_DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL or TEST_DATABASE_URL must be set.")
    if not url.lower().startswith("postgresql") and not env_bool("DATABASE_ALLOW_NON_POSTGRES", False):
        raise RuntimeError(f"DATABASE_URL must be a PostgreSQL DSN. Got: {url}")
    return url


DATABASE_URL = resolve_database_url()
# FastAPI may run a sync dependency and its handler on different threads.
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    """Yield a request-scoped session and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
