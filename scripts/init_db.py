import argparse
import logging
import time
from typing import Callable, Optional

from scripts._path import add_root

add_root()

from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

import models  # noqa: F401
from database import Base, engine as default_engine

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _retry(operation: Callable[[], None], *, retries: int = 7, delay: float = 3.0) -> None:
    for attempt in range(1, retries + 1):
        try:
            operation()
            return
        except OperationalError as exc:
            if attempt == retries:
                raise
            logger.warning(
                "Database not ready yet (attempt %d/%d). Retrying in %.1f seconds: %s",
                attempt,
                retries,
                delay,
                exc,
            )
            time.sleep(delay)


def init_db(bind: Optional[Engine] = None, *, retries: int = 7, delay: float = 3.0) -> None:
    """Create the api_specs, breaking_changes and analysis_reports tables if missing."""
    target = bind or default_engine
    logger.info("Starting database bootstrap.")
    _retry(lambda: Base.metadata.create_all(bind=target), retries=retries, delay=delay)
    logger.info("SQLAlchemy model tables ensured: %s", ", ".join(sorted(Base.metadata.tables)))


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Create contract monitor tables.")
    parser.add_argument("--retries", type=int, default=7, help="Connection attempts before giving up.")
    parser.add_argument("--delay", type=float, default=3.0, help="Seconds between attempts.")
    args = parser.parse_args(argv)
    init_db(retries=args.retries, delay=args.delay)


if __name__ == "__main__":
    main()
