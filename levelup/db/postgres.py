"""
PostgreSQL Access

Holds the relational side of the verifier:
- github_tasks / github_user_tasks: task catalog and per-user assignments
- github_evidence: learner-submitted proof
- github_signals: activity events (commits, PRs, issues, releases...)
- github_scores, notifications, user_activity_points, user_inputs

All queries are raw SQL through SQLAlchemy `text()`; there is no ORM layer.
"""
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from levelup.core.config import get_settings
from levelup.core.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)

# pool_pre_ping: weekly batch runs leave connections idle for days
engine = create_engine(
    settings.postgres_url,
    pool_size=settings.postgres_pool_size,
    max_overflow=settings.postgres_max_overflow,
    pool_pre_ping=True,
    echo=settings.debug
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@contextmanager
def get_db_session() -> Iterator[Session]:
    """
    Transactional session scope.

    Everything executed inside the block commits together; any exception
    rolls the whole block back and is re-raised.

        with get_db_session() as db:
            db.execute(text("UPDATE user_tasks SET ..."), params)
            db.execute(text("INSERT INTO notifications ..."), params)
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def execute_raw_sql(sql: str, params: Optional[dict] = None) -> List[dict]:
    """Run one statement in its own transaction and return rows as dicts."""
    with get_db_session() as db:
        result = db.execute(text(sql), params or {})
        if not result.returns_rows:
            return []
        return [dict(row) for row in result.mappings()]


def test_postgres_connection() -> bool:
    """True when PostgreSQL answers a trivial query."""
    try:
        return execute_raw_sql("SELECT 1 AS ok")[0]["ok"] == 1
    except SQLAlchemyError as e:
        logger.error("PostgreSQL connection failed: %s", e)
        return False
