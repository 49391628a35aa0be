import logging
import os
import time

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "30"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
SLOW_QUERY_SECONDS = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))


def engine_options(url: str) -> dict:
    """Pool settings for Postgres; SQLite (local dev, tests) gets a thread-shared connection"""
    if not url.startswith("sqlite"):
        return {
            "pool_pre_ping": True,
            "pool_recycle": POOL_RECYCLE,
            "pool_size": POOL_SIZE,
            "max_overflow": MAX_OVERFLOW,
            "pool_timeout": POOL_TIMEOUT,
        }

    options = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # Every session must see the same in-memory database
        options["poolclass"] = StaticPool
    return options


engine = create_engine(DATABASE_URL, echo=False, **engine_options(DATABASE_URL))
logger.info(f"✅ Database engine ready ({engine.dialect.name})")


def _start_timer(conn, _cursor, _statement, _parameters, _context, _executemany):
    conn.info.setdefault("query_started", []).append(time.perf_counter())


def _report_slow_query(conn, _cursor, statement, _parameters, _context, _executemany):
    elapsed = time.perf_counter() - conn.info["query_started"].pop()
    if elapsed > SLOW_QUERY_SECONDS:
        logger.warning(f"🐌 Slow query ({elapsed:.2f}s): {statement[:200]}")


if LOG_SLOW_QUERIES:
    event.listen(engine, "before_cursor_execute", _start_timer)
    event.listen(engine, "after_cursor_execute", _report_slow_query)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
