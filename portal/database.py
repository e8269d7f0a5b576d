import logging
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from . import config

logger = logging.getLogger(__name__)


def build_engine(url: str) -> Engine:
    """SQLite for local runs and tests, a pre-pinged pool for Postgres"""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    logger.info(
        f"📊 Connection pool: size={config.DB_POOL_SIZE}, "
        f"max_overflow={config.DB_MAX_OVERFLOW}, timeout={config.DB_POOL_TIMEOUT}s"
    )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=config.DB_POOL_RECYCLE,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_timeout=config.DB_POOL_TIMEOUT,
    )


def log_slow_queries(target: Engine, threshold: float) -> None:
    @event.listens_for(target, "before_cursor_execute")
    def _start_timer(conn, _cursor, _statement, _parameters, _context, _executemany):
        conn.info.setdefault("query_start_time", []).append(time.time())

    @event.listens_for(target, "after_cursor_execute")
    def _check_duration(conn, _cursor, statement, _parameters, _context, _executemany):
        elapsed = time.time() - conn.info["query_start_time"].pop(-1)
        if elapsed > threshold:
            logger.warning(f"🐌 Slow query ({elapsed:.2f}s): {statement[:200]}...")


engine = build_engine(config.DATABASE_URL)
if config.DB_LOG_SLOW_QUERIES:
    log_slow_queries(engine, config.DB_SLOW_QUERY_SECONDS)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
