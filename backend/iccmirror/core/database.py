"""
Database configuration and session management
"""
import logging
import time
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from iccmirror.core.config import get_settings
from iccmirror.core.logging_config import LoggingConfig
from iccmirror.core.metrics import db_queries_total, db_query_duration_seconds

# Lazy initialization - don't create engine at module level
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None

# Base class for models (can be created immediately)
Base = declarative_base()


def _statement_table(operation: str, statement: str) -> str:
    """Best-effort table name for a SQL statement"""
    words = statement.strip().split()
    keyword = {"select": "FROM", "delete": "FROM", "insert": "INTO"}.get(operation)
    if operation == "update" and len(words) > 1:
        return words[1].lower().strip(';"')
    if keyword:
        for i, word in enumerate(words[:-1]):
            if word.upper() == keyword:
                return words[i + 1].lower().strip(';"')
    return "unknown"


def setup_db_metrics(engine: Engine) -> None:
    """Setup SQLAlchemy event listeners for database metrics"""

    @event.listens_for(engine, "before_cursor_execute")
    def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault('query_start_time', []).append(time.time())

    @event.listens_for(engine, "after_cursor_execute")
    def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if not conn.info.get('query_start_time'):
            return
        duration = time.time() - conn.info['query_start_time'].pop()
        operation = statement.strip().split()[0].lower() if statement.strip() else "unknown"
        table = _statement_table(operation, statement)
        db_queries_total.labels(operation=operation, table=table).inc()
        db_query_duration_seconds.labels(operation=operation, table=table).observe(duration)


def get_engine() -> Engine:
    """Get or create database engine (lazy initialization)"""
    global _engine
    if _engine is None:
        settings = get_settings()
        LoggingConfig.configure()

        if settings.is_sqlite:
            database = make_url(settings.database_url).database
            if database and database != ":memory:":
                Path(database).parent.mkdir(parents=True, exist_ok=True)
            # Hardware calls run on worker threads, sessions may hop threads
            engine_kwargs = {"connect_args": {"check_same_thread": False, "timeout": 5}}
        else:
            engine_kwargs = {
                "pool_size": settings.database_pool_size,
                "max_overflow": settings.database_max_overflow,
                "pool_pre_ping": True,
            }

        _engine = create_engine(
            settings.database_url,
            echo=settings.log_sqlalchemy,
            **engine_kwargs,
        )

        sqlalchemy_logger = logging.getLogger("sqlalchemy.engine")
        if not settings.log_sqlalchemy:
            sqlalchemy_logger.setLevel(logging.WARNING)
            sqlalchemy_logger.propagate = False

        setup_db_metrics(_engine)

    return _engine


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory whose objects stay readable after the session closes"""
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


def get_session_local() -> sessionmaker:
    """Get or create session factory (lazy initialization)"""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = make_session_factory(get_engine())
    return _SessionLocal


def init_db(engine: Optional[Engine] = None) -> None:
    """Create missing tables for all registered models"""
    import iccmirror.models  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session
    """
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
