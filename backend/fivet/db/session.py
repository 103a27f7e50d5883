import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from fivet.core.config import StorageConfig
from fivet.core.db import register_query_timing, register_sqlite_pragmas

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()


def create_engine_from_config(config: StorageConfig) -> Engine:
    """Build an engine for the configured store.

    PostgreSQL gets production pooling; an in-memory SQLite URL is pinned to a
    single shared connection so DDL survives across sessions.
    """
    database_url = config.database_url
    url = make_url(database_url)
    is_postgres = url.drivername.startswith("postgresql") or url.drivername.startswith(
        "postgres"
    )

    if is_postgres:
        engine = create_engine(
            database_url,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,  # Detects and refreshes stale connections
            pool_recycle=3600,
            connect_args={
                "application_name": "fivet",  # Visible in pg_stat_activity
                "connect_timeout": 10,
            },
            echo=config.echo,
        )
    elif url.drivername.startswith("sqlite") and (
        url.database in (None, "", ":memory:")
    ):
        engine = create_engine(
            database_url,
            echo=config.echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(database_url, echo=config.echo)

    register_sqlite_pragmas(engine)
    if config.slow_query_alerts:
        register_query_timing(engine, threshold_ms=config.slow_query_ms)

    logger.debug(
        "SQLAlchemy engine created",
        extra={
            "context": {
                "dialect": engine.dialect.name,
                "database": url.database,
            }
        },
    )
    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    """Return a sessionmaker bound to ``engine``."""
    return sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )


def create_tables(engine: Engine) -> None:
    """Create all tables in database. Existing tables are left untouched."""
    # Models must be imported so Base.metadata is populated
    from fivet.db import base  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(
        "Database tables ensured",
        extra={"context": {"tables": sorted(Base.metadata.tables)}},
    )
