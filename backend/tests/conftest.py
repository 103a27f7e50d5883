"""
Central pytest configuration for the fivet clinic records tests.

This file provides environment setup, shared fixtures and test markers
for both unit and integration tests.
"""

import os
import sys
from pathlib import Path

import pytest

# Add backend directory to sys.path for imports to work without installation
backend_root = Path(__file__).parent.parent  # backend/
sys.path.insert(0, str(backend_root))

# Test database configuration (set early so nothing reads a developer .env)
TEST_DATABASE_URL = "sqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["TESTING"] = "true"
os.environ.pop("FIVET_STRICT_VITAL_RANGES", None)

from fivet.core.config import StorageConfig  # noqa: E402
from fivet.db.session import (  # noqa: E402
    create_engine_from_config,
    create_tables,
    make_session_factory,
)
from fivet.services.clinic_service import ClinicService  # noqa: E402

from config.markers import *  # noqa: E402,F401,F403


@pytest.fixture
def storage_config():
    """In-memory SQLite descriptor; each engine built from it is a fresh database."""
    return StorageConfig(database_url=TEST_DATABASE_URL, slow_query_alerts=False)


@pytest.fixture
def engine(storage_config):
    eng = create_engine_from_config(storage_config)
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db_session(engine):
    """Session over a fresh database, closed after the test."""
    session = make_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def clinic_service(storage_config):
    service = ClinicService(storage_config)
    yield service
    service.close()
