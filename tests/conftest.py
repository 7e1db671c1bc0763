"""
Shared test fixtures.

Every test gets a fresh SQLite in-memory schema; services receive the
session explicitly so they only flush and the fixture rolls everything back.
"""

import pytest
from sqlalchemy.orm import Session

from property_core.config import reset_config
from property_core.db import (
    DatabaseConfig,
    DatabaseManager,
    import_all_models,
)
from property_core.db.db_config import Base, initialize_db


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """Create SQLite in-memory database configuration for testing."""
    return DatabaseConfig(
        db_type="sqlite",
        database=":memory:",
        echo=False,
        development_mode=True,
    )


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Create and initialize database manager with all models."""
    import_all_models()
    return initialize_db(db_config)


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Database session for one test.

    Tables are created before and dropped after each test so no state
    leaks between tests.
    """
    session = db_manager.get_session()

    Base.metadata.create_all(db_manager.engine)

    yield session

    session.rollback()
    session.close()

    Base.metadata.drop_all(db_manager.engine)


@pytest.fixture(autouse=True)
def fresh_config():
    """Drop any configuration a test installed with set_config."""
    reset_config()
    yield
    reset_config()
