"""Binds the data factories to each service test's session."""

import pytest

from tests.fixtures.factories import configure_factories


@pytest.fixture(autouse=True)
def factories(db_session):
    configure_factories(db_session)
    yield
