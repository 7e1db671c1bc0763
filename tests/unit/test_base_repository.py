"""Tests for BaseRepository error mapping."""

from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from property_core.exceptions import ErrorCode, RepositoryError, ValidationError
from property_core.repositories import BaseRepository


class ReportRepository(BaseRepository):
    pass


@pytest.fixture
def repository():
    return ReportRepository(session=Mock())


def test_yields_session(repository):
    with repository._session_operation("totals") as session:
        assert session is repository.session


def test_database_errors(repository):
    with pytest.raises(RepositoryError) as exc_info:
        with repository._session_operation("totals", property_id="p-1"):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    error = exc_info.value
    assert error.error_code == ErrorCode.DATABASE_ERROR
    assert error.context["repository"] == "ReportRepository"
    assert error.context["property_id"] == "p-1"


def test_unexpected_errors(repository):
    with pytest.raises(RepositoryError) as exc_info:
        with repository._session_operation("totals"):
            raise TypeError("bad bind")

    assert exc_info.value.error_code == ErrorCode.INTERNAL_ERROR


def test_domain_errors_pass_through(repository):
    with pytest.raises(ValidationError):
        with repository._session_operation("totals"):
            raise ValidationError("Bad window", field="days")
