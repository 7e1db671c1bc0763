"""Tests for WorkOrderService and the expense it books on completion."""

from decimal import Decimal

import pytest

from property_core.db import Expense
from property_core.enums import ExpenseCategory, WorkOrderCategory, WorkOrderStatus
from property_core.exceptions import ErrorCode, RepositoryError, ServiceError, ValidationError
from property_core.schemas.maintenance_schema import WorkOrderCreate
from tests.fixtures.factories import PropertyFactory, UnitFactory, VendorFactory


@pytest.fixture
def prop():
    return PropertyFactory()


def _work_order(property_id, **overrides):
    values = dict(
        property_id=property_id,
        title="Leaking kitchen tap",
        category=WorkOrderCategory.PLUMBING,
        estimated_cost=Decimal("300"),
    )
    values.update(overrides)
    return WorkOrderCreate(**values)


@pytest.fixture
def in_progress(work_order_service, prop):
    work_order = work_order_service.create_work_order(_work_order(prop.id))
    work_order_service.assign_vendor(work_order.id, VendorFactory().id)
    return work_order_service.start_work(work_order.id)


class TestCreateWorkOrder:
    def test_create(self, work_order_service, prop):
        result = work_order_service.create_work_order(_work_order(prop.id))

        assert result.work_order_number == "WO-2026-0001"
        assert result.status == WorkOrderStatus.OPEN
        assert result.category == WorkOrderCategory.PLUMBING

    def test_unknown_property(self, work_order_service):
        with pytest.raises(RepositoryError) as exc_info:
            work_order_service.create_work_order(_work_order("missing"))
        assert exc_info.value.error_code == ErrorCode.NOT_FOUND

    def test_unit_must_belong_to_property(self, work_order_service, prop):
        other_unit = UnitFactory(property=PropertyFactory(name="Tower B"))

        with pytest.raises(RepositoryError):
            work_order_service.create_work_order(_work_order(prop.id, unit_id=other_unit.id))


class TestWorkOrderLifecycle:
    def test_assign_and_reassign(self, work_order_service, prop):
        work_order = work_order_service.create_work_order(_work_order(prop.id))
        first, second = VendorFactory(), VendorFactory(company_name="Blue Pools")

        work_order_service.assign_vendor(work_order.id, first.id)
        result = work_order_service.assign_vendor(work_order.id, second.id)

        assert result.status == WorkOrderStatus.ASSIGNED
        assert result.assigned_vendor_id == second.id

    def test_deleted_vendor_cannot_be_assigned(self, work_order_service, prop):
        work_order = work_order_service.create_work_order(_work_order(prop.id))

        with pytest.raises(RepositoryError):
            work_order_service.assign_vendor(work_order.id, VendorFactory(is_deleted=True).id)

    def test_cannot_start_unassigned(self, work_order_service, prop):
        work_order = work_order_service.create_work_order(_work_order(prop.id))

        with pytest.raises(ServiceError) as exc_info:
            work_order_service.start_work(work_order.id)
        assert exc_info.value.error_code == ErrorCode.INVALID_STATE_TRANSITION

    def test_cannot_reassign_in_progress(self, work_order_service, in_progress):
        with pytest.raises(ServiceError):
            work_order_service.assign_vendor(in_progress.id, VendorFactory().id)

    def test_complete_books_expense(self, work_order_service, in_progress, db_session):
        result = work_order_service.complete_work_order(
            in_progress.id, Decimal("420"), completed_by="supervisor-1"
        )

        assert result.status == WorkOrderStatus.COMPLETED
        assert result.actual_cost == Decimal("420")
        assert result.completed_at is not None
        expense = db_session.query(Expense).one()
        assert expense.work_order_id == in_progress.id
        assert expense.amount == Decimal("420")
        assert expense.category == ExpenseCategory.MAINTENANCE.value
        assert expense.vendor_id == in_progress.assigned_vendor_id
        assert expense.description == "Work Order WO-2026-0001: Leaking kitchen tap"

    def test_zero_cost_books_nothing(self, work_order_service, in_progress, db_session):
        work_order_service.complete_work_order(in_progress.id, Decimal("0"))

        assert db_session.query(Expense).count() == 0

    def test_negative_cost_rejected(self, work_order_service, in_progress):
        with pytest.raises(ValidationError):
            work_order_service.complete_work_order(in_progress.id, Decimal("-1"))
        current = work_order_service.get_work_order(in_progress.id)
        assert current.status == WorkOrderStatus.IN_PROGRESS

    def test_close_after_completion(self, work_order_service, in_progress):
        with pytest.raises(ServiceError):
            work_order_service.close_work_order(in_progress.id)

        work_order_service.complete_work_order(in_progress.id, Decimal("100"))

        assert work_order_service.close_work_order(in_progress.id).status == WorkOrderStatus.CLOSED

    def test_list_by_status(self, work_order_service, prop, in_progress):
        work_order_service.create_work_order(_work_order(prop.id, title="Repaint lobby"))

        result = work_order_service.list_work_orders(
            property_id=prop.id, status=WorkOrderStatus.IN_PROGRESS
        )

        assert [w.id for w in result["data"]] == [in_progress.id]
