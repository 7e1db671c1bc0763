"""
Maintenance work orders.

Lifecycle: OPEN -> ASSIGNED -> IN_PROGRESS -> COMPLETED -> CLOSED. A vendor
can be (re)assigned while the order is OPEN or ASSIGNED. Completing an
order with a positive actual cost books it as a maintenance expense.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..context.operation_context import operation
from ..db.db_base import utc_now
from ..db.db_finance_models import Vendor
from ..db.db_maintenance_models import WorkOrder
from ..db.db_property_models import Property, Unit
from ..enums import WorkOrderCategory, WorkOrderStatus, can_transition_work_order
from ..exceptions import BaseError, ValidationError, invalid_state, not_found
from ..schemas.maintenance_schema import WorkOrderCreate, WorkOrderRead
from ..utils.crud_helpers import get_record_by_id, next_sequence_number
from ..utils.logger import get_logger
from .base_service import SessionManagedService
from .expense_service import ExpenseService

_ASSIGNABLE_STATUSES = (WorkOrderStatus.OPEN.value, WorkOrderStatus.ASSIGNED.value)


class WorkOrderService(SessionManagedService):
    def __init__(
        self,
        session: Optional[Session] = None,
        expense_service: Optional[ExpenseService] = None,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(read_schema_class=WorkOrderRead, logger=get_logger(), session=session)
        self._expense_service = expense_service
        self.today = today

    @property
    def expenses(self) -> ExpenseService:
        if self._expense_service is None:
            self._expense_service = ExpenseService(session=self.session, today=self.today)
        return self._expense_service

    def _get_work_order_or_raise(self, work_order_id: str) -> WorkOrder:
        work_order = self.session.get(WorkOrder, work_order_id) if work_order_id else None
        if work_order is None:
            raise not_found("WorkOrder", work_order_id=work_order_id)
        return work_order

    def _move(self, work_order: WorkOrder, target: WorkOrderStatus) -> None:
        if not can_transition_work_order(work_order.status, target):
            raise invalid_state(
                f"Cannot move work order from {work_order.status} to {target.value}",
                work_order_id=work_order.id,
                status=work_order.status,
            )
        work_order.status = target.value

    @operation()
    def create_work_order(self, data: WorkOrderCreate) -> WorkOrderRead:
        try:
            if get_record_by_id(self.session, Property, data.property_id) is None:
                raise not_found("Property", property_id=data.property_id)
            if data.unit_id:
                unit = self.session.get(Unit, data.unit_id)
                if unit is None or unit.property_id != data.property_id:
                    raise not_found("Unit", unit_id=data.unit_id, property_id=data.property_id)

            work_order = WorkOrder(
                **data.model_dump(exclude={"category"}),
                category=data.category.value,
                work_order_number=next_sequence_number(
                    self.session, WorkOrder, "work_order_number", "WO", self.today().year
                ),
                status=WorkOrderStatus.OPEN.value,
            )
            self.session.add(work_order)
            self.session.flush()
            self.logger.info(
                f"Created work order: id={work_order.id}, number={work_order.work_order_number}"
            )
            return WorkOrderRead.model_validate(work_order)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("create_work_order", e)

    @operation()
    def get_work_order(self, work_order_id: str) -> WorkOrderRead:
        return WorkOrderRead.model_validate(self._get_work_order_or_raise(work_order_id))

    @operation()
    def list_work_orders(
        self,
        property_id: Optional[str] = None,
        status: Optional[WorkOrderStatus] = None,
        category: Optional[WorkOrderCategory] = None,
        vendor_id: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        query = self.session.query(WorkOrder)
        if property_id:
            query = query.filter(WorkOrder.property_id == property_id)
        if status:
            query = query.filter(WorkOrder.status == WorkOrderStatus(status).value)
        if category:
            query = query.filter(WorkOrder.category == WorkOrderCategory(category).value)
        if vendor_id:
            query = query.filter(WorkOrder.assigned_vendor_id == vendor_id)
        query = query.order_by(WorkOrder.created_at.desc())
        return self.paginate_query(query, page, page_size)

    @operation()
    def assign_vendor(self, work_order_id: str, vendor_id: str) -> WorkOrderRead:
        work_order = self._get_work_order_or_raise(work_order_id)
        if work_order.status not in _ASSIGNABLE_STATUSES:
            raise invalid_state(
                f"Cannot assign a vendor to work order with status: {work_order.status}",
                work_order_id=work_order_id,
                status=work_order.status,
            )
        vendor = self.session.get(Vendor, vendor_id) if vendor_id else None
        if vendor is None or vendor.is_deleted:
            raise not_found("Vendor", vendor_id=vendor_id)

        work_order.assigned_vendor_id = vendor.id
        work_order.status = WorkOrderStatus.ASSIGNED.value
        self.session.flush()
        self.logger.info(f"Work order assigned: id={work_order.id}, vendor={vendor.id}")
        return WorkOrderRead.model_validate(work_order)

    @operation()
    def start_work(self, work_order_id: str) -> WorkOrderRead:
        work_order = self._get_work_order_or_raise(work_order_id)
        self._move(work_order, WorkOrderStatus.IN_PROGRESS)
        self.session.flush()
        self.logger.info(f"Work order started: id={work_order.id}")
        return WorkOrderRead.model_validate(work_order)

    @operation()
    def complete_work_order(
        self, work_order_id: str, actual_cost: Decimal, completed_by: Optional[str] = None
    ) -> WorkOrderRead:
        """
        Complete an in-progress order and book its cost.

        The expense is created through ExpenseService, so an order with a
        zero cost completes without one.
        """
        try:
            if actual_cost is None or actual_cost < 0:
                raise ValidationError(
                    "Actual cost cannot be negative", field="actual_cost", value=str(actual_cost)
                )
            work_order = self._get_work_order_or_raise(work_order_id)
            self._move(work_order, WorkOrderStatus.COMPLETED)
            work_order.actual_cost = actual_cost
            work_order.completed_at = utc_now()
            self.session.flush()

            self.expenses.create_expense_from_work_order(work_order.id, recorded_by=completed_by)
            self.logger.info(
                f"Work order completed: id={work_order.id}, actual_cost={actual_cost}"
            )
            return WorkOrderRead.model_validate(work_order)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("complete_work_order", e, work_order_id)

    @operation()
    def close_work_order(self, work_order_id: str) -> WorkOrderRead:
        work_order = self._get_work_order_or_raise(work_order_id)
        self._move(work_order, WorkOrderStatus.CLOSED)
        self.session.flush()
        self.logger.info(f"Work order closed: id={work_order.id}")
        return WorkOrderRead.model_validate(work_order)
