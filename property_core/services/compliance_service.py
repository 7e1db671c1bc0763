"""Regulatory compliance requirements."""

from datetime import date
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..context.operation_context import operation
from ..db.db_compliance_models import ComplianceRequirement
from ..enums import ComplianceCategory, RequirementStatus
from ..exceptions import BaseError, not_found
from ..schemas.compliance_schema import (
    ComplianceRequirementCreate,
    ComplianceRequirementRead,
    ComplianceRequirementUpdate,
)
from ..utils.crud_helpers import apply_updates, get_record_by_id, next_sequence_number
from ..utils.logger import get_logger
from .base_service import SessionManagedService


class ComplianceRequirementService(SessionManagedService):
    def __init__(self, session: Optional[Session] = None, today: Callable[[], date] = date.today):
        super().__init__(
            read_schema_class=ComplianceRequirementRead, logger=get_logger(), session=session
        )
        self.today = today

    def _get_requirement_or_raise(self, requirement_id: str) -> ComplianceRequirement:
        requirement = get_record_by_id(self.session, ComplianceRequirement, requirement_id)
        if requirement is None:
            raise not_found("ComplianceRequirement", requirement_id=requirement_id)
        return requirement

    @operation()
    def create_requirement(self, data: ComplianceRequirementCreate) -> ComplianceRequirementRead:
        try:
            requirement = ComplianceRequirement(
                **data.model_dump(exclude={"category", "frequency"}),
                category=data.category.value,
                frequency=data.frequency.value,
                requirement_number=next_sequence_number(
                    self.session,
                    ComplianceRequirement,
                    "requirement_number",
                    "CMP",
                    self.today().year,
                ),
                status=RequirementStatus.ACTIVE.value,
            )
            self.session.add(requirement)
            self.session.flush()
            self.logger.info(
                f"Created compliance requirement: id={requirement.id}, "
                f"number={requirement.requirement_number}"
            )
            return ComplianceRequirementRead.model_validate(requirement)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("create_requirement", e)

    @operation()
    def get_requirement(self, requirement_id: str) -> ComplianceRequirementRead:
        return ComplianceRequirementRead.model_validate(
            self._get_requirement_or_raise(requirement_id)
        )

    @operation()
    def list_requirements(
        self,
        category: Optional[ComplianceCategory] = None,
        status: Optional[RequirementStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        query = self.session.query(ComplianceRequirement).filter(
            ComplianceRequirement.is_deleted.is_(False)
        )
        if category:
            query = query.filter(
                ComplianceRequirement.category == ComplianceCategory(category).value
            )
        if status:
            query = query.filter(ComplianceRequirement.status == RequirementStatus(status).value)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    ComplianceRequirement.requirement_name.ilike(pattern),
                    ComplianceRequirement.requirement_number.ilike(pattern),
                    ComplianceRequirement.authority_agency.ilike(pattern),
                )
            )
        query = query.order_by(ComplianceRequirement.requirement_name)
        return self.paginate_query(query, page, page_size)

    @operation()
    def update_requirement(
        self, requirement_id: str, data: ComplianceRequirementUpdate
    ) -> ComplianceRequirementRead:
        requirement = self._get_requirement_or_raise(requirement_id)
        changes = apply_updates(requirement, data.model_dump(exclude_unset=True, exclude_none=True))
        self.session.flush()
        self.logger.info(
            f"Updated compliance requirement: id={requirement.id}, fields={sorted(changes)}"
        )
        return ComplianceRequirementRead.model_validate(requirement)

    @operation()
    def delete_requirement(self, requirement_id: str, deleted_by: Optional[str] = None) -> None:
        requirement = self._get_requirement_or_raise(requirement_id)
        requirement.mark_deleted(deleted_by)
        self.session.flush()
        self.logger.info(f"Deleted compliance requirement: id={requirement.id}")

    @operation()
    def get_active_requirements_for_property(
        self, property_id: str
    ) -> List[ComplianceRequirementRead]:
        """ACTIVE requirements that name this property or apply to every property."""
        requirements = (
            self.session.query(ComplianceRequirement)
            .filter(
                ComplianceRequirement.is_deleted.is_(False),
                ComplianceRequirement.status == RequirementStatus.ACTIVE.value,
            )
            .order_by(ComplianceRequirement.requirement_name)
            .all()
        )
        # applicable_properties is a JSON list, filtered here to stay portable
        return [
            ComplianceRequirementRead.model_validate(r)
            for r in requirements
            if not r.applicable_properties or property_id in r.applicable_properties
        ]
