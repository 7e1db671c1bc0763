"""
Tenant onboarding and lease lifecycle.

Creating a tenant also creates their TENANT login and marks the unit
OCCUPIED, all inside the caller's transaction.
"""

import secrets
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from passlib.hash import pbkdf2_sha256 as hasher
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..constants import Limits
from ..context.operation_context import operation
from ..db.db_base import utc_now
from ..db.db_property_models import Property, Unit
from ..db.db_tenant_models import Tenant
from ..db.db_user_models import User
from ..enums import PaymentMethod, TenantStatus, UnitStatus, UserRole, UserStatus
from ..exceptions import BaseError, ValidationError, duplicate, invalid_state, not_found
from ..schemas.tenant_schema import TenantCreate, TenantRead
from ..utils.crud_helpers import get_record_by_id, next_sequence_number, record_exists
from ..utils.date_utils import age_on, months_between
from ..utils.logger import get_logger
from .base_service import SessionManagedService


def calculate_total_monthly_rent(
    base_rent: Decimal,
    service_charge: Decimal,
    parking_spots: int,
    parking_fee_per_spot: Decimal,
) -> Decimal:
    return base_rent + service_charge + parking_fee_per_spot * parking_spots


class TenantService(SessionManagedService):
    def __init__(self, session: Optional[Session] = None, today: Callable[[], date] = date.today):
        super().__init__(read_schema_class=TenantRead, logger=get_logger(), session=session)
        self.today = today

    def _get_tenant_or_raise(self, tenant_id: str, active_only: bool = True) -> Tenant:
        tenant = self.session.get(Tenant, tenant_id) if tenant_id else None
        if tenant is None or (active_only and not tenant.active):
            raise not_found("Tenant", tenant_id=tenant_id)
        return tenant

    def _validate_new_tenant(self, data: TenantCreate) -> Unit:
        """Run the onboarding checks in order; returns the unit to occupy."""
        if not self.is_email_available(data.email):
            raise duplicate("Tenant", message=f"Email already exists: {data.email}", email=data.email)

        today = self.today()
        age = age_on(data.date_of_birth, today)
        if age < Limits.MINIMUM_TENANT_AGE:
            raise ValidationError(
                f"Tenant must be at least {Limits.MINIMUM_TENANT_AGE} years old. Current age: {age}",
                field="date_of_birth",
            )

        if get_record_by_id(self.session, Property, data.property_id) is None:
            raise not_found("Property", property_id=data.property_id)
        unit = self.session.get(Unit, data.unit_id)
        if unit is None or unit.property_id != data.property_id:
            raise not_found("Unit", unit_id=data.unit_id, property_id=data.property_id)
        if unit.status != UnitStatus.AVAILABLE.value:
            raise invalid_state(
                f"Unit is not available. Current status: {unit.status}", unit_id=unit.id
            )

        if data.lease_start_date < today:
            raise ValidationError(
                "Lease start date must be today or in the future", field="lease_start_date"
            )
        if data.lease_end_date < data.lease_start_date:
            raise ValidationError("Lease end date must be after start date", field="lease_end_date")

        if data.payment_method == PaymentMethod.PDC and not (data.pdc_cheque_count or 0) >= 1:
            raise ValidationError(
                "PDC cheque count is required when payment method is PDC",
                field="pdc_cheque_count",
            )
        return unit

    @operation()
    def create_tenant(self, data: TenantCreate, created_by: Optional[str] = None) -> TenantRead:
        """
        Onboard a tenant into an available unit.

        Raises:
            RepositoryError: DUPLICATE email, NOT_FOUND property or unit
            ValidationError: age, lease dates or PDC cheque count
            ServiceError: INVALID_STATE_TRANSITION when the unit is not AVAILABLE
        """
        try:
            unit = self._validate_new_tenant(data)

            user = User(
                email=data.email,
                first_name=data.first_name,
                last_name=data.last_name,
                phone=data.phone,
                password_hash=hasher.hash(secrets.token_urlsafe(16)),
                role=UserRole.TENANT.value,
                status=UserStatus.ACTIVE.value,
                must_change_password=True,
                created_by=created_by,
            )
            self.session.add(user)
            self.session.flush()

            tenant = Tenant(
                **data.model_dump(exclude={"payment_frequency", "payment_method"}),
                payment_frequency=data.payment_frequency.value,
                payment_method=data.payment_method.value,
                tenant_number=next_sequence_number(
                    self.session, Tenant, "tenant_number", "TNT", self.today().year
                ),
                user_id=user.id,
                lease_duration_months=months_between(data.lease_start_date, data.lease_end_date),
                total_monthly_rent=calculate_total_monthly_rent(
                    data.base_rent,
                    data.service_charge,
                    data.parking_spots,
                    data.parking_fee_per_spot,
                ),
                status=TenantStatus.ACTIVE.value,
                active=True,
                created_by=created_by,
            )
            self.session.add(tenant)
            unit.status = UnitStatus.OCCUPIED.value
            self.session.flush()

            self.logger.info(
                f"Created tenant: id={tenant.id}, number={tenant.tenant_number}, unit_id={unit.id}"
            )
            return TenantRead.model_validate(tenant)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("create_tenant", e)

    @operation()
    def get_tenant(self, tenant_id: str) -> TenantRead:
        return TenantRead.model_validate(self._get_tenant_or_raise(tenant_id))

    @operation()
    def list_tenants(
        self,
        property_id: Optional[str] = None,
        status: Optional[TenantStatus] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        query = self.session.query(Tenant).filter(Tenant.active.is_(True))
        if property_id:
            query = query.filter(Tenant.property_id == property_id)
        if status:
            query = query.filter(Tenant.status == TenantStatus(status).value)
        return self.paginate_query(query.order_by(Tenant.created_at.desc()), page, page_size)

    @operation()
    def search_tenants(self, search: str, page: int = 1, page_size: int = 20) -> Dict[str, Any]:
        pattern = f"%{(search or '').strip()}%"
        query = (
            self.session.query(Tenant)
            .filter(Tenant.active.is_(True))
            .filter(
                or_(
                    Tenant.first_name.ilike(pattern),
                    Tenant.last_name.ilike(pattern),
                    Tenant.email.ilike(pattern),
                    Tenant.tenant_number.ilike(pattern),
                    Tenant.phone.ilike(pattern),
                )
            )
            .order_by(Tenant.last_name, Tenant.first_name)
        )
        return self.paginate_query(query, page, page_size)

    def is_email_available(self, email: str) -> bool:
        """An email is taken once any tenant or user holds it."""
        normalized = email.strip().lower()
        return not (
            record_exists(self.session, Tenant, {"email": normalized})
            or record_exists(self.session, User, {"email": normalized})
        )

    @operation()
    def get_tenants_by_property(self, property_id: str) -> List[TenantRead]:
        tenants = (
            self.session.query(Tenant)
            .filter(Tenant.property_id == property_id, Tenant.active.is_(True))
            .order_by(Tenant.lease_end_date)
            .all()
        )
        return [TenantRead.model_validate(t) for t in tenants]

    @operation()
    def terminate_tenancy(self, tenant_id: str) -> TenantRead:
        tenant = self._get_tenant_or_raise(tenant_id)
        tenant.status = TenantStatus.TERMINATED.value
        tenant.active = False
        tenant.terminated_at = utc_now()

        unit = self.session.get(Unit, tenant.unit_id)
        if unit is not None and unit.status == UnitStatus.OCCUPIED.value:
            unit.status = UnitStatus.AVAILABLE.value
        self.session.flush()

        self.logger.info(f"Terminated tenancy: id={tenant.id}, unit_id={tenant.unit_id}")
        return TenantRead.model_validate(tenant)
