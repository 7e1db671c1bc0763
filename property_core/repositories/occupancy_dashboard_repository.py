"""Queries behind the occupancy dashboard."""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func

from ..db.db_property_models import Property, Unit
from ..db.db_tenant_models import Tenant
from ..enums import TenantStatus
from .base_repository import BaseRepository

# (tenant, property name, unit number)
TenantRow = Tuple[Tenant, Optional[str], Optional[str]]


class OccupancyDashboardRepository(BaseRepository):
    def _current_tenants(self, session, property_id: Optional[str]):
        query = session.query(Tenant).filter(
            Tenant.active.is_(True), Tenant.status == TenantStatus.ACTIVE.value
        )
        if property_id:
            query = query.filter(Tenant.property_id == property_id)
        return query

    def _with_location(self, query):
        return query.outerjoin(Property, Tenant.property_id == Property.id).outerjoin(
            Unit, Tenant.unit_id == Unit.id
        )

    def unit_status_counts(self, property_id: Optional[str] = None) -> Dict[str, int]:
        """Units per status across live properties."""
        with self._session_operation("unit_status_counts", property_id=property_id) as session:
            query = (
                session.query(Unit.status, func.count(Unit.id))
                .join(Property, Unit.property_id == Property.id)
                .filter(Property.is_deleted.is_(False))
            )
            if property_id:
                query = query.filter(Unit.property_id == property_id)
            return {status: int(count) for status, count in query.group_by(Unit.status).all()}

    def count_expiring_leases(
        self, start: date, end: date, property_id: Optional[str] = None
    ) -> int:
        with self._session_operation("count_expiring_leases", property_id=property_id) as session:
            return (
                self._current_tenants(session, property_id)
                .filter(Tenant.lease_end_date >= start, Tenant.lease_end_date <= end)
                .count()
            )

    def rent_and_area(self, property_id: Optional[str] = None) -> Tuple[Decimal, Decimal]:
        """Total monthly rent and leased square footage of current tenancies."""
        with self._session_operation("rent_and_area", property_id=property_id) as session:
            rent, area = (
                self._current_tenants(session, property_id)
                .join(Unit, Tenant.unit_id == Unit.id)
                .filter(Unit.square_footage > 0)
                .with_entities(
                    func.coalesce(func.sum(Tenant.total_monthly_rent), 0),
                    func.coalesce(func.sum(Unit.square_footage), 0),
                )
                .one()
            )
            return Decimal(str(rent)), Decimal(str(area))

    def lease_end_dates(
        self, start: date, end: date, property_id: Optional[str] = None
    ) -> List[date]:
        with self._session_operation("lease_end_dates", property_id=property_id) as session:
            rows = (
                self._current_tenants(session, property_id)
                .filter(Tenant.lease_end_date >= start, Tenant.lease_end_date <= end)
                .with_entities(Tenant.lease_end_date)
                .all()
            )
            return [row[0] for row in rows]

    def expiring_leases(
        self,
        start: date,
        end: date,
        offset: int,
        limit: int,
        property_id: Optional[str] = None,
    ) -> Tuple[List[TenantRow], int]:
        """One page of tenancies ending in the window, soonest first, plus the total."""
        with self._session_operation("expiring_leases", property_id=property_id) as session:
            query = self._current_tenants(session, property_id).filter(
                Tenant.lease_end_date >= start, Tenant.lease_end_date <= end
            )
            total = query.count()
            rows = (
                self._with_location(query)
                .with_entities(Tenant, Property.name, Unit.unit_number)
                .order_by(Tenant.lease_end_date, Tenant.tenant_number)
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [tuple(row) for row in rows], total

    def recent_new_leases(self, limit: int, property_id: Optional[str] = None) -> List[TenantRow]:
        with self._session_operation("recent_new_leases", property_id=property_id) as session:
            query = session.query(Tenant).filter(Tenant.active.is_(True))
            if property_id:
                query = query.filter(Tenant.property_id == property_id)
            rows = (
                self._with_location(query)
                .with_entities(Tenant, Property.name, Unit.unit_number)
                .order_by(Tenant.created_at.desc())
                .limit(limit)
                .all()
            )
            return [tuple(row) for row in rows]

    def recent_terminations(
        self, limit: int, property_id: Optional[str] = None
    ) -> List[TenantRow]:
        with self._session_operation("recent_terminations", property_id=property_id) as session:
            query = session.query(Tenant).filter(Tenant.terminated_at.isnot(None))
            if property_id:
                query = query.filter(Tenant.property_id == property_id)
            rows = (
                self._with_location(query)
                .with_entities(Tenant, Property.name, Unit.unit_number)
                .order_by(Tenant.terminated_at.desc())
                .limit(limit)
                .all()
            )
            return [tuple(row) for row in rows]
