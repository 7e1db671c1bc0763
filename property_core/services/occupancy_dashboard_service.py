"""Occupancy dashboard: unit mix, upcoming lease expirations and lease activity."""

from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ..config import DashboardConfig, get_config
from ..context.operation_context import operation
from ..db.db_base import utc_now
from ..enums import UnitStatus
from ..exceptions import BaseError
from ..repositories.occupancy_dashboard_repository import OccupancyDashboardRepository
from ..schemas.dashboard_schema import (
    LeaseActivity,
    LeaseExpiration,
    LeaseExpirationMonth,
    OccupancyChart,
    OccupancyDashboard,
    OccupancyKpis,
    OccupancySegment,
)
from ..utils.date_utils import add_months, month_end, month_key, month_label, month_start
from ..utils.logger import get_logger
from ..utils.report_utils import calculate_percentage
from .base_service import SessionManagedService

# (unit status, label, color) in display order
OCCUPANCY_SEGMENTS = (
    (UnitStatus.OCCUPIED.value, "Occupied", "#22c55e"),
    (UnitStatus.AVAILABLE.value, "Vacant", "#ef4444"),
    (UnitStatus.UNDER_MAINTENANCE.value, "Under Maintenance", "#f59e0b"),
    (UnitStatus.RESERVED.value, "Reserved", "#3b82f6"),
)

NEW_LEASE = "NEW_LEASE"
TERMINATION = "TERMINATION"


def _as_utc(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class OccupancyDashboardService(SessionManagedService):
    def __init__(
        self,
        session: Optional[Session] = None,
        config: Optional[DashboardConfig] = None,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(logger=get_logger(), session=session)
        self.repository = OccupancyDashboardRepository(self.session, logger=self.logger)
        self.config = config or get_config().dashboards
        self.today = today

    @operation()
    def get_occupancy_kpis(
        self, property_id: Optional[str] = None, expiry_days: Optional[int] = None
    ) -> OccupancyKpis:
        try:
            expiry_days = expiry_days if expiry_days is not None else self.config.lease_expiry_days
            today = self.today()

            counts = self.repository.unit_status_counts(property_id)
            total_units = sum(counts.values())
            occupied = counts.get(UnitStatus.OCCUPIED.value, 0)

            rent, area = self.repository.rent_and_area(property_id)
            average_rent = (
                (rent / area).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP) if area > 0 else None
            )

            return OccupancyKpis(
                total_units=total_units,
                occupied_units=occupied,
                vacant_units=counts.get(UnitStatus.AVAILABLE.value, 0),
                occupancy_rate=calculate_percentage(occupied, total_units, places=1),
                leases_expiring=self.repository.count_expiring_leases(
                    today, today + timedelta(days=expiry_days), property_id
                ),
                expiry_period_days=expiry_days,
                average_rent_per_sqft=average_rent,
            )
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("get_occupancy_kpis", e, property_id)

    @operation()
    def get_occupancy_chart(self, property_id: Optional[str] = None) -> OccupancyChart:
        """Unit counts per status; statuses with no units are left out."""
        counts = self.repository.unit_status_counts(property_id)
        total_units = sum(counts.values())
        segments = [
            OccupancySegment(
                status=status,
                label=label,
                count=counts[status],
                percentage=calculate_percentage(counts[status], total_units, places=1),
                color=color,
            )
            for status, label, color in OCCUPANCY_SEGMENTS
            if counts.get(status, 0) > 0
        ]
        return OccupancyChart(total_units=total_units, segments=segments)

    @operation()
    def get_lease_expiration_chart(
        self, property_id: Optional[str] = None
    ) -> List[LeaseExpirationMonth]:
        """Lease ends per month for the current month and the eleven after it."""
        first_month = month_start(self.today())
        months = [add_months(first_month, offset) for offset in range(12)]
        counts: Dict[str, int] = {month_key(m): 0 for m in months}

        for end_date in self.repository.lease_end_dates(
            first_month, month_end(months[-1]), property_id
        ):
            counts[month_key(end_date)] += 1

        return [
            LeaseExpirationMonth(
                month=month_key(m), month_label=month_label(m), count=counts[month_key(m)]
            )
            for m in months
        ]

    @operation()
    def get_lease_expirations(
        self,
        days: Optional[int] = None,
        page: int = 1,
        size: int = 20,
        property_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Current tenancies ending within ``days``, soonest first."""
        days = days if days is not None else self.config.lease_expiry_days
        page = max(page, 1)
        size = max(size, 1)
        today = self.today()

        rows, total = self.repository.expiring_leases(
            today, today + timedelta(days=days), (page - 1) * size, size, property_id
        )
        results = [
            LeaseExpiration(
                tenant_id=tenant.id,
                tenant_number=tenant.tenant_number,
                tenant_name=tenant.full_name,
                property_id=tenant.property_id,
                property_name=property_name,
                unit_id=tenant.unit_id,
                unit_number=unit_number,
                lease_end_date=tenant.lease_end_date,
                days_remaining=(tenant.lease_end_date - today).days,
                monthly_rent=tenant.total_monthly_rent,
            )
            for tenant, property_name, unit_number in rows
        ]
        return self.paginate_results(results, total, page, size)

    @operation()
    def get_recent_activity(
        self, limit: Optional[int] = None, property_id: Optional[str] = None
    ) -> List[LeaseActivity]:
        """New tenancies and terminations merged newest first."""
        limit = limit if limit is not None else self.config.activity_limit

        activity = [
            LeaseActivity(
                activity_type=NEW_LEASE,
                tenant_id=tenant.id,
                tenant_name=tenant.full_name,
                property_name=property_name,
                unit_number=unit_number,
                occurred_at=_as_utc(tenant.created_at),
                description=f"New lease created for unit {unit_number}",
            )
            for tenant, property_name, unit_number in self.repository.recent_new_leases(
                limit, property_id
            )
        ]
        activity.extend(
            LeaseActivity(
                activity_type=TERMINATION,
                tenant_id=tenant.id,
                tenant_name=tenant.full_name,
                property_name=property_name,
                unit_number=unit_number,
                occurred_at=_as_utc(tenant.terminated_at),
                description=f"Lease terminated for unit {unit_number}",
            )
            for tenant, property_name, unit_number in self.repository.recent_terminations(
                limit, property_id
            )
        )
        activity.sort(key=lambda a: a.occurred_at, reverse=True)
        return activity[:limit]

    @operation()
    def get_occupancy_dashboard(self, property_id: Optional[str] = None) -> OccupancyDashboard:
        self.logger.info(f"Building occupancy dashboard: property_id={property_id}")
        expirations = self.get_lease_expirations(
            page=1, size=self.config.expiration_list_limit, property_id=property_id
        )
        return OccupancyDashboard(
            kpis=self.get_occupancy_kpis(property_id),
            occupancy_chart=self.get_occupancy_chart(property_id),
            lease_expiration_chart=self.get_lease_expiration_chart(property_id),
            upcoming_expirations=expirations["data"],
            recent_activity=self.get_recent_activity(property_id=property_id),
            property_id=property_id,
            generated_at=utc_now(),
        )
