"""Repository layer for dashboard reporting queries."""

from .base_repository import BaseRepository
from .finance_dashboard_repository import FinanceDashboardRepository
from .occupancy_dashboard_repository import OccupancyDashboardRepository

__all__ = [
    "BaseRepository",
    "FinanceDashboardRepository",
    "OccupancyDashboardRepository",
]
