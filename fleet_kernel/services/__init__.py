"""Services for the fleet kernel (write side)."""

from fleet_kernel.services.access_service import AccessService
from fleet_kernel.services.base import GuardedService, advance_status, compare_and_set
from fleet_kernel.services.ride_service import RideLifecycleService
from fleet_kernel.services.tenancy_service import TenancyService
from fleet_kernel.services.week_approval_service import WeekApprovalService

__all__ = [
    "AccessService",
    "GuardedService",
    "RideLifecycleService",
    "TenancyService",
    "WeekApprovalService",
    "advance_status",
    "compare_and_set",
]
