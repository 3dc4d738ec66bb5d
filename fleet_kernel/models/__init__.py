"""ORM models for the fleet kernel."""

from fleet_kernel.models.dispute import DisputeComment, PartRideDispute
from fleet_kernel.models.part_ride import PartRide
from fleet_kernel.models.tenancy import (
    Client,
    Company,
    ContactPerson,
    ContactPersonClientCompany,
    Driver,
)
from fleet_kernel.models.week_approval import WeekApproval

__all__ = [
    "Client",
    "Company",
    "ContactPerson",
    "ContactPersonClientCompany",
    "DisputeComment",
    "Driver",
    "PartRide",
    "PartRideDispute",
    "WeekApproval",
]
