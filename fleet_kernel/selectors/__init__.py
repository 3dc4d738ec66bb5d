"""Selectors for the fleet kernel (read side)."""

from fleet_kernel.selectors.base import Page, active_only, scope_clause
from fleet_kernel.selectors.ride_selector import RideSelector, parse_status_filter
from fleet_kernel.selectors.tenancy_selector import TenancySelector

__all__ = [
    "Page",
    "RideSelector",
    "TenancySelector",
    "active_only",
    "parse_status_filter",
    "scope_clause",
]
