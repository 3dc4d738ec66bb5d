"""
Write-policy table schema.

The human-authored source artifact: YAML policy files are parsed into
these frozen types by ``fleet_config.loader`` and translated into the
kernel's ``WritePolicy`` by ``fleet_config.bridges``.

  PolicyTableDef = source artifact (reviewable, versioned, checksummed)
  WritePolicy    = runtime artifact (kernel type, immutable)
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GrantDef:
    """One action and the roles allowed to perform it."""

    action: str
    roles: tuple[str, ...]
    description: str = ""


@dataclass(frozen=True)
class PolicyTableDef:
    """A complete write-permission table as read from one YAML file."""

    name: str
    version: int
    grants: tuple[GrantDef, ...]
    checksum: str
    description: str = ""

    def grant_for(self, action: str) -> GrantDef | None:
        for grant in self.grants:
            if grant.action == action:
                return grant
        return None
