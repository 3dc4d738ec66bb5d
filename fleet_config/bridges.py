"""
Translate parsed policy tables into kernel inputs.

The kernel never imports ``fleet_config``; this module is the one-way
bridge that turns a ``PolicyTableDef`` into a ``WritePolicy``.
"""

from __future__ import annotations

from fleet_config.schema import PolicyTableDef
from fleet_kernel.domain.identity import Role
from fleet_kernel.domain.write_policy import WriteAction, WritePolicy


def build_write_policy(table: PolicyTableDef) -> WritePolicy:
    return WritePolicy(
        grants={
            WriteAction(grant.action): frozenset(Role(r) for r in grant.roles)
            for grant in table.grants
        },
        name=table.name,
        version=table.version,
        checksum=table.checksum,
    )
