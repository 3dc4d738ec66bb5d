"""
Policy file loader (``fleet_config.loader``).

Responsibility
--------------
Reads a YAML write-policy file and parses it into ``fleet_config.schema``
types.  Runtime callers go through ``fleet_config.get_active_policy()``;
this module is the tooling underneath it.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` naming the offending
  entry; required keys have no silent defaults.
* Every action and role name is checked against the kernel enums, so a
  typo in a policy file fails at load time, not at the first denied call.
* ``compute_checksum`` is a deterministic SHA-256 over the parsed data.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from fleet_config.schema import GrantDef, PolicyTableDef
from fleet_kernel.domain.identity import Role
from fleet_kernel.domain.write_policy import WriteAction

_KNOWN_ACTIONS = frozenset(a.value for a in WriteAction)
_KNOWN_ROLES = frozenset(r.value for r in Role)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_grant(action: str, data: Any) -> GrantDef:
    """
    Parse one entry of the ``grants`` mapping.

    Accepts either a plain list of roles or a mapping with ``roles`` and
    an optional ``description``.
    """
    if action not in _KNOWN_ACTIONS:
        raise ValueError(f"Unknown write action in policy: {action!r}")

    if isinstance(data, dict):
        roles = data["roles"]
        description = data.get("description", "")
    else:
        roles = data
        description = ""
    if roles is None:
        roles = []
    if not isinstance(roles, list):
        raise ValueError(f"Roles for {action!r} must be a list, got {type(roles).__name__}")

    unknown = [r for r in roles if r not in _KNOWN_ROLES]
    if unknown:
        raise ValueError(f"Unknown role(s) for {action!r}: {', '.join(map(str, unknown))}")
    if len(set(roles)) != len(roles):
        raise ValueError(f"Duplicate role listed for {action!r}")

    return GrantDef(action=action, roles=tuple(roles), description=description)


def parse_policy_table(data: dict[str, Any]) -> PolicyTableDef:
    """Parse the top-level document of a policy file."""
    grants_data = data["grants"]
    if not isinstance(grants_data, dict):
        raise ValueError("'grants' must be a mapping of action -> roles")

    grants = tuple(
        parse_grant(action, entry) for action, entry in sorted(grants_data.items())
    )
    return PolicyTableDef(
        name=data["name"],
        version=int(data["version"]),
        grants=grants,
        checksum=compute_checksum(data),
        description=data.get("description", ""),
    )


def load_policy_table(path: Path) -> PolicyTableDef:
    return parse_policy_table(load_yaml_file(path))
