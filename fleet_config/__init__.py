"""
fleet_config -- single public entrypoint for write-permission configuration.

Responsibility:
    Provides the only way to obtain the write-permission table at
    runtime: ``get_active_policy()``.  Returns a ``WritePolicy``, the
    kernel's runtime type.  YAML loading and parsing stay inside this
    package.

Architecture position:
    Configuration.  Sits above ``fleet_kernel``: it imports kernel enums
    to validate names, and the kernel MUST NEVER import from here.

Invariants enforced:
    - Every action and role named in a policy file is a known
      ``WriteAction`` / ``Role``.
    - Same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the policy file does not exist.
    - ``ValueError`` / ``KeyError`` -- malformed or unknown entries.

Audit relevance:
    Every successful ``get_active_policy()`` call emits a
    ``FLEET_CONFIG_TRACE`` log entry with the policy name, version,
    checksum and grant count, tying each authorization decision to the
    exact table that governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from fleet_config.bridges import build_write_policy
from fleet_config.loader import load_policy_table
from fleet_kernel.domain.write_policy import WritePolicy

_logger = logging.getLogger("fleet_kernel.config")

DEFAULT_POLICY_PATH = Path(__file__).parent / "policies" / "default.yaml"


def get_active_policy(path: Path | str | None = None) -> WritePolicy:
    """
    Load, validate and return the write-permission table.

    Args:
        path: Policy file to load. Defaults to ``policies/default.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If an action or role name is unknown.
    """
    policy_path = Path(path) if path is not None else DEFAULT_POLICY_PATH
    table = load_policy_table(policy_path)
    policy = build_write_policy(table)

    _logger.info(
        "FLEET_CONFIG_TRACE",
        extra={
            "trace_type": "FLEET_CONFIG_TRACE",
            "policy_name": policy.name,
            "policy_version": policy.version,
            "checksum": policy.checksum,
            "grant_count": len(policy.grants),
            "source": str(policy_path),
        },
    )
    return policy


__all__ = ["DEFAULT_POLICY_PATH", "get_active_policy"]
