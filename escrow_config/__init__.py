"""
escrow_config -- single public entrypoint for escrow configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_policy()``.  No other component reads configuration files
    directly.  The kernel never imports this package; ``bridges`` turns the
    policy into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the requested policy file does not exist.
    - ``ValueError`` -- schema or value validation failures.

Audit relevance:
    Every successful ``get_active_policy()`` call emits an
    ``ESCROW_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying every award back to the policy that governed it.
"""

from __future__ import annotations

from pathlib import Path

from escrow_config.bridges import build_escrow_terms
from escrow_config.loader import load_policy
from escrow_config.schema import EscrowPolicy, OperatorDef, SchedulerDef
from escrow_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration sets directory
_DEFAULT_POLICY = Path(__file__).parent / "sets" / "default.yaml"


def get_active_policy(config_path: Path | str | None = None) -> EscrowPolicy:
    """
    The ONLY public configuration entrypoint.

    Args:
        config_path: Policy file to load.  Defaults to
            ``escrow_config/sets/default.yaml``.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_POLICY
    policy = load_policy(path)

    _logger.info(
        "ESCROW_CONFIG_TRACE",
        extra={
            "trace_type": "ESCROW_CONFIG_TRACE",
            "config_id": policy.config_id,
            "config_version": policy.version,
            "checksum": policy.checksum,
            "commission_percent": str(policy.commission_percent),
            "auction_enabled": policy.auction_enabled,
        },
    )
    return policy


__all__ = [
    "EscrowPolicy",
    "OperatorDef",
    "SchedulerDef",
    "build_escrow_terms",
    "get_active_policy",
]
