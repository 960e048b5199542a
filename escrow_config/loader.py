"""
Configuration Loader (``escrow_config.loader``).

Responsibility
--------------
Loads a YAML policy file and parses it into an ``EscrowPolicy``.  This is
internal tooling; runtime callers use ``escrow_config.get_active_policy()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` with descriptive messages; unknown
  keys are rejected rather than silently ignored.
* Durations must be positive and the commission percentage > 0.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``config_id``  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from escrow_config.schema import EscrowPolicy, OperatorDef, SchedulerDef

_TOP_LEVEL_KEYS = frozenset(
    {
        "config_id",
        "version",
        "commission_percent",
        "auction_enabled",
        "auction_window_hours",
        "escrow_hold_days",
        "operator",
        "scheduler",
        "database_url",
    }
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _positive_number(data: dict[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number, got {value!r}")
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {value!r}")
    return value


def parse_commission(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"commission_percent must be a number, got {value!r}")
    try:
        percent = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"commission_percent must be a number, got {value!r}") from None
    if not percent.is_finite() or percent <= 0:
        raise ValueError(f"commission_percent must be positive, got {value!r}")
    return percent


def parse_operator(data: dict[str, Any] | None) -> OperatorDef:
    data = data or {}
    return OperatorDef(
        recipient_id=str(data.get("recipient_id", "admin")),
        email=data.get("email"),
    )


def parse_scheduler(data: dict[str, Any] | None) -> SchedulerDef:
    data = data or {}
    timeout = data.get("item_timeout_seconds", 30.0)
    if timeout is not None:
        timeout = _positive_number(data, "item_timeout_seconds", 30.0)
    workers = data.get("item_workers", 4)
    if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
        raise ValueError(f"item_workers must be a positive integer, got {workers!r}")
    return SchedulerDef(
        escrow_release_interval_seconds=int(
            _positive_number(data, "escrow_release_interval_seconds", 3600)
        ),
        auction_close_interval_seconds=int(
            _positive_number(data, "auction_close_interval_seconds", 21600)
        ),
        item_timeout_seconds=timeout,
        item_workers=workers,
    )


def parse_policy(data: dict[str, Any]) -> EscrowPolicy:
    """
    Parse an ``EscrowPolicy`` from a dict.

    Raises:
        KeyError: if ``config_id`` is missing.
        ValueError: on unknown keys or invalid values.
    """
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ValueError(f"Unknown policy keys: {', '.join(sorted(unknown))}")

    auction_enabled = data.get("auction_enabled", True)
    if not isinstance(auction_enabled, bool):
        raise ValueError(f"auction_enabled must be a boolean, got {auction_enabled!r}")

    return EscrowPolicy(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        commission_percent=parse_commission(data.get("commission_percent", 10)),
        auction_enabled=auction_enabled,
        auction_window_hours=_positive_number(data, "auction_window_hours", 6),
        escrow_hold_days=_positive_number(data, "escrow_hold_days", 5),
        operator=parse_operator(data.get("operator")),
        scheduler=parse_scheduler(data.get("scheduler")),
        database_url=data.get("database_url"),
        checksum=compute_checksum(data),
    )


def load_policy(path: Path) -> EscrowPolicy:
    """Load and parse one policy file."""
    return parse_policy(load_yaml_file(path))
