"""
Tests for escrow_config: policy loading, validation and the kernel bridge.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
import yaml

from escrow_config import build_escrow_terms, get_active_policy
from escrow_config.loader import compute_checksum, parse_policy


def _write_policy(tmp_path, **overrides):
    data = {"config_id": "test-policy", "version": 2}
    data.update(overrides)
    path = tmp_path / "policy.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaultPolicy:
    def test_shipped_defaults(self):
        policy = get_active_policy()
        assert policy.config_id == "escrow-default"
        assert policy.commission_percent == Decimal("10")
        assert policy.auction_enabled is True
        assert policy.auction_window_hours == 6
        assert policy.escrow_hold_days == 5
        assert policy.scheduler.escrow_release_interval_seconds == 3600
        assert policy.scheduler.auction_close_interval_seconds == 21600
        assert policy.operator.recipient_id == "admin"

    def test_load_is_traced(self, captured_logs):
        policy = get_active_policy()
        trace = [r for r in captured_logs() if r["message"] == "ESCROW_CONFIG_TRACE"]
        assert trace[0]["checksum"] == policy.checksum
        assert trace[0]["config_id"] == "escrow-default"


class TestParsePolicy:
    def test_custom_file(self, tmp_path):
        path = _write_policy(
            tmp_path,
            commission_percent="12.5",
            auction_enabled=False,
            escrow_hold_days=3,
            operator={"recipient_id": "ops-1", "email": "ops@example.com"},
            scheduler={"item_workers": 2, "item_timeout_seconds": 5},
        )
        policy = get_active_policy(path)
        assert policy.version == 2
        assert policy.commission_percent == Decimal("12.5")
        assert policy.auction_enabled is False
        assert policy.operator.email == "ops@example.com"
        assert policy.scheduler.item_workers == 2
        assert policy.scheduler.item_timeout_seconds == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_policy(tmp_path / "absent.yaml")

    def test_config_id_required(self):
        with pytest.raises(KeyError):
            parse_policy({"version": 1})

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValueError, match="Unknown policy keys: surcharge"):
            parse_policy({"config_id": "x", "surcharge": 3})

    @pytest.mark.parametrize(
        "overrides",
        [
            {"commission_percent": 0},
            {"commission_percent": "lots"},
            {"auction_window_hours": -1},
            {"escrow_hold_days": "five"},
            {"auction_enabled": "yes"},
            {"scheduler": {"item_workers": 0}},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            parse_policy({"config_id": "x", **overrides})

    def test_checksum_is_order_independent(self):
        a = {"config_id": "x", "version": 1, "commission_percent": 10}
        b = {"commission_percent": 10, "version": 1, "config_id": "x"}
        assert compute_checksum(a) == compute_checksum(b)
        assert compute_checksum(a) != compute_checksum({**a, "version": 2})


def test_bridge_builds_kernel_terms(tmp_path):
    policy = get_active_policy(
        _write_policy(
            tmp_path,
            auction_window_hours=12,
            escrow_hold_days=7,
            operator={"email": "ops@example.com"},
        )
    )
    terms = build_escrow_terms(policy)
    assert terms.auction_window == timedelta(hours=12)
    assert terms.escrow_hold == timedelta(days=7)
    assert terms.default_commission_percent == Decimal("10")
    assert terms.operator.email == "ops@example.com"
