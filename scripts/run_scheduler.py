#!/usr/bin/env python3
"""
Run the escrow scheduler: release matured escrow holds and close expired
auctions on the intervals configured in the active policy.

Usage:
    python3 scripts/run_scheduler.py [--config PATH] [--database-url URL] [--once]

Examples:
    # Run in the foreground until Ctrl-C
    python3 scripts/run_scheduler.py

    # Fire both jobs once against a local SQLite file and exit
    python3 scripts/run_scheduler.py --database-url sqlite:///escrow.db --once
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DEFAULT_DB_URL = "sqlite:///escrow.db"


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the escrow release and auction close jobs.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Policy YAML file (default: escrow_config/sets/default.yaml).",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help=f"Database URL (default: policy database_url, else {DEFAULT_DB_URL!r}).",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Fire every job once and exit instead of running the loop.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO).",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()

    from escrow_batch.orchestrator import EscrowOrchestrator
    from escrow_config import get_active_policy
    from escrow_kernel.db.engine import (
        create_tables,
        get_session_factory,
        init_engine_from_url,
    )
    from escrow_kernel.db.immutability import register_immutability_listeners
    from escrow_kernel.logging_config import configure_logging, get_logger

    configure_logging(level=getattr(logging, args.log_level))
    logger = get_logger("scripts.run_scheduler")

    try:
        policy = get_active_policy(args.config)
    except (FileNotFoundError, KeyError, ValueError) as exc:
        print(f"Could not load policy: {exc}", file=sys.stderr)
        return 1

    database_url = args.database_url or policy.database_url or DEFAULT_DB_URL
    init_engine_from_url(database_url)
    create_tables()
    register_immutability_listeners()

    orchestrator = EscrowOrchestrator.from_policy(policy, get_session_factory())
    scheduler = orchestrator.create_scheduler()

    if args.once:
        for result in scheduler.tick():
            print(
                f"{result.task_type}: {result.status.value} "
                f"(succeeded={result.succeeded} failed={result.failed} "
                f"skipped={result.skipped} timed_out={result.timed_out})"
            )
        scheduler.stop()
        return 0

    stopped = threading.Event()

    def _handle_signal(signum, frame):
        logger.info("shutdown_requested", extra={"signal": signum})
        stopped.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    scheduler.start()
    stopped.wait()
    scheduler.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
