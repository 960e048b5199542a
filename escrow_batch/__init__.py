"""
escrow_batch -- Recurring jobs that drive the bid lifecycle forward.

Two jobs run on fixed intervals: closing auctions whose bidding window
has elapsed, and releasing escrow holds whose hold period has matured.
Each candidate is processed in its own session and transaction, so one
failing or slow item never blocks the rest of a run.

Architecture:
    escrow_batch/ is a top-level package.  Nothing in escrow_kernel
    imports from escrow_batch.  The orchestrator is the only place that
    reads escrow_config.
"""
