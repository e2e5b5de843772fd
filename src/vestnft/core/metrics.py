"""
Claim instrumentation for the vesting engine.

Provides Prometheus metrics that track claim outcomes and how many units of
each payout asset have been released, with helpers that are safe to call
from the claim path.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

claim_attempts_counter = Counter(
    "vestnft_claim_attempts_total",
    "Total claim attempts by outcome",
    ["outcome"],
)

payout_claimed_counter = Counter(
    "vestnft_payout_claimed_total",
    "Total units released to holders",
    ["asset"],
)

open_positions_gauge = Gauge(
    "vestnft_open_positions",
    "Number of vesting positions held by a collection",
    ["collection"],
)


def record_claim_outcome(outcome: str) -> None:
    """Count a claim attempt (success, unauthorized, empty, transfer_failed...)."""
    claim_attempts_counter.labels(outcome=outcome).inc()


def record_payout(asset: str, amount: int) -> None:
    """Add a successful payout to the per-asset counter."""
    if amount <= 0:
        return

    claim_attempts_counter.labels(outcome="success").inc()
    payout_claimed_counter.labels(asset=asset).inc(amount)


def update_open_positions(collection: str, count: int) -> None:
    open_positions_gauge.labels(collection=collection).set(count)
