"""
Claim ledger.

Tracks, per position, the cumulative amount already paid out and enforces
the central safety invariant of the engine:

    claimed_amount(id) <= vested_payout_at_time(position, now)

Claimed amounts follow the position, not the holder, so ownership transfers
never touch the ledger.

Security features:
- Per-position locks serialize claims on the same position while different
  positions proceed independently
- Unit-of-work transactions stage the new claimed amount before any external
  call and restore the previous value if the unit of work fails
- Reentrant claims on a position whose claim is in flight are rejected
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator

from ..exceptions import InvalidTermsError, OverclaimError, ReentrancyError
from .positions import VestingPositionStore

logger = logging.getLogger(__name__)


@dataclass
class ClaimRecord:
    """Mutable claim state of one position."""

    position_id: int
    claimed_amount: int = 0


class ClaimLedger:
    """Cumulative claim bookkeeping keyed by position id."""

    def __init__(self, store: VestingPositionStore) -> None:
        self.store = store
        self._records: dict[int, ClaimRecord] = {}
        self._locks: dict[int, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._in_flight: set[int] = set()

    # ==================== Records ====================

    def open(self, position_id: int) -> ClaimRecord:
        """
        Create the zero claim record for a newly created position.

        Raises:
            PositionNotFoundError: If the position does not exist
            InvalidTermsError: If a record already exists
        """
        self.store.get(position_id)
        with self.lock(position_id):
            if position_id in self._records:
                raise InvalidTermsError(f"Claim record for {position_id} already exists")
            record = ClaimRecord(position_id=position_id)
            self._records[position_id] = record
            return record

    def claimed_amount(self, position_id: int) -> int:
        """
        Cumulative amount claimed for a position.

        Raises:
            PositionNotFoundError: If the position does not exist
        """
        return self._record(position_id).claimed_amount

    def _record(self, position_id: int) -> ClaimRecord:
        self.store.get(position_id)
        record = self._records.get(position_id)
        if record is None:
            with self.lock(position_id):
                record = self._records.setdefault(position_id, ClaimRecord(position_id))
        return record

    def lock(self, position_id: int) -> threading.RLock:
        """Get the lock serializing claims on a position."""
        with self._locks_guard:
            lock = self._locks.get(position_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[position_id] = lock
            return lock

    # ==================== Mutation ====================

    def record_claim(self, position_id: int, delta: int, now: int) -> int:
        """
        Increase the claimed amount of a position.

        Args:
            position_id: Position id
            delta: Non-negative amount to add; zero is a no-op
            now: Host timestamp the vested ceiling is evaluated at

        Returns:
            The new claimed amount

        Raises:
            ValueError: If delta is negative or not an integer
            OverclaimError: If the result would exceed the vested amount
            ReentrancyError: If a claim on the position is in flight
        """
        with self.lock(position_id):
            self._require_idle(position_id)
            return self._apply(position_id, delta, now)

    @contextmanager
    def transaction(self, position_id: int, delta: int, now: int) -> Iterator[ClaimRecord]:
        """
        Stage a claim as a unit of work.

        The new claimed amount is applied on entry, so any code that runs
        inside the block (including external calls that re-enter the engine)
        already observes the post-claim value. If the block raises, the
        previous value is restored and the exception propagates.

        Usage:
            with ledger.transaction(position_id, amount, now):
                asset.transfer(escrow, recipient, amount)
        """
        with self.lock(position_id):
            self._require_idle(position_id)
            self._in_flight.add(position_id)
            try:
                record = self._record(position_id)
                previous = record.claimed_amount
                self._apply(position_id, delta, now)
                try:
                    yield record
                except BaseException:
                    record.claimed_amount = previous
                    logger.warning(
                        "Claim rolled back",
                        extra={
                            "event": "ledger.rollback",
                            "position_id": position_id,
                            "restored": previous,
                        },
                    )
                    raise
            finally:
                self._in_flight.discard(position_id)

    def _apply(self, position_id: int, delta: int, now: int) -> int:
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValueError("Claim delta must be an integer")
        if delta < 0:
            raise ValueError("Claim delta cannot be negative")

        record = self._record(position_id)
        if delta == 0:
            return record.claimed_amount

        position = self.store.get(position_id)
        vested = self.store.evaluator.vested_payout_at_time(position, now)
        updated = record.claimed_amount + delta
        if updated > vested:
            raise OverclaimError(
                f"Claim of {delta} would exceed vested amount for position {position_id}",
                details={
                    "position_id": position_id,
                    "claimed": record.claimed_amount,
                    "delta": delta,
                    "vested": vested,
                },
            )

        record.claimed_amount = updated
        return updated

    def _require_idle(self, position_id: int) -> None:
        if position_id in self._in_flight:
            raise ReentrancyError(
                f"Claim already in progress for position {position_id}",
                details={"position_id": position_id},
            )

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        return {
            str(pid): record.claimed_amount
            for pid, record in sorted(self._records.items())
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], store: VestingPositionStore) -> "ClaimLedger":
        """Rebuild a ledger; claimed amounts above an allocation are rejected."""
        ledger = cls(store)
        for raw_id, claimed in data.items():
            position = store.get(int(raw_id))
            if isinstance(claimed, bool) or not isinstance(claimed, int) or claimed < 0:
                raise InvalidTermsError(f"Invalid claimed amount for position {raw_id}")
            if claimed > position.total_allocation:
                raise OverclaimError(
                    f"Snapshot claimed amount exceeds allocation for position {raw_id}"
                )
            ledger._records[position.id] = ClaimRecord(position.id, claimed)
        return ledger
