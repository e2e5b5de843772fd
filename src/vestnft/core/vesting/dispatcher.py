"""
Payout dispatch.

Orchestrates a claim from request to notification:

1. look up the position (PositionNotFoundError)
2. check the caller against the authorization gate (UnauthorizedClaimError)
3. evaluate the curve at the host clock's now
4. claimable = vested - claimed
5. zero claimable raises NothingToClaimError, or returns 0 when the
   reject_empty_claims policy is off
6. in one ledger unit of work: stage the new claimed amount, resolve the
   recipient (the current owner) and move the payout asset out of escrow;
   any transfer failure restores the ledger
7. publish PayoutClaimed after the unit of work commits

Also exposes the read-only views derived from the curve and the ledger.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Mapping

from .. import metrics
from ..exceptions import (
    NothingToClaimError,
    TransferFailureError,
    UnauthorizedClaimError,
)
from ..protocols import IAssetTransferrer
from .authorization import AuthorizationGate
from .events import EventBus, PayoutClaimed
from .ledger import ClaimLedger
from .positions import VestingPositionStore

logger = logging.getLogger(__name__)


class PayoutDispatcher:
    """Atomic claim orchestration and derived payout views."""

    def __init__(
        self,
        store: VestingPositionStore,
        ledger: ClaimLedger,
        gate: AuthorizationGate,
        assets: Mapping[str, IAssetTransferrer],
        escrow: str,
        bus: EventBus | None = None,
        time_provider: Callable[[], int] | None = None,
        reject_empty_claims: bool = True,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.gate = gate
        self.assets = assets
        self.escrow = escrow
        self.bus = bus or EventBus()
        self.reject_empty_claims = reject_empty_claims
        self._time_provider = time_provider or (lambda: int(time.time()))

    def current_time(self) -> int:
        timestamp = self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return an integer timestamp") from exc

    # ==================== Claim ====================

    def claim(self, token_id: int, caller: str) -> int:
        """
        Pay out everything vested and not yet claimed for a position.

        Args:
            token_id: Position / token id
            caller: Address requesting the claim

        Returns:
            Amount paid out (0 only when empty claims are allowed)

        Raises:
            PositionNotFoundError: Unknown position
            UnauthorizedClaimError: Caller is neither owner nor approved
            NothingToClaimError: Nothing claimable and empty claims rejected
            TransferFailureError: Payout did not complete; ledger unchanged
            ReentrancyError: A claim on this position is already in flight
        """
        position = self.store.get(token_id)

        if not self.gate.is_authorized(caller, token_id):
            metrics.record_claim_outcome("unauthorized")
            logger.warning(
                "Unauthorized claim attempt",
                extra={
                    "event": "vesting.claim_unauthorized",
                    "token_id": token_id,
                    "caller": (caller or "")[:10],
                },
            )
            raise UnauthorizedClaimError(caller, token_id)

        asset = self._asset(position.payout_asset)

        with self.ledger.lock(token_id):
            now = self.current_time()
            vested = self.store.evaluator.vested_payout_at_time(position, now)
            claimable = max(0, vested - self.ledger.claimed_amount(token_id))

            if claimable == 0:
                metrics.record_claim_outcome("empty")
                if self.reject_empty_claims:
                    raise NothingToClaimError(token_id, details={"vested": vested})
                return 0

            with self.ledger.transaction(token_id, claimable, now):
                recipient = self.gate.current_owner(token_id)
                self._transfer(asset, token_id, recipient, claimable)

        event = PayoutClaimed(
            token_id=token_id,
            recipient=recipient,
            amount=claimable,
            payout_asset=position.payout_asset,
            timestamp=now,
        )
        metrics.record_payout(position.payout_asset, claimable)
        logger.info(
            "Payout claimed",
            extra={
                "event": "vesting.claim",
                "token_id": token_id,
                "recipient": recipient[:10],
                "amount": claimable,
                "claimed_total": self.ledger.claimed_amount(token_id),
            },
        )
        self.bus.publish(event)
        return claimable

    def _asset(self, address: str) -> IAssetTransferrer:
        asset = self.assets.get(address.lower())
        if asset is None:
            raise TransferFailureError(
                f"Payout asset {address} is not registered",
                details={"asset": address},
                recoverable=False,
            )
        return asset

    def _transfer(
        self, asset: IAssetTransferrer, token_id: int, recipient: str, amount: int
    ) -> None:
        try:
            completed = asset.transfer(self.escrow, recipient, amount)
        except Exception as exc:
            metrics.record_claim_outcome("transfer_failed")
            raise TransferFailureError(
                f"Payout transfer for position {token_id} failed: {exc}",
                details={
                    "token_id": token_id,
                    "amount": amount,
                    "error_type": type(exc).__name__,
                },
            ) from exc

        if not completed:
            metrics.record_claim_outcome("transfer_failed")
            raise TransferFailureError(
                f"Payout transfer for position {token_id} was not completed",
                details={"token_id": token_id, "amount": amount},
            )

    # ==================== Views ====================

    def vested_payout_at_time(self, token_id: int, timestamp: int) -> int:
        """Cumulative payout vested by timestamp; 0 before vesting_start."""
        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            raise ValueError("timestamp must be an integer")
        position = self.store.get(token_id)
        return self.store.evaluator.vested_payout_at_time(position, timestamp)

    def vested_payout(self, token_id: int) -> int:
        return self.vested_payout_at_time(token_id, self.current_time())

    def vesting_payout(self, token_id: int) -> int:
        """Payout still locked at the current time."""
        position = self.store.get(token_id)
        return position.total_allocation - self.vested_payout(token_id)

    def claimable_payout(self, token_id: int) -> int:
        """Vested payout not yet claimed."""
        vested = self.vested_payout(token_id)
        return max(0, vested - self.ledger.claimed_amount(token_id))

    def vesting_period(self, token_id: int) -> tuple[int, int]:
        return self.store.get(token_id).vesting_period

    def payout_asset(self, token_id: int) -> str:
        return self.store.get(token_id).payout_asset
