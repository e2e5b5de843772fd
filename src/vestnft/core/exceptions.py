"""
Exception hierarchy for the vesting NFT engine.

Provides typed exceptions for position lookup, claim authorization, claim
accounting and payout dispatch so callers can distinguish a rejected claim
from a failed collaborator without parsing messages.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class ContractExecutionError(Exception):
    """Raised by the token collaborators when a contract call reverts."""
    pass


class VestingError(Exception):
    """Base exception for all vesting engine errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Lookup & Creation Errors ====================


class PositionNotFoundError(VestingError):
    """Raised when an operation references an unknown position id."""

    def __init__(self, position_id: int, **kwargs: Any) -> None:
        super().__init__(f"Vesting position {position_id} does not exist", **kwargs)
        self.position_id = position_id


class InvalidTermsError(VestingError):
    """Raised when position terms violate creation invariants.

    Examples: vesting_start after vesting_end, negative allocation,
    malformed curve parameters, duplicate position id.
    """
    pass


# ==================== Claim Errors ====================


class UnauthorizedClaimError(VestingError):
    """Raised when the caller is neither owner nor an approved operator."""

    def __init__(self, caller: str, position_id: int, **kwargs: Any) -> None:
        super().__init__(
            f"{caller} is not authorized to claim position {position_id}", **kwargs
        )
        self.caller = caller
        self.position_id = position_id


class NothingToClaimError(VestingError):
    """Raised when the claimable amount for a position is zero."""

    def __init__(self, position_id: int, **kwargs: Any) -> None:
        kwargs.setdefault("recoverable", True)  # more may vest later
        super().__init__(f"Nothing to claim for position {position_id}", **kwargs)
        self.position_id = position_id


class OverclaimError(VestingError):
    """Raised when a ledger update would exceed the vested amount."""
    pass


class ReentrancyError(VestingError):
    """Raised when a claim re-enters a position whose claim is in flight."""
    pass


class TransferFailureError(VestingError):
    """Raised when the payout asset transfer did not complete.

    The ledger update attempted for the same claim has been rolled back
    by the time this is raised.
    """

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)
