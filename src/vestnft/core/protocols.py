"""
vestnft - Collaborator Protocol Interfaces

The vesting engine never depends on a concrete token implementation. It
depends on two capability sets, expressed as structural Protocols:

- IOwnershipRegistry: the non-fungible ownership layer (owner, approvals)
- IAssetTransferrer: the fungible asset that is paid out

Any object with matching methods can be plugged in, which keeps the engine
testable with stubs and usable with different token backends.

Security Notes:
- An address approved on the ownership layer (per token or as an operator)
  may transfer the token to itself and may therefore claim through it.
  The engine inherits this property and treats such callers as authorized.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

ZERO_ADDRESS = "0x" + "0" * 40


@runtime_checkable
class IOwnershipRegistry(Protocol):
    """
    Protocol for the non-fungible ownership layer.

    Token ids are the same identifiers the vesting engine uses for positions.
    """

    def owner_of(self, token_id: int) -> str:
        """
        Get the current owner of a token.

        Raises:
            ContractExecutionError: If the token does not exist
        """
        ...

    def get_approved(self, token_id: int) -> str:
        """Get the address approved for a single token (zero address if none)."""
        ...

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        """Check whether operator manages all tokens of owner."""
        ...


@runtime_checkable
class IMintableOwnershipRegistry(IOwnershipRegistry, Protocol):
    """Ownership layer that can mint new token identities."""

    def mint(self, minter: str, to: str, token_id: int | None = None, uri: str = "") -> int:
        ...


@runtime_checkable
class IAssetTransferrer(Protocol):
    """
    Protocol for the fungible payout asset.

    Thread Safety: transfer may call back into arbitrary code (hooks,
    receivers); the engine treats it as a trust boundary.
    """

    address: str

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Move amount units from sender to recipient.

        Returns:
            True if the transfer completed. Raising or returning a falsy
            value are both treated as a failed transfer.
        """
        ...

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool:
        """Move amount units from from_addr using spender's allowance."""
        ...

    def balance_of(self, account: str) -> int:
        ...
