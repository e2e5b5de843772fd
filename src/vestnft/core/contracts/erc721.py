"""
ERC721 Non-Fungible Token (NFT) ownership layer.

Provides the ownership, transfer and approval mechanics vesting NFTs are
built on:
- Basic NFT operations (transferFrom, safeTransferFrom, approve)
- Enumerable extension (tokenOfOwnerByIndex, totalSupply)
- Metadata extension (tokenURI)
- Minting restricted to the collection owner

Security features:
- Owner verification
- Approval validation
- Zero address checks
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict

from ..exceptions import ContractExecutionError
from ..protocols import ZERO_ADDRESS

logger = logging.getLogger(__name__)


@dataclass
class NFTEvent:
    """Represents an ERC721 event."""

    event_type: str  # "Transfer", "Approval", "ApprovalForAll"
    from_address: str
    to_address: str
    token_id: int
    approved: bool = False  # For ApprovalForAll
    timestamp: float = field(default_factory=time.time)


@dataclass
class ERC721Token:
    """
    In-memory ERC721 collection.

    Implements the ERC721 standard with the Enumerable and Metadata
    extensions. Satisfies IMintableOwnershipRegistry.
    """

    # Collection metadata
    name: str
    symbol: str
    base_uri: str = ""

    # Contract address
    address: str = ""

    # Owner (may mint)
    owner: str = ""

    # Token state
    owners: dict[int, str] = field(default_factory=dict)  # tokenId -> owner
    balances: dict[str, int] = field(default_factory=dict)  # owner -> count
    token_approvals: dict[int, str] = field(default_factory=dict)  # tokenId -> approved
    operator_approvals: dict[str, dict[str, bool]] = field(
        default_factory=dict
    )  # owner -> operator -> approved

    # Enumerable data
    all_tokens: list[int] = field(default_factory=list)
    owner_tokens: dict[str, list[int]] = field(default_factory=dict)  # owner -> tokenIds

    # Metadata
    token_uris: dict[int, str] = field(default_factory=dict)

    # Minting
    next_token_id: int = 1

    # Events
    events: list[NFTEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.address:
            addr_input = f"{self.name}{self.symbol}{time.time()}".encode()
            addr_hash = hashlib.sha3_256(addr_input).digest()
            self.address = f"0x{addr_hash[-20:].hex()}"
        self.owner = self._normalize(self.owner)

    # ==================== View Functions ====================

    def balance_of(self, owner: str) -> int:
        return self.balances.get(self._normalize(owner), 0)

    def owner_of(self, token_id: int) -> str:
        """
        Get the owner of an NFT.

        Raises:
            ContractExecutionError: If token doesn't exist
        """
        owner = self.owners.get(token_id)
        if not owner:
            raise ContractExecutionError(f"ERC721: token {token_id} does not exist")
        return owner

    def exists(self, token_id: int) -> bool:
        return token_id in self.owners

    def get_approved(self, token_id: int) -> str:
        """Approved address for a token (zero address if none)."""
        self._require_minted(token_id)
        return self.token_approvals.get(token_id, ZERO_ADDRESS)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        owner_norm = self._normalize(owner)
        operator_norm = self._normalize(operator)
        return self.operator_approvals.get(owner_norm, {}).get(operator_norm, False)

    def token_uri(self, token_id: int) -> str:
        """Metadata URI for a token: explicit URI, else base_uri + id."""
        self._require_minted(token_id)

        if token_id in self.token_uris:
            return self.token_uris[token_id]

        if self.base_uri:
            return f"{self.base_uri}{token_id}"

        return ""

    def total_supply(self) -> int:
        return len(self.all_tokens)

    def token_by_index(self, index: int) -> int:
        if index < 0 or index >= len(self.all_tokens):
            raise ContractExecutionError(f"ERC721: index {index} out of bounds")
        return self.all_tokens[index]

    def token_of_owner_by_index(self, owner: str, index: int) -> int:
        owner_norm = self._normalize(owner)
        tokens = self.owner_tokens.get(owner_norm, [])
        if index < 0 or index >= len(tokens):
            raise ContractExecutionError(f"ERC721: owner index {index} out of bounds")
        return tokens[index]

    # ==================== State-Changing Functions ====================

    def approve(self, caller: str, to: str, token_id: int) -> bool:
        """
        Approve an address to transfer a specific token.

        Raises:
            ContractExecutionError: If caller is neither owner nor operator
        """
        owner = self.owner_of(token_id)
        caller_norm = self._normalize(caller)
        to_norm = self._normalize(to)

        if to_norm == owner:
            raise ContractExecutionError("ERC721: approval to current owner")

        if caller_norm != owner and not self.is_approved_for_all(owner, caller_norm):
            raise ContractExecutionError("ERC721: approve caller is not owner nor approved")

        self.token_approvals[token_id] = to_norm
        self._emit("Approval", owner, to_norm, token_id)

        return True

    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> bool:
        caller_norm = self._normalize(caller)
        operator_norm = self._normalize(operator)

        if operator_norm == caller_norm:
            raise ContractExecutionError("ERC721: approve to caller")

        if caller_norm not in self.operator_approvals:
            self.operator_approvals[caller_norm] = {}
        self.operator_approvals[caller_norm][operator_norm] = approved

        self._emit("ApprovalForAll", caller_norm, operator_norm, 0, approved=approved)

        return True

    def transfer_from(self, caller: str, from_addr: str, to_addr: str, token_id: int) -> bool:
        self._transfer(caller, from_addr, to_addr, token_id)
        return True

    def safe_transfer_from(
        self,
        caller: str,
        from_addr: str,
        to_addr: str,
        token_id: int,
        data: bytes = b"",
    ) -> bool:
        """Transfer an NFT; receivers are plain addresses, so no hook runs."""
        self._transfer(caller, from_addr, to_addr, token_id)
        return True

    def _transfer(self, caller: str, from_addr: str, to_addr: str, token_id: int) -> None:
        from_norm = self._normalize(from_addr)
        to_norm = self._normalize(to_addr)
        caller_norm = self._normalize(caller)

        owner = self.owner_of(token_id)
        if owner != from_norm:
            raise ContractExecutionError("ERC721: transfer from incorrect owner")

        if not self._is_approved_or_owner(caller_norm, token_id):
            raise ContractExecutionError("ERC721: caller is not owner nor approved")

        if to_norm == ZERO_ADDRESS or not to_norm:
            raise ContractExecutionError("ERC721: transfer to zero address")

        # Clear approval
        self.token_approvals.pop(token_id, None)

        self.balances[from_norm] = self.balances.get(from_norm, 1) - 1
        self.balances[to_norm] = self.balances.get(to_norm, 0) + 1

        self.owners[token_id] = to_norm

        if from_norm in self.owner_tokens:
            self.owner_tokens[from_norm].remove(token_id)
        self.owner_tokens.setdefault(to_norm, []).append(token_id)

        self._emit("Transfer", from_norm, to_norm, token_id)

        logger.debug(
            "ERC721 transfer",
            extra={
                "event": "erc721.transfer",
                "collection": self.symbol,
                "token_id": token_id,
                "from": from_norm[:10],
                "to": to_norm[:10],
            }
        )

    # ==================== Minting ====================

    def mint(
        self,
        minter: str,
        to: str,
        token_id: int | None = None,
        uri: str = "",
    ) -> int:
        """
        Mint a new NFT.

        Args:
            minter: Address calling mint (must be collection owner)
            to: Recipient address
            token_id: Optional specific token ID
            uri: Optional token URI

        Returns:
            Minted token ID

        Raises:
            ContractExecutionError: If minting fails
        """
        self._require_owner(minter)

        to_norm = self._normalize(to)
        if to_norm == ZERO_ADDRESS or not to_norm:
            raise ContractExecutionError("ERC721: mint to zero address")

        if token_id is None:
            token_id = self.next_token_id
            while token_id in self.owners:
                token_id += 1
        elif token_id in self.owners:
            raise ContractExecutionError(f"ERC721: token {token_id} already minted")
        self.next_token_id = max(self.next_token_id, token_id + 1)

        self.owners[token_id] = to_norm
        self.balances[to_norm] = self.balances.get(to_norm, 0) + 1

        self.all_tokens.append(token_id)
        self.owner_tokens.setdefault(to_norm, []).append(token_id)

        if uri:
            self.token_uris[token_id] = uri

        self._emit("Transfer", ZERO_ADDRESS, to_norm, token_id)

        logger.info(
            "ERC721 mint",
            extra={
                "event": "erc721.mint",
                "collection": self.symbol,
                "token_id": token_id,
                "to": to_norm[:10],
            }
        )

        return token_id

    # ==================== Helpers ====================

    def _normalize(self, address: str) -> str:
        return (address or "").lower()

    def _require_minted(self, token_id: int) -> None:
        if token_id not in self.owners:
            raise ContractExecutionError(f"ERC721: token {token_id} does not exist")

    def _require_owner(self, caller: str) -> None:
        if self._normalize(caller) != self.owner:
            raise ContractExecutionError("ERC721: caller is not owner")

    def _is_approved_or_owner(self, caller: str, token_id: int) -> bool:
        owner = self.owner_of(token_id)
        return (
            caller == owner
            or self.get_approved(token_id) == caller
            or self.is_approved_for_all(owner, caller)
        )

    def _emit(
        self,
        event_type: str,
        from_addr: str,
        to_addr: str,
        token_id: int,
        approved: bool = False,
    ) -> None:
        self.events.append(
            NFTEvent(
                event_type=event_type,
                from_address=from_addr,
                to_address=to_addr,
                token_id=token_id,
                approved=approved,
            )
        )

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        """Serialize NFT state to dictionary."""
        return {
            "name": self.name,
            "symbol": self.symbol,
            "base_uri": self.base_uri,
            "address": self.address,
            "owner": self.owner,
            "owners": {str(k): v for k, v in self.owners.items()},
            "token_approvals": {str(k): v for k, v in self.token_approvals.items()},
            "operator_approvals": {
                k: dict(v) for k, v in self.operator_approvals.items()
            },
            "all_tokens": list(self.all_tokens),
            "token_uris": {str(k): v for k, v in self.token_uris.items()},
            "next_token_id": self.next_token_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ERC721Token":
        """Deserialize NFT state; balances and owner indexes are rebuilt."""
        token = cls(
            name=data["name"],
            symbol=data["symbol"],
            base_uri=data.get("base_uri", ""),
            address=data.get("address", ""),
            owner=data.get("owner", ""),
        )
        token.owners = {int(k): v for k, v in data.get("owners", {}).items()}
        token.token_approvals = {
            int(k): v for k, v in data.get("token_approvals", {}).items()
        }
        token.operator_approvals = {
            k: dict(v) for k, v in data.get("operator_approvals", {}).items()
        }
        token.all_tokens = [int(t) for t in data.get("all_tokens", token.owners)]
        for token_id in token.all_tokens:
            holder = token.owners[token_id]
            token.balances[holder] = token.balances.get(holder, 0) + 1
            token.owner_tokens.setdefault(holder, []).append(token_id)
        token.token_uris = {int(k): v for k, v in data.get("token_uris", {}).items()}
        token.next_token_id = data.get("next_token_id", 1)
        return token
