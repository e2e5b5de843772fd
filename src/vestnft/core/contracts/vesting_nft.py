"""
Transferable Vesting NFT (EIP-5725 style).

Each NFT entitles its current holder to the payout of a vesting position.
The contract mints the token and locks the payout asset in escrow in one
step, then releases it along the position's curve whenever an authorized
caller claims.

Interface:
- create: fund escrow, mint the token, create the position
- claim: pay out everything vested and unclaimed to the current owner
- vested_payout / vested_payout_at_time / vesting_payout / claimable_payout
- vesting_period / payout_token
- claim approvals: delegate claiming without delegating transfers

Security features:
- Claimed amounts belong to the position; transfers never reset them
- Claims stage the ledger before paying out and roll back on failure
- Per-position locks; reentrant claims see the post-claim ledger value

Note: an address approved for a token on the ERC721 layer can transfer the
token to itself, and is therefore also allowed to claim.
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Any, Callable, Dict, Iterable, Mapping

from .. import metrics
from ..config import DEFAULT_CONFIG, VestingConfig
from ..exceptions import ContractExecutionError, InvalidTermsError
from ..protocols import ZERO_ADDRESS, IAssetTransferrer, IMintableOwnershipRegistry
from ..vesting.authorization import AuthorizationGate
from ..vesting.curves import CurveEvaluator, CurveType
from ..vesting.dispatcher import PayoutDispatcher
from ..vesting.events import EventBus, VestingEvent
from ..vesting.ledger import ClaimLedger
from ..vesting.positions import PositionTerms, VestingPositionStore
from .erc721 import ERC721Token

logger = logging.getLogger(__name__)


class VestingNFT:
    """NFT collection whose tokens are claims on vesting payouts."""

    def __init__(
        self,
        name: str,
        symbol: str,
        base_uri: str = "",
        address: str = "",
        config: VestingConfig | None = None,
        registry: IMintableOwnershipRegistry | None = None,
        evaluator: CurveEvaluator | None = None,
        time_provider: Callable[[], int] | None = None,
    ) -> None:
        self.name = name
        self.symbol = symbol
        self.config = config or DEFAULT_CONFIG

        if not address:
            addr_hash = hashlib.sha3_256(f"vnft:{name}{symbol}{time.time()}".encode()).digest()
            address = f"0x{addr_hash[-20:].hex()}"
        self.address = address.lower()

        # The contract owns its collection so only create() can mint
        self.nft = registry or ERC721Token(
            name=name, symbol=symbol, base_uri=base_uri, owner=self.address
        )

        self.bus = EventBus()
        self.events: list[VestingEvent] = []
        self.bus.subscribe(self.events.append)

        self.store = VestingPositionStore(
            evaluator=evaluator,
            allow_zero_allocation=self.config.allow_zero_allocation,
        )
        self.ledger = ClaimLedger(self.store)
        self.gate = AuthorizationGate(self.nft, self.bus)
        self.assets: dict[str, IAssetTransferrer] = {}
        self.dispatcher = PayoutDispatcher(
            store=self.store,
            ledger=self.ledger,
            gate=self.gate,
            assets=self.assets,
            escrow=self.address,
            bus=self.bus,
            time_provider=time_provider,
            reject_empty_claims=self.config.reject_empty_claims,
        )

    # ==================== Creation ====================

    def register_asset(self, asset: IAssetTransferrer) -> None:
        self.assets[asset.address.lower()] = asset

    def create(
        self,
        caller: str,
        to: str,
        amount: int,
        vesting_start: int,
        vesting_end: int,
        asset: IAssetTransferrer,
        curve_type: CurveType | str = CurveType.LINEAR,
        curve_parameters: Mapping[str, Any] | None = None,
        uri: str = "",
    ) -> int:
        """
        Mint a vesting NFT and lock its payout in escrow.

        The caller must have approved this contract to pull `amount` of the
        payout asset.

        Args:
            caller: Funder of the position (msg.sender)
            to: Initial holder of the NFT
            amount: Total allocation in base units
            vesting_start: Timestamp vesting begins
            vesting_end: Timestamp everything has vested
            asset: Payout asset
            curve_type: Release curve name
            curve_parameters: Curve-specific parameters
            uri: Optional token metadata URI

        Returns:
            Token id, which is also the position id

        Raises:
            InvalidTermsError: If the terms are invalid
            ContractExecutionError: If funding or minting fails; funds already
                pulled into escrow are returned to the caller first
        """
        if isinstance(curve_type, CurveType):
            curve_type = curve_type.value
        terms = PositionTerms(
            payout_asset=asset.address,
            vesting_start=vesting_start,
            vesting_end=vesting_end,
            total_allocation=amount,
            curve_type=curve_type,
            curve_parameters=dict(curve_parameters or {}),
        )
        self.store.validate(terms)

        to_norm = (to or "").lower()
        if not to_norm or to_norm == ZERO_ADDRESS:
            raise InvalidTermsError("VestingNFT: mint to zero address")

        now = self.dispatcher.current_time()
        if amount > 0 and not asset.transfer_from(self.address, caller, self.address, amount):
            raise ContractExecutionError("VestingNFT: payout funding failed")

        try:
            token_id = self.nft.mint(self.address, to_norm, uri=uri)
            self.store.create(terms, position_id=token_id, created_at=now)
            self.ledger.open(token_id)
        except Exception as e:
            # Escrowed funds go back to the funder when no position backs them
            if amount > 0:
                asset.transfer(self.address, caller, amount)
            logger.warning(
                "Vesting NFT creation failed, funding refunded",
                extra={
                    "event": "vesting_nft.create_failed",
                    "collection": self.symbol,
                    "amount": amount,
                    "error_type": type(e).__name__,
                },
            )
            raise

        self.register_asset(asset)
        metrics.update_open_positions(self.address, len(self.store))

        logger.info(
            "Vesting NFT created",
            extra={
                "event": "vesting_nft.create",
                "collection": self.symbol,
                "token_id": token_id,
                "to": to_norm[:10],
                "amount": amount,
                "curve": curve_type,
            },
        )
        return token_id

    # ==================== Claiming ====================

    def claim(self, caller: str, token_id: int) -> int:
        """Pay out the claimable amount of token_id to its current owner."""
        return self.dispatcher.claim(token_id, caller)

    def set_claim_approval_for_all(self, caller: str, operator: str, approved: bool) -> bool:
        return self.gate.set_claim_approval_for_all(caller, operator, approved)

    def set_claim_approval(
        self, caller: str, operator: str, approved: bool, token_id: int
    ) -> bool:
        self.store.get(token_id)
        return self.gate.set_claim_approval(caller, operator, approved, token_id)

    def is_claim_approved_for_all(self, owner: str, operator: str) -> bool:
        return self.gate.is_claim_approved_for_all(owner, operator)

    def get_claim_approved(self, token_id: int) -> str:
        self.store.get(token_id)
        return self.gate.get_claim_approved(token_id)

    # ==================== Views ====================

    def vested_payout(self, token_id: int) -> int:
        return self.dispatcher.vested_payout(token_id)

    def vested_payout_at_time(self, token_id: int, timestamp: int) -> int:
        return self.dispatcher.vested_payout_at_time(token_id, timestamp)

    def vesting_payout(self, token_id: int) -> int:
        return self.dispatcher.vesting_payout(token_id)

    def claimable_payout(self, token_id: int) -> int:
        return self.dispatcher.claimable_payout(token_id)

    def claimed_payout(self, token_id: int) -> int:
        return self.ledger.claimed_amount(token_id)

    def vesting_period(self, token_id: int) -> tuple[int, int]:
        return self.dispatcher.vesting_period(token_id)

    def payout_token(self, token_id: int) -> str:
        return self.dispatcher.payout_asset(token_id)

    def owner_of(self, token_id: int) -> str:
        return self.nft.owner_of(token_id)

    def subscribe(self, callback: Callable[[VestingEvent], None]) -> None:
        self.bus.subscribe(callback)

    def unsubscribe(self, callback: Callable[[VestingEvent], None]) -> None:
        self.bus.unsubscribe(callback)

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        """Serialize contract state; the payout assets are referenced by address."""
        if not isinstance(self.nft, ERC721Token):
            raise ContractExecutionError("VestingNFT: external registries are not serializable")
        return {
            "name": self.name,
            "symbol": self.symbol,
            "address": self.address,
            "nft": self.nft.to_dict(),
            "positions": self.store.to_dict(),
            "claims": self.ledger.to_dict(),
            "claim_approvals": self.gate.to_dict(),
            "assets": sorted(self.assets),
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        assets: Iterable[IAssetTransferrer] = (),
        config: VestingConfig | None = None,
        time_provider: Callable[[], int] | None = None,
    ) -> "VestingNFT":
        """
        Rebuild a contract from a snapshot.

        Args:
            data: Output of to_dict
            assets: Payout asset instances referenced by the snapshot
            config: Engine configuration
            time_provider: Host clock
        """
        nft = ERC721Token.from_dict(data["nft"])
        contract = cls(
            name=data["name"],
            symbol=data["symbol"],
            address=data["address"],
            config=config,
            registry=nft,
            time_provider=time_provider,
        )
        contract.store = VestingPositionStore.from_dict(
            data.get("positions", {}),
            evaluator=contract.store.evaluator,
            allow_zero_allocation=contract.config.allow_zero_allocation,
        )
        contract.ledger = ClaimLedger.from_dict(data.get("claims", {}), contract.store)
        contract.gate.load_dict(data.get("claim_approvals", {}))
        contract.dispatcher.store = contract.store
        contract.dispatcher.ledger = contract.ledger
        for asset in assets:
            contract.register_asset(asset)
        return contract
