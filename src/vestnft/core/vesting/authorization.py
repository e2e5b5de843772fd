"""
Claim authorization.

Decides whether a caller may trigger a claim for a position by asking the
ownership layer, fresh on every call, whether the caller is the owner, the
address approved for that token, or an operator approved for all of the
owner's tokens.

Security Notes:
- Ownership-layer approval implies claim rights. An approved address can
  transfer the token to itself at any time, so refusing it the claim would
  protect nothing. Owners who want to delegate claiming without granting
  transfer rights use claim approvals instead.
- Claim approvals only grant claiming. They are never consulted by the
  ownership layer, and a per-token claim approval lapses as soon as the
  token changes hands.
"""

from __future__ import annotations

import logging
import threading

from ..exceptions import ContractExecutionError, UnauthorizedClaimError
from ..protocols import ZERO_ADDRESS, IOwnershipRegistry
from .events import ClaimApproval, ClaimApprovalForAll, EventBus

logger = logging.getLogger(__name__)


class AuthorizationGate:
    """Owner/approval check backed by an ownership registry."""

    def __init__(self, registry: IOwnershipRegistry, bus: EventBus | None = None) -> None:
        self.registry = registry
        self.bus = bus
        # owner -> operator -> approved
        self._claim_operators: dict[str, dict[str, bool]] = {}
        # token_id -> (granting owner, operator)
        self._claim_approvals: dict[int, tuple[str, str]] = {}
        self._lock = threading.Lock()

    # ==================== Queries ====================

    def is_authorized(self, caller: str, token_id: int) -> bool:
        """
        Check whether caller may claim for token_id.

        Never cached: ownership and approvals can change between calls.
        """
        caller_norm = self._normalize(caller)
        if not caller_norm or caller_norm == ZERO_ADDRESS:
            return False

        owner = self._normalize(self.registry.owner_of(token_id))
        if caller_norm == owner:
            return True
        if self._normalize(self.registry.get_approved(token_id)) == caller_norm:
            return True
        if self.registry.is_approved_for_all(owner, caller_norm):
            return True

        return (
            self.get_claim_approved(token_id) == caller_norm
            or self.is_claim_approved_for_all(owner, caller_norm)
        )

    def require_authorized(self, caller: str, token_id: int) -> None:
        if not self.is_authorized(caller, token_id):
            raise UnauthorizedClaimError(caller, token_id)

    def current_owner(self, token_id: int) -> str:
        return self._normalize(self.registry.owner_of(token_id))

    def get_claim_approved(self, token_id: int) -> str:
        """Claim operator for a token, or the zero address if none is active."""
        grant = self._claim_approvals.get(token_id)
        if grant is None:
            return ZERO_ADDRESS
        granted_by, operator = grant
        if granted_by != self.current_owner(token_id):
            return ZERO_ADDRESS
        return operator

    def is_claim_approved_for_all(self, owner: str, operator: str) -> bool:
        return self._claim_operators.get(self._normalize(owner), {}).get(
            self._normalize(operator), False
        )

    # ==================== Claim Approvals ====================

    def set_claim_approval_for_all(self, caller: str, operator: str, approved: bool) -> bool:
        """
        Allow or revoke operator claiming for every token caller owns.

        Raises:
            ContractExecutionError: If operator is the caller or zero address
        """
        caller_norm = self._normalize(caller)
        operator_norm = self._normalize(operator)
        if operator_norm == caller_norm:
            raise ContractExecutionError("VestingNFT: claim approval to caller")
        if operator_norm == ZERO_ADDRESS:
            raise ContractExecutionError("VestingNFT: claim approval to zero address")

        with self._lock:
            self._claim_operators.setdefault(caller_norm, {})[operator_norm] = approved

        self._publish(ClaimApprovalForAll(caller_norm, operator_norm, approved))
        return True

    def set_claim_approval(
        self, caller: str, operator: str, approved: bool, token_id: int
    ) -> bool:
        """
        Allow or revoke operator claiming for a single token.

        Raises:
            ContractExecutionError: If caller does not own the token
        """
        caller_norm = self._normalize(caller)
        operator_norm = self._normalize(operator)
        owner = self.current_owner(token_id)
        if caller_norm != owner:
            raise ContractExecutionError("VestingNFT: caller is not token owner")

        with self._lock:
            if approved and operator_norm != ZERO_ADDRESS:
                self._claim_approvals[token_id] = (owner, operator_norm)
            else:
                self._claim_approvals.pop(token_id, None)

        self._publish(ClaimApproval(owner, operator_norm, token_id, approved))
        return True

    def _publish(self, event: ClaimApproval | ClaimApprovalForAll) -> None:
        logger.debug(
            "Claim approval changed",
            extra={
                "event": "vesting.claim_approval",
                "owner": event.owner[:10],
                "operator": event.operator[:10],
                "approved": event.approved,
            },
        )
        if self.bus is not None:
            self.bus.publish(event)

    def _normalize(self, address: str) -> str:
        return (address or "").lower()

    # ==================== Serialization ====================

    def to_dict(self) -> dict:
        return {
            "claim_operators": {k: dict(v) for k, v in self._claim_operators.items()},
            "claim_approvals": {
                str(token_id): [owner, operator]
                for token_id, (owner, operator) in self._claim_approvals.items()
            },
        }

    def load_dict(self, data: dict) -> None:
        self._claim_operators = {
            k: dict(v) for k, v in data.get("claim_operators", {}).items()
        }
        self._claim_approvals = {
            int(k): (v[0], v[1]) for k, v in data.get("claim_approvals", {}).items()
        }
