"""
Vesting position storage.

A VestingPosition holds the immutable terms of one vesting NFT: the payout
asset, the vesting window, the total allocation and the curve that releases
it. Positions are created once, at the moment their token identity is
minted, and never change afterwards.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping

from ..exceptions import InvalidTermsError, PositionNotFoundError
from .curves import CurveEvaluator, CurveType

logger = logging.getLogger(__name__)

UINT256_MAX = 2**256 - 1


@dataclass(frozen=True)
class PositionTerms:
    """Terms supplied when a position is created."""

    payout_asset: str
    vesting_start: int
    vesting_end: int
    total_allocation: int
    curve_type: str = CurveType.LINEAR.value
    curve_parameters: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VestingPosition:
    """Immutable terms of a single vesting position."""

    id: int
    payout_asset: str
    vesting_start: int
    vesting_end: int
    total_allocation: int
    curve_type: str
    curve_parameters: Mapping[str, Any]
    created_at: int = 0

    @property
    def vesting_period(self) -> tuple[int, int]:
        return (self.vesting_start, self.vesting_end)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "payout_asset": self.payout_asset,
            "vesting_start": self.vesting_start,
            "vesting_end": self.vesting_end,
            "total_allocation": self.total_allocation,
            "curve_type": self.curve_type,
            "curve_parameters": dict(self.curve_parameters),
            "created_at": self.created_at,
        }


class VestingPositionStore:
    """
    Keyed store of immutable vesting positions.

    Thread Safety: creation is serialized by an internal lock; reads of
    already-created positions need no locking because positions never
    change.
    """

    def __init__(
        self,
        evaluator: CurveEvaluator | None = None,
        allow_zero_allocation: bool = False,
    ) -> None:
        self.evaluator = evaluator or CurveEvaluator()
        self.allow_zero_allocation = allow_zero_allocation
        self._positions: dict[int, VestingPosition] = {}
        self._next_id = 1
        self._lock = threading.RLock()

    def create(
        self,
        terms: PositionTerms,
        position_id: int | None = None,
        created_at: int = 0,
    ) -> int:
        """
        Create a position from validated terms.

        Args:
            terms: Position terms
            position_id: Token id to bind the position to; a fresh id is
                assigned when omitted
            created_at: Host timestamp of creation

        Returns:
            The position id

        Raises:
            InvalidTermsError: If the terms violate creation invariants or
                the id is already taken
        """
        with self._lock:
            if position_id is None:
                position_id = self._next_id
            self._validate_id(position_id)

            position = self._build(terms, position_id, created_at)
            self._validate_terms(position)

            self._positions[position_id] = position
            self._next_id = max(self._next_id, position_id + 1)

        logger.info(
            "Vesting position created",
            extra={
                "event": "vesting.position_created",
                "position_id": position_id,
                "asset": terms.payout_asset[:10],
                "curve": terms.curve_type,
                "total_allocation": terms.total_allocation,
            },
        )
        return position_id

    def get(self, position_id: int) -> VestingPosition:
        """
        Get a position by id.

        Raises:
            PositionNotFoundError: If no position has this id
        """
        position = self._positions.get(position_id)
        if position is None:
            raise PositionNotFoundError(position_id)
        return position

    def exists(self, position_id: int) -> bool:
        return position_id in self._positions

    def ids(self) -> list[int]:
        return sorted(self._positions)

    def __len__(self) -> int:
        return len(self._positions)

    def __iter__(self) -> Iterator[VestingPosition]:
        return iter(self._positions[pid] for pid in self.ids())

    # ==================== Validation ====================

    def validate(self, terms: PositionTerms) -> None:
        """
        Check terms without creating a position.

        Raises:
            InvalidTermsError: If create() would reject the terms
        """
        self._validate_terms(self._build(terms, position_id=0, created_at=0))

    @staticmethod
    def _build(terms: PositionTerms, position_id: int, created_at: int) -> VestingPosition:
        if not isinstance(terms.curve_parameters, Mapping):
            raise InvalidTermsError("curve_parameters must be a mapping")
        return VestingPosition(
            id=position_id,
            payout_asset=(terms.payout_asset or "").lower(),
            vesting_start=terms.vesting_start,
            vesting_end=terms.vesting_end,
            total_allocation=terms.total_allocation,
            curve_type=terms.curve_type,
            curve_parameters=MappingProxyType(dict(terms.curve_parameters)),
            created_at=created_at,
        )

    def _validate_id(self, position_id: int) -> None:
        if isinstance(position_id, bool) or not isinstance(position_id, int) or position_id < 0:
            raise InvalidTermsError(f"Invalid position id {position_id!r}")
        if position_id in self._positions:
            raise InvalidTermsError(
                f"Vesting position {position_id} already exists",
                details={"position_id": position_id},
            )

    def _validate_terms(self, position: VestingPosition) -> None:
        if not position.payout_asset:
            raise InvalidTermsError("Payout asset cannot be empty")

        for name in ("vesting_start", "vesting_end", "total_allocation"):
            value = getattr(position, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidTermsError(
                    f"{name} must be an integer", details={"value": repr(value)}
                )

        if position.vesting_start < 0:
            raise InvalidTermsError("vesting_start cannot be negative")
        if position.vesting_start > position.vesting_end:
            raise InvalidTermsError(
                "vesting_start must not be after vesting_end",
                details={"start": position.vesting_start, "end": position.vesting_end},
            )
        if position.total_allocation < 0:
            raise InvalidTermsError("total_allocation cannot be negative")
        if position.total_allocation == 0 and not self.allow_zero_allocation:
            raise InvalidTermsError("total_allocation must be positive")
        if position.total_allocation > UINT256_MAX:
            raise InvalidTermsError("total_allocation exceeds uint256")

        self.evaluator.validate(position)

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "next_id": self._next_id,
            "positions": [position.to_dict() for position in self],
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        evaluator: CurveEvaluator | None = None,
        allow_zero_allocation: bool = False,
    ) -> "VestingPositionStore":
        """Rebuild a store from a snapshot, re-validating every position."""
        store = cls(evaluator=evaluator, allow_zero_allocation=allow_zero_allocation)
        for raw in data.get("positions", []):
            terms = PositionTerms(
                payout_asset=raw["payout_asset"],
                vesting_start=raw["vesting_start"],
                vesting_end=raw["vesting_end"],
                total_allocation=raw["total_allocation"],
                curve_type=raw.get("curve_type", CurveType.LINEAR.value),
                curve_parameters=raw.get("curve_parameters", {}),
            )
            store.create(terms, position_id=int(raw["id"]), created_at=raw.get("created_at", 0))
        store._next_id = max(store._next_id, data.get("next_id", 1))
        return store
