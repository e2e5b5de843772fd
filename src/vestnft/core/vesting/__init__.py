"""
Vesting accounting core.

- CurveEvaluator: time -> cumulative vested amount, with pluggable shapes
- VestingPositionStore: immutable per-position terms
- ClaimLedger: cumulative claimed amounts and the never-overclaim invariant
- AuthorizationGate: owner/approval checks against the ownership layer
- PayoutDispatcher: atomic claim orchestration and derived views
"""

from .authorization import AuthorizationGate
from .curves import (
    CliffCurve,
    CurveEvaluator,
    CurveType,
    ExponentialCurve,
    LinearCurve,
    StepwiseCurve,
    VestingCurve,
)
from .dispatcher import PayoutDispatcher
from .events import (
    ClaimApproval,
    ClaimApprovalForAll,
    EventBus,
    PayoutClaimed,
)
from .ledger import ClaimLedger, ClaimRecord
from .positions import PositionTerms, VestingPosition, VestingPositionStore

__all__ = [
    # Curves
    "CurveEvaluator",
    "CurveType",
    "VestingCurve",
    "LinearCurve",
    "CliffCurve",
    "StepwiseCurve",
    "ExponentialCurve",
    # State
    "PositionTerms",
    "VestingPosition",
    "VestingPositionStore",
    "ClaimLedger",
    "ClaimRecord",
    # Claiming
    "AuthorizationGate",
    "PayoutDispatcher",
    # Events
    "EventBus",
    "PayoutClaimed",
    "ClaimApproval",
    "ClaimApprovalForAll",
]
