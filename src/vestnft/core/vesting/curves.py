"""
Vesting curve evaluation.

A curve maps (position terms, timestamp) to the cumulative amount vested by
that timestamp. The evaluator owns the boundary behavior shared by every
shape:

- before vesting_start nothing has vested
- at or after vesting_end the whole allocation has vested, including the
  MAX_TIMESTAMP sentinel callers use to read the allocation
- in between, the installed strategy decides, and its result is clamped to
  [0, total_allocation]

Shapes are pluggable strategies. Built-in strategies:
- LINEAR: proportional release with an optional cliff
- CLIFF: everything released at vesting_end
- STEPWISE: equal tranches at evenly spaced boundaries
- EXPONENTIAL: back-loaded release, (e^(k*x) - 1) / (e^k - 1)

All arithmetic is integer or Decimal based so results are deterministic and
floor-rounded.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation, ROUND_FLOOR, localcontext
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

from ..exceptions import InvalidTermsError

if TYPE_CHECKING:
    from .positions import VestingPosition

logger = logging.getLogger(__name__)

# Enough digits for 256-bit allocations
DECIMAL_PRECISION = 96


class CurveType(Enum):
    """Built-in vesting curve shapes."""

    LINEAR = "linear"
    CLIFF = "cliff"
    STEPWISE = "stepwise"
    EXPONENTIAL = "exponential"


def _int_param(params: Mapping[str, Any], key: str, default: int | None = None) -> int:
    value = params.get(key, default)
    if value is None:
        raise InvalidTermsError(f"Curve parameter '{key}' is required")
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidTermsError(
            f"Curve parameter '{key}' must be an integer",
            details={"value": repr(value)},
        )
    return value


class VestingCurve(ABC):
    """
    Strategy interface for a curve shape.

    amount_at is only called for vesting_start <= timestamp < vesting_end and
    must be pure and non-decreasing in timestamp.
    """

    name: str = ""

    def validate(self, position: "VestingPosition") -> None:
        """Reject curve parameters this shape cannot evaluate."""
        return None

    @abstractmethod
    def amount_at(self, position: "VestingPosition", timestamp: int) -> int:
        ...


class LinearCurve(VestingCurve):
    """Linear release from vesting_start, gated by an optional cliff.

    Parameters:
        cliff_seconds: seconds after vesting_start before anything vests
            (default 0). Once the cliff passes, the amount accrued since
            vesting_start becomes available at once.
    """

    name = CurveType.LINEAR.value

    def validate(self, position: "VestingPosition") -> None:
        cliff = _int_param(position.curve_parameters, "cliff_seconds", 0)
        if cliff < 0:
            raise InvalidTermsError("cliff_seconds cannot be negative")
        if position.vesting_start + cliff > position.vesting_end:
            raise InvalidTermsError("cliff extends past vesting_end")

    def amount_at(self, position: "VestingPosition", timestamp: int) -> int:
        cliff = position.curve_parameters.get("cliff_seconds", 0)
        if timestamp < position.vesting_start + cliff:
            return 0
        duration = position.vesting_end - position.vesting_start
        elapsed = timestamp - position.vesting_start
        return position.total_allocation * elapsed // duration


class CliffCurve(VestingCurve):
    """Nothing vests until vesting_end, then the whole allocation does."""

    name = CurveType.CLIFF.value

    def amount_at(self, position: "VestingPosition", timestamp: int) -> int:
        return 0


class StepwiseCurve(VestingCurve):
    """Equal tranches released at `steps` evenly spaced boundaries.

    The final tranche lands at vesting_end and absorbs any rounding
    remainder.
    """

    name = CurveType.STEPWISE.value

    def validate(self, position: "VestingPosition") -> None:
        steps = _int_param(position.curve_parameters, "steps")
        if steps < 1:
            raise InvalidTermsError("steps must be at least 1")

    def amount_at(self, position: "VestingPosition", timestamp: int) -> int:
        steps = position.curve_parameters["steps"]
        duration = position.vesting_end - position.vesting_start
        completed = (timestamp - position.vesting_start) * steps // duration
        return position.total_allocation * completed // steps


class ExponentialCurve(VestingCurve):
    """Back-loaded release: slow at first, accelerating toward vesting_end.

    Parameters:
        curve_factor: steepness k > 0 (default 3)
    """

    name = CurveType.EXPONENTIAL.value

    def validate(self, position: "VestingPosition") -> None:
        factor = self._factor(position)
        if factor <= 0:
            raise InvalidTermsError("curve_factor must be positive")
        if factor > 500:
            raise InvalidTermsError("curve_factor must not exceed 500")

    @staticmethod
    def _factor(position: "VestingPosition") -> Decimal:
        raw = position.curve_parameters.get("curve_factor", 3)
        if isinstance(raw, bool):
            raise InvalidTermsError("curve_factor must be numeric")
        try:
            factor = Decimal(str(raw))
        except InvalidOperation as exc:
            raise InvalidTermsError(
                "curve_factor must be numeric", details={"value": repr(raw)}
            ) from exc
        if not factor.is_finite():
            raise InvalidTermsError("curve_factor must be finite")
        return factor

    def amount_at(self, position: "VestingPosition", timestamp: int) -> int:
        factor = self._factor(position)
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            elapsed = Decimal(timestamp - position.vesting_start)
            duration = Decimal(position.vesting_end - position.vesting_start)
            fraction = ((factor * elapsed / duration).exp() - 1) / (factor.exp() - 1)
            amount = Decimal(position.total_allocation) * fraction
            return int(amount.to_integral_value(rounding=ROUND_FLOOR))


BUILTIN_CURVES: tuple[VestingCurve, ...] = (
    LinearCurve(),
    CliffCurve(),
    StepwiseCurve(),
    ExponentialCurve(),
)


class CurveEvaluator:
    """
    Pure evaluator mapping position terms and a timestamp to a vested amount.

    Holds a registry of curve strategies keyed by name. The registry is the
    only state; evaluation has no side effects.
    """

    def __init__(self, curves: tuple[VestingCurve, ...] = BUILTIN_CURVES) -> None:
        self._curves: dict[str, VestingCurve] = {}
        for curve in curves:
            self.register_curve(curve)

    def register_curve(self, curve: VestingCurve, replace: bool = False) -> None:
        """
        Install a curve strategy.

        Args:
            curve: Strategy instance with a unique name
            replace: Allow replacing an existing strategy of the same name

        Raises:
            ValueError: If the name is empty or already registered
        """
        if not curve.name:
            raise ValueError("Curve strategies must define a name")
        if curve.name in self._curves and not replace:
            raise ValueError(f"Curve '{curve.name}' is already registered")
        self._curves[curve.name] = curve
        logger.debug(
            "Registered vesting curve",
            extra={"event": "curve.registered", "curve": curve.name},
        )

    def curve_names(self) -> list[str]:
        return sorted(self._curves)

    def get_curve(self, name: str) -> VestingCurve:
        curve = self._curves.get(name)
        if curve is None:
            raise InvalidTermsError(
                f"Unknown vesting curve '{name}'",
                details={"available": self.curve_names()},
            )
        return curve

    def validate(self, position: "VestingPosition") -> None:
        """Check that the position's curve exists and accepts its parameters."""
        self.get_curve(position.curve_type).validate(position)

    def vested_payout_at_time(self, position: "VestingPosition", timestamp: int) -> int:
        """
        Cumulative amount vested for a position at a timestamp.

        Total over every integer timestamp: never raises for past or future
        values, returns 0 before vesting_start and total_allocation from
        vesting_end onward.
        """
        if timestamp < position.vesting_start:
            return 0
        if timestamp >= position.vesting_end:
            return position.total_allocation

        amount = self.get_curve(position.curve_type).amount_at(position, timestamp)
        return max(0, min(amount, position.total_allocation))
