"""
Tests for vesting curve evaluation: boundary behavior shared by all shapes,
the built-in strategies and custom strategy registration.
"""

import pytest
from hypothesis import given, settings, strategies as st

from vestnft.core.config import MAX_TIMESTAMP
from vestnft.core.exceptions import InvalidTermsError
from vestnft.core.vesting.curves import CurveEvaluator, CurveType, VestingCurve
from vestnft.core.vesting.positions import VestingPosition


def make_position(
    total=1000, start=0, end=1000, curve=CurveType.LINEAR.value, params=None
) -> VestingPosition:
    return VestingPosition(
        id=1,
        payout_asset="0x" + "ab" * 20,
        vesting_start=start,
        vesting_end=end,
        total_allocation=total,
        curve_type=curve,
        curve_parameters=params or {},
    )


CURVE_CASES = [
    (CurveType.LINEAR.value, {}),
    (CurveType.LINEAR.value, {"cliff_seconds": 100}),
    (CurveType.CLIFF.value, {}),
    (CurveType.STEPWISE.value, {"steps": 4}),
    (CurveType.EXPONENTIAL.value, {"curve_factor": 3}),
]


class TestCurveBoundaries:
    """Behavior every installed curve shares."""

    @pytest.fixture
    def evaluator(self):
        return CurveEvaluator()

    @pytest.mark.parametrize("curve,params", CURVE_CASES)
    def test_zero_before_start(self, evaluator, curve, params):
        position = make_position(start=100, end=1100, curve=curve, params=params)
        assert evaluator.vested_payout_at_time(position, 0) == 0
        assert evaluator.vested_payout_at_time(position, 99) == 0
        assert evaluator.vested_payout_at_time(position, -10**30) == 0

    @pytest.mark.parametrize("curve,params", CURVE_CASES)
    def test_total_at_and_after_end(self, evaluator, curve, params):
        position = make_position(curve=curve, params=params)
        assert evaluator.vested_payout_at_time(position, 1000) == 1000
        assert evaluator.vested_payout_at_time(position, 10**12) == 1000

    @pytest.mark.parametrize("curve,params", CURVE_CASES)
    def test_max_timestamp_reads_total_allocation(self, evaluator, curve, params):
        position = make_position(total=2**255, curve=curve, params=params)
        assert evaluator.vested_payout_at_time(position, MAX_TIMESTAMP) == 2**255

    def test_instant_vesting_when_start_equals_end(self, evaluator):
        position = make_position(start=500, end=500)
        assert evaluator.vested_payout_at_time(position, 499) == 0
        assert evaluator.vested_payout_at_time(position, 500) == 1000

    def test_deterministic(self, evaluator):
        position = make_position(curve=CurveType.EXPONENTIAL.value, params={"curve_factor": 2.5})
        results = {evaluator.vested_payout_at_time(position, 333) for _ in range(10)}
        assert len(results) == 1


class TestBuiltinCurves:
    @pytest.fixture
    def evaluator(self):
        return CurveEvaluator()

    def test_linear_midpoint(self, evaluator):
        position = make_position()
        assert evaluator.vested_payout_at_time(position, 0) == 0
        assert evaluator.vested_payout_at_time(position, 500) == 500
        assert evaluator.vested_payout_at_time(position, 999) == 999

    def test_linear_floors_fractional_amounts(self, evaluator):
        position = make_position(total=10, end=3)
        assert evaluator.vested_payout_at_time(position, 1) == 3
        assert evaluator.vested_payout_at_time(position, 2) == 6

    def test_linear_cliff_releases_accrued_amount(self, evaluator):
        position = make_position(params={"cliff_seconds": 250})
        assert evaluator.vested_payout_at_time(position, 249) == 0
        assert evaluator.vested_payout_at_time(position, 250) == 250
        assert evaluator.vested_payout_at_time(position, 600) == 600

    def test_cliff_curve_releases_everything_at_end(self, evaluator):
        position = make_position(curve=CurveType.CLIFF.value)
        assert evaluator.vested_payout_at_time(position, 999) == 0
        assert evaluator.vested_payout_at_time(position, 1000) == 1000

    def test_stepwise_tranches(self, evaluator):
        position = make_position(total=1001, curve=CurveType.STEPWISE.value, params={"steps": 4})
        assert evaluator.vested_payout_at_time(position, 249) == 0
        assert evaluator.vested_payout_at_time(position, 250) == 250
        assert evaluator.vested_payout_at_time(position, 750) == 750
        assert evaluator.vested_payout_at_time(position, 999) == 750
        # last tranche absorbs the remainder
        assert evaluator.vested_payout_at_time(position, 1000) == 1001

    def test_exponential_is_back_loaded(self, evaluator):
        position = make_position(curve=CurveType.EXPONENTIAL.value, params={"curve_factor": 3})
        # (e^1.5 - 1) / (e^3 - 1) ~= 0.1824
        assert evaluator.vested_payout_at_time(position, 500) == 182

    def test_exponential_handles_large_allocations(self, evaluator):
        total = 10**27
        position = make_position(
            total=total, curve=CurveType.EXPONENTIAL.value, params={"curve_factor": 3}
        )
        for ts in (100, 250, 500, 750, 900, 990):
            vested = evaluator.vested_payout_at_time(position, ts)
            assert 0 < vested < total


class TestCurveValidation:
    @pytest.fixture
    def evaluator(self):
        return CurveEvaluator()

    def test_unknown_curve_rejected(self, evaluator):
        with pytest.raises(InvalidTermsError):
            evaluator.validate(make_position(curve="sigmoid"))

    @pytest.mark.parametrize(
        "curve,params",
        [
            (CurveType.LINEAR.value, {"cliff_seconds": -1}),
            (CurveType.LINEAR.value, {"cliff_seconds": 1001}),
            (CurveType.LINEAR.value, {"cliff_seconds": "10"}),
            (CurveType.STEPWISE.value, {}),
            (CurveType.STEPWISE.value, {"steps": 0}),
            (CurveType.STEPWISE.value, {"steps": True}),
            (CurveType.EXPONENTIAL.value, {"curve_factor": 0}),
            (CurveType.EXPONENTIAL.value, {"curve_factor": -2}),
            (CurveType.EXPONENTIAL.value, {"curve_factor": "steep"}),
            (CurveType.EXPONENTIAL.value, {"curve_factor": float("inf")}),
        ],
    )
    def test_bad_parameters_rejected(self, evaluator, curve, params):
        with pytest.raises(InvalidTermsError):
            evaluator.validate(make_position(curve=curve, params=params))


class HalfAtMidpoint(VestingCurve):
    name = "half_at_midpoint"

    def amount_at(self, position, timestamp):
        midpoint = (position.vesting_start + position.vesting_end) // 2
        return position.total_allocation // 2 if timestamp >= midpoint else 0


class OverReportingCurve(VestingCurve):
    name = "over_reporting"

    def amount_at(self, position, timestamp):
        return position.total_allocation * 5


class TestCustomCurves:
    def test_register_and_evaluate(self):
        evaluator = CurveEvaluator()
        evaluator.register_curve(HalfAtMidpoint())
        position = make_position(curve="half_at_midpoint")
        assert evaluator.vested_payout_at_time(position, 499) == 0
        assert evaluator.vested_payout_at_time(position, 500) == 500
        assert "half_at_midpoint" in evaluator.curve_names()

    def test_duplicate_registration_rejected(self):
        evaluator = CurveEvaluator()
        evaluator.register_curve(HalfAtMidpoint())
        with pytest.raises(ValueError):
            evaluator.register_curve(HalfAtMidpoint())
        with pytest.raises(ValueError):
            evaluator.register_curve(type("Linear", (HalfAtMidpoint,), {"name": "linear"})())

    def test_replace_builtin_curve(self):
        evaluator = CurveEvaluator()
        evaluator.register_curve(type("Linear", (HalfAtMidpoint,), {"name": "linear"})(), replace=True)
        assert evaluator.vested_payout_at_time(make_position(), 500) == 500
        assert evaluator.vested_payout_at_time(make_position(), 400) == 0
        # other evaluators keep the built-in table
        assert CurveEvaluator().vested_payout_at_time(make_position(), 400) == 400

    def test_results_clamped_to_allocation(self):
        evaluator = CurveEvaluator()
        evaluator.register_curve(OverReportingCurve())
        position = make_position(curve="over_reporting")
        assert evaluator.vested_payout_at_time(position, 1) == 1000


@st.composite
def positions(draw):
    curve, params = draw(st.sampled_from(CURVE_CASES))
    start = draw(st.integers(min_value=0, max_value=10**9))
    duration = draw(st.integers(min_value=params.get("cliff_seconds", 0), max_value=10**8))
    total = draw(st.integers(min_value=1, max_value=2**128))
    return make_position(total=total, start=start, end=start + duration, curve=curve, params=params)


@settings(max_examples=200, deadline=None)
@given(position=positions(), t1=st.integers(min_value=-10, max_value=2 * 10**9), dt=st.integers(min_value=0, max_value=10**9))
def test_vested_is_monotonic_and_bounded(position, t1, dt):
    evaluator = CurveEvaluator()
    first = evaluator.vested_payout_at_time(position, t1)
    second = evaluator.vested_payout_at_time(position, t1 + dt)
    assert 0 <= first <= second <= position.total_allocation
