"""
Unit tests for VestingPositionStore.
"""

import pytest

from vestnft.core.exceptions import InvalidTermsError, PositionNotFoundError
from vestnft.core.vesting.positions import (
    UINT256_MAX,
    PositionTerms,
    VestingPositionStore,
)

ASSET = "0x" + "AB" * 20


def terms(**overrides) -> PositionTerms:
    values = dict(
        payout_asset=ASSET,
        vesting_start=0,
        vesting_end=1000,
        total_allocation=1000,
    )
    values.update(overrides)
    return PositionTerms(**values)


@pytest.fixture
def store():
    return VestingPositionStore()


class TestCreate:
    def test_assigns_sequential_ids(self, store):
        assert store.create(terms()) == 1
        assert store.create(terms()) == 2
        assert store.ids() == [1, 2]
        assert len(store) == 2

    def test_explicit_id_and_fields(self, store):
        position_id = store.create(terms(curve_parameters={"cliff_seconds": 10}), position_id=7, created_at=42)
        position = store.get(position_id)

        assert position_id == 7
        assert position.payout_asset == ASSET.lower()
        assert position.vesting_period == (0, 1000)
        assert position.total_allocation == 1000
        assert position.curve_type == "linear"
        assert position.curve_parameters["cliff_seconds"] == 10
        assert position.created_at == 42
        # auto ids continue after explicit ones
        assert store.create(terms()) == 8

    def test_duplicate_id_rejected(self, store):
        store.create(terms(), position_id=3)
        with pytest.raises(InvalidTermsError):
            store.create(terms(), position_id=3)

    @pytest.mark.parametrize("bad_id", [-1, True, "1"])
    def test_invalid_id_rejected(self, store, bad_id):
        with pytest.raises(InvalidTermsError):
            store.create(terms(), position_id=bad_id)

    def test_instant_vesting_allowed(self, store):
        position_id = store.create(terms(vesting_start=500, vesting_end=500))
        assert store.get(position_id).vesting_period == (500, 500)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"vesting_start": 10, "vesting_end": 5},
            {"vesting_start": -1},
            {"total_allocation": -1},
            {"total_allocation": 0},
            {"total_allocation": UINT256_MAX + 1},
            {"total_allocation": 10.5},
            {"vesting_end": "1000"},
            {"payout_asset": ""},
            {"curve_type": "unknown"},
            {"curve_type": "stepwise"},
            {"curve_parameters": [("steps", 2)]},
        ],
    )
    def test_invalid_terms_rejected(self, store, overrides):
        with pytest.raises(InvalidTermsError):
            store.create(terms(**overrides))
        assert len(store) == 0

    def test_zero_allocation_when_allowed(self):
        store = VestingPositionStore(allow_zero_allocation=True)
        position_id = store.create(terms(total_allocation=0))
        assert store.get(position_id).total_allocation == 0

    def test_terms_are_immutable(self, store):
        params = {"cliff_seconds": 100}
        position = store.get(store.create(terms(curve_parameters=params)))

        params["cliff_seconds"] = 900
        assert position.curve_parameters["cliff_seconds"] == 100
        with pytest.raises(TypeError):
            position.curve_parameters["cliff_seconds"] = 0
        with pytest.raises(AttributeError):
            position.total_allocation = 1


class TestLookup:
    def test_get_unknown_raises(self, store):
        with pytest.raises(PositionNotFoundError) as exc_info:
            store.get(99)
        assert exc_info.value.position_id == 99

    def test_exists(self, store):
        position_id = store.create(terms())
        assert store.exists(position_id)
        assert not store.exists(position_id + 1)

    def test_validate_does_not_create(self, store):
        store.validate(terms())
        assert len(store) == 0
        with pytest.raises(InvalidTermsError):
            store.validate(terms(vesting_start=2000))


class TestSerialization:
    def test_round_trip(self, store):
        store.create(terms())
        store.create(
            terms(curve_type="stepwise", curve_parameters={"steps": 4}, total_allocation=77),
            position_id=5,
            created_at=12,
        )

        data = store.to_dict()
        restored = VestingPositionStore.from_dict(data)

        assert restored.ids() == [1, 5]
        assert restored.get(5).to_dict() == store.get(5).to_dict()
        assert restored.create(terms()) == 6

    def test_from_dict_revalidates(self, store):
        data = {
            "next_id": 2,
            "positions": [
                {
                    "id": 1,
                    "payout_asset": ASSET,
                    "vesting_start": 100,
                    "vesting_end": 50,
                    "total_allocation": 10,
                }
            ],
        }
        with pytest.raises(InvalidTermsError):
            VestingPositionStore.from_dict(data)
