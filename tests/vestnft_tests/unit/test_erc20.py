"""
Unit tests for the in-memory ERC20 payout asset.
"""

import pytest

from vestnft.core.contracts.erc20 import ERC20Token
from vestnft.core.exceptions import ContractExecutionError
from vestnft.core.protocols import ZERO_ADDRESS

OWNER = "0x" + "aa" * 20
ALICE = "0x" + "22" * 20
BOB = "0x" + "33" * 20


@pytest.fixture
def token():
    token = ERC20Token(name="Payout", symbol="PAY", owner=OWNER, max_supply=10_000)
    token.mint(OWNER, ALICE, 1_000)
    return token


def test_mint_tracks_supply(token):
    assert token.total_supply == 1_000
    assert token.balance_of(ALICE) == 1_000


def test_mint_respects_cap_and_owner(token):
    with pytest.raises(ContractExecutionError):
        token.mint(OWNER, ALICE, 9_001)
    with pytest.raises(ContractExecutionError):
        token.mint(ALICE, ALICE, 1)


def test_transfer(token):
    assert token.transfer(ALICE, BOB, 400)
    assert token.balance_of(ALICE) == 600
    assert token.balance_of(BOB) == 400
    assert token.events[-1].value == 400


@pytest.mark.parametrize("amount", [1_001, -1, 1.0, True])
def test_transfer_rejects_bad_amounts(token, amount):
    with pytest.raises(ContractExecutionError):
        token.transfer(ALICE, BOB, amount)
    assert token.balance_of(ALICE) == 1_000


def test_transfer_to_zero_rejected(token):
    with pytest.raises(ContractExecutionError):
        token.transfer(ALICE, ZERO_ADDRESS, 1)


def test_transfer_from_spends_allowance(token):
    token.approve(ALICE, BOB, 300)
    token.transfer_from(BOB, ALICE, BOB, 200)
    assert token.allowance(ALICE, BOB) == 100
    with pytest.raises(ContractExecutionError):
        token.transfer_from(BOB, ALICE, BOB, 101)


def test_unlimited_allowance_not_decremented(token):
    token.approve(ALICE, BOB, token.UINT256_MAX)
    token.transfer_from(BOB, ALICE, BOB, 500)
    assert token.allowance(ALICE, BOB) == token.UINT256_MAX


def test_transfer_from_checks_balance(token):
    token.approve(ALICE, BOB, 5_000)
    with pytest.raises(ContractExecutionError):
        token.transfer_from(BOB, ALICE, BOB, 1_001)


def test_round_trip(token):
    token.approve(ALICE, BOB, 7)
    restored = ERC20Token.from_dict(token.to_dict())

    assert restored.address == token.address
    assert restored.balance_of(ALICE) == 1_000
    assert restored.allowance(ALICE, BOB) == 7
    assert restored.max_supply == 10_000
