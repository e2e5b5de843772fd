"""
Shared fixtures for vestnft tests: a manual clock, addresses, a funded
payout token and a VestingNFT wired to the clock.
"""

import pytest

from vestnft.core.config import VestingConfig
from vestnft.core.contracts.erc20 import ERC20Token
from vestnft.core.contracts.vesting_nft import VestingNFT

ISSUER = "0x" + "11" * 20
ALICE = "0x" + "22" * 20
BOB = "0x" + "33" * 20
CAROL = "0x" + "44" * 20
VESTING_ADDRESS = "0x" + "cd" * 20
PAYOUT_ADDRESS = "0x" + "ab" * 20


class ManualClock:
    def __init__(self, start_time: int = 0):
        self.current_time = start_time

    def now(self) -> int:
        return self.current_time

    def set(self, timestamp: int) -> None:
        self.current_time = timestamp

    def advance(self, seconds: int) -> None:
        self.current_time += seconds


@pytest.fixture
def issuer():
    return ISSUER


@pytest.fixture
def alice():
    return ALICE


@pytest.fixture
def bob():
    return BOB


@pytest.fixture
def carol():
    return CAROL


@pytest.fixture
def clock():
    return ManualClock(0)


@pytest.fixture
def payout_token():
    token = ERC20Token(name="Payout", symbol="PAY", owner=ISSUER, address=PAYOUT_ADDRESS)
    token.mint(ISSUER, ISSUER, 10**24)
    return token


@pytest.fixture
def config():
    return VestingConfig()


@pytest.fixture
def vesting_nft(clock, payout_token, config):
    contract = VestingNFT(
        name="Vesting",
        symbol="VEST",
        address=VESTING_ADDRESS,
        config=config,
        time_provider=clock.now,
    )
    payout_token.approve(ISSUER, contract.address, payout_token.UINT256_MAX)
    return contract


@pytest.fixture
def create_position(vesting_nft, payout_token):
    """Mint a vesting NFT funded by ISSUER; defaults to Scenario A terms."""

    def _create(to=ALICE, amount=1000, start=0, end=1000, curve="linear", params=None):
        return vesting_nft.create(
            ISSUER,
            to,
            amount,
            start,
            end,
            payout_token,
            curve_type=curve,
            curve_parameters=params,
        )

    return _create
