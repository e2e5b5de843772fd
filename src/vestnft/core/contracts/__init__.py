"""
vestnft Contract Standards.

This module provides:
- ERC20: Fungible token used as payout asset
- ERC721: Non-fungible token (NFT) ownership layer
- VestingNFT: Transferable vesting NFT (EIP-5725 style)
"""

from .erc20 import ERC20Token
from .erc721 import ERC721Token
from .vesting_nft import VestingNFT

__all__ = [
    "ERC20Token",
    "ERC721Token",
    "VestingNFT",
]
