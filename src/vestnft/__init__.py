"""
vestnft - Transferable Vesting NFTs

Non-fungible tokens whose holder is entitled to a time-released payout of a
fungible asset.

Main Components:
- Vesting core: curve evaluation, claim ledger, authorization, payout dispatch
- Contracts: ERC721 ownership layer, ERC20 payout asset, VestingNFT facade
- CLI: schedule previews and snapshot inspection
"""

__version__ = "0.1.0"
__author__ = "vestnft Development Team"

__all__ = []
