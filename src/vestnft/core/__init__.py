"""
vestnft Core Module

Core functionality for vesting NFTs including:
- Vesting accounting (curves, positions, claim ledger, dispatch)
- Token contracts the engine plugs into
- Configuration, logging, metrics and the exception hierarchy
"""

__all__ = []
