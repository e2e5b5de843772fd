"""
Outbound notifications of the vesting engine.

Events are produced after the state transition they describe has committed
and are delivered to subscribers (indexers, UIs, tests) through an EventBus.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayoutClaimed:
    """Emitted when a holder claims vested payout."""

    token_id: int
    recipient: str
    amount: int
    payout_asset: str = ""
    timestamp: float = field(default_factory=time.time)

    event_type = "PayoutClaimed"


@dataclass(frozen=True)
class ClaimApproval:
    """Emitted when a per-token claim operator is set or cleared."""

    owner: str
    operator: str
    token_id: int
    approved: bool
    timestamp: float = field(default_factory=time.time)

    event_type = "ClaimApproval"


@dataclass(frozen=True)
class ClaimApprovalForAll:
    """Emitted when a claim operator for all of an owner's tokens changes."""

    owner: str
    operator: str
    approved: bool
    timestamp: float = field(default_factory=time.time)

    event_type = "ClaimApprovalForAll"


VestingEvent = Union[PayoutClaimed, ClaimApproval, ClaimApprovalForAll]
Subscriber = Callable[[VestingEvent], None]


class EventBus:
    """
    Synchronous publish/subscribe channel for vesting events.

    A subscriber that raises is logged and skipped; the event it failed on
    has already been committed and is still delivered to the others.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def publish(self, event: VestingEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.error(
                    "Vesting event subscriber failed",
                    extra={
                        "event": "events.subscriber_failed",
                        "event_type": event.event_type,
                        "error_type": type(e).__name__,
                    },
                    exc_info=True,
                )
