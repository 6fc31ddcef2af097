"""Progress events, the progress channel and cancellation."""

import asyncio
import threading
import time
from dataclasses import dataclass, field
from enum import Enum

from docport.utils.logging import get_logger

log = get_logger(__name__)


class ProgressPhase(str, Enum):
    DISCOVERY = "discovery"
    CONVERTING = "converting"
    COMPLETED = "completed"


def percentage(index: int, total: int) -> int:
    """Whole-number percent complete, rounding halves up."""
    if total <= 0:
        return 100
    return (index * 200 + total) // (total * 2)


@dataclass(frozen=True)
class ProgressEvent:
    """One progress notification. Ephemeral, never persisted."""

    phase: ProgressPhase
    current_file: str | None = None
    index: int = 0
    total: int = 0
    percentage: int = 0
    message: str = ""
    heartbeat: bool = False
    timestamp: float = field(default_factory=time.time)


class CancellationToken:
    """Cooperative cancellation flag shared by the orchestrator and its observers.

    Thread-safe so signal handlers and worker threads may cancel too.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()
            log.warning("Batch cancellation requested", reason=reason)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


_CLOSED = object()


class ProgressSubscription:
    """Async iterator over the events published after subscribing.

    Closing the last open subscription cancels the run.
    """

    def __init__(self, channel: "ProgressChannel") -> None:
        self._channel = channel
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def _push(self, item: object) -> None:
        if not self.closed:
            self._queue.put_nowait(item)

    def __aiter__(self) -> "ProgressSubscription":
        return self

    async def __anext__(self) -> ProgressEvent:
        if self.closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self.closed = True
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        """Stop observing. Cancels the run if nobody else is listening."""
        if self.closed:
            return
        self.closed = True
        self._channel._unsubscribe(self)

    async def __aenter__(self) -> "ProgressSubscription":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


class ProgressChannel:
    """One-producer, many-observer stream of ProgressEvents."""

    def __init__(self, token: CancellationToken | None = None) -> None:
        self.token = token or CancellationToken()
        self._subscriptions: list[ProgressSubscription] = []
        self.closed = False

    def subscribe(self) -> ProgressSubscription:
        subscription = ProgressSubscription(self)
        if self.closed:
            subscription._push(_CLOSED)
        else:
            self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: ProgressSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        if not self.closed and not self._subscriptions:
            self.token.cancel("progress observers closed")

    def publish(self, event: ProgressEvent) -> None:
        if self.closed:
            return
        for subscription in list(self._subscriptions):
            subscription._push(event)

    def close(self) -> None:
        """End the stream. Observers see the end of iteration."""
        if self.closed:
            return
        self.closed = True
        for subscription in self._subscriptions:
            subscription._push(_CLOSED)
        self._subscriptions.clear()
