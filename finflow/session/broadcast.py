"""
Session State Broadcast

DESIGN DECISION: Each subscriber owns an unbounded asyncio.Queue. This
gives us:
1. Delivery in transition order, per subscriber
2. No coalescing: a slow consumer still sees every state
3. No background task: publishing is a put_nowait per queue

A new subscriber receives the current state first. Closing a
subscription removes its queue from the broadcaster and ends iteration,
including an iteration that is waiting for the next state.

The broadcaster holds subscriptions weakly: one that is dropped without
close() is unregistered when it is garbage collected, so its queue stops
growing. Consumers should still close() (or use `async with`) to stop
delivery deterministically.
"""

import asyncio
import weakref
from typing import Optional

from finflow.models.session import SessionState


# Wakes a consumer blocked in __anext__ after close()
_CLOSED = object()


class SessionSubscription:
    """
    Async iterator over session states.

    Usage:
        async with manager.subscribe() as states:
            async for state in states:
                ...
    """

    def __init__(self, broadcaster: "StateBroadcaster"):
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, state: SessionState) -> None:
        if not self._closed:
            self._queue.put_nowait(state)

    def __aiter__(self) -> "SessionSubscription":
        return self

    async def __anext__(self) -> SessionState:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED or self._closed:
            raise StopAsyncIteration
        return item

    def drain(self) -> list[SessionState]:
        """Return the states queued so far without waiting."""
        states = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is not _CLOSED:
                states.append(item)
        return states

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._broadcaster._remove(self)
        self._queue.put_nowait(_CLOSED)

    async def __aenter__(self) -> "SessionSubscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class StateBroadcaster:
    """Fan-out of session states to any number of subscriptions."""

    def __init__(self, initial: Optional[SessionState] = None):
        self._current = initial or SessionState.loading()
        self._subscribers: "weakref.WeakSet[SessionSubscription]" = weakref.WeakSet()

    @property
    def current(self) -> SessionState:
        return self._current

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, state: SessionState) -> None:
        self._current = state
        for subscription in list(self._subscribers):
            subscription._deliver(state)

    def subscribe(self) -> SessionSubscription:
        subscription = SessionSubscription(self)
        subscription._deliver(self._current)
        self._subscribers.add(subscription)
        return subscription

    def close_all(self) -> None:
        for subscription in list(self._subscribers):
            subscription.close()

    def _remove(self, subscription: SessionSubscription) -> None:
        self._subscribers.discard(subscription)
