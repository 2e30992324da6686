"""Fan-out of history snapshots to any number of subscribers."""

import asyncio

from .models import Message

Snapshot = tuple[Message, ...]

_CLOSED = object()


class Subscription:
    """Async iterator over published snapshots.

    Registered with its broadcaster on creation, so no snapshot published
    after ``subscribe()`` returns is missed. Iteration ends when the
    broadcaster closes or the subscription is closed.
    """

    def __init__(self, broadcaster: "SnapshotBroadcaster"):
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def _deliver(self, item: object) -> None:
        self._queue.put_nowait(item)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Snapshot:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self.close()
            raise StopAsyncIteration
        return item

    def pending(self) -> list[Snapshot]:
        """Drain snapshots already delivered, without waiting."""
        items = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                self.close()
                break
            items.append(item)
        return items

    def close(self) -> None:
        self._closed = True
        self._broadcaster._unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class SnapshotBroadcaster:
    """Delivers every published snapshot to every open subscription, in order."""

    def __init__(self):
        self._subscriptions: set[Subscription] = set()
        self._closed = False

    def subscribe(self, initial: Snapshot | None = None) -> Subscription:
        subscription = Subscription(self)
        if self._closed:
            subscription._deliver(_CLOSED)
            return subscription
        self._subscriptions.add(subscription)
        if initial is not None:
            subscription._deliver(initial)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)

    def publish(self, snapshot: Snapshot) -> None:
        for subscription in self._subscriptions:
            subscription._deliver(snapshot)

    def close(self) -> None:
        self._closed = True
        for subscription in list(self._subscriptions):
            subscription._deliver(_CLOSED)
        self._subscriptions.clear()
