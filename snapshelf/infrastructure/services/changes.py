"""Change-notification subscriptions for the shared media index."""
import asyncio
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class ChangeEvent:
    """Something under the subscribed namespace changed; refetch to see what."""
    uri: str


class ChangeSubscription:
    """Event stream for one registered observer.

    Events carry no record payload. Bursts are coalesced: ``poll()`` and
    ``wait()`` drain everything queued and report a single change.

    Usage:
        subscription = index.subscribe()
        async for event in subscription:
            await refresh()
    """

    def __init__(
        self,
        uri: str,
        notify_descendants: bool = True,
        on_close: Optional[Callable[["ChangeSubscription"], None]] = None
    ):
        self.uri = uri
        self.notify_descendants = notify_descendants
        self._on_close = on_close
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def matches(self, uri: str) -> bool:
        """Check whether a change at uri concerns this subscription."""
        if uri == self.uri:
            return True
        return self.notify_descendants and uri.startswith(self.uri.rstrip("/") + "/")

    def notify(self, uri: str) -> None:
        if self.closed or not self.matches(uri):
            return
        self._queue.put_nowait(ChangeEvent(uri))

    def _drain(self) -> int:
        drained = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return drained
            if item is not None:
                drained += 1

    def poll(self) -> bool:
        """Return True if any change arrived since the last poll (non-blocking)."""
        return self._drain() > 0

    async def wait(self) -> Optional[ChangeEvent]:
        """Block until a change arrives.

        Returns:
            The first event of the burst, or None once the subscription is closed
        """
        if self.closed:
            return None
        event = await self._queue.get()
        if event is None:
            return None
        self._drain()
        return event

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.wait()
        if event is None:
            raise StopAsyncIteration
        return event

    def close(self) -> None:
        """Unregister from the index and wake any waiter."""
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(None)
        if self._on_close:
            self._on_close(self)
