"""One-directional event channel between input threads and the selector loop."""
from __future__ import annotations

import queue
import threading
from typing import Optional

from .abstraction import NavigationEvent


class ChannelClosed(Exception):
    """Raised by send() once the receiving side has gone away."""


class EventChannel:
    """Unbounded multi-producer / single-consumer queue with close semantics.

    Producers call send() from any thread. The consumer drains with
    try_receive() and calls close() when it stops listening, after which
    every send() raises ChannelClosed.
    """

    def __init__(self) -> None:
        self._queue: "queue.SimpleQueue[NavigationEvent]" = queue.SimpleQueue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, event: NavigationEvent) -> None:
        if self._closed.is_set():
            raise ChannelClosed()
        self._queue.put(event)

    def try_receive(self) -> Optional[NavigationEvent]:
        """Return the oldest pending event without blocking, or None."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def close(self) -> None:
        self._closed.set()
