"""Thread-safe output channel shared by the worker and its reader task."""

from __future__ import annotations

import queue
import threading

from galaxybuds.core.errors import ChannelClosedError
from galaxybuds.core.model import WorkerOutput


class OutputChannel:
    """Multi-producer FIFO of worker outputs with a single consumer.

    Producers may live on the worker loop thread while the consumer polls
    from any other thread. Once the consumer closes the channel, `send`
    raises `ChannelClosedError`.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[WorkerOutput] = queue.Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, event: WorkerOutput) -> None:
        if self._closed.is_set():
            raise ChannelClosedError("Output channel consumer is gone")
        self._queue.put(event)

    def recv(self, timeout: float | None = None) -> WorkerOutput:
        """Return the next output; raises `queue.Empty` when ``timeout`` elapses."""
        return self._queue.get(timeout=timeout)

    def drain(self) -> list[WorkerOutput]:
        events: list[WorkerOutput] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def close(self) -> None:
        self._closed.set()
