"""Message-passing surface between a consumer thread and a worker.

`WorkerController` runs a `BluetoothWorker` on a dedicated thread with its
own asyncio loop. Consumers push inputs with `send` (never blocks) and pull
outputs from `outputs`.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from types import TracebackType
from typing import Any

from galaxybuds.core.channels import OutputChannel
from galaxybuds.core.errors import ChannelClosedError
from galaxybuds.core.model import WorkerInput, WorkerOutput
from galaxybuds.core.worker import BluetoothWorker

LOGGER = logging.getLogger(__name__)


class WorkerController:
    def __init__(self, worker: BluetoothWorker) -> None:
        self.worker = worker
        self._loop = asyncio.new_event_loop()
        self._inputs: asyncio.Queue[WorkerInput | None] | None = None
        self._ready = threading.Event()
        self._thread = threading.Thread(target=self._run, name="galaxybuds-worker", daemon=True)

    @classmethod
    def launch(cls, worker: BluetoothWorker | None = None, **worker_kwargs: Any) -> WorkerController:
        controller = cls(worker or BluetoothWorker(**worker_kwargs))
        controller._thread.start()
        controller._ready.wait()
        return controller

    @property
    def outputs(self) -> OutputChannel:
        return self.worker.outputs

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._inputs = asyncio.Queue()
        self._ready.set()
        try:
            self._loop.run_until_complete(self.worker.run(self._inputs))
        finally:
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            self._loop.close()
            LOGGER.debug("Worker loop stopped")

    def _put(self, msg: WorkerInput | None) -> None:
        if self._inputs is None or not self._thread.is_alive():
            raise ChannelClosedError("Worker is not running")
        try:
            self._loop.call_soon_threadsafe(self._inputs.put_nowait, msg)
        except RuntimeError as exc:
            raise ChannelClosedError("Worker is not running") from exc

    def send(self, msg: WorkerInput) -> None:
        self._put(msg)

    def recv(self, timeout: float | None = None) -> WorkerOutput:
        return self.outputs.recv(timeout=timeout)

    def shutdown(self, timeout: float | None = 5.0) -> None:
        """Disconnect any live session and stop the worker thread."""
        if self._thread.is_alive():
            self._put(None)
            self._thread.join(timeout)
            if self._thread.is_alive():
                LOGGER.warning("Worker thread did not stop within %ss", timeout)

    def __enter__(self) -> WorkerController:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown()
