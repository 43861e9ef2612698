"""Bluetooth worker: the connection state machine between a consumer and the buds.

The worker processes one input at a time (`update`). While a session is live
it owns the write half of the RFCOMM stream behind a lock, and a reader task
owns the read half. Outputs from both go to a single `OutputChannel`.

Only the reader task emits `Disconnected` for a live session: it does so from
its ``finally`` block whatever ended the loop (peer EOF, read error, dropped
consumer, local `Disconnect`). A local `Disconnect` clears ``running``,
closes the writer and waits for the reader to finish, so the read failure
caused by the local close is never reported as an `Error`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from enum import Enum

from galaxybuds.core.channels import OutputChannel
from galaxybuds.core.codec import classify, encode_command, process_buffer
from galaxybuds.core.device_match import select_device
from galaxybuds.core.errors import ChannelClosedError, TransportError
from galaxybuds.core.model import (
    Connect,
    Connected,
    DataReceived,
    DeviceDescriptor,
    Disconnect,
    Disconnected,
    Error,
    Ignored,
    ManagerInfo,
    SendCommand,
    SendData,
    WorkerInput,
    WorkerOutput,
)
from galaxybuds.core.protocol import READ_BUFFER_SIZE
from galaxybuds.transports import rfcomm
from galaxybuds.transports.base import BluetoothSession
from galaxybuds.transports.discovery import discover
from galaxybuds.transports.rfcomm import RfcommStream

DISCONNECT_GRACE_S = 2.0
LOGGER = logging.getLogger(__name__)

Connector = Callable[[DeviceDescriptor], Awaitable[RfcommStream]]
DeviceResolver = Callable[[], Awaitable[DeviceDescriptor]]


class SessionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


async def discover_first() -> DeviceDescriptor:
    return select_device(await discover())


class BluetoothWorker:
    def __init__(
        self,
        outputs: OutputChannel | None = None,
        *,
        connector: Connector | None = None,
        resolve_device: DeviceResolver | None = None,
        on_connected: Callable[[DeviceDescriptor], None] | None = None,
    ) -> None:
        self.outputs = outputs if outputs is not None else OutputChannel()
        self._connector = connector or rfcomm.connect
        self._resolve_device = resolve_device or discover_first
        self._on_connected = on_connected

        self.state = SessionState.IDLE
        self.device: DeviceDescriptor | None = None
        self._running = False
        self._writer: asyncio.StreamWriter | None = None
        self._write_lock = asyncio.Lock()
        self._reader_task: asyncio.Task[None] | None = None
        self._connect_task: asyncio.Future[tuple[DeviceDescriptor, RfcommStream]] | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def run(self, inputs: asyncio.Queue[WorkerInput | None]) -> None:
        """Process inputs in order until a ``None`` sentinel arrives."""
        try:
            while True:
                msg = await inputs.get()
                if msg is None:
                    break
                await self.update(msg)
        finally:
            await self.close()

    async def close(self) -> None:
        if self.state in (SessionState.CONNECTING, SessionState.CONNECTED):
            await self.update(Disconnect())

    async def update(self, msg: WorkerInput) -> None:
        if isinstance(msg, Connect):
            await self._handle_connect(msg.device)
        elif isinstance(msg, Disconnect):
            await self._handle_disconnect()
        elif isinstance(msg, SendData):
            await self._handle_send(msg.data)
        elif isinstance(msg, SendCommand):
            await self._handle_send(encode_command(msg.command))
        else:
            raise TypeError(f"Unsupported worker input {msg!r}")

    def _emit(self, event: WorkerOutput) -> bool:
        try:
            self.outputs.send(event)
        except ChannelClosedError:
            LOGGER.warning("Output consumer is gone, dropping %s", type(event).__name__)
            return False
        return True

    # --- Connect ---

    async def _open(self, device: DeviceDescriptor | None) -> tuple[DeviceDescriptor, RfcommStream]:
        if device is None:
            device = await self._resolve_device()
        stream = await self._connector(device)
        return device, stream

    async def _handle_connect(self, device: DeviceDescriptor | None) -> None:
        if self.state is not SessionState.IDLE:
            LOGGER.debug("Ignoring connect while %s", self.state.value)
            return

        self.state = SessionState.CONNECTING
        task = asyncio.ensure_future(self._open(device))
        self._connect_task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            self.state = SessionState.IDLE
            raise
        finally:
            self._connect_task = None

        if self.state is not SessionState.CONNECTING:
            # A Disconnect aborted the attempt and already reported it.
            if not task.cancelled() and task.exception() is None:
                _, stream = task.result()
                await _close_stream(stream.writer, stream.session)
            return
        if task.cancelled():
            self.state = SessionState.IDLE
            return

        exc = task.exception()
        if exc is not None:
            self.state = SessionState.IDLE
            LOGGER.warning("Connection failed: %s", exc)
            self._emit(Error(f"Connection failed: {exc}"))
            return

        device, stream = task.result()
        await self._start_session(device, stream)

    async def _start_session(self, device: DeviceDescriptor, stream: RfcommStream) -> None:
        self.device = device
        self._writer = stream.writer
        self._running = True
        self.state = SessionState.CONNECTED
        LOGGER.info("Connected to %s (%s)", device.name, device.address)

        # Prime the device before announcing the session; a failure is reported
        # but does not abort the session.
        await self._write(encode_command(ManagerInfo()))
        self._emit(Connected(device))
        self._reader_task = asyncio.ensure_future(self._read_loop(stream.reader, stream.session))

        if self._on_connected is not None:
            # Hooks may do file I/O; keep them off the loop thread.
            try:
                await asyncio.to_thread(self._on_connected, device)
            except Exception as exc:
                LOGGER.warning("on_connected hook failed: %s", exc)

    # --- Disconnect ---

    async def _handle_disconnect(self) -> None:
        if self.state is SessionState.CONNECTING:
            if self._connect_task is not None:
                self._connect_task.cancel()
            self.state = SessionState.IDLE
            LOGGER.info("Connection attempt cancelled")
            self._emit(Disconnected())
            return

        if self.state is not SessionState.CONNECTED:
            LOGGER.debug("Ignoring disconnect while %s", self.state.value)
            return

        self.state = SessionState.DISCONNECTING
        self._running = False
        async with self._write_lock:
            writer, self._writer = self._writer, None
            await _close_stream(writer, None)

        task = self._reader_task
        if task is None:
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), DISCONNECT_GRACE_S)
        except asyncio.TimeoutError:
            LOGGER.warning("Reader did not stop within %.1fs, cancelling it", DISCONNECT_GRACE_S)
            task.cancel()
            await asyncio.wait({task})

    # --- Write path ---

    async def _handle_send(self, data: bytes) -> None:
        if self.state is not SessionState.CONNECTED:
            self._emit(Error("Not connected"))
            return
        await self._write(data)

    async def _write(self, data: bytes) -> bool:
        async with self._write_lock:
            writer = self._writer
            if writer is None:
                self._emit(Error("Not connected"))
                return False
            try:
                if writer.is_closing():
                    raise ConnectionResetError("stream is closed")
                writer.write(data)
                await writer.drain()
            except OSError as exc:
                LOGGER.warning("Write error: %s", exc)
                self._emit(Error(f"Write error: {exc}"))
                return False
        LOGGER.debug("Sent %s", data.hex())
        return True

    # --- Reader task ---

    async def _read_loop(self, reader: asyncio.StreamReader, session: BluetoothSession | None) -> None:
        buffer = bytearray()
        try:
            while self._running:
                try:
                    chunk = await reader.read(READ_BUFFER_SIZE)
                except OSError as exc:
                    if self._running:
                        LOGGER.warning("Read error: %s", exc)
                        self._emit(Error(f"Read error: {exc}"))
                    break
                if not chunk:
                    LOGGER.info("Stream closed by peer")
                    break
                if not self._running:
                    LOGGER.debug("Dropping %d bytes read while disconnecting", len(chunk))
                    break
                buffer.extend(chunk)
                if not self._forward(process_buffer(buffer)):
                    break
        finally:
            self._running = False
            writer, self._writer = self._writer, None
            await _close_stream(writer, session)
            self.state = SessionState.IDLE
            self._reader_task = None
            LOGGER.info("Disconnected")
            self._emit(Disconnected())

    def _forward(self, frames: Iterable[bytes]) -> bool:
        for frame in frames:
            message = classify(frame)
            if isinstance(message, Ignored):
                continue
            LOGGER.debug("Received %s", type(message).__name__)
            try:
                self.outputs.send(DataReceived(message))
            except ChannelClosedError:
                LOGGER.warning("Output consumer is gone, stopping reader")
                return False
        return True


async def _close_stream(writer: asyncio.StreamWriter | None, session: BluetoothSession | None) -> None:
    if writer is not None:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as exc:
            LOGGER.debug("Closing stream failed: %s", exc)
    if session is not None:
        try:
            await session.close()
        except (TransportError, OSError) as exc:
            LOGGER.debug("Closing Bluetooth session failed: %s", exc)
