"""RFCOMM stream establishment through a registered client profile."""

from __future__ import annotations

import asyncio
import logging
from typing import NamedTuple

from galaxybuds.core.errors import NoConnectionRequestError, TransportConnectError, TransportError
from galaxybuds.core.model import DeviceDescriptor
from galaxybuds.core.protocol import BUDS_SPP_UUID
from galaxybuds.transports.base import (
    BluetoothDevice,
    BluetoothSession,
    ConnectionRequest,
    ProfileHandle,
    ProfileSpec,
    SessionFactory,
)
from galaxybuds.transports.bluez import BluezSession

BUDS_PROFILE = ProfileSpec(
    uuid=BUDS_SPP_UUID,
    role="client",
    require_authentication=False,
    require_authorization=False,
    auto_connect=True,
)
LOGGER = logging.getLogger(__name__)


class RfcommStream(NamedTuple):
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    # Keeps the registered profile alive; closed when the stream is done.
    session: BluetoothSession | None = None


async def connect(
    device: DeviceDescriptor,
    *,
    session_factory: SessionFactory = BluezSession.open,
    request_timeout_s: float | None = None,
) -> RfcommStream:
    """Connect ``device`` and return the owned read and write halves of its SPP stream."""
    try:
        session = await session_factory()
    except (TransportError, OSError) as exc:
        raise TransportConnectError(f"Could not open Bluetooth session: {exc}") from exc

    try:
        return await _establish(session, device, request_timeout_s)
    except BaseException:
        await session.close()
        raise


async def _resolve(session: BluetoothSession, device: DeviceDescriptor) -> BluetoothDevice:
    if device.handle:
        return await session.device(device.handle, device.address)
    adapter = await session.default_adapter()
    return adapter.device(device.address)


async def _next_request(handle: ProfileHandle, timeout_s: float | None) -> ConnectionRequest:
    try:
        if timeout_s is None:
            request = await handle.next_request()
        else:
            request = await asyncio.wait_for(handle.next_request(), timeout_s)
    except asyncio.TimeoutError:
        request = None
    if request is None:
        raise NoConnectionRequestError("No connection request received")
    return request


async def _establish(
    session: BluetoothSession,
    device: DeviceDescriptor,
    request_timeout_s: float | None,
) -> RfcommStream:
    try:
        bt_device = await _resolve(session, device)
        LOGGER.info("Connecting to %s (%s)", device.name, device.address)
        await bt_device.connect()
    except (TransportError, OSError) as exc:
        raise TransportConnectError(f"Device connect failed for {device.address}: {exc}") from exc

    try:
        handle = await session.register_profile(BUDS_PROFILE)
    except (TransportError, OSError) as exc:
        raise TransportConnectError(f"Profile registration failed: {exc}") from exc
    LOGGER.info("SPP profile registered, waiting for connection request")

    request = await _next_request(handle, request_timeout_s)
    LOGGER.info("Connection request from %s accepted", request.device_path)
    try:
        sock = request.accept()
    except (TransportError, OSError) as exc:
        raise TransportConnectError(f"Accepting RFCOMM connection failed: {exc}") from exc

    try:
        reader, writer = await asyncio.open_connection(sock=sock)
    except OSError as exc:
        sock.close()
        raise TransportConnectError(f"Accepting RFCOMM connection failed: {exc}") from exc
    LOGGER.info("RFCOMM stream established")
    return RfcommStream(reader=reader, writer=writer, session=session)
