from __future__ import annotations

import asyncio
import socket

import pytest

from galaxybuds.core.errors import BluetoothHostError, NoConnectionRequestError, TransportConnectError
from galaxybuds.core.model import DeviceDescriptor
from galaxybuds.core.protocol import BUDS_SPP_UUID
from galaxybuds.transports.rfcomm import BUDS_PROFILE, connect

DEVICE = DeviceDescriptor(
    name="Galaxy Buds Live",
    address="AA:BB:CC:00:11:22",
    handle="/org/bluez/hci0/dev_AA_BB_CC_00_11_22",
)


class FakeDevice:
    def __init__(self, address: str, *, fail: bool = False) -> None:
        self.address = address
        self.path = "/org/bluez/hci0/dev_" + address.replace(":", "_")
        self.fail = fail
        self.connected = False

    async def name(self) -> str | None:
        return "Galaxy Buds Live"

    async def uuids(self) -> list[str] | None:
        return [BUDS_SPP_UUID]

    async def connect(self) -> None:
        if self.fail:
            raise BluetoothHostError("org.bluez.Error.Failed: Page Timeout")
        self.connected = True


class FakeRequest:
    def __init__(self, sock: socket.socket) -> None:
        self.device_path = DEVICE.handle
        self.sock = sock

    def accept(self) -> socket.socket:
        return self.sock

    def reject(self) -> None:
        self.sock.close()


class FakeProfileHandle:
    def __init__(self, request: FakeRequest | None, *, block: bool = False) -> None:
        self.request = request
        self.block = block

    async def next_request(self) -> FakeRequest | None:
        if self.block:
            await asyncio.sleep(3600)
        return self.request


class FakeSession:
    def __init__(self, device: FakeDevice, handle: FakeProfileHandle) -> None:
        self.bt_device = device
        self.handle = handle
        self.profiles = []
        self.resolved = []
        self.closed = False

    async def default_adapter(self):
        raise AssertionError("device handle should be used")

    async def device(self, path: str, address: str) -> FakeDevice:
        self.resolved.append((path, address))
        return self.bt_device

    async def register_profile(self, spec):
        self.profiles.append(spec)
        return self.handle

    async def close(self) -> None:
        self.closed = True


def _factory(session: FakeSession):
    async def open_session() -> FakeSession:
        return session

    return open_session


def test_connect_returns_stream_over_accepted_socket() -> None:
    local, remote = socket.socketpair()
    bt_device = FakeDevice(DEVICE.address)
    session = FakeSession(bt_device, FakeProfileHandle(FakeRequest(local)))

    async def scenario() -> bytes:
        stream = await connect(DEVICE, session_factory=_factory(session))
        assert stream.session is session
        remote.sendall(b"\xfe\x00\xdd")
        received = await stream.reader.read(16)
        stream.writer.close()
        await stream.writer.wait_closed()
        return received

    try:
        assert asyncio.run(scenario()) == b"\xfe\x00\xdd"
    finally:
        remote.close()

    assert bt_device.connected
    assert session.resolved == [(DEVICE.handle, DEVICE.address)]
    assert session.profiles == [BUDS_PROFILE]
    assert BUDS_PROFILE.uuid == BUDS_SPP_UUID
    assert not session.closed


def test_device_connect_failure_closes_session() -> None:
    session = FakeSession(FakeDevice(DEVICE.address, fail=True), FakeProfileHandle(None))

    with pytest.raises(TransportConnectError, match="Device connect failed for AA:BB:CC:00:11:22"):
        asyncio.run(connect(DEVICE, session_factory=_factory(session)))
    assert session.closed
    assert session.profiles == []


def test_released_profile_means_no_connection() -> None:
    session = FakeSession(FakeDevice(DEVICE.address), FakeProfileHandle(None))

    with pytest.raises(NoConnectionRequestError, match="No connection request received"):
        asyncio.run(connect(DEVICE, session_factory=_factory(session)))
    assert session.closed


def test_request_timeout_means_no_connection() -> None:
    session = FakeSession(FakeDevice(DEVICE.address), FakeProfileHandle(None, block=True))

    with pytest.raises(NoConnectionRequestError):
        asyncio.run(connect(DEVICE, session_factory=_factory(session), request_timeout_s=0.05))
    assert session.closed


def test_session_open_failure_is_a_connect_error() -> None:
    async def no_bus():
        raise BluetoothHostError("system bus unavailable")

    with pytest.raises(TransportConnectError, match="Could not open Bluetooth session"):
        asyncio.run(connect(DEVICE, session_factory=no_bus))
