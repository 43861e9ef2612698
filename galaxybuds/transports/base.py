"""Interfaces of the host Bluetooth API used by discovery and connect."""

from __future__ import annotations

import socket
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class ProfileSpec:
    uuid: str
    role: str = "client"
    require_authentication: bool = False
    require_authorization: bool = False
    auto_connect: bool = True


class BluetoothDevice(Protocol):
    address: str
    path: str

    async def name(self) -> str | None:
        """Friendly name, or None when the device does not expose one."""

    async def uuids(self) -> list[str] | None:
        """Advertised service UUIDs."""

    async def connect(self) -> None:
        """Connect the device; succeeds when it is already connected."""


class Adapter(Protocol):
    async def set_powered(self, powered: bool) -> None:
        """Power the adapter on or off."""

    async def device_addresses(self) -> list[str]:
        """Addresses of every device known to the adapter."""

    def device(self, address: str) -> BluetoothDevice:
        """Resolve an address to a device handle."""


class ConnectionRequest(Protocol):
    device_path: str

    def accept(self) -> socket.socket:
        """Take ownership of the offered RFCOMM socket."""

    def reject(self) -> None:
        """Refuse the offered connection."""


class ProfileHandle(Protocol):
    async def next_request(self) -> ConnectionRequest | None:
        """Wait for the next incoming connection; None once the profile is released."""


class BluetoothSession(Protocol):
    async def default_adapter(self) -> Adapter:
        """Return the host's default adapter."""

    async def device(self, path: str, address: str) -> BluetoothDevice:
        """Resolve a device handle previously returned by discovery."""

    async def register_profile(self, spec: ProfileSpec) -> ProfileHandle:
        """Register an RFCOMM profile and return its request queue."""

    async def close(self) -> None:
        """Release every resource held by the session."""


SessionFactory = Callable[[], Awaitable[BluetoothSession]]
