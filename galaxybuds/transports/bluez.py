"""BlueZ host API over the system D-Bus.

No ``from __future__ import annotations`` here: dbus-next reads the D-Bus
signatures of exported methods from their runtime annotations.
"""

import asyncio
import itertools
import logging
import os
import socket
from typing import Any, Optional

from dbus_next import BusType, Variant
from dbus_next.aio import MessageBus
from dbus_next.errors import DBusError, InterfaceNotFoundError
from dbus_next.service import ServiceInterface, method

from galaxybuds.core.errors import BluetoothHostError
from galaxybuds.transports.base import ProfileSpec

BLUEZ_SERVICE = "org.bluez"
BLUEZ_ROOT = "/org/bluez"
ADAPTER_INTERFACE = "org.bluez.Adapter1"
DEVICE_INTERFACE = "org.bluez.Device1"
PROFILE_INTERFACE = "org.bluez.Profile1"
PROFILE_MANAGER_INTERFACE = "org.bluez.ProfileManager1"
OBJECT_MANAGER_INTERFACE = "org.freedesktop.DBus.ObjectManager"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"

PROFILE_PATH_PREFIX = "/org/galaxybuds/profile"
_ALREADY_CONNECTED = "org.bluez.Error.AlreadyConnected"

LOGGER = logging.getLogger(__name__)
_profile_ids = itertools.count()


def _unwrap(value: Any) -> Any:
    return value.value if isinstance(value, Variant) else value


def device_path(adapter_path: str, address: str) -> str:
    return f"{adapter_path}/dev_{address.upper().replace(':', '_')}"


class BluezConnectionRequest:
    """Incoming RFCOMM connection handed over by BlueZ."""

    def __init__(self, device_path: str, fd: int, properties: dict) -> None:
        self.device_path = device_path
        self.properties = properties
        self._fd: Optional[int] = fd

    def accept(self) -> socket.socket:
        if self._fd is None:
            raise BluetoothHostError("Connection request was already handled")
        fd, self._fd = self._fd, None
        try:
            return socket.socket(fileno=fd)
        except OSError as exc:
            os.close(fd)
            raise BluetoothHostError(f"Could not adopt RFCOMM socket: {exc}") from exc

    def reject(self) -> None:
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            os.close(fd)
        except OSError as exc:
            LOGGER.debug("Closing rejected fd failed: %s", exc)


class _SerialPortProfile(ServiceInterface):
    """org.bluez.Profile1 implementation queueing connection requests."""

    def __init__(self, requests: "asyncio.Queue[Optional[BluezConnectionRequest]]") -> None:
        super().__init__(PROFILE_INTERFACE)
        self._requests = requests

    @method()
    def Release(self):
        LOGGER.info("Profile released by BlueZ")
        self._requests.put_nowait(None)

    @method()
    def NewConnection(self, device: "o", fd: "h", fd_properties: "a{sv}"):
        LOGGER.info("New RFCOMM connection from %s", device)
        self._requests.put_nowait(BluezConnectionRequest(device, fd, fd_properties))

    @method()
    def RequestDisconnection(self, device: "o"):
        LOGGER.info("Disconnect requested for %s", device)


class BluezProfileHandle:
    def __init__(self, path: str) -> None:
        self.path = path
        self.requests: "asyncio.Queue[Optional[BluezConnectionRequest]]" = asyncio.Queue()
        self.interface = _SerialPortProfile(self.requests)

    async def next_request(self) -> Optional[BluezConnectionRequest]:
        return await self.requests.get()


class BluezDevice:
    def __init__(self, session: "BluezSession", path: str, address: str) -> None:
        self._session = session
        self.path = path
        self.address = address

    async def name(self) -> Optional[str]:
        try:
            return await self._session.get_property(self.path, DEVICE_INTERFACE, "Name")
        except BluetoothHostError:
            return None

    async def uuids(self) -> Optional[list]:
        uuids = await self._session.get_property(self.path, DEVICE_INTERFACE, "UUIDs")
        return list(uuids) if uuids is not None else None

    async def connect(self) -> None:
        iface = await self._session.interface(self.path, DEVICE_INTERFACE)
        try:
            await iface.call_connect()
        except DBusError as exc:
            if exc.type == _ALREADY_CONNECTED:
                LOGGER.debug("%s already connected", self.address)
                return
            raise BluetoothHostError(f"Device connect failed for {self.address}: {exc}") from exc


class BluezAdapter:
    def __init__(self, session: "BluezSession", path: str) -> None:
        self._session = session
        self.path = path

    async def set_powered(self, powered: bool) -> None:
        await self._session.set_property(self.path, ADAPTER_INTERFACE, "Powered", Variant("b", powered))

    async def device_addresses(self) -> list:
        objects = await self._session.managed_objects()
        addresses = []
        for path, interfaces in sorted(objects.items()):
            if not path.startswith(self.path + "/"):
                continue
            props = interfaces.get(DEVICE_INTERFACE)
            if props is None or "Address" not in props:
                continue
            addresses.append(str(_unwrap(props["Address"])))
        return addresses

    def device(self, address: str) -> BluezDevice:
        return BluezDevice(self._session, device_path(self.path, address), address)


class BluezSession:
    """A connection to the system bus scoped to one discovery or connect run."""

    def __init__(self, bus: MessageBus) -> None:
        self.bus = bus
        self._profiles: list = []

    @classmethod
    async def open(cls) -> "BluezSession":
        try:
            bus = await MessageBus(bus_type=BusType.SYSTEM, negotiate_unix_fd=True).connect()
        except (DBusError, OSError) as exc:
            raise BluetoothHostError(f"Could not connect to the system D-Bus: {exc}") from exc
        return cls(bus)

    async def interface(self, path: str, name: str) -> Any:
        try:
            introspection = await self.bus.introspect(BLUEZ_SERVICE, path)
            proxy = self.bus.get_proxy_object(BLUEZ_SERVICE, path, introspection)
            return proxy.get_interface(name)
        except (DBusError, InterfaceNotFoundError) as exc:
            raise BluetoothHostError(f"BlueZ object {path} does not provide {name}: {exc}") from exc

    async def get_property(self, path: str, interface: str, name: str) -> Any:
        props = await self.interface(path, PROPERTIES_INTERFACE)
        try:
            return _unwrap(await props.call_get(interface, name))
        except DBusError as exc:
            raise BluetoothHostError(f"Could not read {name} of {path}: {exc}") from exc

    async def set_property(self, path: str, interface: str, name: str, value: Variant) -> None:
        props = await self.interface(path, PROPERTIES_INTERFACE)
        try:
            await props.call_set(interface, name, value)
        except DBusError as exc:
            raise BluetoothHostError(f"Could not set {name} of {path}: {exc}") from exc

    async def managed_objects(self) -> dict:
        obj_mgr = await self.interface("/", OBJECT_MANAGER_INTERFACE)
        try:
            return await obj_mgr.call_get_managed_objects()
        except DBusError as exc:
            raise BluetoothHostError(f"Could not enumerate BlueZ objects: {exc}") from exc

    async def default_adapter(self) -> BluezAdapter:
        objects = await self.managed_objects()
        adapters = sorted(path for path, ifaces in objects.items() if ADAPTER_INTERFACE in ifaces)
        if not adapters:
            raise BluetoothHostError("No Bluetooth adapter available")
        return BluezAdapter(self, adapters[0])

    async def device(self, path: str, address: str) -> BluezDevice:
        return BluezDevice(self, path, address)

    async def register_profile(self, spec: ProfileSpec) -> BluezProfileHandle:
        handle = BluezProfileHandle(f"{PROFILE_PATH_PREFIX}{next(_profile_ids)}")
        options = {
            "Role": Variant("s", spec.role),
            "RequireAuthentication": Variant("b", spec.require_authentication),
            "RequireAuthorization": Variant("b", spec.require_authorization),
            "AutoConnect": Variant("b", spec.auto_connect),
        }
        self.bus.export(handle.path, handle.interface)
        try:
            manager = await self.interface(BLUEZ_ROOT, PROFILE_MANAGER_INTERFACE)
            await manager.call_register_profile(handle.path, spec.uuid, options)
        except BluetoothHostError:
            self.bus.unexport(handle.path)
            raise
        except DBusError as exc:
            self.bus.unexport(handle.path)
            raise BluetoothHostError(f"Profile registration failed for {spec.uuid}: {exc}") from exc
        self._profiles.append(handle)
        LOGGER.info("Registered %s profile at %s", spec.role, handle.path)
        return handle

    async def close(self) -> None:
        for handle in self._profiles:
            try:
                manager = await self.interface(BLUEZ_ROOT, PROFILE_MANAGER_INTERFACE)
                await manager.call_unregister_profile(handle.path)
            except (BluetoothHostError, DBusError) as exc:
                LOGGER.debug("Unregistering %s failed: %s", handle.path, exc)
            self.bus.unexport(handle.path)
            while not handle.requests.empty():
                pending = handle.requests.get_nowait()
                if pending is not None:
                    pending.reject()
        self._profiles.clear()
        self.bus.disconnect()
