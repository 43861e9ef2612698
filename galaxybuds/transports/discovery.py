"""Discovery of paired Galaxy Buds on the host adapter."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from galaxybuds.core.errors import DeviceDiscoveryError, TransportError
from galaxybuds.core.model import DeviceDescriptor
from galaxybuds.core.protocol import BUDS_SPP_UUID
from galaxybuds.transports.base import BluetoothDevice, BluetoothSession, SessionFactory
from galaxybuds.transports.bluez import BluezSession

UNKNOWN_NAME = "Unknown"
LOGGER = logging.getLogger(__name__)


def advertises_buds_service(uuids: Iterable[str]) -> bool:
    return any(str(uuid).lower() == BUDS_SPP_UUID for uuid in uuids)


async def discover(*, session_factory: SessionFactory = BluezSession.open) -> list[DeviceDescriptor]:
    """Return every known device advertising the Galaxy Buds SPP service."""
    try:
        session = await session_factory()
    except (TransportError, OSError) as exc:
        raise DeviceDiscoveryError(
            f"Bluetooth discovery failed. Ensure a working D-Bus/BlueZ session. Details: {exc}"
        ) from exc

    try:
        return await _discover(session)
    finally:
        await session.close()


async def _discover(session: BluetoothSession) -> list[DeviceDescriptor]:
    try:
        adapter = await session.default_adapter()
        await adapter.set_powered(True)
        addresses = await adapter.device_addresses()
    except (TransportError, OSError) as exc:
        raise DeviceDiscoveryError(f"Bluetooth adapter unavailable: {exc}") from exc

    devices: list[BluetoothDevice] = []
    for address in addresses:
        try:
            devices.append(adapter.device(address))
        except (TransportError, OSError) as exc:
            LOGGER.debug("Skipping %s: %s", address, exc)

    results = await asyncio.gather(*(device.uuids() for device in devices), return_exceptions=True)

    matched: list[BluetoothDevice] = []
    for device, uuids in zip(devices, results):
        if isinstance(uuids, Exception):
            LOGGER.debug("UUID query failed for %s: %s", device.address, uuids)
            continue
        if uuids and advertises_buds_service(uuids):
            matched.append(device)

    descriptors = [await _describe(device) for device in matched]
    LOGGER.info("Discovered %d Galaxy Buds device(s) among %d known", len(descriptors), len(addresses))
    return descriptors


async def _describe(device: BluetoothDevice) -> DeviceDescriptor:
    try:
        name = await device.name()
    except (TransportError, OSError):
        name = None
    return DeviceDescriptor(name=name or UNKNOWN_NAME, address=device.address, handle=device.path)
