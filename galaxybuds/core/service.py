"""Service layer used by the CLI and other front-ends."""

from __future__ import annotations

import asyncio
import logging
import sys
from functools import partial

from galaxybuds.core.controller import WorkerController
from galaxybuds.core.device_match import select_device
from galaxybuds.core.model import DeviceDescriptor
from galaxybuds.core.settings import Settings, SettingsStore
from galaxybuds.core.worker import BluetoothWorker, Connector
from galaxybuds.transports import rfcomm
from galaxybuds.transports.base import SessionFactory
from galaxybuds.transports.bluez import BluezSession
from galaxybuds.transports.discovery import discover

LOGGER = logging.getLogger(__name__)


class BudsService:
    def __init__(
        self,
        *,
        settings_store: SettingsStore | None = None,
        session_factory: SessionFactory = BluezSession.open,
        connector: Connector | None = None,
    ) -> None:
        self.settings_store = settings_store or SettingsStore()
        self.settings: Settings = self.settings_store.load()
        self.runtime_warnings = _runtime_warnings()
        self._session_factory = session_factory
        self._connector = connector

    async def discover(self) -> list[DeviceDescriptor]:
        return await discover(session_factory=self._session_factory)

    def list_devices(self) -> list[DeviceDescriptor]:
        return asyncio.run(self.discover())

    @property
    def remembered_address(self) -> str | None:
        if not self.settings.auto_connect:
            return None
        return self.settings.last_device_address

    async def resolve_device(self, hint: str | None = None) -> DeviceDescriptor:
        devices = await self.discover()
        return select_device(devices, remembered_address=self.remembered_address, hint=hint)

    def remember_device(self, device: DeviceDescriptor) -> None:
        self.settings = self.settings_store.remember_device(device.address)

    def create_worker(self, *, device_hint: str | None = None) -> BluetoothWorker:
        connector = self._connector or partial(
            rfcomm.connect,
            session_factory=self._session_factory,
            request_timeout_s=self.settings.request_timeout_s,
        )
        return BluetoothWorker(
            connector=connector,
            resolve_device=partial(self.resolve_device, device_hint),
            on_connected=self.remember_device,
        )

    def start_worker(self, *, device_hint: str | None = None) -> WorkerController:
        return WorkerController.launch(self.create_worker(device_hint=device_hint))


def _runtime_warnings() -> tuple[str, ...]:
    warnings: list[str] = []
    if not sys.platform.startswith("linux"):
        warnings.append(
            f"BlueZ is only available on Linux (running on {sys.platform}); Bluetooth operations will fail."
        )
    return tuple(warnings)
