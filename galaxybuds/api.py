"""Stable public API for building tooling on top of galaxybuds.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from galaxybuds.core.channels import OutputChannel
from galaxybuds.core.codec import classify, encode_command, process_buffer
from galaxybuds.core.controller import WorkerController
from galaxybuds.core.errors import (
    BluetoothHostError,
    ChannelClosedError,
    DeviceDiscoveryError,
    DeviceSelectionError,
    GalaxyBudsError,
    NoConnectionRequestError,
    SettingsError,
    SettingsValidationError,
    TransportConnectError,
    TransportError,
)
from galaxybuds.core.model import (
    Connect,
    Connected,
    DataReceived,
    DeviceDescriptor,
    Disconnect,
    Disconnected,
    Error,
    ExtendedStatusUpdate,
    Find,
    LockTouchpad,
    ManagerInfo,
    NoiseControlsUpdate,
    SendCommand,
    SendData,
    SetNoiseControls,
    StatusUpdate,
    Unknown,
)
from galaxybuds.core.protocol import NoiseControlMode
from galaxybuds.core.service import BudsService
from galaxybuds.core.settings import Settings, SettingsStore
from galaxybuds.core.status import BudsStatus
from galaxybuds.core.worker import BluetoothWorker, SessionState

__all__ = [
    "GalaxyBudsError",
    "ChannelClosedError",
    "DeviceDiscoveryError",
    "DeviceSelectionError",
    "NoConnectionRequestError",
    "SettingsError",
    "SettingsValidationError",
    "TransportError",
    "TransportConnectError",
    "BluetoothHostError",
    "DeviceDescriptor",
    "StatusUpdate",
    "ExtendedStatusUpdate",
    "NoiseControlsUpdate",
    "Unknown",
    "NoiseControlMode",
    "ManagerInfo",
    "Find",
    "SetNoiseControls",
    "LockTouchpad",
    "Connect",
    "Disconnect",
    "SendData",
    "SendCommand",
    "Connected",
    "Disconnected",
    "DataReceived",
    "Error",
    "BudsStatus",
    "BluetoothWorker",
    "SessionState",
    "OutputChannel",
    "WorkerController",
    "Settings",
    "SettingsStore",
    "process_buffer",
    "classify",
    "encode_command",
    "Client",
]


class Client:
    """Public client for interacting with galaxybuds core capabilities.

    A `Client` instance wraps discovery, device selection and worker launch
    behind a stable API intended for third-party tools (GUI/TUI/services/scripts).
    """

    def __init__(self, *, service: BudsService | None = None) -> None:
        self._service = service or BudsService()

    @property
    def runtime_warnings(self) -> tuple[str, ...]:
        return self._service.runtime_warnings

    @property
    def settings(self) -> Settings:
        return self._service.settings

    def list_devices(self) -> list[DeviceDescriptor]:
        return self._service.list_devices()

    def connect(self, *, device_hint: str | None = None) -> WorkerController:
        """Launch a worker and ask it to connect; outputs arrive on ``controller.outputs``."""
        controller = self._service.start_worker(device_hint=device_hint)
        controller.send(Connect())
        return controller
