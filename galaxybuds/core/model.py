"""Core data models shared by codec, worker, service and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from galaxybuds.core.protocol import NoiseControlMode


@dataclass(frozen=True)
class DeviceDescriptor:
    name: str
    address: str
    handle: Any = field(default=None, compare=False, repr=False)


# --- Messages received from the buds ---


@dataclass(frozen=True)
class StatusUpdate:
    revision: int
    battery_left: int
    battery_right: int
    coupled: bool = False
    primary_earbud: int = 0
    placement_left: int = 0
    placement_right: int = 0
    battery_case: int = -1


@dataclass(frozen=True)
class ExtendedStatusUpdate:
    revision: int
    ear_type: int
    battery_left: int
    battery_right: int
    coupled: bool = False
    primary_earbud: int = 0
    placement_left: int = 0
    placement_right: int = 0
    battery_case: int = -1
    adjust_sound_sync: bool = False
    equalizer_type: int = 0
    touchpads_locked: bool = False
    touchpad_option: int = 0
    noise_reduction: bool = False
    ambient_sound_enabled: bool = False


@dataclass(frozen=True)
class NoiseControlsUpdate:
    noise_control_mode: NoiseControlMode


@dataclass(frozen=True)
class Unknown:
    id: int
    raw: bytes


@dataclass(frozen=True)
class Ignored:
    """Keep-alive frame that is consumed but never forwarded."""


IGNORED = Ignored()

Message = StatusUpdate | ExtendedStatusUpdate | NoiseControlsUpdate | Unknown


# --- Commands sent to the buds ---


@dataclass(frozen=True)
class ManagerInfo:
    client: bool = True
    sdk_version: int = 34


@dataclass(frozen=True)
class Find:
    active: bool


@dataclass(frozen=True)
class SetNoiseControls:
    mode: NoiseControlMode


@dataclass(frozen=True)
class LockTouchpad:
    locked: bool


Command = ManagerInfo | Find | SetNoiseControls | LockTouchpad


# --- Worker inputs ---


@dataclass(frozen=True)
class Connect:
    device: DeviceDescriptor | None = None


@dataclass(frozen=True)
class Disconnect:
    pass


@dataclass(frozen=True)
class SendData:
    data: bytes


@dataclass(frozen=True)
class SendCommand:
    command: Command


WorkerInput = Connect | Disconnect | SendData | SendCommand


# --- Worker outputs ---


@dataclass(frozen=True)
class Connected:
    device: DeviceDescriptor | None = None


@dataclass(frozen=True)
class Disconnected:
    pass


@dataclass(frozen=True)
class DataReceived:
    message: Message


@dataclass(frozen=True)
class Error:
    message: str


WorkerOutput = Connected | Disconnected | DataReceived | Error
