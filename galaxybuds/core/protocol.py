"""Protocol constants and enums for Galaxy Buds SPP communication."""

from __future__ import annotations

from enum import IntEnum

BOM = 0xFE
EOM = 0xDD

# Vendor SPP service advertised by Galaxy Buds.
BUDS_SPP_UUID = "2e73a4ad-332d-41fc-90e2-16bef06523f2"

READ_BUFFER_SIZE = 2048
MIN_FRAME_LENGTH = 4
ID_INDEX = 3
RESPONSE_FLAG = 0x1000
SIZE_MASK = 0x3FF


class MsgIds(IntEnum):
    """SPP message IDs."""

    STATUS_UPDATED = 97
    EXTENDED_STATUS_UPDATED = 98
    NOISE_CONTROLS_UPDATED = 119
    SET_NOISE_CONTROLS = 120
    MANAGER_INFO = 136
    LOCK_TOUCHPAD = 144
    FIND_MY_EARBUDS_START = 160
    FIND_MY_EARBUDS_STOP = 161
    KEEP_ALIVE = 242


class NoiseControlMode(IntEnum):
    """Noise control modes as carried on the wire."""

    OFF = 0
    NOISE_REDUCTION = 1
    AMBIENT_SOUND = 2

    @property
    def label(self) -> str:
        return {
            NoiseControlMode.OFF: "Off",
            NoiseControlMode.NOISE_REDUCTION: "Noise Reduction",
            NoiseControlMode.AMBIENT_SOUND: "Ambient Sound",
        }[self]
