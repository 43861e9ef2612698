"""Frame codec for the Galaxy Buds SPP protocol.

Three pure pieces live here:

* `process_buffer` re-frames an arbitrarily chunked byte stream into complete
  ``BOM ... EOM`` frames.
* `classify` turns a frame into a typed message.
* `encode_command` serializes outbound commands.

Wire layout of an encoded frame::

    BOM | header (u16 LE) | id | payload | crc16 (u16 LE) | EOM

``header`` holds ``len(id + payload + crc)`` in its low ten bits and the
response flag in bit 12. The checksum is CRC-16/CCITT (XModem) over
``id + payload``.
"""

from __future__ import annotations

import binascii
import logging
import struct

from galaxybuds.core.model import (
    IGNORED,
    Command,
    ExtendedStatusUpdate,
    Find,
    Ignored,
    LockTouchpad,
    ManagerInfo,
    Message,
    NoiseControlsUpdate,
    SetNoiseControls,
    StatusUpdate,
    Unknown,
)
from galaxybuds.core.protocol import (
    BOM,
    EOM,
    ID_INDEX,
    MIN_FRAME_LENGTH,
    RESPONSE_FLAG,
    SIZE_MASK,
    MsgIds,
    NoiseControlMode,
)

LOGGER = logging.getLogger(__name__)

_STATUS_MIN_PAYLOAD = 3
_EXTENDED_STATUS_MIN_PAYLOAD = 4


def process_buffer(buf: bytearray, *, bom: int = BOM, eom: int = EOM) -> list[bytes]:
    """Extract every complete frame from ``buf``, draining it in place.

    Bytes before the first BOM are dropped. An incomplete frame (BOM without a
    following EOM) stays in ``buf`` for the next call. Without any BOM the
    buffer is cleared.
    """
    frames: list[bytes] = []
    while buf:
        start = buf.find(bom)
        if start < 0:
            buf.clear()
            break
        end = buf.find(eom, start + 1)
        if end < 0:
            del buf[:start]
            break
        if start:
            LOGGER.debug("Discarding %d garbage bytes before BOM", start)
        frames.append(bytes(buf[start : end + 1]))
        del buf[: end + 1]
    return frames


def classify(frame: bytes) -> Message | Ignored:
    if len(frame) < MIN_FRAME_LENGTH:
        return Unknown(id=0, raw=bytes(frame))

    msg_id = frame[ID_INDEX]
    if msg_id == MsgIds.KEEP_ALIVE:
        return IGNORED

    # Includes the checksum trailer; short frames decode it into trailing fields.
    payload = bytes(frame[ID_INDEX + 1 : -1])
    decoded: Message | None = None
    if msg_id == MsgIds.STATUS_UPDATED:
        decoded = _decode_status(payload)
    elif msg_id == MsgIds.EXTENDED_STATUS_UPDATED:
        decoded = _decode_extended_status(payload)
    elif msg_id == MsgIds.NOISE_CONTROLS_UPDATED:
        decoded = _decode_noise_controls(payload)

    if decoded is None:
        return Unknown(id=msg_id, raw=bytes(frame))
    return decoded


def _i8(value: int) -> int:
    return value - 256 if value > 127 else value


def _at(payload: bytes, index: int, default: int = 0) -> int:
    return payload[index] if index < len(payload) else default


def _decode_status(payload: bytes) -> StatusUpdate | None:
    if len(payload) < _STATUS_MIN_PAYLOAD:
        return None
    placement = _at(payload, 5)
    return StatusUpdate(
        revision=payload[0],
        battery_left=_i8(payload[1]),
        battery_right=_i8(payload[2]),
        coupled=bool(_at(payload, 3)),
        primary_earbud=_at(payload, 4),
        placement_left=(placement & 0xF0) >> 4,
        placement_right=placement & 0x0F,
        battery_case=_i8(_at(payload, 6, 0xFF)),
    )


def _decode_extended_status(payload: bytes) -> ExtendedStatusUpdate | None:
    if len(payload) < _EXTENDED_STATUS_MIN_PAYLOAD:
        return None
    placement = _at(payload, 6)
    return ExtendedStatusUpdate(
        revision=payload[0],
        ear_type=payload[1],
        battery_left=_i8(payload[2]),
        battery_right=_i8(payload[3]),
        coupled=bool(_at(payload, 4)),
        primary_earbud=_at(payload, 5),
        placement_left=(placement & 0xF0) >> 4,
        placement_right=placement & 0x0F,
        battery_case=_i8(_at(payload, 7, 0xFF)),
        adjust_sound_sync=bool(_at(payload, 8)),
        equalizer_type=_at(payload, 9),
        touchpads_locked=bool(_at(payload, 10)),
        touchpad_option=_at(payload, 11),
        noise_reduction=bool(_at(payload, 12)),
        ambient_sound_enabled=bool(_at(payload, 13)),
    )


def _decode_noise_controls(payload: bytes) -> NoiseControlsUpdate | None:
    if not payload:
        return None
    try:
        mode = NoiseControlMode(payload[0])
    except ValueError:
        LOGGER.debug("Unsupported noise control mode %d", payload[0])
        return None
    return NoiseControlsUpdate(noise_control_mode=mode)


def crc16(data: bytes) -> int:
    return binascii.crc_hqx(data, 0)


def encode_frame(msg_id: int, payload: bytes = b"", *, is_response: bool = False) -> bytes:
    size = 1 + len(payload) + 2
    header = size & SIZE_MASK
    if is_response:
        header |= RESPONSE_FLAG
    body = bytes([msg_id]) + payload
    return (
        bytes([BOM])
        + struct.pack("<H", header)
        + body
        + struct.pack("<H", crc16(body))
        + bytes([EOM])
    )


def verify_checksum(frame: bytes) -> bool:
    """Return True when the trailing CRC matches ``id + payload``.

    Classification does not depend on this; it is offered for diagnostics.
    """
    if len(frame) < MIN_FRAME_LENGTH + 3:
        return False
    body = bytes(frame[ID_INDEX:-3])
    (expected,) = struct.unpack("<H", frame[-3:-1])
    return crc16(body) == expected


def encode_command(command: Command) -> bytes:
    if isinstance(command, ManagerInfo):
        return encode_frame(MsgIds.MANAGER_INFO, bytes([int(command.client), command.sdk_version]))
    if isinstance(command, Find):
        msg_id = MsgIds.FIND_MY_EARBUDS_START if command.active else MsgIds.FIND_MY_EARBUDS_STOP
        return encode_frame(msg_id)
    if isinstance(command, SetNoiseControls):
        return encode_frame(MsgIds.SET_NOISE_CONTROLS, bytes([int(command.mode)]))
    if isinstance(command, LockTouchpad):
        return encode_frame(MsgIds.LOCK_TOUCHPAD, bytes([int(command.locked)]))
    raise TypeError(f"Unsupported command {command!r}")
