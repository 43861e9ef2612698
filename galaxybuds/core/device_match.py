"""Selection of a target device among discovery results."""

from __future__ import annotations

from collections.abc import Sequence

from galaxybuds.core.errors import DeviceSelectionError
from galaxybuds.core.model import DeviceDescriptor


def _normalize_address(address: str) -> str:
    return address.strip().upper().replace("-", ":")


def match_hint(device: DeviceDescriptor, hint: str) -> bool:
    lowered = hint.lower()
    return (
        _normalize_address(device.address) == _normalize_address(hint)
        or lowered in device.address.lower()
        or lowered in device.name.lower()
    )


def find_remembered(
    devices: Sequence[DeviceDescriptor],
    remembered_address: str | None,
) -> DeviceDescriptor | None:
    if not remembered_address:
        return None
    wanted = _normalize_address(remembered_address)
    for device in devices:
        if _normalize_address(device.address) == wanted:
            return device
    return None


def select_device(
    devices: Sequence[DeviceDescriptor],
    *,
    remembered_address: str | None = None,
    hint: str | None = None,
) -> DeviceDescriptor:
    """Pick one device: explicit hint first, then the remembered address, then the first match."""
    if not devices:
        raise DeviceSelectionError(
            "No Galaxy Buds device found. Ensure your buds are paired with this computer."
        )

    if hint:
        hinted = [d for d in devices if match_hint(d, hint)]
        if not hinted:
            raise DeviceSelectionError(f"No device found matching '{hint}'")
        if len(hinted) > 1:
            candidate_desc = ", ".join(f"{d.address} ({d.name})" for d in hinted)
            raise DeviceSelectionError(
                f"Multiple candidate devices found: {candidate_desc}. Use --device to choose one."
            )
        return hinted[0]

    remembered = find_remembered(devices, remembered_address)
    if remembered is not None:
        return remembered
    return devices[0]
