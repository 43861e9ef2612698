import pytest

from galaxybuds.core.model import ExtendedStatusUpdate, NoiseControlsUpdate, StatusUpdate, Unknown
from galaxybuds.core.protocol import NoiseControlMode
from galaxybuds.core.status import BudsStatus, noise_control_from_status


def _extended(**overrides) -> ExtendedStatusUpdate:
    fields = dict(
        revision=3,
        ear_type=0,
        battery_left=60,
        battery_right=55,
        coupled=True,
        primary_earbud=0,
        placement_left=1,
        placement_right=1,
        battery_case=40,
        adjust_sound_sync=False,
        equalizer_type=0,
        touchpads_locked=False,
        touchpad_option=0,
        noise_reduction=False,
        ambient_sound_enabled=False,
    )
    fields.update(overrides)
    return ExtendedStatusUpdate(**fields)


def test_empty_status_renders_placeholders() -> None:
    status = BudsStatus()
    assert status.battery_text == "N/A"
    assert status.case_battery_text == "N/A"
    assert status.noise_control_mode_text == "N/A"


def test_status_update_sets_batteries() -> None:
    status = BudsStatus()
    assert status.update(StatusUpdate(revision=1, battery_left=80, battery_right=80, battery_case=35))
    assert status.battery_text == "L / R 80%"
    assert status.case_battery_text == "35%"


def test_uneven_batteries_and_case_out_of_range() -> None:
    status = BudsStatus()
    status.update(StatusUpdate(revision=1, battery_left=80, battery_right=75))
    assert status.battery_text == "L 80% / R 75%"
    assert status.case_battery_text == "N/A"


@pytest.mark.parametrize(
    ("noise_reduction", "ambient", "expected"),
    [
        (False, False, NoiseControlMode.OFF),
        (True, False, NoiseControlMode.NOISE_REDUCTION),
        (False, True, NoiseControlMode.AMBIENT_SOUND),
        (True, True, NoiseControlMode.NOISE_REDUCTION),
    ],
)
def test_noise_control_from_extended_status(noise_reduction, ambient, expected) -> None:
    status = _extended(noise_reduction=noise_reduction, ambient_sound_enabled=ambient)
    assert noise_control_from_status(status) is expected


def test_noise_update_overrides_extended_status() -> None:
    status = BudsStatus()
    status.update(_extended(noise_reduction=True))
    assert status.noise_control_mode_text == "Noise Reduction"
    status.update(NoiseControlsUpdate(noise_control_mode=NoiseControlMode.AMBIENT_SOUND))
    assert status.noise_control_mode_text == "Ambient Sound"
    assert status.battery_text == "L 60% / R 55%"


def test_unrelated_messages_are_not_applied() -> None:
    status = BudsStatus()
    assert not status.update(Unknown(id=60, raw=b"\xfe\xdd"))
    assert status == BudsStatus()
