"""Aggregated earbud status folded from received messages."""

from __future__ import annotations

from dataclasses import dataclass

from galaxybuds.core.model import ExtendedStatusUpdate, Message, NoiseControlsUpdate, StatusUpdate
from galaxybuds.core.protocol import NoiseControlMode


@dataclass
class BudsStatus:
    battery_left: int | None = None
    battery_right: int | None = None
    battery_case: int | None = None
    noise_control_mode: NoiseControlMode | None = None

    def update(self, message: Message) -> bool:
        """Apply ``message`` and report whether it carried status fields."""
        if isinstance(message, (StatusUpdate, ExtendedStatusUpdate)):
            self.battery_left = message.battery_left
            self.battery_right = message.battery_right
            self.battery_case = message.battery_case
            if isinstance(message, ExtendedStatusUpdate):
                self.noise_control_mode = noise_control_from_status(message)
            return True
        if isinstance(message, NoiseControlsUpdate):
            self.noise_control_mode = message.noise_control_mode
            return True
        return False

    @property
    def battery_text(self) -> str:
        if self.battery_left is None or self.battery_right is None:
            return "N/A"
        if self.battery_left == self.battery_right:
            return f"L / R {self.battery_left}%"
        return f"L {self.battery_left}% / R {self.battery_right}%"

    @property
    def case_battery_text(self) -> str:
        # The case reports a negative level when the buds are out of it.
        if self.battery_case is None or self.battery_case < 0:
            return "N/A"
        return f"{self.battery_case}%"

    @property
    def noise_control_mode_text(self) -> str:
        if self.noise_control_mode is None:
            return "N/A"
        return self.noise_control_mode.label


def noise_control_from_status(status: ExtendedStatusUpdate) -> NoiseControlMode:
    if status.noise_reduction:
        return NoiseControlMode.NOISE_REDUCTION
    if status.ambient_sound_enabled:
        return NoiseControlMode.AMBIENT_SOUND
    return NoiseControlMode.OFF
