from __future__ import annotations

import queue

from typer.testing import CliRunner

from galaxybuds import cli
from galaxybuds.core.errors import DeviceSelectionError
from galaxybuds.core.model import (
    Connect,
    Connected,
    DataReceived,
    DeviceDescriptor,
    Error,
    Find,
    NoiseControlsUpdate,
    SendCommand,
    SetNoiseControls,
    StatusUpdate,
)
from galaxybuds.core.protocol import NoiseControlMode

LIVE = DeviceDescriptor(name="Galaxy Buds Live", address="AA:BB:CC:00:11:22")
PRO = DeviceDescriptor(name="Galaxy Buds Pro", address="AA:BB:CC:33:44:55")


class FakeController:
    def __init__(self, *, connect_error: str | None = None) -> None:
        self.connect_error = connect_error
        self.sent = []
        self.events: queue.Queue = queue.Queue()

    def send(self, msg) -> None:
        self.sent.append(msg)
        if isinstance(msg, Connect):
            if self.connect_error:
                self.events.put(Error(self.connect_error))
            else:
                self.events.put(Connected(LIVE))
                self.events.put(DataReceived(StatusUpdate(revision=1, battery_left=90, battery_right=80, battery_case=50)))
        elif isinstance(msg, SendCommand) and isinstance(msg.command, SetNoiseControls):
            self.events.put(DataReceived(NoiseControlsUpdate(noise_control_mode=msg.command.mode)))

    def recv(self, timeout=None):
        return self.events.get_nowait()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        return None


class FakeService:
    controller = FakeController()
    devices = [LIVE, PRO]

    def __init__(self) -> None:
        self.runtime_warnings = ()
        self.remembered_address = PRO.address
        self.hints = []

    def list_devices(self):
        return list(self.devices)

    def start_worker(self, *, device_hint=None):
        self.hints.append(device_hint)
        return self.controller


runner = CliRunner()


def _use(monkeypatch, controller: FakeController | None = None, devices=None) -> FakeController:
    controller = controller or FakeController()
    monkeypatch.setattr(FakeService, "controller", controller)
    if devices is not None:
        monkeypatch.setattr(FakeService, "devices", devices)
    monkeypatch.setattr(cli, "BudsService", FakeService)
    return controller


def test_devices_command_marks_remembered(monkeypatch):
    _use(monkeypatch)
    result = runner.invoke(cli.app, ["devices"])
    assert result.exit_code == 0
    assert "  AA:BB:CC:00:11:22 Galaxy Buds Live" in result.stdout
    assert "* AA:BB:CC:33:44:55 Galaxy Buds Pro" in result.stdout


def test_devices_command_without_buds(monkeypatch):
    _use(monkeypatch, devices=[])
    result = runner.invoke(cli.app, ["devices"])
    assert result.exit_code == 0
    assert "No Galaxy Buds found" in result.stdout


def test_status_command_prints_status(monkeypatch):
    _use(monkeypatch)
    result = runner.invoke(cli.app, ["status", "--seconds", "0.5"])
    assert result.exit_code == 0
    assert "Connected to Galaxy Buds Live (AA:BB:CC:00:11:22)" in result.stdout
    assert "Battery: L 90% / R 80% | Case: 50% | Noise control: N/A" in result.stdout


def test_status_command_reports_connect_failure(monkeypatch):
    _use(monkeypatch, FakeController(connect_error="Connection failed: Page Timeout"))
    result = runner.invoke(cli.app, ["status"])
    assert result.exit_code == 1


def test_find_command_starts_and_stops(monkeypatch):
    controller = _use(monkeypatch)
    result = runner.invoke(cli.app, ["find", "--seconds", "0.1"])
    assert result.exit_code == 0
    assert "Ringing Galaxy Buds Live (AA:BB:CC:00:11:22)" in result.stdout
    assert "Stopped" in result.stdout
    assert SendCommand(Find(active=True)) in controller.sent
    assert controller.sent[-1] == SendCommand(Find(active=False))


def test_noise_command_sets_mode(monkeypatch):
    controller = _use(monkeypatch)
    result = runner.invoke(cli.app, ["noise", "ambient", "--device", "live"])
    assert result.exit_code == 0
    assert "Noise control set to Ambient Sound" in result.stdout
    assert SendCommand(SetNoiseControls(NoiseControlMode.AMBIENT_SOUND)) in controller.sent


def test_noise_command_rejects_unknown_mode(monkeypatch):
    controller = _use(monkeypatch)
    result = runner.invoke(cli.app, ["noise", "loud"])
    assert result.exit_code == 1
    assert controller.sent == []


def test_selection_error_exits_cleanly(monkeypatch):
    class FailingService(FakeService):
        def start_worker(self, *, device_hint=None):
            raise DeviceSelectionError("No device found matching 'buds9'")

    monkeypatch.setattr(cli, "BudsService", FailingService)
    result = runner.invoke(cli.app, ["status", "--device", "buds9"])
    assert result.exit_code == 1
