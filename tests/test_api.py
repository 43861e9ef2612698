from __future__ import annotations

from galaxybuds.api import Client, Connect, DeviceDescriptor, Settings

LIVE = DeviceDescriptor(name="Galaxy Buds Live", address="AA:BB:CC:00:11:22")


class FakeController:
    def __init__(self) -> None:
        self.sent = []

    def send(self, msg) -> None:
        self.sent.append(msg)


class FakeService:
    def __init__(self) -> None:
        self.runtime_warnings = ("BlueZ is only available on Linux",)
        self.settings = Settings(last_device_address=LIVE.address)
        self.controller = FakeController()
        self.hints = []

    def list_devices(self):
        return [LIVE]

    def start_worker(self, *, device_hint=None):
        self.hints.append(device_hint)
        return self.controller


def test_public_client_lists_devices() -> None:
    client = Client(service=FakeService())
    assert client.list_devices() == [LIVE]
    assert client.settings.last_device_address == LIVE.address
    assert client.runtime_warnings == ("BlueZ is only available on Linux",)


def test_public_client_connect_sends_connect() -> None:
    service = FakeService()
    client = Client(service=service)

    controller = client.connect(device_hint="live")

    assert controller is service.controller
    assert service.hints == ["live"]
    assert controller.sent == [Connect()]


def test_public_names_resolve() -> None:
    import galaxybuds.api as api

    missing = [name for name in api.__all__ if not hasattr(api, name)]
    assert missing == []
