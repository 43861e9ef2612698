from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from galaxybuds.core.errors import SettingsValidationError
from galaxybuds.core.settings import Settings, SettingsStore, settings_dir


def _write_settings(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture
def config_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    return tmp_path / "cfg"


def test_settings_path_follows_xdg(config_home: Path) -> None:
    assert settings_dir() == config_home / "galaxybuds"
    assert SettingsStore().path == config_home / "galaxybuds" / "settings.yaml"


def test_missing_file_yields_defaults(config_home: Path) -> None:
    assert SettingsStore().load() == Settings()


def test_empty_file_yields_defaults(config_home: Path) -> None:
    _write_settings(config_home / "galaxybuds" / "settings.yaml", "")
    assert SettingsStore().load() == Settings()


def test_load_valid_settings(config_home: Path) -> None:
    _write_settings(
        config_home / "galaxybuds" / "settings.yaml",
        """
last_device_address: "AA:BB:CC:00:11:22"
auto_connect: false
request_timeout_s: 15
""",
    )
    settings = SettingsStore().load()
    assert settings == Settings(last_device_address="AA:BB:CC:00:11:22", auto_connect=False, request_timeout_s=15.0)


@pytest.mark.parametrize(
    "content",
    [
        'last_device_address: "not-a-mac"\n',
        "auto_connect: sometimes\n",
        "request_timeout_s: 0\n",
        "unexpected_key: 1\n",
        "- just\n- a list\n",
    ],
)
def test_invalid_settings_rejected(config_home: Path, content: str) -> None:
    _write_settings(config_home / "galaxybuds" / "settings.yaml", content)
    with pytest.raises(SettingsValidationError):
        SettingsStore().load()


def test_duplicate_yaml_keys_rejected(config_home: Path) -> None:
    _write_settings(
        config_home / "galaxybuds" / "settings.yaml",
        """
auto_connect: true
auto_connect: false
""",
    )
    with pytest.raises(SettingsValidationError):
        SettingsStore().load()


def test_save_creates_directory_and_round_trips(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "nested" / "settings.yaml")
    settings = Settings(last_device_address="AA:BB:CC:00:11:22", request_timeout_s=2.5)
    store.save(settings)

    assert store.load() == settings
    doc = yaml.safe_load(store.path.read_text(encoding="utf-8"))
    assert doc["auto_connect"] is True


def test_save_rejects_invalid_settings(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.yaml")
    with pytest.raises(SettingsValidationError):
        store.save(Settings(last_device_address="bogus"))
    assert not store.path.exists()


def test_remember_device_writes_only_on_change(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.yaml")
    updated = store.remember_device("AA:BB:CC:00:11:22")
    assert updated.last_device_address == "AA:BB:CC:00:11:22"
    assert store.load() == updated

    saved: list[Settings] = []
    monkeypatch.setattr(store, "save", saved.append)
    assert store.remember_device("AA:BB:CC:00:11:22") == updated
    assert saved == []

    store.remember_device("AA:BB:CC:33:44:55")
    assert saved == [Settings(last_device_address="AA:BB:CC:33:44:55")]
