"""Settings loading and persistence for galaxybuds.

Settings live in ``$XDG_CONFIG_HOME/galaxybuds/settings.yaml`` and are
validated against the packaged JSON schema on every load and save.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, replace
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from galaxybuds.core.errors import SettingsError, SettingsValidationError

APP_ID = "galaxybuds"
SETTINGS_FILE = "settings.yaml"
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise SettingsValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class Settings:
    last_device_address: str | None = None
    auto_connect: bool = True
    request_timeout_s: float | None = None


def _load_schema_validator() -> Any:
    schema_text = resources.files("galaxybuds.schemas").joinpath("settings.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def settings_dir() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / APP_ID


def _validate(doc: dict[str, Any], source: Path) -> None:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise SettingsValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"Could not read settings file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise SettingsValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise SettingsValidationError(f"Settings file {path} must contain a mapping at root")
    return loaded


class SettingsStore:
    """Reads and writes the settings file."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or settings_dir() / SETTINGS_FILE

    def load(self) -> Settings:
        if not self.path.exists():
            return Settings()
        doc = _read_yaml(self.path)
        _validate(doc, self.path)
        timeout = doc.get("request_timeout_s")
        return Settings(
            last_device_address=doc.get("last_device_address"),
            auto_connect=doc.get("auto_connect", True),
            request_timeout_s=float(timeout) if timeout is not None else None,
        )

    def save(self, settings: Settings) -> None:
        doc = asdict(settings)
        _validate(doc, self.path)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(yaml.safe_dump(doc, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            raise SettingsError(f"Could not write settings file {self.path}: {exc}") from exc

    def remember_device(self, address: str) -> Settings:
        current = self.load()
        if current.last_device_address == address:
            return current
        updated = replace(current, last_device_address=address)
        self.save(updated)
        LOGGER.info("Remembered %s as last device", address)
        return updated
