from __future__ import annotations

import json
import tomllib
from pathlib import Path

from pydantic import ValidationError

from shellydeck.models import Device, DeviceRegistry

DEVICES_FILE = "devices.toml"


def _toml_string(value: str) -> str:
    return json.dumps(value)


def _render_devices_toml(registry: DeviceRegistry) -> str:
    lines = [
        "# shellydeck device registry",
        "# name = { address = ..., generation = ..., push = ..., notes = ... }",
        "",
        "[devices]",
    ]

    for name, device in sorted(registry.devices.items()):
        fields = [f"address = {_toml_string(device.address)}"]
        if device.generation:
            fields.append(f"generation = {device.generation}")
        if device.push is not None:
            fields.append(f"push = {'true' if device.push else 'false'}")
        if device.notes:
            fields.append(f"notes = {_toml_string(device.notes)}")
        lines.append(f"{_toml_string(name)} = {{ {', '.join(fields)} }}")

    lines.append("")
    return "\n".join(lines)


class Database:
    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._devices_path = data_dir / DEVICES_FILE

    @property
    def path(self) -> Path:
        return self._data_dir

    @property
    def devices_path(self) -> Path:
        return self._devices_path

    def ensure_dirs(self) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def load_devices(self) -> DeviceRegistry:
        if not self._devices_path.exists():
            return DeviceRegistry()

        try:
            with self._devices_path.open("rb") as handle:
                data = tomllib.load(handle) or {}
        except tomllib.TOMLDecodeError as exc:
            raise ValueError(
                f"Invalid TOML in devices file: {self._devices_path}\n{exc}"
            ) from exc

        entries = data.get("devices", {})
        if not isinstance(entries, dict):
            raise ValueError(f"Invalid devices file: {self._devices_path}\n[devices] must be a table")

        try:
            devices = {
                name: Device.model_validate({"name": name, **fields})
                for name, fields in entries.items()
            }
            return DeviceRegistry(devices=devices)
        except (ValidationError, TypeError) as exc:
            raise ValueError(
                f"Invalid devices file: {self._devices_path}\n{exc}"
            ) from exc

    def save_devices(self, registry: DeviceRegistry) -> None:
        self.ensure_dirs()
        self._devices_path.write_text(_render_devices_toml(registry))

    def add_device(
        self,
        name: str,
        address: str,
        generation: int = 0,
        push: bool | None = None,
        notes: str | None = None,
    ) -> Device:
        registry = self.load_devices()
        device = Device(
            name=name, address=address, generation=generation, push=push, notes=notes
        )
        registry.devices[name] = device
        self.save_devices(registry)
        return device

    def remove_device(self, name: str) -> bool:
        registry = self.load_devices()
        if name in registry.devices:
            del registry.devices[name]
            self.save_devices(registry)
            return True
        return False

    def init(self) -> None:
        self.ensure_dirs()
        if not self._devices_path.exists():
            self.save_devices(DeviceRegistry())
