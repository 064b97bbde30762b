from __future__ import annotations

from pydantic import BaseModel, Field


class Device(BaseModel):
    """A configured device. Identity is fixed for the session."""

    model_config = {"frozen": True, "extra": "forbid"}

    name: str
    address: str
    generation: int = Field(default=0, ge=0)
    push: bool | None = None
    notes: str | None = None

    @property
    def supports_push(self) -> bool:
        if self.push is not None:
            return self.push
        return self.generation != 1


class DeviceRegistry(BaseModel):
    model_config = {"extra": "forbid"}

    devices: dict[str, Device] = Field(default_factory=dict)


class DiscoveredDevice(BaseModel):
    model_config = {"extra": "forbid"}

    name: str
    address: str
    model: str = ""
    generation: int = 0
    mac_address: str = ""
    port: int = 80
