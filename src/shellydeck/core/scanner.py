from __future__ import annotations

import asyncio
import logging
import string
import threading

from zeroconf import ServiceBrowser, ServiceInfo, ServiceListener, Zeroconf

from shellydeck.config import ScanningConfig
from shellydeck.models import DiscoveredDevice

logger = logging.getLogger(__name__)

MDNS_SERVICE_TYPE = "_shelly._tcp.local."


def _decode_txt_properties(properties: dict[bytes, bytes | None]) -> dict[str, str]:
    decoded: dict[str, str] = {}
    for key, value in properties.items():
        key_text = key.decode("utf-8", errors="replace")
        if value is None:
            value_text = ""
        elif isinstance(value, bytes):
            value_text = value.decode("utf-8", errors="replace")
        else:
            value_text = str(value)
        decoded[key_text] = value_text
    return decoded


def _normalize_mac(value: str) -> str:
    if not value:
        return ""
    cleaned = value.replace(":", "").replace("-", "").replace(".", "")
    if len(cleaned) == 12 and all(ch in string.hexdigits for ch in cleaned):
        pairs = [cleaned[i : i + 2] for i in range(0, 12, 2)]
        return ":".join(pair.upper() for pair in pairs)
    return value


def _mac_from_device_id(device_id: str) -> str:
    # Device ids look like "shellyplus1pm-a8032ab12345".
    _, _, suffix = device_id.rpartition("-")
    return _normalize_mac(suffix)


def _pick_ip(info: ServiceInfo) -> str | None:
    addresses = info.parsed_addresses()
    if not addresses:
        return None
    for address in addresses:
        if ":" not in address:
            return address
    return addresses[0]


def _strip_service_suffix(name: str) -> str:
    suffix = f".{MDNS_SERVICE_TYPE}"
    if name.endswith(suffix):
        return name[: -len(suffix)]
    return name.rstrip(".")


def _generation(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def _device_from_service_info(
    info: ServiceInfo, service_name: str
) -> DiscoveredDevice | None:
    ip = _pick_ip(info)
    if ip is None:
        return None

    properties = _decode_txt_properties(info.properties)
    name = _strip_service_suffix(service_name)
    device_id = properties.get("id", "") or name

    return DiscoveredDevice(
        name=name or ip,
        address=ip if info.port in (None, 80) else f"{ip}:{info.port}",
        model=properties.get("app") or properties.get("model") or "",
        generation=_generation(properties.get("gen", "")),
        mac_address=_normalize_mac(properties.get("mac", "")) or _mac_from_device_id(device_id),
        port=info.port or 80,
    )


class ShellyListener(ServiceListener):
    def __init__(self, info_timeout: float) -> None:
        self._info_timeout_ms = max(int(info_timeout * 1000), 1)
        self._lock = threading.Lock()
        self._found: dict[str, DiscoveredDevice] = {}

    def add_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        info = zc.get_service_info(type_, name, timeout=self._info_timeout_ms)
        if not info:
            return
        device = _device_from_service_info(info, name)
        if device is None:
            return
        with self._lock:
            self._found[name] = device
        logger.debug("Discovered device '%s' at %s via mDNS", device.name, device.address)

    def update_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        self.add_service(zc, type_, name)

    def remove_service(self, _zc: Zeroconf, _type_: str, name: str) -> None:
        with self._lock:
            self._found.pop(name, None)

    def devices(self) -> list[DiscoveredDevice]:
        with self._lock:
            return list(self._found.values())


async def scan_network(config: ScanningConfig) -> list[DiscoveredDevice]:
    logger.debug("Discovering Shelly devices via mDNS (timeout=%.2fs)", config.timeout)
    zeroconf = Zeroconf()
    listener = ShellyListener(config.timeout)
    ServiceBrowser(zeroconf, MDNS_SERVICE_TYPE, listener)
    try:
        await asyncio.sleep(config.timeout)
    finally:
        await asyncio.to_thread(zeroconf.close)

    devices = listener.devices()
    devices.sort(key=lambda device: (device.name, device.address))
    logger.debug("mDNS scan complete: found %d devices", len(devices))
    return devices
