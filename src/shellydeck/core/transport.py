"""Device transport: HTTP polling and WebSocket push over aiohttp.

Gen2+ devices speak JSON-RPC (``GET /rpc/<Method>`` and ``ws://<addr>/rpc``),
Gen1 devices only offer a REST-style HTTP API and never push.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import uuid
from collections.abc import AsyncGenerator
from typing import Any, Protocol

import aiohttp

from .events import FullStatus, Offline, Online, PushEvent, parse_notification

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 10.0
WS_HEARTBEAT = 30.0

COMMANDS = ("toggle", "on", "off")


class TransportError(Exception):
    """A device could not be reached or answered unexpectedly."""


class TransportTimeout(TransportError):
    """The device did not answer in time."""


class ConnectionFailed(TransportError):
    """The connection was refused, reset or dropped."""


class ProtocolError(TransportError):
    """The device answered with something we cannot parse."""


def is_connectivity_failure(exc: BaseException) -> bool:
    """True when ``exc`` means the device is unreachable, not merely unhappy."""
    if isinstance(exc, ProtocolError):
        return False
    return isinstance(exc, (TransportTimeout, ConnectionFailed, asyncio.TimeoutError))


class Transport(Protocol):
    async def fetch_info(self, address: str) -> dict[str, Any]: ...

    async def fetch_status(self, address: str, generation: int) -> dict[str, Any]: ...

    async def fetch_config(self, address: str, generation: int) -> dict[str, Any]: ...

    def subscribe(self, address: str) -> AsyncGenerator[PushEvent, None]: ...

    async def call(
        self, address: str, generation: int, command: str, component: str, component_id: int
    ) -> None: ...

    async def close(self) -> None: ...


def _base_url(address: str) -> str:
    if address.startswith(("http://", "https://")):
        return address.rstrip("/")
    return f"http://{address}"


def _ws_url(address: str) -> str:
    base = _base_url(address)
    return base.replace("http://", "ws://").replace("https://", "wss://") + "/rpc"


class HttpTransport:
    """aiohttp implementation of :class:`Transport`.

    The session is created lazily so the transport can be built outside a
    running event loop.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._request_timeout = request_timeout
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._client_id = f"shellydeck-{uuid.uuid4().hex[:8]}"
        self._ids = itertools.count(1)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get_json(
        self, address: str, path: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        url = f"{_base_url(address)}{path}"
        session = self._get_session()
        try:
            async with session.get(url, params=params, timeout=self._timeout) as response:
                if response.status >= 400:
                    raise ProtocolError(f"{url} returned HTTP {response.status}")
                text = await response.text()
        except asyncio.TimeoutError:
            raise TransportTimeout(f"Timed out requesting {url}") from None
        except aiohttp.ClientConnectionError as exc:
            raise ConnectionFailed(f"Cannot connect to {address}: {exc}") from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc

        try:
            data = json.loads(text) if text else {}
        except json.JSONDecodeError as exc:
            raise ProtocolError(f"Malformed JSON from {url}: {exc}") from exc
        if not isinstance(data, dict):
            raise ProtocolError(f"Unexpected payload from {url}: {type(data).__name__}")
        return data

    async def fetch_info(self, address: str) -> dict[str, Any]:
        return await self._get_json(address, "/shelly")

    async def fetch_status(self, address: str, generation: int) -> dict[str, Any]:
        if generation == 1:
            return await self._get_json(address, "/status")
        return await self._get_json(address, "/rpc/Shelly.GetStatus")

    async def fetch_config(self, address: str, generation: int) -> dict[str, Any]:
        if generation == 1:
            return await self._get_json(address, "/settings")
        return await self._get_json(address, "/rpc/Shelly.GetConfig")

    async def call(
        self, address: str, generation: int, command: str, component: str, component_id: int
    ) -> None:
        if command == "reboot":
            path = "/reboot" if generation == 1 else "/rpc/Shelly.Reboot"
            await self._get_json(address, path)
            return
        if command not in COMMANDS:
            raise ValueError(f"Unknown command: {command}")

        if generation == 1:
            gen1_component = "relay" if component == "switch" else component
            await self._get_json(
                address, f"/{gen1_component}/{component_id}", {"turn": command}
            )
            return

        rpc_component = component.capitalize()
        if command == "toggle":
            await self._get_json(
                address, f"/rpc/{rpc_component}.Toggle", {"id": component_id}
            )
        else:
            on = "true" if command == "on" else "false"
            await self._get_json(
                address, f"/rpc/{rpc_component}.Set", {"id": component_id, "on": on}
            )

    async def subscribe(self, address: str) -> AsyncGenerator[PushEvent, None]:
        """Yield push events until the connection closes.

        The first frame sent is a ``Shelly.GetStatus`` request: devices only
        start notifying a client after one request with a valid ``src``, and the
        response doubles as the initial :class:`FullStatus`.
        """
        url = _ws_url(address)
        session = self._get_session()
        request_id = next(self._ids)
        try:
            ws = await asyncio.wait_for(
                session.ws_connect(url, heartbeat=WS_HEARTBEAT), self._request_timeout
            )
        except asyncio.TimeoutError:
            raise TransportTimeout(f"Timed out connecting to {url}") from None
        except aiohttp.ClientError as exc:
            raise ConnectionFailed(f"Cannot open websocket {url}: {exc}") from exc

        try:
            await ws.send_json(
                {"id": request_id, "src": self._client_id, "method": "Shelly.GetStatus"}
            )
            yield Online()
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.ERROR:
                    raise ConnectionFailed(f"Websocket error from {address}: {ws.exception()}")
                if msg.type != aiohttp.WSMsgType.TEXT:
                    continue
                try:
                    frame = json.loads(msg.data)
                except json.JSONDecodeError:
                    logger.debug("Dropping malformed frame from %s", address)
                    continue
                if not isinstance(frame, dict):
                    continue
                if frame.get("id") == request_id and isinstance(frame.get("result"), dict):
                    yield FullStatus(payload=frame["result"])
                    continue
                for event in parse_notification(frame):
                    yield event
            yield Offline(reason="connection closed")
        except (aiohttp.ClientError, OSError) as exc:
            raise ConnectionFailed(f"Websocket to {address} failed: {exc}") from exc
        finally:
            await ws.close()
