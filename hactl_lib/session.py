"""
hactl Session

Responsibilities:
- Own the WebSocket lifecycle (and the aiohttp ClientSession when none is supplied).
- Perform the auth handshake right after connect.
- Provide send_json()/recv_json() primitives: one JSON object per text frame.

Non-responsibilities (explicit):
- Request ids and reply correlation (belongs to HactlClient).
- Event subscription and filtering.
- Retry/backoff policy.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit

import aiohttp

from .const import (
    MSG_AUTH,
    MSG_AUTH_INVALID,
    MSG_AUTH_OK,
    MSG_AUTH_REQUIRED,
    WEBSOCKET_PATH,
)
from .errors import (
    HactlAuthError,
    HactlConnectionError,
    HactlNotReadyError,
    HactlParseError,
    HactlSessionClosedError,
    HactlTimeoutError,
    HactlTransportError,
)
from .redact import redact_for_diagnostics

logger = logging.getLogger(__name__)

_CLOSED_TYPES = (
    aiohttp.WSMsgType.CLOSE,
    aiohttp.WSMsgType.CLOSING,
    aiohttp.WSMsgType.CLOSED,
)


@dataclass(frozen=True)
class SessionConfig:
    url: str
    token: str
    connect_timeout_s: float = 10.0
    auth_timeout_s: float = 10.0       # per handshake frame
    verify_ssl: bool = True
    wire_log: bool = False            # debug-log every frame (token redacted)


class SessionState(str, Enum):
    """Connection lifecycle states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTH = "auth"
    ACTIVE = "active"


def to_ws_url(base_url: str) -> str:
    """Map an http(s) base URL to the WebSocket API endpoint."""
    url = base_url.strip()
    if "://" not in url:
        url = f"http://{url}"
    parts = urlsplit(url)
    scheme = "wss" if parts.scheme in ("https", "wss") else "ws"
    path = parts.path.rstrip("/")
    if not path.endswith(WEBSOCKET_PATH):
        path = f"{path}{WEBSOCKET_PATH}"
    return urlunsplit((scheme, parts.netloc, path, parts.query, ""))


def decode_frame(payload: str) -> dict[str, Any]:
    """Decode one frame; anything but a JSON object is a parse error."""
    try:
        obj = json.loads(payload)
    except ValueError as e:
        raise HactlParseError(f"Received invalid JSON frame: {e}") from e
    if not isinstance(obj, dict):
        raise HactlParseError(
            f"Expected a JSON object but received {type(obj).__name__}."
        )
    return obj


class Session:
    """
    One authenticated Home Assistant WebSocket connection.

    Typical usage:
        s = Session(SessionConfig(url="http://ha.local:8123", token="..."))
        await s.connect()            # dials and authenticates
        await s.send_json({...})
        obj = await s.recv_json()
        await s.close()
    """

    def __init__(
        self,
        cfg: SessionConfig,
        *,
        http_session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.cfg = cfg
        self._http = http_session
        self._owns_http = http_session is None
        self.ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self.state: SessionState = SessionState.DISCONNECTED
        self.last_error: BaseException | None = None
        self.ha_version: Optional[str] = None

    @property
    def url(self) -> str:
        return to_ws_url(self.cfg.url)

    @property
    def closed(self) -> bool:
        return self.ws is None or self.ws.closed

    # --------------------------
    # Connection lifecycle
    # --------------------------

    async def connect(self) -> None:
        """
        Dial the WebSocket endpoint and complete the auth handshake.

        The connection is released on every failing path before the error
        reaches the caller.
        """
        if self.state is not SessionState.DISCONNECTED:
            await self.close()

        self.last_error = None
        self.state = SessionState.CONNECTING
        url = self.url
        logger.info("hactl session connecting to %s", url)
        try:
            self.ws = await self._dial(url)
            self.state = SessionState.AUTH
            await self._authenticate()
        except BaseException as e:
            self.last_error = e
            await self.close()
            raise

        self.state = SessionState.ACTIVE
        logger.info(
            "hactl session authenticated (ha_version=%s)", self.ha_version or "unknown"
        )

    async def close(self) -> None:
        """
        Close the WebSocket and any ClientSession this object created.
        Safe to call multiple times, and from another task while a read is pending.
        """
        ws, self.ws = self.ws, None
        http = self._http if self._owns_http else None
        if self._owns_http:
            self._http = None
        self.state = SessionState.DISCONNECTED

        if ws is not None and not ws.closed:
            try:
                await ws.close()
            except (aiohttp.ClientError, OSError) as e:
                logger.debug("Ignoring error while closing WebSocket: %s", e)
        if http is not None and not http.closed:
            await http.close()

    async def _dial(self, url: str) -> aiohttp.ClientWebSocketResponse:
        try:
            return await asyncio.wait_for(
                self._open_ws(url), timeout=self.cfg.connect_timeout_s
            )
        except asyncio.TimeoutError as e:
            raise HactlConnectionError(
                f"WebSocket connection to {url} timed out after {self.cfg.connect_timeout_s}s"
            ) from e
        except (aiohttp.ClientError, OSError) as e:
            raise HactlConnectionError(f"WebSocket connection to {url} failed: {e}") from e

    async def _open_ws(self, url: str) -> aiohttp.ClientWebSocketResponse:
        """
        Open the raw WebSocket.
        Kept as a method so tests can monkeypatch it.
        """
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession()
            self._owns_http = True
        return await self._http.ws_connect(url, heartbeat=None, ssl=self.cfg.verify_ssl)

    async def _authenticate(self) -> None:
        # Step 1: the server speaks first
        msg = await self.recv_json(timeout_s=self.cfg.auth_timeout_s)
        msg_type = msg.get("type")
        if msg_type != MSG_AUTH_REQUIRED:
            raise HactlAuthError(f"expected {MSG_AUTH_REQUIRED}, got: {msg_type!r}")
        self.ha_version = msg.get("ha_version")

        # Step 2: send the token
        await self.send_json({"type": MSG_AUTH, "access_token": self.cfg.token})

        # Step 3: terminal verdict
        msg = await self.recv_json(timeout_s=self.cfg.auth_timeout_s)
        msg_type = msg.get("type")
        if msg_type == MSG_AUTH_INVALID:
            await self.close()
            reason = msg.get("message") or "invalid token"
            raise HactlAuthError(f"websocket authentication failed: {reason}")
        if msg_type != MSG_AUTH_OK:
            raise HactlAuthError(f"unexpected auth response: {msg_type!r}")
        self.ha_version = msg.get("ha_version") or self.ha_version

    # --------------------------
    # Public send/recv API
    # --------------------------

    def _require_open(self) -> aiohttp.ClientWebSocketResponse:
        if self.ws is None or self.state is SessionState.DISCONNECTED:
            raise HactlNotReadyError("Session is not connected (call connect() first).")
        return self.ws

    async def send_json(self, obj: dict[str, Any]) -> None:
        """Serialize obj and write it as one text frame."""
        ws = self._require_open()
        if ws.closed:
            raise HactlSessionClosedError("Cannot write: connection is closed.")
        payload = json.dumps(obj, separators=(",", ":"), ensure_ascii=False)
        if self.cfg.wire_log and logger.isEnabledFor(logging.DEBUG):
            logger.debug("TX %s", json.dumps(redact_for_diagnostics(obj)))
        try:
            await ws.send_str(payload)
        except (aiohttp.ClientError, OSError) as e:
            raise HactlTransportError(f"WebSocket write failed: {e}") from e

    async def recv_json(self, *, timeout_s: Optional[float] = None) -> dict[str, Any]:
        """
        Block for the next data frame and return it as a dict.

        Raises HactlParseError for a frame that is not a JSON object; the
        session stays usable in that case.
        """
        ws = self._require_open()
        while True:
            try:
                msg = await ws.receive(timeout=timeout_s)
            except asyncio.TimeoutError as e:
                raise HactlTimeoutError(
                    f"Timed out after {timeout_s}s waiting for a frame."
                ) from e
            except (aiohttp.ClientError, OSError) as e:
                raise HactlTransportError(f"WebSocket read failed: {e}") from e

            if msg.type == aiohttp.WSMsgType.TEXT:
                payload = msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                try:
                    payload = msg.data.decode("utf-8")
                except UnicodeDecodeError as e:
                    raise HactlParseError(f"Received a non UTF-8 binary frame: {e}") from e
            elif msg.type in _CLOSED_TYPES:
                raise HactlSessionClosedError("Connection closed.")
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise HactlTransportError(f"WebSocket read failed: {msg.data}")
            else:
                # ping/pong are answered by aiohttp
                continue

            if self.cfg.wire_log and logger.isEnabledFor(logging.DEBUG):
                logger.debug("RX %s", payload)
            return decode_frame(payload)
