"""
Client facade for the Home Assistant WebSocket API.

This wraps Session with:
- sequential request ids and strict one-reply-per-command correlation
- decoded Response objects with typed application errors
- the event stream (subscribe once, then filtered async iteration)
- registry helpers used by the resolver and the hub
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Mapping, Optional

from .errors import (
    HactlApplicationError,
    HactlInvalidArgument,
    HactlNotReadyError,
    HactlParseError,
    HactlProtocolError,
    HactlSessionClosedError,
    HactlTransportError,
)
from .events import EventPredicate, HaEvent, parse_event
from .generators.registry import COMMANDS
from .session import Session, SessionState
from .types import AreaEntry, ClientConfig


@dataclass(frozen=True, slots=True)
class Response:
    """A decoded reply envelope: ``{id, success, result | error}``."""

    id: int
    success: bool
    result: Any = None
    error: Optional[Mapping[str, Any]] = None
    command_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.success

    @property
    def error_message(self) -> str:
        if isinstance(self.error, Mapping):
            message = self.error.get("message")
            if isinstance(message, str) and message:
                return message
        return "unknown error"

    @property
    def error_code(self) -> Optional[str]:
        if not isinstance(self.error, Mapping):
            return None
        code = self.error.get("code")
        return str(code) if code is not None else None

    def unwrap(self) -> Any:
        if self.success:
            return self.result
        raise HactlApplicationError(
            self.error_message,
            code=self.error_code,
            command_type=self.command_type,
            error=self.error,
        )

    @classmethod
    def from_frame(
        cls,
        frame: Mapping[str, Any],
        *,
        expected_id: int,
        command_type: Optional[str] = None,
    ) -> "Response":
        msg_id = frame.get("id")
        if not isinstance(msg_id, int) or isinstance(msg_id, bool):
            raise HactlProtocolError(
                f"Expected a reply to id={expected_id}, got a frame without id (type={frame.get('type')!r})."
            )
        if msg_id != expected_id:
            raise HactlProtocolError(
                f"Reply id={msg_id} does not match request id={expected_id}; session out of sync."
            )
        success = frame.get("success")
        if not isinstance(success, bool):
            raise HactlProtocolError(f"Reply id={msg_id} has no boolean 'success' field.")
        error = frame.get("error")
        return cls(
            id=msg_id,
            success=success,
            result=frame.get("result"),
            error=dict(error) if isinstance(error, Mapping) else None,
            command_type=command_type,
        )


class HactlClient:
    """
    Command/response client over one Session.

    Commands are strictly sequential: each call writes one envelope and then
    blocks for exactly one reply. The reply id is checked against the sent id
    to detect desync; it is never used for dispatch, so pipelining commands
    would need an id->future table and a dedicated reader task.

    After async_subscribe_events() succeeds the connection belongs to the
    event stream and further commands are refused.
    """

    def __init__(
        self,
        session: Session,
        config: ClientConfig | None = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config = config or ClientConfig()
        if logger is None and self._config.logger_name:
            logger = logging.getLogger(self._config.logger_name)
        self._log = logger or logging.getLogger(__name__)
        self._session = session
        self._msg_id = 0
        self._inflight_id: Optional[int] = None
        self._subscribed = False
        self._stopping = False
        self._close_task: Optional[asyncio.Task[None]] = None

    @property
    def session(self) -> Session:
        return self._session

    @property
    def ready(self) -> bool:
        return self._session.state is SessionState.ACTIVE

    @property
    def subscribed(self) -> bool:
        return self._subscribed

    @property
    def stopping(self) -> bool:
        return self._stopping

    # --- lifecycle ---

    async def async_connect(self) -> None:
        """Connect and authenticate the underlying session."""
        self._subscribed = False
        self._stopping = False
        await self._session.connect()

    async def async_disconnect(self) -> None:
        """Close the session. Safe to call multiple times."""
        close_task, self._close_task = self._close_task, None
        if close_task is not None:
            await close_task
        await self._session.close()
        self._subscribed = False

    async def __aenter__(self) -> "HactlClient":
        await self.async_connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.async_disconnect()

    # --- command/response channel ---

    def _next_id(self) -> int:
        # ids are consumed even when the call fails; never reused
        self._msg_id += 1
        return self._msg_id

    def _require_command_ready(self) -> None:
        if self._session.state is not SessionState.ACTIVE:
            raise HactlNotReadyError("Client is not connected (call async_connect() first).")
        if self._subscribed:
            raise HactlNotReadyError("Commands cannot be issued on a subscribed connection.")
        if self._inflight_id is not None:
            raise HactlProtocolError(
                f"Command id={self._inflight_id} is still awaiting its reply."
            )

    async def async_call(self, command_type: str, /, **fields: Any) -> Response:
        """
        Send one command envelope and block for its reply.

        Transport failures raise HactlTransportError; malformed or mismatched
        replies raise HactlProtocolError. ``success: false`` is returned as a
        Response; use Response.unwrap() to turn it into HactlApplicationError.
        """
        self._require_command_ready()
        msg_id = self._next_id()
        msg = {**fields, "id": msg_id, "type": command_type}

        self._inflight_id = msg_id
        try:
            await self._session.send_json(msg)
            frame = await self._session.recv_json(timeout_s=self._config.request_timeout_s)
        finally:
            self._inflight_id = None

        response = Response.from_frame(frame, expected_id=msg_id, command_type=command_type)
        if not response.ok:
            self._log.debug(
                "Command %s (id=%s) failed: %s", command_type, msg_id, response.error_message
            )
        return response

    async def async_request(self, command_key: str, /, **params: Any) -> Response:
        """Build a registered command and send it; the Response is not unwrapped."""
        spec = COMMANDS.get(command_key)
        if spec is None:
            raise HactlInvalidArgument(f"Unknown command_key={command_key!r}")
        try:
            payload, command_type = spec.build(**params)
        except TypeError as e:
            raise HactlInvalidArgument(f"Invalid arguments for {command_key}: {e}") from e
        return await self.async_call(command_type, **payload)

    async def async_execute(self, command_key: str, /, **params: Any) -> Any:
        """Send a registered command and return its result, raising on failure."""
        response = await self.async_request(command_key, **params)
        return response.unwrap()

    # --- registry helpers ---

    async def async_fetch_areas(self) -> list[AreaEntry]:
        rows = await self.async_execute("area_registry_list")
        if not isinstance(rows, list):
            raise HactlProtocolError("Area registry result is not a list.")
        areas: list[AreaEntry] = []
        for row in rows:
            try:
                areas.append(AreaEntry.from_json(row))
            except ValueError as e:
                self._log.debug("Skipping area registry entry: %s", e)
        return areas

    async def async_update_entity(
        self,
        entity_id: str,
        *,
        should_expose: Optional[bool] = None,
        name: Optional[str] = None,
    ) -> Any:
        return await self.async_execute(
            "entity_registry_update",
            entity_id=entity_id,
            should_expose=should_expose,
            name=name,
        )

    # --- event stream ---

    async def async_subscribe_events(self, event_type: Optional[str] = None) -> Response:
        """
        Subscribe to the event bus and consume the acknowledgement.

        An unsuccessful acknowledgement raises HactlApplicationError.
        """
        ack = await self.async_request("subscribe_events", event_type=event_type)
        ack.unwrap()
        self._subscribed = True
        self._stopping = False
        self._log.debug("Subscribed to %s events (id=%s)", event_type or "all", ack.id)
        return ack

    def request_stop(self) -> None:
        """
        Ask a running event stream to end.

        Marks the stream as stopping and schedules a close of the transport,
        which is what unblocks a pending read. Must be called from the event
        loop thread, e.g. from a handler installed with loop.add_signal_handler().
        """
        if self._stopping:
            return
        self._stopping = True
        self._close_task = asyncio.get_running_loop().create_task(self._session.close())

    async def iter_events(
        self, predicate: Optional[EventPredicate] = None
    ) -> AsyncIterator[HaEvent]:
        """
        Yield events until the connection closes or request_stop() is called.

        Malformed frames and frames that are not events are skipped; one bad
        frame never ends the stream.
        """
        if not self._subscribed:
            raise HactlNotReadyError("Call async_subscribe_events() before iterating events.")

        while not self._stopping:
            try:
                frame = await self._session.recv_json()
            except HactlParseError as e:
                self._log.debug("Skipping malformed frame: %s", e)
                continue
            except HactlNotReadyError:
                break
            except HactlTransportError as e:
                if not self._stopping and not isinstance(e, HactlSessionClosedError):
                    self._log.info("Event stream ended: %s", e)
                break

            event = parse_event(frame)
            if event is None:
                self._log.debug(
                    "Skipping non-event frame (type=%r, id=%r)", frame.get("type"), frame.get("id")
                )
                continue
            if predicate is not None and not predicate(event):
                continue
            yield event


__all__ = ["HactlClient", "Response"]
