"""
hactl_lib/errors.py

Typed exceptions for the public client surface.

Rules:
- Every error raised by the library derives from HactlError.
- Low-level causes (aiohttp, OSError, json) are chained with ``raise ... from``.
- Nothing here retries; callers decide what is recoverable.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional


class HactlError(Exception):
    """Base exception for hactl_lib failures."""


class HactlConnectionError(HactlError):
    """Dialing the Home Assistant WebSocket endpoint failed."""


class HactlTransportError(HactlError):
    """Reading or writing a frame on an open session failed."""


class HactlSessionClosedError(HactlTransportError):
    """The connection was closed while a frame was expected."""


class HactlTimeoutError(HactlTransportError):
    """No frame arrived within the configured timeout."""


class HactlAuthError(HactlError):
    """The server rejected the token or broke the auth handshake."""


class HactlProtocolError(HactlError):
    """A frame violated the protocol (unexpected type, id mismatch, missing fields)."""


class HactlParseError(HactlProtocolError):
    """A frame could not be decoded as a JSON object."""


class HactlNotReadyError(HactlError):
    """A command was issued on a client that cannot accept commands."""


class HactlInvalidArgument(HactlError, ValueError):
    """A command generator received invalid arguments."""


class HactlConfigError(HactlError):
    """Configuration failed validation or does not permit the operation."""


class HactlApplicationError(HactlError):
    """
    The server answered a command with ``success: false``.

    ``message`` is the server-supplied text, verbatim.
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        command_type: Optional[str] = None,
        error: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.command_type = command_type
        self.error = dict(error) if error else {}


class CacheError(HactlError):
    """Base exception for filter cache failures."""


class CacheMissingError(CacheError):
    """The exposed-entities cache does not exist yet."""


class CacheCorruptError(CacheError):
    """The exposed-entities cache exists but cannot be parsed."""


__all__ = [
    "CacheCorruptError",
    "CacheError",
    "CacheMissingError",
    "HactlApplicationError",
    "HactlAuthError",
    "HactlConfigError",
    "HactlConnectionError",
    "HactlError",
    "HactlInvalidArgument",
    "HactlNotReadyError",
    "HactlParseError",
    "HactlProtocolError",
    "HactlSessionClosedError",
    "HactlTimeoutError",
    "HactlTransportError",
]
