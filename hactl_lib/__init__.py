"""Async client library for the Home Assistant WebSocket API used by hactl."""

from __future__ import annotations

from .client import HactlClient, Response
from .config import HactlConfig, config_from_env, config_from_mapping
from .errors import (
    CacheCorruptError,
    CacheError,
    CacheMissingError,
    HactlApplicationError,
    HactlAuthError,
    HactlConfigError,
    HactlConnectionError,
    HactlError,
    HactlInvalidArgument,
    HactlNotReadyError,
    HactlParseError,
    HactlProtocolError,
    HactlSessionClosedError,
    HactlTimeoutError,
    HactlTransportError,
)
from .events import EventFilter, HaEvent
from .filter import CachePaths, EntityFilter
from .hub import HactlHub, SyncResult
from .redact import redact_for_diagnostics
from .registry import RegistryResolver, async_resolve_registry
from .session import Session, SessionConfig, SessionState
from .types import (
    AreaEntry,
    ClientConfig,
    DeviceRegistryEntry,
    EntityRegistryEntry,
    FilterMode,
    ResolvedRegistry,
)

__version__ = "0.3.0"

__all__ = [
    "AreaEntry",
    "CacheCorruptError",
    "CacheError",
    "CacheMissingError",
    "CachePaths",
    "ClientConfig",
    "DeviceRegistryEntry",
    "EntityFilter",
    "EntityRegistryEntry",
    "EventFilter",
    "FilterMode",
    "HaEvent",
    "HactlApplicationError",
    "HactlAuthError",
    "HactlClient",
    "HactlConfig",
    "HactlConfigError",
    "HactlConnectionError",
    "HactlError",
    "HactlHub",
    "HactlInvalidArgument",
    "HactlNotReadyError",
    "HactlParseError",
    "HactlProtocolError",
    "HactlSessionClosedError",
    "HactlTimeoutError",
    "HactlTransportError",
    "RegistryResolver",
    "ResolvedRegistry",
    "Response",
    "Session",
    "SessionConfig",
    "SessionState",
    "SyncResult",
    "async_resolve_registry",
    "config_from_env",
    "config_from_mapping",
    "redact_for_diagnostics",
]
