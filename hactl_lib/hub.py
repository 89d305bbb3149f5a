"""Hub: the per-invocation context for config, entity filter and client lifecycle."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
import contextlib
from dataclasses import dataclass
import functools
import logging
from pathlib import Path
import signal
from typing import Any

from .client import HactlClient, Response
from .config import HactlConfig
from .errors import HactlConfigError
from .events import EventFilter, HaEvent
from .filter import EntityFilter, write_filter_cache
from .registry import RegistryResolver
from .session import Session, SessionConfig
from .types import AreaEntry, FilterMode, ResolvedRegistry

_LOGGER = logging.getLogger(__name__)

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@dataclass(frozen=True, slots=True)
class SyncResult:
    registry: ResolvedRegistry
    exposed_path: Path
    areas_path: Path


class HactlHub:
    """
    Own everything one invocation needs.

    Constructed once and passed to each operation instead of module-level
    client/filter globals. Every operation opens its own session and closes
    it on all exit paths.
    """

    def __init__(
        self,
        config: HactlConfig,
        *,
        session_factory: Callable[[SessionConfig], Session] | None = None,
        wire_log: bool = False,
    ) -> None:
        """Initialize the hub."""
        self._config = config
        self._session_factory = session_factory or Session
        self._wire_log = wire_log
        self._entity_filter: EntityFilter | None = None
        self._client: HactlClient | None = None

    @property
    def config(self) -> HactlConfig:
        """Return the validated configuration."""
        return self._config

    @property
    def client(self) -> HactlClient | None:
        """Return the client of the operation in progress, if any."""
        return self._client

    @property
    def entity_filter(self) -> EntityFilter:
        """Return the entity filter, loading the caches on first use."""
        if self._entity_filter is None:
            return self.load_filter()
        return self._entity_filter

    def load_filter(self, *, skip_cache: bool = False) -> EntityFilter:
        """(Re)load the entity filter for the configured mode."""
        self._entity_filter = EntityFilter.load(
            self._config.filter_mode,
            self._config.cache_paths,
            skip_cache=skip_cache,
        )
        return self._entity_filter

    def create_client(self) -> HactlClient:
        """Build an unconnected client for the configured server."""
        session = self._session_factory(self._config.session_config(wire_log=self._wire_log))
        return HactlClient(session, self._config.client_config())

    @contextlib.asynccontextmanager
    async def connected(self) -> AsyncIterator[HactlClient]:
        """Yield a connected client; the session is closed on every exit path."""
        client = self.create_client()
        await client.async_connect()
        self._client = client
        try:
            yield client
        finally:
            self._client = None
            await client.async_disconnect()

    # --- operations ---

    async def async_sync(self) -> SyncResult:
        """Resolve the registries and replace both cache files."""
        async with self.connected() as client:
            registry = await RegistryResolver(client).async_resolve()
        paths = write_filter_cache(registry, self._config.cache_paths)
        self._entity_filter = EntityFilter.from_registry(self._config.filter_mode, registry)
        _LOGGER.info(
            "Synced %d exposed entities to %s and %d entity area mappings to %s",
            len(registry.exposed_ids),
            paths.exposed_path,
            len(registry.entity_area),
            paths.areas_path,
        )
        return SyncResult(
            registry=registry,
            exposed_path=paths.exposed_path,
            areas_path=paths.areas_path,
        )

    async def watch_events(
        self,
        *,
        event_type: str | None = None,
        domain: str | None = None,
        install_signal_handlers: bool = True,
    ) -> AsyncIterator[HaEvent]:
        """
        Subscribe and yield matching events until the stream ends.

        SIGINT/SIGTERM request a stop, which closes the connection and ends
        the stream cleanly.
        """
        predicate = EventFilter(event_type=event_type, domain=domain)
        async with self.connected() as client:
            await client.async_subscribe_events(event_type)
            removers = self._install_stop_handlers(client) if install_signal_handlers else []
            try:
                async for event in client.iter_events(None if predicate.is_noop else predicate):
                    yield event
            finally:
                for remove in removers:
                    remove()

    async def async_command(self, command_type: str, /, **fields: Any) -> Response:
        """Connect, send one command, close; the Response is not unwrapped."""
        async with self.connected() as client:
            return await client.async_call(command_type, **fields)

    async def async_list_areas(self) -> list[AreaEntry]:
        """Return every area defined in the area registry."""
        async with self.connected() as client:
            return await client.async_fetch_areas()

    async def async_set_exposure(self, entity_id: str, exposed: bool) -> Any:
        """Expose or hide an entity; run async_sync() afterwards to refresh the cache."""
        self._require_all_mode()
        async with self.connected() as client:
            return await client.async_update_entity(entity_id, should_expose=exposed)

    async def async_rename_entity(self, entity_id: str, name: str) -> Any:
        """Set the friendly name of an entity in the entity registry."""
        self._require_all_mode()
        async with self.connected() as client:
            return await client.async_update_entity(entity_id, name=name)

    # --- helpers ---

    def _require_all_mode(self) -> None:
        if self._config.filter_mode is not FilterMode.ALL:
            raise HactlConfigError(
                "this command requires filter.mode: all; these are admin operations"
            )

    def _install_stop_handlers(self, client: HactlClient) -> list[Callable[[], Any]]:
        loop = asyncio.get_running_loop()
        removers: list[Callable[[], Any]] = []
        for sig in _STOP_SIGNALS:
            try:
                loop.add_signal_handler(sig, client.request_stop)
            except (NotImplementedError, RuntimeError, ValueError) as err:
                _LOGGER.debug("Cannot install handler for %s: %s", sig.name, err)
                continue
            removers.append(functools.partial(loop.remove_signal_handler, sig))
        return removers
