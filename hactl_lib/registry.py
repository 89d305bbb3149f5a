"""
hactl_lib/registry.py

Registry resolver: reconciles the entity registry and the device registry
into the set of exposed entities and their effective area.

Area resolution: an entity's own area_id wins; otherwise the area of its
parent device (the common case in Home Assistant). Entities that are not
exposed never appear in the output.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from .client import HactlClient
from .errors import HactlProtocolError
from .types import DeviceRegistryEntry, EntityRegistryEntry, ResolvedRegistry

logger = logging.getLogger(__name__)


def parse_entity_entries(rows: Iterable[Any]) -> list[EntityRegistryEntry]:
    entries: list[EntityRegistryEntry] = []
    for row in rows:
        try:
            entries.append(EntityRegistryEntry.from_json(row))
        except ValueError as e:
            logger.debug("Skipping entity registry entry: %s", e)
    return entries


def parse_device_entries(rows: Iterable[Any]) -> list[DeviceRegistryEntry]:
    entries: list[DeviceRegistryEntry] = []
    for row in rows:
        try:
            entries.append(DeviceRegistryEntry.from_json(row))
        except ValueError as e:
            logger.debug("Skipping device registry entry: %s", e)
    return entries


def build_device_area_map(devices: Iterable[DeviceRegistryEntry]) -> dict[str, str]:
    return {device.id: device.area_id for device in devices if device.area_id}


def resolve_registry(
    entities: Iterable[EntityRegistryEntry],
    device_area: Mapping[str, str],
) -> ResolvedRegistry:
    """Pure reconciliation step; keeps catalog order for exposed ids."""
    exposed: list[str] = []
    seen: set[str] = set()
    entity_area: dict[str, str] = {}
    for entry in entities:
        if not entry.should_expose:
            continue
        if entry.entity_id not in seen:
            seen.add(entry.entity_id)
            exposed.append(entry.entity_id)
        area_id = entry.area_id or device_area.get(entry.device_id, "")
        if area_id:
            entity_area[entry.entity_id] = area_id
    return ResolvedRegistry(exposed_ids=tuple(exposed), entity_area=entity_area)


class RegistryResolver:
    """
    Issues the two catalog commands strictly in sequence on one client.

    The entity registry is a hard dependency. A device registry that answers
    with an error (or with something that is not a list) only disables the
    device area fallback; transport and protocol failures still propagate
    because the session is no longer usable.
    """

    def __init__(self, client: HactlClient, *, log: Optional[logging.Logger] = None) -> None:
        self._client = client
        self._log = log or logger

    async def async_resolve(self) -> ResolvedRegistry:
        entities = await self.async_fetch_entities()
        device_area = await self.async_fetch_device_areas()
        registry = resolve_registry(entities, device_area)
        self._log.debug(
            "Resolved %d exposed entities (%d with an area) from %d registry entries",
            len(registry.exposed_ids),
            len(registry.entity_area),
            len(entities),
        )
        return registry

    async def async_fetch_entities(self) -> list[EntityRegistryEntry]:
        rows = await self._client.async_execute("entity_registry_list")
        if not isinstance(rows, list):
            raise HactlProtocolError("Entity registry result is not a list.")
        return parse_entity_entries(rows)

    async def async_fetch_device_areas(self) -> dict[str, str]:
        # An empty device list and a failed request look the same from here.
        response = await self._client.async_request("device_registry_list")
        if not response.ok:
            self._log.warning(
                "Device registry request failed (%s); device area fallback disabled",
                response.error_message,
            )
            return {}
        if not isinstance(response.result, list):
            self._log.warning("Device registry result is not a list; device area fallback disabled")
            return {}
        return build_device_area_map(parse_device_entries(response.result))


async def async_resolve_registry(client: HactlClient) -> ResolvedRegistry:
    """Convenience wrapper: resolve with a fresh RegistryResolver."""
    return await RegistryResolver(client).async_resolve()


__all__ = [
    "RegistryResolver",
    "async_resolve_registry",
    "build_device_area_map",
    "parse_device_entries",
    "parse_entity_entries",
    "resolve_registry",
]
