"""Public types for hactl_lib (registry records, resolver output, client config)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


def _opt_str(value: Any) -> str:
    """Registry ids arrive as a string or null; normalise null to ''."""
    return value if isinstance(value, str) else ""


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """
    Immutable client configuration.

    request_timeout_s bounds the wait for a single command reply; None blocks
    until the reply or the connection goes away.
    """

    request_timeout_s: Optional[float] = 30.0
    logger_name: Optional[str] = None


class FilterMode(str, Enum):
    """Entity visibility modes."""

    EXPOSED = "exposed"
    ALL = "all"


@dataclass(frozen=True, slots=True)
class EntityRegistryEntry:
    """
    One record from ``config/entity_registry/list``.

    area_id is set only when the area is assigned directly to the entity.
    """

    entity_id: str
    device_id: str = ""
    area_id: str = ""
    should_expose: bool = False
    name: Optional[str] = None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "EntityRegistryEntry":
        if not isinstance(data, Mapping):
            raise ValueError(f"entity registry entry must be an object (got {type(data).__name__})")
        entity_id = data.get("entity_id")
        if not isinstance(entity_id, str) or not entity_id:
            raise ValueError(f"entity registry entry has no entity_id: {data!r}")
        options = data.get("options")
        conversation = options.get("conversation") if isinstance(options, Mapping) else None
        expose = conversation.get("should_expose") if isinstance(conversation, Mapping) else None
        name = data.get("name")
        return cls(
            entity_id=entity_id,
            device_id=_opt_str(data.get("device_id")),
            area_id=_opt_str(data.get("area_id")),
            should_expose=expose is True,
            name=name if isinstance(name, str) else None,
        )


@dataclass(frozen=True, slots=True)
class DeviceRegistryEntry:
    """One record from ``config/device_registry/list``."""

    id: str
    area_id: str = ""

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "DeviceRegistryEntry":
        if not isinstance(data, Mapping):
            raise ValueError(f"device registry entry must be an object (got {type(data).__name__})")
        device_id = data.get("id")
        if not isinstance(device_id, str) or not device_id:
            raise ValueError(f"device registry entry has no id: {data!r}")
        return cls(id=device_id, area_id=_opt_str(data.get("area_id")))


@dataclass(frozen=True, slots=True)
class AreaEntry:
    """One record from ``config/area_registry/list``."""

    area_id: str
    name: str = ""
    picture: Optional[str] = None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "AreaEntry":
        if not isinstance(data, Mapping):
            raise ValueError(f"area registry entry must be an object (got {type(data).__name__})")
        area_id = data.get("area_id")
        if not isinstance(area_id, str) or not area_id:
            raise ValueError(f"area registry entry has no area_id: {data!r}")
        picture = data.get("picture")
        return cls(
            area_id=area_id,
            name=_opt_str(data.get("name")),
            picture=picture if isinstance(picture, str) else None,
        )

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {"area_id": self.area_id, "name": self.name}
        if self.picture:
            out["picture"] = self.picture
        return out


@dataclass(frozen=True, slots=True)
class ResolvedRegistry:
    """
    Immutable output of the registry resolver.

    exposed_ids keeps catalog order (it is what the cache file stores);
    entity_area only holds exposed entities whose area could be resolved.
    """

    exposed_ids: tuple[str, ...] = ()
    entity_area: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        if not isinstance(self.entity_area, MappingProxyType):
            object.__setattr__(self, "entity_area", MappingProxyType(dict(self.entity_area)))

    @property
    def exposed(self) -> frozenset[str]:
        return frozenset(self.exposed_ids)

    def area_of(self, entity_id: str) -> Optional[str]:
        return self.entity_area.get(entity_id)
