"""Registry of the commands the client knows how to build."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from .area_registry import generator_area_registry_list
from .device_registry import generator_device_registry_list
from .entity_registry import (
    generator_entity_registry_list,
    generator_entity_registry_update,
)
from .events import generator_subscribe_events

Generator = Callable[..., tuple[dict, str]]


@dataclass(frozen=True, slots=True)
class CommandSpec:
    key: str
    generator: Generator

    def build(self, **params: Any) -> tuple[dict, str]:
        return self.generator(**params)


def _spec(key: str, generator: Generator) -> tuple[str, CommandSpec]:
    return key, CommandSpec(key=key, generator=generator)


COMMANDS: Mapping[str, CommandSpec] = dict(
    [
        _spec("entity_registry_list", generator_entity_registry_list),
        _spec("entity_registry_update", generator_entity_registry_update),
        _spec("device_registry_list", generator_device_registry_list),
        _spec("area_registry_list", generator_area_registry_list),
        _spec("subscribe_events", generator_subscribe_events),
    ]
)

__all__ = ["COMMANDS", "CommandSpec"]
