"""Area registry request generators."""

from __future__ import annotations

CommandType = str


def generator_area_registry_list() -> tuple[dict, CommandType]:
    return {}, "config/area_registry/list"
