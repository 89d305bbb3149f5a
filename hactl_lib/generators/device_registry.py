"""Device registry request generators."""

from __future__ import annotations

CommandType = str


def generator_device_registry_list() -> tuple[dict, CommandType]:
    return {}, "config/device_registry/list"
