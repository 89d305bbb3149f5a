"""Entity registry request generators."""

from __future__ import annotations

from typing import Optional

from ..errors import HactlInvalidArgument

CommandType = str


def generator_entity_registry_list() -> tuple[dict, CommandType]:
    return {}, "config/entity_registry/list"


def generator_entity_registry_update(
    *,
    entity_id: str,
    should_expose: Optional[bool] = None,
    name: Optional[str] = None,
) -> tuple[dict, CommandType]:
    if not isinstance(entity_id, str) or "." not in entity_id:
        raise HactlInvalidArgument(f"entity_id must look like '<domain>.<object_id>' (got {entity_id!r})")
    payload: dict[str, object] = {"entity_id": entity_id}
    if should_expose is not None:
        if not isinstance(should_expose, bool):
            raise HactlInvalidArgument(f"should_expose must be a bool (got {should_expose!r})")
        payload["options"] = {"conversation": {"should_expose": should_expose}}
    if name is not None:
        if not isinstance(name, str) or not name.strip():
            raise HactlInvalidArgument("name must be a non-empty string.")
        payload["name"] = name
    if len(payload) == 1:
        raise HactlInvalidArgument("entity_registry_update requires should_expose or name.")
    return payload, "config/entity_registry/update"
