"""Event bus request generators."""

from __future__ import annotations

from typing import Optional

from ..errors import HactlInvalidArgument

CommandType = str


def generator_subscribe_events(*, event_type: Optional[str] = None) -> tuple[dict, CommandType]:
    payload: dict[str, object] = {}
    if event_type is not None:
        if not isinstance(event_type, str):
            raise HactlInvalidArgument(f"event_type must be a string (got {event_type!r})")
        # an empty filter subscribes to every event
        if event_type:
            payload["event_type"] = event_type
    return payload, "subscribe_events"
