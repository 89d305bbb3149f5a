"""
hactl_lib/events.py

Event envelopes delivered after a successful ``subscribe_events``.

Rules:
- Only frames with ``type == "event"`` and an object ``event`` become HaEvent;
  a missing or non-string ``event_type`` becomes "".
- Anything else is "not an event"; parse_event() returns None and the stream
  skips it.
- Filtering is a plain predicate over HaEvent (EventFilter is the stock one).
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from .const import MSG_EVENT

EventPredicate = Callable[["HaEvent"], bool]


@dataclass(frozen=True, slots=True)
class HaEvent:
    event_type: str
    data: Mapping[str, Any]
    raw: Mapping[str, Any]  # the complete "event" object, for JSON output

    @property
    def entity_id(self) -> Optional[str]:
        entity_id = self.data.get("entity_id")
        return entity_id if isinstance(entity_id, str) else None

    @property
    def domain(self) -> Optional[str]:
        entity_id = self.entity_id
        if not entity_id or "." not in entity_id:
            return None
        return entity_id.split(".", 1)[0]

    def to_json(self) -> dict[str, Any]:
        return dict(self.raw)


def parse_event(frame: Mapping[str, Any]) -> Optional[HaEvent]:
    """Return the HaEvent carried by frame, or None if it is not a usable event."""
    if frame.get("type") != MSG_EVENT:
        return None
    event = frame.get("event")
    if not isinstance(event, Mapping):
        return None
    event_type = event.get("event_type")
    if not isinstance(event_type, str):
        event_type = ""
    data = event.get("data")
    if not isinstance(data, Mapping):
        data = {}
    return HaEvent(
        event_type=event_type,
        data=MappingProxyType(dict(data)),
        raw=MappingProxyType(dict(event)),
    )


@dataclass(frozen=True, slots=True)
class EventFilter:
    """
    Client-side event predicate.

    event_type: exact match on the event type.
    domain: the event's data.entity_id must start with "<domain>."; events
    without an entity id never match.
    """

    event_type: Optional[str] = None
    domain: Optional[str] = None

    def __call__(self, event: HaEvent) -> bool:
        if self.event_type and event.event_type != self.event_type:
            return False
        if self.domain:
            entity_id = event.entity_id
            if entity_id is None or not entity_id.startswith(f"{self.domain}."):
                return False
        return True

    @property
    def is_noop(self) -> bool:
        return not self.event_type and not self.domain


__all__ = ["EventFilter", "EventPredicate", "HaEvent", "parse_event"]
