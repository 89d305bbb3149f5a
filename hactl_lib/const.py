"""Constants for hactl_lib."""

from __future__ import annotations

DEFAULT_HASS_URL = "http://homeassistant.local:8123"
WEBSOCKET_PATH = "/api/websocket"

CONFIG_DIR_NAME = "hactl"
EXPOSED_CACHE_FILENAME = "exposed-entities.json"
AREAS_CACHE_FILENAME = "entity-areas.json"

# Handshake frame types
MSG_AUTH = "auth"
MSG_AUTH_REQUIRED = "auth_required"
MSG_AUTH_OK = "auth_ok"
MSG_AUTH_INVALID = "auth_invalid"

MSG_EVENT = "event"

SYNC_HINT = "Run `hactl sync` first."
