from __future__ import annotations

import asyncio
import json
import signal

import pytest

from hactl_lib.config import config_from_mapping
from hactl_lib.errors import (
    CacheMissingError,
    HactlApplicationError,
    HactlConfigError,
    HactlSessionClosedError,
)
from hactl_lib.hub import HactlHub, SyncResult
from hactl_lib.session import SessionState
from hactl_lib.types import AreaEntry, FilterMode


class _FakeSession:
    """Scripted session; blocks after the script until closed."""

    def __init__(self, replies=()) -> None:
        self.state = SessionState.DISCONNECTED
        self.sent: list[dict] = []
        self.close_calls = 0
        self._replies = list(replies)
        self._closed = asyncio.Event()

    async def connect(self) -> None:
        self.state = SessionState.ACTIVE

    async def close(self) -> None:
        self.close_calls += 1
        self.state = SessionState.DISCONNECTED
        self._closed.set()

    async def send_json(self, obj) -> None:
        self.sent.append(obj)

    async def recv_json(self, *, timeout_s=None):
        if self._replies:
            item = self._replies.pop(0)
            if callable(item):
                item = item(self.sent[-1])
            if isinstance(item, BaseException):
                raise item
            return item
        await self._closed.wait()
        raise HactlSessionClosedError("Connection closed.")


class _Factory:
    def __init__(self, *replies) -> None:
        self.session = _FakeSession(replies)
        self.configs: list = []

    def __call__(self, cfg):
        self.configs.append(cfg)
        return self.session


def _result(result=None):
    return lambda msg: {"id": msg["id"], "type": "result", "success": True, "result": result}


def _error(message):
    return lambda msg: {
        "id": msg["id"],
        "type": "result",
        "success": False,
        "error": {"code": "unauthorized", "message": message},
    }


def _event(entity_id: str) -> dict:
    return {
        "id": 1,
        "type": "event",
        "event": {"event_type": "state_changed", "data": {"entity_id": entity_id}},
    }


def _hub(tmp_path, factory, mode: str = "exposed") -> HactlHub:
    config = config_from_mapping(
        {
            "hass_url": "http://ha.local:8123",
            "hass_token": "tok",
            "filter": {"mode": mode},
            "cache_dir": str(tmp_path / "hactl"),
        }
    )
    return HactlHub(config, session_factory=factory)


ENTITIES = [
    {"entity_id": "light.kitchen", "device_id": "dev1", "options": {"conversation": {"should_expose": True}}},
    {"entity_id": "switch.hidden", "device_id": "dev1", "options": {"conversation": {"should_expose": False}}},
]
DEVICES = [{"id": "dev1", "area_id": "kitchen"}]


@pytest.mark.asyncio
async def test_sync_writes_caches_and_closes_session(tmp_path) -> None:
    factory = _Factory(_result(ENTITIES), _result(DEVICES))
    hub = _hub(tmp_path, factory)

    result = await hub.async_sync()

    assert isinstance(result, SyncResult)
    assert result.registry.exposed_ids == ("light.kitchen",)
    assert json.loads(result.exposed_path.read_text()) == ["light.kitchen"]
    assert json.loads(result.areas_path.read_text()) == {"light.kitchen": "kitchen"}
    assert factory.configs[0].token == "tok"
    assert factory.session.close_calls >= 1
    assert factory.session.state is SessionState.DISCONNECTED
    assert hub.client is None
    assert hub.entity_filter.matches_area("light.kitchen", "Kitchen") is True


@pytest.mark.asyncio
async def test_failed_sync_leaves_no_cache(tmp_path) -> None:
    factory = _Factory(_error("Unauthorized"))
    hub = _hub(tmp_path, factory)

    with pytest.raises(HactlApplicationError, match="Unauthorized"):
        await hub.async_sync()

    assert not hub.config.cache_paths.exposed_path.exists()
    assert factory.session.state is SessionState.DISCONNECTED
    with pytest.raises(CacheMissingError):
        hub.load_filter()


@pytest.mark.asyncio
async def test_admin_commands_require_all_mode(tmp_path) -> None:
    factory = _Factory()
    hub = _hub(tmp_path, factory, mode="exposed")

    with pytest.raises(HactlConfigError, match="filter.mode: all"):
        await hub.async_set_exposure("light.kitchen", True)
    with pytest.raises(HactlConfigError, match="filter.mode: all"):
        await hub.async_rename_entity("light.kitchen", "Lamp")
    assert factory.configs == []


@pytest.mark.asyncio
async def test_set_exposure_and_rename_in_all_mode(tmp_path) -> None:
    factory = _Factory(_result({"entity_entry": {}}), _result({"entity_entry": {}}))
    hub = _hub(tmp_path, factory, mode="all")

    await hub.async_set_exposure("light.kitchen", False)
    await hub.async_rename_entity("light.kitchen", "Kitchen Lamp")

    assert factory.session.sent == [
        {
            "id": 1,
            "type": "config/entity_registry/update",
            "entity_id": "light.kitchen",
            "options": {"conversation": {"should_expose": False}},
        },
        {
            "id": 1,
            "type": "config/entity_registry/update",
            "entity_id": "light.kitchen",
            "name": "Kitchen Lamp",
        },
    ]


@pytest.mark.asyncio
async def test_set_exposure_failure_is_application_error(tmp_path) -> None:
    factory = _Factory(_error("Entity not found"))
    hub = _hub(tmp_path, factory, mode="all")

    with pytest.raises(HactlApplicationError, match="Entity not found"):
        await hub.async_set_exposure("light.missing", True)
    assert factory.session.state is SessionState.DISCONNECTED


@pytest.mark.asyncio
async def test_list_areas_and_raw_command(tmp_path) -> None:
    factory = _Factory(_result([{"area_id": "kitchen", "name": "Kitchen"}]), _error("Unauthorized"))
    hub = _hub(tmp_path, factory)

    assert await hub.async_list_areas() == [AreaEntry("kitchen", "Kitchen")]
    response = await hub.async_command("config/auth/list")
    assert response.ok is False
    assert response.error_message == "Unauthorized"


@pytest.mark.asyncio
async def test_watch_events_filters_by_domain(tmp_path) -> None:
    factory = _Factory(
        _result(),
        _event("light.kitchen"),
        _event("switch.porch"),
        _event("light.porch"),
        HactlSessionClosedError("Connection closed."),
    )
    hub = _hub(tmp_path, factory)

    events = [
        event
        async for event in hub.watch_events(
            event_type="state_changed", domain="light", install_signal_handlers=False
        )
    ]

    assert [event.entity_id for event in events] == ["light.kitchen", "light.porch"]
    assert factory.session.sent == [{"id": 1, "type": "subscribe_events", "event_type": "state_changed"}]
    assert factory.session.state is SessionState.DISCONNECTED


@pytest.mark.asyncio
async def test_watch_events_stops_on_request_and_removes_handlers(tmp_path) -> None:
    factory = _Factory(_result(), _event("light.kitchen"))
    hub = _hub(tmp_path, factory)

    seen = []
    async for event in hub.watch_events():
        seen.append(event.entity_id)
        hub.client.request_stop()

    assert seen == ["light.kitchen"]
    assert factory.session.state is SessionState.DISCONNECTED
    assert asyncio.get_running_loop().remove_signal_handler(signal.SIGINT) is False


def test_filter_mode_comes_from_config(tmp_path) -> None:
    hub = _hub(tmp_path, _Factory(), mode="all")

    assert hub.entity_filter.mode is FilterMode.ALL
    assert hub.entity_filter.is_allowed("anything.at_all") is True
