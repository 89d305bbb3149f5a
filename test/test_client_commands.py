from __future__ import annotations

import asyncio

import pytest

from hactl_lib.client import HactlClient, Response
from hactl_lib.errors import (
    HactlApplicationError,
    HactlInvalidArgument,
    HactlNotReadyError,
    HactlProtocolError,
    HactlSessionClosedError,
    HactlTransportError,
)
from hactl_lib.session import SessionState


class _FakeSession:
    def __init__(self, replies=()) -> None:
        self.state = SessionState.ACTIVE
        self.sent: list[dict] = []
        self.timeouts: list = []
        self._replies = list(replies)

    async def connect(self) -> None:
        self.state = SessionState.ACTIVE

    async def close(self) -> None:
        self.state = SessionState.DISCONNECTED

    async def send_json(self, obj) -> None:
        self.sent.append(obj)

    async def recv_json(self, *, timeout_s=None):
        self.timeouts.append(timeout_s)
        if not self._replies:
            raise HactlSessionClosedError("Connection closed.")
        item = self._replies.pop(0)
        if callable(item):
            item = item(self.sent[-1])
        if isinstance(item, BaseException):
            raise item
        return item


def _result(result=None):
    return lambda msg: {"id": msg["id"], "type": "result", "success": True, "result": result}


def _error(code, message):
    return lambda msg: {
        "id": msg["id"],
        "type": "result",
        "success": False,
        "error": {"code": code, "message": message},
    }


@pytest.mark.asyncio
async def test_ids_start_at_one_and_increase() -> None:
    session = _FakeSession([_result([]), _result([]), _result(None)])
    client = HactlClient(session)

    await client.async_execute("area_registry_list")
    await client.async_execute("device_registry_list")
    await client.async_call("config/entity_registry/list")

    assert [msg["id"] for msg in session.sent] == [1, 2, 3]
    assert session.sent[0] == {"id": 1, "type": "config/area_registry/list"}
    assert session.timeouts == [30.0, 30.0, 30.0]


@pytest.mark.asyncio
async def test_failed_reply_is_returned_and_unwrap_raises() -> None:
    session = _FakeSession([_error("unauthorized", "Unauthorized")])
    client = HactlClient(session)

    response = await client.async_call("config/entity_registry/update", entity_id="light.x")

    assert isinstance(response, Response)
    assert response.ok is False
    assert response.error_code == "unauthorized"
    with pytest.raises(HactlApplicationError) as excinfo:
        response.unwrap()
    assert excinfo.value.message == "Unauthorized"
    assert excinfo.value.code == "unauthorized"
    assert excinfo.value.command_type == "config/entity_registry/update"


@pytest.mark.asyncio
async def test_failed_reply_without_message_uses_fallback() -> None:
    session = _FakeSession([lambda msg: {"id": msg["id"], "type": "result", "success": False}])
    client = HactlClient(session)

    with pytest.raises(HactlApplicationError, match="unknown error"):
        await client.async_execute("area_registry_list")


@pytest.mark.asyncio
async def test_mismatched_reply_id_is_protocol_error_and_id_is_consumed() -> None:
    session = _FakeSession(
        [
            {"id": 7, "type": "result", "success": True, "result": []},
            _result([]),
        ]
    )
    client = HactlClient(session)

    with pytest.raises(HactlProtocolError, match="does not match"):
        await client.async_call("config/area_registry/list")

    await client.async_call("config/area_registry/list")
    assert [msg["id"] for msg in session.sent] == [1, 2]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "frame",
    [
        {"type": "result", "success": True},
        {"id": "1", "type": "result", "success": True},
        {"id": 1, "type": "result", "success": "yes"},
        {"id": 1, "type": "result"},
    ],
)
async def test_malformed_reply_is_protocol_error(frame) -> None:
    client = HactlClient(_FakeSession([frame]))

    with pytest.raises(HactlProtocolError):
        await client.async_call("config/area_registry/list")


@pytest.mark.asyncio
async def test_transport_failure_propagates_and_clears_inflight() -> None:
    session = _FakeSession([HactlTransportError("reset"), _result([])])
    client = HactlClient(session)

    with pytest.raises(HactlTransportError):
        await client.async_call("config/area_registry/list")

    response = await client.async_call("config/area_registry/list")
    assert response.id == 2


@pytest.mark.asyncio
async def test_commands_require_active_session() -> None:
    session = _FakeSession()
    session.state = SessionState.DISCONNECTED
    client = HactlClient(session)

    with pytest.raises(HactlNotReadyError):
        await client.async_call("config/area_registry/list")
    assert session.sent == []


@pytest.mark.asyncio
async def test_unknown_command_key_and_bad_arguments() -> None:
    client = HactlClient(_FakeSession())

    with pytest.raises(HactlInvalidArgument):
        await client.async_request("no_such_command")
    with pytest.raises(HactlInvalidArgument):
        await client.async_request("area_registry_list", unexpected=True)


@pytest.mark.asyncio
async def test_update_entity_envelope() -> None:
    session = _FakeSession([_result({"entity_entry": {"entity_id": "light.kitchen"}})])
    client = HactlClient(session)

    result = await client.async_update_entity("light.kitchen", should_expose=True)

    assert result == {"entity_entry": {"entity_id": "light.kitchen"}}
    assert session.sent == [
        {
            "id": 1,
            "type": "config/entity_registry/update",
            "entity_id": "light.kitchen",
            "options": {"conversation": {"should_expose": True}},
        }
    ]


@pytest.mark.asyncio
async def test_fetch_areas_skips_malformed_rows() -> None:
    session = _FakeSession(
        [
            _result(
                [
                    {"area_id": "kitchen", "name": "Kitchen"},
                    {"name": "No id"},
                    "garbage",
                    {"area_id": "garage", "name": None, "picture": "/img/garage.png"},
                ]
            )
        ]
    )
    client = HactlClient(session)

    areas = await client.async_fetch_areas()

    assert [area.area_id for area in areas] == ["kitchen", "garage"]
    assert areas[1].to_json() == {"area_id": "garage", "name": "", "picture": "/img/garage.png"}


@pytest.mark.asyncio
async def test_context_manager_connects_and_closes() -> None:
    session = _FakeSession()
    session.state = SessionState.DISCONNECTED

    async with HactlClient(session) as client:
        assert client.ready is True

    assert session.state is SessionState.DISCONNECTED


class _GatedSession(_FakeSession):
    """Holds every reply until release() is called."""

    def __init__(self, replies=()) -> None:
        super().__init__(replies)
        self.waiting = asyncio.Event()
        self._gate = asyncio.Event()

    def release(self) -> None:
        self._gate.set()

    async def recv_json(self, *, timeout_s=None):
        self.waiting.set()
        await self._gate.wait()
        return await super().recv_json(timeout_s=timeout_s)


@pytest.mark.asyncio
async def test_second_call_while_reply_pending_is_refused() -> None:
    session = _GatedSession([_result([])])
    client = HactlClient(session)

    first = asyncio.create_task(client.async_call("config/area_registry/list"))
    await asyncio.wait_for(session.waiting.wait(), 1)

    with pytest.raises(HactlProtocolError, match="still awaiting"):
        await client.async_call("config/device_registry/list")
    assert len(session.sent) == 1

    session.release()
    response = await asyncio.wait_for(first, 1)
    assert response.id == 1
    assert response.ok is True
