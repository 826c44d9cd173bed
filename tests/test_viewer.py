"""Unit tests for the live viewer client (no network)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json
import httpx
import pytest
from unittest.mock import AsyncMock
from sosrelay.client.viewer import SOSViewer
from sosrelay.config import settings
from sosrelay.errors import AuthError, NotFoundError, TransportError
from sosrelay.main import app
from sosrelay.runtime import init_runtime


class FakeConnection:
    def __init__(self, frames):
        self._frames = list(frames)
        self.sent = []
        self.close = AsyncMock()

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._frames:
            raise StopAsyncIteration
        return self._frames.pop(0)

    async def send(self, raw):
        self.sent.append(json.loads(raw))


class TestSOSViewer:
    def test_session_url_carries_token(self):
        assert SOSViewer("ws://relay/ws")._session_url() == "ws://relay/ws"
        assert SOSViewer("ws://relay/ws", token="abc")._session_url() == "ws://relay/ws?token=abc"
        assert SOSViewer("ws://relay/ws?x=1", token="abc")._session_url() == "ws://relay/ws?x=1&token=abc"

    @pytest.mark.asyncio
    async def test_history_needs_connection(self):
        with pytest.raises(TransportError):
            await SOSViewer("ws://relay/ws").request_history("dev1")

    @pytest.mark.asyncio
    async def test_consume_feeds_reconciler(self):
        seen = []
        viewer = SOSViewer("ws://relay/ws", on_message=seen.append)
        conn = FakeConnection([
            json.dumps({"type": "welcome", "user": {"email": "guest", "name": "Guest"}}),
            "garbage",
            json.dumps({"type": "device-snapshot", "devices": [
                {"id": "dev1", "name": "dev1", "lat": 1, "lng": 2, "sosActive": True, "lastSeen": 5},
            ]}),
        ])

        await viewer._consume(conn)

        assert [m.type for m in seen] == ["welcome", "device-snapshot"]
        assert viewer.reconciler.devices["dev1"].sos_active is True
        conn.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_request_history_sends_query(self):
        viewer = SOSViewer("ws://relay/ws")
        conn = FakeConnection([])
        viewer._ws = conn
        await viewer.request_history("dev1")
        assert conn.sent == [{"type": "history", "deviceId": "dev1"}]


@pytest.fixture
def relay():
    init_runtime(app)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://relay")


async def operator_token(http):
    resp = await http.post("/api/v1/login", json={
        "email": settings.DEMO_USER_EMAIL, "password": settings.DEMO_USER_PASSWORD,
    })
    return resp.json()["token"]


async def post_sos(http, device_id, lat=1.0, lng=2.0):
    resp = await http.post("/api/v1/sos", json={"deviceId": device_id, "lat": lat, "lng": lng})
    return resp.json()["event"]["id"]


class TestOperatorActions:
    @pytest.mark.asyncio
    async def test_load_recent_seeds_mirror(self, relay):
        async with relay as http:
            await post_sos(http, "A")
            await post_sos(http, "B")
            await post_sos(http, "A")
            viewer = SOSViewer("ws://relay/ws", api_url="http://relay/api/v1", http_client=http)

            assert await viewer.load_recent() == 3

        mirror = viewer.reconciler
        assert [e.event.id for e in mirror.entries] == [3, 2, 1]
        assert set(mirror.devices) == {"A", "B"}
        [group] = mirror.follow_up_groups()
        assert group.device_id == "A"
        assert [e.event.device_id for e in mirror.recent_activity()] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_load_recent_honours_limit(self, relay):
        async with relay as http:
            for device_id in ("A", "B", "C"):
                await post_sos(http, device_id)
            viewer = SOSViewer("ws://relay/ws", api_url="http://relay/api/v1", http_client=http)
            assert await viewer.load_recent(limit=2) == 2
        assert [e.event.id for e in viewer.reconciler.entries] == [3, 2]

    @pytest.mark.asyncio
    async def test_resolve_and_unresolve_update_mirror(self, relay):
        async with relay as http:
            event_id = await post_sos(http, "A")
            token = await operator_token(http)
            viewer = SOSViewer("ws://relay/ws", token=token, api_url="http://relay/api/v1",
                               http_client=http)
            await viewer.load_recent()

            message = await viewer.resolve(event_id)
            assert message.event.resolved_by == settings.DEMO_USER_EMAIL
            entry = viewer.reconciler.entries[0]
            assert entry.event.resolved is True
            assert viewer.reconciler.devices["A"].sos_active is False

            await viewer.unresolve(event_id)
            entry = viewer.reconciler.entries[0]
            assert entry.event.resolved is False
            assert entry.event.resolved_by is None
            assert viewer.reconciler.devices["A"].sos_active is True
        assert len(viewer.reconciler.entries) == 1

    @pytest.mark.asyncio
    async def test_resolve_needs_token(self, relay):
        async with relay as http:
            event_id = await post_sos(http, "A")
            viewer = SOSViewer("ws://relay/ws", api_url="http://relay/api/v1", http_client=http)
            with pytest.raises(AuthError):
                await viewer.resolve(event_id)

            viewer.token = "junk"
            with pytest.raises(AuthError):
                await viewer.resolve(event_id)

    @pytest.mark.asyncio
    async def test_resolve_unknown_event(self, relay):
        async with relay as http:
            token = await operator_token(http)
            viewer = SOSViewer("ws://relay/ws", token=token, api_url="http://relay/api/v1",
                               http_client=http)
            with pytest.raises(NotFoundError):
                await viewer.resolve(99)
        assert viewer.reconciler.entries == []

    @pytest.mark.asyncio
    async def test_unreachable_relay_is_transport_error(self):
        async def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as http:
            viewer = SOSViewer("ws://relay/ws", api_url="http://relay/api/v1", http_client=http)
            with pytest.raises(TransportError):
                await viewer.load_recent()
