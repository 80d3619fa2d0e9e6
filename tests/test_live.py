import asyncio
import uuid
from datetime import datetime, timedelta

import pytest
from starlette.websockets import WebSocketDisconnect

from app.core.live import ChangeNotifier, SnapshotCell, Subscription
from app.routers import live as live_router
from app.services.stats_service import period_start

API = "/api/v1"


# -------- SnapshotCell --------


def test_cell_accepts_newer_versions_only():
    cell = SnapshotCell()

    assert cell.offer(1, "a")
    assert not cell.offer(1, "stale duplicate")
    assert not cell.offer(0, "out of order")
    assert cell.offer(3, "c")
    assert (cell.version, cell.value) == (3, "c")


def test_cell_reset():
    cell = SnapshotCell()
    cell.offer(5, "x")
    cell.reset()
    assert cell.offer(0, "fresh")


# -------- Subscription --------


@pytest.mark.asyncio
async def test_subscription_yields_current_snapshot_first():
    notifier = ChangeNotifier()
    sub = Subscription(notifier, lambda: ["initial"])

    version, value = await asyncio.wait_for(sub.__anext__(), 1)

    assert version == 0
    assert value == ["initial"]
    assert notifier.subscriber_count == 1
    sub.cancel()


@pytest.mark.asyncio
async def test_subscription_collapses_bursts_to_latest():
    notifier = ChangeNotifier()
    loads = []

    def loader():
        loads.append(notifier.version)
        return len(loads)

    sub = Subscription(notifier, loader)
    await sub.__anext__()

    notifier.notify()
    notifier.notify()
    version, value = await asyncio.wait_for(sub.__anext__(), 1)

    assert version == 2
    assert value == 2
    assert loads == [0, 2]
    sub.cancel()


@pytest.mark.asyncio
async def test_subscription_restart_redelivers_snapshot():
    notifier = ChangeNotifier()
    sub = Subscription(notifier, lambda: "same")
    first = await sub.__anext__()

    sub.restart()
    again = await asyncio.wait_for(sub.__anext__(), 1)

    assert again == first
    sub.cancel()


@pytest.mark.asyncio
async def test_cancel_ends_iteration_and_unsubscribes():
    notifier = ChangeNotifier()
    sub = Subscription(notifier, lambda: "x")
    await sub.__anext__()

    async def consume():
        seen = []
        async for version, _ in sub:
            seen.append(version)
        return seen

    task = asyncio.create_task(consume())
    await asyncio.sleep(0)
    sub.cancel()

    assert await asyncio.wait_for(task, 1) == []
    assert notifier.subscriber_count == 0


@pytest.mark.asyncio
async def test_notify_from_worker_thread():
    notifier = ChangeNotifier()
    sub = Subscription(notifier, lambda: notifier.version)
    await sub.__anext__()

    await asyncio.to_thread(notifier.notify)
    version, value = await asyncio.wait_for(sub.__anext__(), 1)

    assert version == value == 1
    sub.cancel()


# -------- WebSocket feeds --------


def test_active_feed_pushes_snapshot_after_deposit(client, user_token, create_deposit):
    with client.websocket_connect(f"{API}/deposits/ws/active?token={user_token}") as ws:
        first = ws.receive_json()
        assert first["event"] == "snapshot"
        assert first["data"] == []

        record = create_deposit(slot=5)

        second = ws.receive_json()
        assert second["version"] > first["version"]
        assert [d["id"] for d in second["data"]] == [record["id"]]


def test_slots_feed_tracks_pickup(client, user_token, user_headers, create_deposit):
    record = create_deposit(slot=14)

    with client.websocket_connect(f"{API}/slots/ws?token={user_token}") as ws:
        assert ws.receive_json()["data"]["occupied"] == [14]

        client.post(f"{API}/deposits/{record['id']}/pickup", headers=user_headers)

        snapshot = ws.receive_json()["data"]
        assert snapshot["occupied"] == []
        assert 14 in snapshot["available"]


def test_refresh_frame_redelivers_snapshot(client, user_token):
    with client.websocket_connect(f"{API}/slots/ws?token={user_token}") as ws:
        first = ws.receive_json()
        ws.send_text("refresh")
        again = ws.receive_json()

        assert again == first


def test_feed_requires_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"{API}/slots/ws") as ws:
            ws.receive_json()


def test_history_feed_is_admin_only(client, user_token, admin_token):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"{API}/deposits/ws/history?token={user_token}") as ws:
            ws.receive_json()

    with client.websocket_connect(f"{API}/deposits/ws/history?token={admin_token}") as ws:
        assert ws.receive_json()["data"] == []


def test_history_feed_reports_pickups(client, admin_token, user_headers, create_deposit):
    record = create_deposit(slot=2)

    with client.websocket_connect(f"{API}/deposits/ws/history?token={admin_token}") as ws:
        ws.receive_json()
        client.post(f"{API}/deposits/{record['id']}/pickup", headers=user_headers)

        data = ws.receive_json()["data"]
        assert [d["id"] for d in data] == [record["id"]]
        assert data[0]["status"] == "picked_up"


def test_unknown_deposit_has_no_effect_on_feed_version(client, user_headers):
    from app.core.live import deposit_changes

    before = deposit_changes.version
    client.post(f"{API}/deposits/{uuid.uuid4()}/pickup", headers=user_headers)
    assert deposit_changes.version == before


def test_history_feed_delivers_every_picked_up_row(client, admin_token, add_picked_up):
    first = datetime(2026, 1, 1, 8, 0)
    ids = [add_picked_up(first + timedelta(minutes=i)) for i in range(120)]

    with client.websocket_connect(f"{API}/deposits/ws/history?token={admin_token}") as ws:
        data = ws.receive_json()["data"]

    assert len(data) == 120
    assert [d["id"] for d in data] == list(reversed(ids))


def test_history_feed_period_filter(client, admin_token, add_picked_up):
    recent = add_picked_up(period_start("today") + timedelta(seconds=60))
    add_picked_up(datetime(2025, 1, 1, 8, 0))

    url = f"{API}/deposits/ws/history?token={admin_token}&period=today"
    with client.websocket_connect(url) as ws:
        data = ws.receive_json()["data"]

    assert [d["id"] for d in data] == [recent]
    assert data[0]["storage_seconds"] == 3600


# -------- Feed teardown --------


class DummyWebSocket:
    """Socket whose client never speaks and whose sends fail."""

    def __init__(self):
        self.accepted = False
        self.closed_with = None
        self._never = asyncio.Event()

    async def accept(self):
        self.accepted = True

    async def close(self, code=1000):
        self.closed_with = code

    async def send_json(self, data):
        raise WebSocketDisconnect(code=1006)

    async def receive(self):
        await self._never.wait()


@pytest.mark.asyncio
async def test_serve_reaps_client_watcher(monkeypatch):
    watchers = []
    original = live_router._watch_client

    async def recording_watch(websocket, subscription):
        watchers.append(asyncio.current_task())
        await original(websocket, subscription)

    monkeypatch.setattr(live_router, "_authenticate", lambda token, admin_only: object())
    monkeypatch.setattr(live_router, "_watch_client", recording_watch)
    notifier = ChangeNotifier()
    monkeypatch.setattr(live_router, "deposit_changes", notifier)

    ws = DummyWebSocket()
    await asyncio.wait_for(live_router._serve(ws, "t", lambda: "snap", "test"), 1)

    assert ws.accepted
    assert len(watchers) == 1
    assert watchers[0].done()
    assert notifier.subscriber_count == 0


@pytest.mark.asyncio
async def test_serve_rejects_bad_token_before_accept(monkeypatch):
    monkeypatch.setattr(live_router, "_authenticate", lambda token, admin_only: None)

    ws = DummyWebSocket()
    await live_router._serve(ws, None, lambda: "snap", "test")

    assert not ws.accepted
    assert ws.closed_with == 1008
