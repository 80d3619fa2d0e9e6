# app/routers/live.py
import asyncio
import logging
from functools import partial
from typing import Any, Callable

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from starlette.concurrency import run_in_threadpool

from app.core.auth import ROLE_ADMIN, ROLE_USER, authenticate_websocket
from app.core.live import Subscription, deposit_changes, snapshot_message
from app.database import session_scope
from app.repositories.deposit_repo import DepositRepository
from app.schemas.deposit import DepositRead
from app.schemas.stats import HistoryPeriod
from app.services.deposit_service import DepositService
from app.services.slot_service import build_availability

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Live"])

repo = DepositRepository()
history_service = DepositService(repo, deposit_changes)


# -------- Snapshot loaders (run in a worker thread) --------


def load_active() -> list[dict[str, Any]]:
    with session_scope() as session:
        rows = repo.list_active(session)
        return [jsonable_encoder(DepositRead.model_validate(r)) for r in rows]


def load_history(period: HistoryPeriod = "all") -> list[dict[str, Any]]:
    # Full ordered set; the feed re-delivers everything on every change
    with session_scope() as session:
        entries = history_service.list_history(session, limit=None, period=period)
        return [jsonable_encoder(e) for e in entries]


def load_slots() -> dict[str, Any]:
    with session_scope() as session:
        return jsonable_encoder(build_availability(repo.list_active(session)))


def _authenticate(token: str | None, admin_only: bool):
    roles = (ROLE_ADMIN,) if admin_only else (ROLE_USER, ROLE_ADMIN)
    with session_scope() as session:
        return authenticate_websocket(session, token, roles)


async def _watch_client(websocket: WebSocket, subscription: Subscription) -> None:
    """
    Read client frames until it disconnects.

    A "refresh" text frame asks for a fresh full snapshot.
    """
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            if (message.get("text") or "").strip().lower() == "refresh":
                subscription.restart()
    finally:
        subscription.cancel()


async def _serve(
    websocket: WebSocket,
    token: str | None,
    loader: Callable[[], Any],
    feed: str,
    admin_only: bool = False,
) -> None:
    """
    Push full snapshots until the client goes away.

    A reconnecting client simply opens a new socket and gets a fresh
    snapshot first.
    """
    user = await run_in_threadpool(_authenticate, token, admin_only)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    subscription = Subscription(deposit_changes, loader)
    watcher = asyncio.create_task(_watch_client(websocket, subscription))
    logger.info("[WS] %s feed opened", feed)

    try:
        async for version, data in subscription:
            await websocket.send_json(snapshot_message(version, data))
    except WebSocketDisconnect:
        pass
    finally:
        subscription.cancel()
        watcher.cancel()
        await asyncio.gather(watcher, return_exceptions=True)
        logger.info("[WS] %s feed closed", feed)


@router.websocket("/deposits/ws/active")
async def active_feed(websocket: WebSocket, token: str | None = None):
    """Active deposits, newest first."""
    await _serve(websocket, token, load_active, "active")


@router.websocket("/deposits/ws/history")
async def history_feed(
    websocket: WebSocket,
    token: str | None = None,
    period: HistoryPeriod = "all",
):
    """
    Picked-up deposits, latest pickup first (admin only).

    `period` (all | today | week | month) narrows by pickup time and is
    re-evaluated on every snapshot.
    """
    await _serve(
        websocket,
        token,
        partial(load_history, period),
        f"history[{period}]",
        admin_only=True,
    )


@router.websocket("/slots/ws")
async def slots_feed(websocket: WebSocket, token: str | None = None):
    """Slot availability."""
    await _serve(websocket, token, load_slots, "slots")
