# app/core/live.py
"""
Live snapshot feeds.

Writers (deposit / pickup) call `deposit_changes.notify()` after commit.
Each WebSocket owns a `Subscription` that reloads the *full* result set
whenever the change version moves, and only ever emits a snapshot whose
version is newer than the last one sent.

Sync routes run in a worker thread, WebSockets run on the event loop,
so the notifier hands versions across with call_soon_threadsafe.
"""

import asyncio
import logging
import threading
from typing import Any, Callable, Generic, TypeVar

from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotCell(Generic[T]):
    """
    Single-assignment latest value, guarded by a version number.

    offer() only accepts strictly newer versions, so an out-of-order
    delivery can never overwrite a fresher snapshot.
    """

    def __init__(self) -> None:
        self._version = -1
        self._value: T | None = None

    @property
    def version(self) -> int:
        return self._version

    @property
    def value(self) -> T | None:
        return self._value

    def offer(self, version: int, value: T) -> bool:
        if version <= self._version:
            return False
        self._version = version
        self._value = value
        return True

    def reset(self) -> None:
        self._version = -1
        self._value = None


class ChangeNotifier:
    """Process-wide change counter for the deposits collection."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._version = 0
        self._listeners: list[tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = []

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def notify(self) -> int:
        """Bump the version and wake every subscriber. Thread-safe."""
        with self._lock:
            self._version += 1
            version = self._version
            listeners = list(self._listeners)

        for loop, queue in listeners:
            try:
                loop.call_soon_threadsafe(queue.put_nowait, version)
            except RuntimeError:
                # Loop already closed; the subscriber is gone.
                self.unsubscribe(queue)
        return version

    def subscribe(self) -> asyncio.Queue:
        """Must be called from inside the subscriber's running loop."""
        queue: asyncio.Queue = asyncio.Queue()
        loop = asyncio.get_running_loop()
        with self._lock:
            self._listeners.append((loop, queue))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        with self._lock:
            self._listeners = [(l, q) for l, q in self._listeners if q is not queue]

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._listeners)


class Subscription(Generic[T]):
    """
    Cancellable, restartable stream of full snapshots.

    Usage:

        sub = Subscription(deposit_changes, load_active)
        async for version, snapshot in sub:
            await websocket.send_json(...)

    - yields the current snapshot immediately
    - then one snapshot per observed change; bursts collapse to the latest
    - cancel() ends the iteration, restart() forces a fresh snapshot
    """

    _RESTART = -1
    _CANCEL = -2

    def __init__(self, notifier: ChangeNotifier, loader: Callable[[], T]):
        self.notifier = notifier
        self.loader = loader
        self.cell: SnapshotCell[T] = SnapshotCell()
        self._queue: asyncio.Queue | None = None
        self._cancelled = False

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> tuple[int, T]:
        if self._cancelled:
            raise StopAsyncIteration

        if self._queue is None:
            self._queue = self.notifier.subscribe()
            return await self._load(self.notifier.version)

        while True:
            signal = await self._queue.get()
            signal = self._drain(signal)

            if signal == self._CANCEL or self._cancelled:
                self._close()
                raise StopAsyncIteration
            if signal == self._RESTART:
                self.cell.reset()
                signal = self.notifier.version
            if signal <= self.cell.version:
                continue

            version, value = await self._load(signal)
            if version == signal:
                return version, value

    def _drain(self, signal: int) -> int:
        """Collapse queued signals; cancel and restart win over versions."""
        assert self._queue is not None
        pending = [signal]
        while not self._queue.empty():
            pending.append(self._queue.get_nowait())
        if self._CANCEL in pending:
            return self._CANCEL
        if self._RESTART in pending:
            return self._RESTART
        return max(pending)

    async def _load(self, version: int) -> tuple[int, T]:
        value = await run_in_threadpool(self.loader)
        if not self.cell.offer(version, value):
            logger.debug("Dropped stale snapshot v%s (have v%s)", version, self.cell.version)
        return self.cell.version, self.cell.value  # type: ignore[return-value]

    def restart(self) -> None:
        """Re-deliver a full snapshot on the next iteration (reconnect)."""
        if self._queue is not None:
            self._queue.put_nowait(self._RESTART)

    def cancel(self) -> None:
        self._cancelled = True
        self._close()
        if self._queue is not None:
            # Wake an iterator blocked on get().
            self._queue.put_nowait(self._CANCEL)

    def _close(self) -> None:
        if self._queue is not None:
            self.notifier.unsubscribe(self._queue)


def snapshot_message(version: int, data: Any) -> dict[str, Any]:
    return {"event": "snapshot", "version": version, "data": data}


# Shared by every writer and every live feed in this process.
deposit_changes = ChangeNotifier()
