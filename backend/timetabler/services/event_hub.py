from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from anyio import from_thread
from fastapi import WebSocket

from timetabler.schemas.event import TimetableEvent

logger = logging.getLogger(__name__)


class TimetableEventHub:
    """Delivers timetable events to the sessions of one user only.

    Every connection is registered under its user id, and publishing always
    targets a single user's scope; there is no broadcast.
    """

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections[user_id].add(websocket)

    async def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            sockets = self._connections.get(user_id)
            if not sockets:
                return
            sockets.discard(websocket)
            if not sockets:
                self._connections.pop(user_id, None)

    def connection_count(self, user_id: str) -> int:
        return len(self._connections.get(user_id, ()))

    async def publish(self, user_id: str, event: TimetableEvent) -> None:
        async with self._lock:
            sockets = list(self._connections.get(user_id, set()))

        if not sockets:
            return

        payload = event.model_dump(mode="json")
        stale: list[WebSocket] = []
        for websocket in sockets:
            try:
                await websocket.send_json(payload)
            except Exception:  # pragma: no cover - network/runtime dependent
                stale.append(websocket)

        if stale:
            async with self._lock:
                active = self._connections.get(user_id, set())
                for socket in stale:
                    active.discard(socket)
                if not active:
                    self._connections.pop(user_id, None)
            logger.debug("Removed %d stale timetable websocket(s) for user %s", len(stale), user_id)


timetable_event_hub = TimetableEventHub()


def publish_from_sync(user_id: str, event: TimetableEvent) -> None:
    """Publish from a sync route running in the worker thread pool."""
    try:
        from_thread.run(timetable_event_hub.publish, user_id, event)
    except Exception:  # pragma: no cover - runtime environment dependent
        logger.debug("Unable to push timetable event %s for user %s", event.event, user_id, exc_info=True)
