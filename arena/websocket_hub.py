from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)

LOBBY_TOPIC = "lobby"


class GameWebSocketHub:
    """Fans update pings out to connected sockets, grouped by topic.

    A topic is a game id or `LOBBY_TOPIC`. Only event names, ids and status travel
    over sockets; private views are delivered through the player mailboxes.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[WebSocket]] = {}
        self._lock = asyncio.Lock()

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    async def connect(self, topic: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            subs = self._subscribers.setdefault(topic, [])
            if websocket not in subs:
                subs.append(websocket)

    async def disconnect(self, topic: str, websocket: WebSocket) -> None:
        async with self._lock:
            self._drop(topic, [websocket])

    def _drop(self, topic: str, sockets: list[WebSocket]) -> None:
        remaining = [ws for ws in self._subscribers.get(topic, ()) if ws not in sockets]
        if remaining:
            self._subscribers[topic] = remaining
        else:
            self._subscribers.pop(topic, None)

    async def broadcast(self, topic: str, payload: dict[str, object]) -> None:
        async with self._lock:
            targets = list(self._subscribers.get(topic, ()))
        if not targets:
            return

        results = await asyncio.gather(*(ws.send_json(payload) for ws in targets), return_exceptions=True)
        dead = [ws for ws, res in zip(targets, results) if isinstance(res, BaseException)]
        if dead:
            logger.info("dropping %d closed socket(s) from topic %s", len(dead), topic)
            async with self._lock:
                self._drop(topic, dead)

    async def game_updated(self, game_id: str, *, status: str | None = None) -> None:
        await self.broadcast(game_id, {"type": "game_updated", "game_id": game_id, "status": status})

    async def lobby_updated(self) -> None:
        await self.broadcast(LOBBY_TOPIC, {"type": "lobby_updated"})


hub = GameWebSocketHub()
