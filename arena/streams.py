from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import cast

import redis

from arena.api.models import GameSnapshot, LobbyGame
from arena.config import get_settings
from arena.notify import Delivery

logger = logging.getLogger(__name__)

LOBBY_STREAM = "lobby:games"


@dataclass(frozen=True, slots=True)
class Mailbox:
    game_id: str
    player_id: str

    @property
    def key(self) -> str:
        return f"mailbox:{self.game_id}:{self.player_id}"


def create_redis(url: str | None = None) -> redis.Redis:
    # decode_responses=True => strings in/out instead of bytes
    return redis.Redis.from_url(url or get_settings().redis_url, decode_responses=True)


def publish_to_mailbox(*, r: redis.Redis, mailbox: Mailbox, fields: Mapping[str, str]) -> str:
    """Append an entry to a player's mailbox stream."""

    stream_id = r.xadd(mailbox.key, {str(k): str(v) for k, v in fields.items()})
    return cast(str, stream_id)


def publish_many(*, r: redis.Redis, entries: Sequence[tuple[str, Mapping[str, str]]]) -> list[str]:
    ids: list[str] = []
    for key, fields in entries:
        stream_id = r.xadd(key, {str(k): str(v) for k, v in fields.items()})
        ids.append(cast(str, stream_id))
    return ids


def read_mailbox(*, r: redis.Redis, mailbox: Mailbox, start: str = "-", end: str = "+", count: int = 20) -> list[dict[str, object]]:
    entries = r.xrange(mailbox.key, min=start, max=end, count=count)
    return [{"id": mid, "fields": fields} for mid, fields in entries]


class MailboxNotifier:
    """Publishes game updates to per-player Redis Streams and lobby updates to one shared stream.

    Each player's entry carries the public snapshot plus that player's private view, so a
    reader of `mailbox:{game_id}:{player_id}` never sees another player's hand.
    """

    def __init__(self, *, r: redis.Redis) -> None:
        self.r = r

    def lobby_changed(self, games: Sequence[LobbyGame]) -> None:
        payload = json.dumps([g.model_dump(mode="json") for g in games])
        publish_many(r=self.r, entries=[(LOBBY_STREAM, {"type": "lobby_updated", "games": payload})])

    def game_changed(self, snapshot: GameSnapshot, deliveries: Sequence[Delivery]) -> None:
        game_json = snapshot.model_dump_json()
        entries = [
            (
                Mailbox(game_id=snapshot.game_id, player_id=d.player_id).key,
                {
                    "type": "game_updated",
                    "game_id": snapshot.game_id,
                    "status": snapshot.status.value,
                    "game": game_json,
                    "view": d.view.model_dump_json(),
                },
            )
            for d in deliveries
        ]
        publish_many(r=self.r, entries=entries)
        logger.debug("published game %s update to %d mailboxes", snapshot.game_id, len(entries))
