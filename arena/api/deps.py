from __future__ import annotations

from collections.abc import Generator

import redis

from arena.registry import GameRegistry
from arena.streams import create_redis

_REGISTRY: GameRegistry | None = None


def init_registry(registry: GameRegistry) -> GameRegistry:
    global _REGISTRY
    _REGISTRY = registry
    return registry


def get_registry() -> GameRegistry:
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = GameRegistry()
    return _REGISTRY


def reset_registry_for_tests() -> None:
    global _REGISTRY
    _REGISTRY = None


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        try:
            client.close()
        except Exception:
            # Some redis client versions don't require explicit close.
            pass
