from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from arena.registry import GameRegistry

logger = logging.getLogger(__name__)

OnAdvanced = Callable[[list[str]], Awaitable[None]]


class DeadlineSweeper:
    """Periodically turns due deadlines into timeout actions.

    Runs on the same event loop as the API; `expire_deadlines` is synchronous so a sweep
    never interleaves with a request's mutation.
    """

    def __init__(self, registry: GameRegistry, *, interval_s: float, on_advanced: OnAdvanced | None = None) -> None:
        self.registry = registry
        self.interval_s = interval_s
        self.on_advanced = on_advanced
        self._task: asyncio.Task[None] | None = None

    async def sweep_once(self) -> list[str]:
        advanced = self.registry.expire_deadlines()
        if advanced and self.on_advanced is not None:
            await self.on_advanced(advanced)
        return advanced

    async def run(self) -> None:
        while True:
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("deadline sweep failed")
            await asyncio.sleep(self.interval_s)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
