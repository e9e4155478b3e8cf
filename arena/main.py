import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from arena.api.deps import get_registry, init_registry
from arena.api.routes import router
from arena.assets.singleton import init_assets
from arena.config import get_settings
from arena.notify import NullNotifier
from arena.streams import MailboxNotifier, create_redis
from arena.timers import DeadlineSweeper
from arena.websocket_hub import hub

# Local runs pick up REDIS_URL / ARENA_* from the repo .env; real env vars win.
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env", override=False)

app = FastAPI(title="party-arena", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_sweeper: DeadlineSweeper | None = None


async def _on_deadlines(game_ids: list[str]) -> None:
    for gid in game_ids:
        await hub.game_updated(gid)
    await hub.lobby_updated()


@app.on_event("startup")
async def _startup() -> None:
    global _sweeper
    settings = get_settings()
    init_assets(strict=settings.strict_assets)

    registry = get_registry()
    if isinstance(registry.notifier, NullNotifier) and settings.mailbox_enabled:
        registry.notifier = MailboxNotifier(r=create_redis(settings.redis_url))
        logger.info("mailbox notifier enabled redis=%s", settings.redis_url)
    init_registry(registry)

    if settings.sweep_interval_s > 0:
        _sweeper = DeadlineSweeper(registry, interval_s=settings.sweep_interval_s, on_advanced=_on_deadlines)
        _sweeper.start()


@app.on_event("shutdown")
async def _shutdown() -> None:
    global _sweeper
    if _sweeper is not None:
        await _sweeper.stop()
        _sweeper = None


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "party-arena", "version": "0.1.0"}
