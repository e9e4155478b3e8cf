from __future__ import annotations

import logging
from pathlib import Path

from arena.assets.registry import GameAssets, load_game_assets

logger = logging.getLogger(__name__)

# arena/assets/singleton.py -> repo root holding assets/
DEFAULT_ROOT = Path(__file__).resolve().parents[2]

_ASSETS: GameAssets | None = None


def init_assets(*, project_root: Path | None = None, strict: bool | None = None) -> GameAssets:
    """Load the card decks and prompts for this process.

    Only the first call reads from disk; the registry and bots share the result.
    """

    global _ASSETS
    if _ASSETS is None:
        root = project_root or DEFAULT_ROOT
        _ASSETS = load_game_assets(root=root, strict=strict)
        logger.info(
            "assets loaded from %s: %d questions, %d answers, %d prompts",
            root / "assets",
            len(_ASSETS.question_cards),
            len(_ASSETS.answer_cards),
            len(_ASSETS.two_truths_prompts),
        )
    return _ASSETS


def get_assets() -> GameAssets:
    if _ASSETS is None:
        raise RuntimeError("Assets not initialized. Call init_assets() at startup.")
    return _ASSETS


def reset_assets_for_tests() -> None:
    global _ASSETS
    _ASSETS = None
