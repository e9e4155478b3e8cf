from __future__ import annotations

import os
import random
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from arena.config import EngineSettings
from arena.registry import GameRegistry


class FakeClock:
    """Manually advanced monotonic clock for deadline tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs (PyCharm/CLI).

    In CI, we *don't* auto-load `.env` by default; opt in locally with
    ARENA_LOAD_DOTENV_FOR_TESTS=1 to exercise a real Redis.
    """

    if os.environ.get("CI") and os.environ.get("ARENA_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@pytest.fixture(scope="session", autouse=True)
def _init_assets_from_test_fixtures() -> None:
    """Initialize assets from `tests/assets` and forbid falling back to the built-in dataset.

    This keeps tests hermetic and prevents coupling to the repo's real card content.
    """

    os.environ["ARENA_STRICT_ASSETS"] = "1"

    from arena.assets.singleton import init_assets, reset_assets_for_tests

    reset_assets_for_tests()

    # Point the asset loader at a fake project root: tests/ contains an assets/ dir.
    test_root = Path(__file__).resolve().parent
    init_assets(project_root=test_root)


@pytest.fixture(autouse=True)
def _hermetic_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    # No background sweeper in app tests; deadlines are fired explicitly.
    monkeypatch.setenv("ARENA_SWEEP_INTERVAL_S", "0")

    from arena.config import reset_settings_for_tests

    reset_settings_for_tests()
    yield
    reset_settings_for_tests()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_registry(clock: FakeClock) -> Callable[..., GameRegistry]:
    """Build a registry with test assets, a seeded rng and the fake clock."""

    from arena.assets.singleton import get_assets

    def _make(**overrides: object) -> GameRegistry:
        settings = overrides.pop("settings", None) or EngineSettings()
        return GameRegistry(
            settings=settings,  # type: ignore[arg-type]
            assets=get_assets(),
            rng=random.Random(1234),
            clock=clock,
            **overrides,  # type: ignore[arg-type]
        )

    return _make


@pytest.fixture()
def client_and_redis():
    """FastAPI TestClient wired to a fresh registry that publishes to fakeredis mailboxes."""

    import fakeredis
    from fastapi.testclient import TestClient

    from arena.api.deps import get_redis, get_registry, init_registry, reset_registry_for_tests
    from arena.assets.singleton import get_assets
    from arena.main import app
    from arena.streams import MailboxNotifier

    r = fakeredis.FakeRedis(decode_responses=True)
    registry = init_registry(
        GameRegistry(settings=EngineSettings(), assets=get_assets(), notifier=MailboxNotifier(r=r), rng=random.Random(7))
    )

    def _override_redis() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override_redis
    app.dependency_overrides[get_registry] = lambda: registry
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()
    reset_registry_for_tests()
