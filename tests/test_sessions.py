import asyncio

import pytest

from conftest import story_provider
from storygame.engine import EngineState, SessionNotFound
from storygame.generation import GenerationClient
from storygame.scenes import SceneGenerator
from storygame.sessions import SessionRegistry


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def make_registry(**kwargs) -> SessionRegistry:
    return SessionRegistry(SceneGenerator(GenerationClient(story_provider())), **kwargs)


def test_create_starts_engine_and_stores_it():
    registry = make_registry()

    session_id, scene = asyncio.run(registry.create())

    assert session_id in registry
    engine = registry.get(session_id)
    assert engine.state is EngineState.ACTIVE
    assert engine.current_scene is scene


def test_back_to_back_creates_get_distinct_ids():
    registry = make_registry()

    async def create_many():
        return await asyncio.gather(*(registry.create() for _ in range(20)))

    ids = [sid for sid, _ in asyncio.run(create_many())]

    assert len(set(ids)) == 20
    assert len(registry) == 20


def test_sessions_are_isolated():
    registry = make_registry()

    async def play():
        first, _ = await registry.create()
        second, _ = await registry.create()
        await registry.get(first).choose(0)
        return first, second

    first, second = asyncio.run(play())

    assert len(registry.get(first).history) == 1
    assert registry.get(second).history == []


@pytest.mark.parametrize("session_id", ["unknown", "", None])
def test_get_unknown_session_raises(session_id):
    with pytest.raises(SessionNotFound):
        make_registry().get(session_id)


def test_sessions_never_expire_without_ttl():
    clock = FakeClock()
    registry = make_registry(clock=clock)
    session_id, _ = asyncio.run(registry.create())

    clock.now += 10 ** 9

    assert registry.purge_expired() == 0
    assert registry.get(session_id).state is EngineState.ACTIVE


def test_idle_sessions_expire_with_ttl():
    clock = FakeClock()
    registry = make_registry(ttl_seconds=60, clock=clock)
    session_id, _ = asyncio.run(registry.create())

    clock.now += 30
    registry.get(session_id)  # refreshes last access
    clock.now += 45
    assert registry.get(session_id).state is EngineState.ACTIVE

    clock.now += 61
    with pytest.raises(SessionNotFound):
        registry.get(session_id)
    assert session_id not in registry


def test_create_purges_expired_sessions():
    clock = FakeClock()
    registry = make_registry(ttl_seconds=10, clock=clock)
    stale_id, _ = asyncio.run(registry.create())

    clock.now += 11
    fresh_id, _ = asyncio.run(registry.create())

    assert stale_id not in registry
    assert fresh_id in registry
    assert len(registry) == 1
