import asyncio

import pytest

from conftest import make_engine
from storygame.engine import EngineState, SessionNotFound, select_choice
from storygame.generation import FALLBACK_TEXT, GenerationKind
from storygame.normalizer import DEFAULT_CHOICES
from storygame.prompts import OPENING_CONTEXT, START_ACTION


def test_start_on_fresh_engine(provider):
    engine = make_engine(provider)
    assert engine.state is EngineState.UNINITIALIZED

    scene = asyncio.run(engine.start())

    assert engine.state is EngineState.ACTIVE
    assert engine.current_scene is scene
    assert engine.history == []
    assert len(scene.choices) == 3
    story_prompt = provider.prompts(GenerationKind.TEXT)[0]
    assert f"Current story context: {OPENING_CONTEXT}" in story_prompt
    assert f"User just chose: {START_ACTION}" in story_prompt
    # the opening image pictures the opening context
    assert OPENING_CONTEXT in provider.prompts(GenerationKind.IMAGE)[0]


def test_start_with_every_provider_call_failing(failing_provider):
    engine = make_engine(failing_provider)

    scene = asyncio.run(engine.start())

    assert scene.text == FALLBACK_TEXT
    assert scene.image_url is None
    assert scene.audio_url is None
    assert scene.choices == list(DEFAULT_CHOICES)


def test_choose_appends_one_history_entry(provider):
    engine = make_engine(provider)

    async def play():
        first = await engine.start()
        second = await engine.choose(1)
        return first, second

    first, second = asyncio.run(play())

    assert len(engine.history) == 1
    assert engine.history[0] == first
    assert engine.history[0] is not first
    assert engine.current_scene is second
    assert second.text != first.text
    story_prompt = provider.prompts(GenerationKind.TEXT)[-2]
    assert f"Current story context: {first.text}" in story_prompt
    assert "User just chose: Run away" in story_prompt


def test_history_is_chronological(provider):
    engine = make_engine(provider)

    async def play():
        await engine.start()
        for index in (0, 2, 1):
            await engine.choose(index)

    asyncio.run(play())

    assert [s.text[:7] for s in engine.history] == ["Scene 1", "Scene 2", "Scene 3"]
    assert engine.current_scene.text.startswith("Scene 4")


def test_choose_before_start_is_session_fault(provider):
    engine = make_engine(provider)
    with pytest.raises(SessionNotFound):
        asyncio.run(engine.choose(0))
    assert provider.calls == []


@pytest.mark.parametrize("index", [-1, 3, 7, -5])
def test_out_of_range_index_uses_wrapped_default(provider, index):
    engine = make_engine(provider)

    async def play():
        await engine.start()
        return await engine.choose(index)

    scene = asyncio.run(play())

    assert scene.text
    story_prompt = provider.prompts(GenerationKind.TEXT)[-2]
    assert f"User just chose: {DEFAULT_CHOICES[index % 3]}" in story_prompt


def test_select_choice_handles_malformed_lists():
    assert select_choice(["a", "b", "c"], 2) == "c"
    assert select_choice(None, 1) == DEFAULT_CHOICES[1]
    assert select_choice(["a", "", "c"], 1) == DEFAULT_CHOICES[1]
    assert select_choice(["a", 5, "c"], 4) == DEFAULT_CHOICES[1]


def test_start_again_resets_story(provider):
    engine = make_engine(provider)

    async def play():
        await engine.start()
        await engine.choose(0)
        return await engine.start()

    restarted = asyncio.run(play())

    assert engine.history == []
    assert engine.current_scene is restarted
    assert restarted.text.startswith("Scene 3")


def test_concurrent_choices_on_one_session_are_serialized(provider):
    # a double-submitting client must not interleave two transitions
    engine = make_engine(provider)

    async def play():
        await engine.start()
        return await asyncio.gather(engine.choose(0), engine.choose(1))

    first, second = asyncio.run(play())

    assert [s.text[:7] for s in engine.history] == ["Scene 1", "Scene 2"]
    assert first.text.startswith("Scene 2")
    assert second.text.startswith("Scene 3")
    assert engine.current_scene is second
