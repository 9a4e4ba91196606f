from __future__ import annotations

import itertools

import pytest

from storygame.engine import StoryEngine
from storygame.generation import GenerationClient, GenerationKind
from storygame.scenes import SceneGenerator

CHOICES_MARKER = "Generate 3 interesting"


class ScriptedProvider:
    """Provider double: answers per kind from a value or a callable(prompt)."""

    name = "scripted"

    def __init__(self, responses: dict | None = None, error: Exception | None = None):
        self.responses = responses or {}
        self.error = error
        self.calls: list[tuple[GenerationKind, str]] = []

    async def call(self, kind, prompt):
        self.calls.append((kind, prompt))
        if self.error is not None:
            raise self.error
        handler = self.responses.get(kind)
        if callable(handler):
            return handler(prompt)
        return handler

    def prompts(self, kind):
        return [prompt for k, prompt in self.calls if k is kind]


def story_provider() -> ScriptedProvider:
    """Distinct story text per call, a fixed image, audio and choice list."""
    counter = itertools.count(1)

    def text(prompt):
        if CHOICES_MARKER in prompt:
            return {"output": '```json\n["Open the door", "Run away", "Shout for help"]\n```'}
        return {"output": f"Scene {next(counter)}: the forest shifts around you."}

    return ScriptedProvider(
        {
            GenerationKind.TEXT: text,
            GenerationKind.IMAGE: {"images": [{"url": "https://img.test/scene.png"}]},
            GenerationKind.SPEECH: {"audio": {"url": "https://audio.test/scene.wav"}},
        }
    )


def make_engine(provider) -> StoryEngine:
    return StoryEngine(SceneGenerator(GenerationClient(provider)))


@pytest.fixture
def provider():
    return story_provider()


@pytest.fixture
def failing_provider():
    return ScriptedProvider(error=ConnectionError("provider unreachable"))
