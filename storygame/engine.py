# storygame/engine.py
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, List, Optional

from storygame.normalizer import DEFAULT_CHOICES
from storygame.prompts import OPENING_CONTEXT, START_ACTION
from storygame.scenes import Scene, SceneGenerator

logger = logging.getLogger(__name__)


class SessionNotFound(LookupError):
    """No started game exists for the requested session."""


class EngineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"


def select_choice(choices: Any, index: int) -> str:
    """Label for `index`, or a wrapped default when it cannot be resolved."""
    if isinstance(choices, list) and 0 <= index < len(choices):
        label = choices[index]
        if isinstance(label, str) and label.strip():
            return label
    return DEFAULT_CHOICES[index % len(DEFAULT_CHOICES)]


class StoryEngine:
    """One player's story: the current scene plus every scene before it."""

    def __init__(self, generator: SceneGenerator):
        self.generator = generator
        self.current_scene: Optional[Scene] = None
        self.history: List[Scene] = []
        self._lock = asyncio.Lock()

    @property
    def state(self) -> EngineState:
        return EngineState.UNINITIALIZED if self.current_scene is None else EngineState.ACTIVE

    async def start(self) -> Scene:
        # restarting an active story throws the old one away
        async with self._lock:
            scene = await self.generator.next_scene(OPENING_CONTEXT, START_ACTION, subject=OPENING_CONTEXT)
            self.history = []
            self.current_scene = scene
            logger.info("Story started")
            return scene

    async def choose(self, index: int) -> Scene:
        async with self._lock:
            if self.current_scene is None:
                raise SessionNotFound("Game session has not been started")

            selected = select_choice(self.current_scene.choices, index)
            self.history.append(self.current_scene.copy())

            scene = await self.generator.next_scene(self.current_scene.text, selected)
            self.current_scene = scene
            logger.info("Choice %d (%r) applied, history length %d", index, selected, len(self.history))
            return scene
