# storygame/scenes.py
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field, replace
from typing import List, Optional

from storygame.generation import GenerationClient

logger = logging.getLogger(__name__)

IMAGE_TEXT_LIMIT = 100
NARRATOR_TAG = "[S1]"

_SPEAKER_TAG_RE = re.compile(r"\[S\d+\]")


@dataclass
class Scene:
    text: str
    image_url: Optional[str] = None
    audio_url: Optional[str] = None
    choices: List[str] = field(default_factory=list)

    def copy(self) -> "Scene":
        return replace(self, choices=list(self.choices))


def with_narrator_tag(text: str) -> str:
    """Prefix the narrator speaker tag unless the text already carries one."""
    if _SPEAKER_TAG_RE.search(text):
        return text
    return f"{NARRATOR_TAG} {text}"


def image_subject(action: str, text: str) -> str:
    return f"{action} - {text[:IMAGE_TEXT_LIMIT]}"


class SceneGenerator:
    """Builds the next Scene from the previous story text and the chosen action.

    Story text is generated first since every other prompt is derived from it.
    Image, narration and choices are then requested concurrently; each one
    degrades to its own fallback without affecting the others.
    """

    def __init__(self, client: GenerationClient):
        self.client = client

    async def next_scene(self, previous_text: str, action: str, subject: Optional[str] = None) -> Scene:
        text = await self.client.generate_text(previous_text, action)
        logger.info("Story text ready for action %r", action)

        if subject is None:
            subject = image_subject(action, text)

        image_url, audio_url, choices = await asyncio.gather(
            self.client.generate_image(subject),
            self.client.generate_speech(with_narrator_tag(text)),
            self.client.generate_choices(text),
        )
        return Scene(text=text, image_url=image_url, audio_url=audio_url, choices=choices)
