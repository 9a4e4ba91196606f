"""
storygame/generation.py

Downstream generation calls behind one contract:
 • GenerationClient.generate(kind, prompt) – raw provider result or GenerationFailure
 • generate_text / generate_image / generate_speech / generate_choices – normalized values

Provider back ends:
 • FalProvider     – fal.ai queue API (any-llm, flux, dia-tts)
 • GeminiProvider  – Gemini text via google.generativeai, MP3 narration via gTTS

A failed call never propagates: it is logged and the caller gets the
fallback value for that field.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Union

import fal_client
import google.generativeai as genai
from google.generativeai import types
from gtts import gTTS

from storygame import normalizer, prompts
from storygame.config import PROVIDER_FAL, Settings

logger = logging.getLogger(__name__)

FALLBACK_TEXT = "The adventure continues... (Error generating story text)"
MEDIA_ROUTE = "/media"

_SPEAKER_TAG_RE = re.compile(r"\[S\d+\]\s*")


class GenerationKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    SPEECH = "speech"


@dataclass(frozen=True)
class GenerationFailure:
    kind: GenerationKind
    message: str
    status_code: Optional[int] = None

    @property
    def is_auth_error(self) -> bool:
        return self.status_code == 401


RawResult = Any


class UnsupportedGeneration(Exception):
    """The configured provider has no model for this kind of output."""


def _status_code(exc: BaseException) -> Optional[int]:
    """Best-effort HTTP status of an SDK exception (or the one it wraps)."""
    for candidate in (exc, exc.__cause__):
        if candidate is None:
            continue
        for attr in ("status_code", "status", "code"):
            code = getattr(candidate, attr, None)
            if isinstance(code, int) and 100 <= code < 600:
                return int(code)
        response = getattr(candidate, "response", None)
        code = getattr(response, "status_code", None)
        if isinstance(code, int):
            return code
    return None


def strip_speaker_tags(text: str) -> str:
    return _SPEAKER_TAG_RE.sub("", text).strip()


# ───────────────────────────── providers ───────────────────────────────

def _log_queue_update(update: Any) -> None:
    if isinstance(update, fal_client.InProgress):
        for entry in update.logs or []:
            logger.debug("fal: %s", entry.get("message") if isinstance(entry, dict) else entry)


class FalProvider:
    name = PROVIDER_FAL

    def __init__(
        self,
        key: str,
        text_model: str = "fal-ai/any-llm",
        image_model: str = "fal-ai/flux/schnell",
        speech_model: str = "fal-ai/dia-tts",
        client: Any = None,
    ):
        self._client = client or fal_client.AsyncClient(key=key)
        self._routes = {
            GenerationKind.TEXT: (text_model, "prompt"),
            GenerationKind.IMAGE: (image_model, "prompt"),
            GenerationKind.SPEECH: (speech_model, "text"),
        }

    async def call(self, kind: GenerationKind, prompt: str) -> RawResult:
        application, argument = self._routes[kind]
        return await self._client.subscribe(
            application,
            arguments={argument: prompt},
            with_logs=True,
            on_queue_update=_log_queue_update,
        )


class GeminiProvider:
    name = "gemini"

    def __init__(self, api_key: str, model_name: str, media_dir: str | Path, model: Any = None):
        genai.configure(api_key=api_key)
        self._model = model or genai.GenerativeModel(model_name)
        self._media_dir = Path(media_dir)

    async def call(self, kind: GenerationKind, prompt: str) -> RawResult:
        if kind is GenerationKind.TEXT:
            resp = await self._model.generate_content_async(
                prompt,
                generation_config=types.GenerationConfig(
                    temperature=0.8,
                    top_p=0.95,
                    top_k=50,
                    max_output_tokens=1024,
                ),
            )
            return {"output": resp.text.strip()}
        if kind is GenerationKind.SPEECH:
            filename = await asyncio.to_thread(self._synthesize, prompt)
            return {"audio": {"url": f"{MEDIA_ROUTE}/audio/{filename}"}}
        raise UnsupportedGeneration(f"{self.name} provider cannot generate {kind.value}")

    def _synthesize(self, text: str) -> str:
        """Write narration MP3 under <media>/audio and return its file name."""
        filename = f"scene_{uuid.uuid4().hex[:12]}.mp3"
        path = self._media_dir / "audio" / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Generating gTTS MP3 → %s", path)
        gTTS(text=strip_speaker_tags(text) or " ", lang="en").save(str(path))
        return filename


# ────────────────────────────── client ─────────────────────────────────

class GenerationClient:
    def __init__(self, provider: Any, timeout: Optional[float] = None, credential_env: str = "FAL_KEY"):
        self.provider = provider
        self.timeout = timeout
        self.credential_env = credential_env

    async def generate(self, kind: GenerationKind, prompt: str) -> Union[RawResult, GenerationFailure]:
        """One attempt against the provider; every error becomes a GenerationFailure."""
        logger.info("Generating %s...", kind.value)
        try:
            result = await asyncio.wait_for(self.provider.call(kind, prompt), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("Timed out generating %s after %ss", kind.value, self.timeout)
            return GenerationFailure(kind, f"timed out after {self.timeout}s")
        except Exception as exc:
            failure = GenerationFailure(kind, str(exc) or type(exc).__name__, _status_code(exc))
            if failure.is_auth_error:
                logger.error(
                    "Authentication failed for %s generation. Please check your %s.",
                    kind.value,
                    self.credential_env,
                )
            else:
                logger.error("Error generating %s: %s", kind.value, exc, exc_info=True)
            return failure

        logger.info("%s generation completed", kind.value.capitalize())
        logger.debug("%s response: %s", kind.value, normalizer.describe_response(result))
        return result

    async def generate_text(self, context: str, action: str) -> str:
        result = await self.generate(GenerationKind.TEXT, prompts.story_prompt(context, action))
        if isinstance(result, GenerationFailure):
            return FALLBACK_TEXT
        return normalizer.normalize_text(result)

    async def generate_image(self, scene_description: str) -> Optional[str]:
        result = await self.generate(GenerationKind.IMAGE, prompts.image_prompt(scene_description))
        if isinstance(result, GenerationFailure):
            return None
        return normalizer.normalize_image_url(result)

    async def generate_speech(self, text: str) -> Optional[str]:
        logger.debug("Generating speech for: %s...", text[:100])
        result = await self.generate(GenerationKind.SPEECH, text)
        if isinstance(result, GenerationFailure):
            return None
        return normalizer.normalize_audio_url(result)

    async def generate_choices(self, scene_text: str) -> List[str]:
        result = await self.generate(GenerationKind.TEXT, prompts.choices_prompt(scene_text))
        if isinstance(result, GenerationFailure):
            return list(normalizer.DEFAULT_CHOICES)
        return normalizer.normalize_choices(result)


def build_client(settings: Settings) -> GenerationClient:
    key = settings.require_credentials()
    if settings.provider == PROVIDER_FAL:
        provider = FalProvider(
            key,
            text_model=settings.fal_text_model,
            image_model=settings.fal_image_model,
            speech_model=settings.fal_speech_model,
        )
    else:
        provider = GeminiProvider(key, settings.gemini_model, settings.media_dir)
    logger.info("%s client configured successfully", provider.name)
    return GenerationClient(provider, timeout=settings.generation_timeout, credential_env=settings.credential_env)
