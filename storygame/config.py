"""
storygame/config.py

Environment-driven settings + logging setup.
`.env` is loaded before anything reads the environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

PROVIDER_FAL = "fal"
PROVIDER_GEMINI = "gemini"

# credential variable per provider
_CREDENTIAL_ENV = {
    PROVIDER_FAL: "FAL_KEY",
    PROVIDER_GEMINI: "GOOGLE_API_KEY",
}

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _optional_float(name: str, default: Optional[float] = None) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = float(raw)
    # 0 switches the limit off
    return value if value > 0 else None


@dataclass(frozen=True)
class Settings:
    provider: str = PROVIDER_FAL
    fal_key: Optional[str] = None
    google_api_key: Optional[str] = None
    fal_text_model: str = "fal-ai/any-llm"
    fal_image_model: str = "fal-ai/flux/schnell"
    fal_speech_model: str = "fal-ai/dia-tts"
    gemini_model: str = "gemini-1.5-flash"
    generation_timeout: Optional[float] = 120.0
    session_ttl_seconds: Optional[float] = None
    media_dir: str = "media"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        provider = os.getenv("STORY_PROVIDER", PROVIDER_FAL).strip().lower()
        if provider not in _CREDENTIAL_ENV:
            raise ValueError(
                f"STORY_PROVIDER must be one of {sorted(_CREDENTIAL_ENV)}, got {provider!r}"
            )
        origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
        return cls(
            provider=provider,
            fal_key=os.getenv("FAL_KEY") or None,
            google_api_key=os.getenv("GOOGLE_API_KEY") or None,
            fal_text_model=os.getenv("FAL_TEXT_MODEL", cls.fal_text_model),
            fal_image_model=os.getenv("FAL_IMAGE_MODEL", cls.fal_image_model),
            fal_speech_model=os.getenv("FAL_SPEECH_MODEL", cls.fal_speech_model),
            gemini_model=os.getenv("GEMINI_MODEL", cls.gemini_model),
            generation_timeout=_optional_float("GENERATION_TIMEOUT", 120.0),
            session_ttl_seconds=_optional_float("SESSION_TTL_SECONDS"),
            media_dir=os.getenv("MEDIA_DIR", cls.media_dir),
            cors_origins=origins or ["*"],
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            host=os.getenv("HOST", cls.host),
            port=int(os.getenv("PORT", cls.port)),
        )

    @property
    def credential_env(self) -> str:
        return _CREDENTIAL_ENV[self.provider]

    def require_credentials(self) -> str:
        """Return the active provider's credential or fail fast."""
        key = self.fal_key if self.provider == PROVIDER_FAL else self.google_api_key
        if not key:
            raise RuntimeError(
                f"Environment variable {self.credential_env} must be set for story generation"
            )
        return key


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
