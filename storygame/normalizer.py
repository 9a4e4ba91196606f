"""
storygame/normalizer.py

Turns raw provider envelopes into canonical scene fields:
 • normalize_text()      – story text, never empty
 • normalize_choices()   – exactly three non-empty choice labels
 • normalize_image_url() / normalize_audio_url() – media URLs or None

Providers answer in whatever shape they like (bare strings, `{"output": ...}`,
`{"data": {...}}`, lists, prose with a fenced JSON array inside). Every
envelope is first classified into one of a small set of variants and the
normalizers dispatch on that variant. None of the public functions raise.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_TEXT = "The adventure continues..."
ERROR_TEXT = "The story continues..."
DEFAULT_CHOICES = (
    "Continue exploring",
    "Take a different path",
    "Stop and observe your surroundings",
)
CHOICE_COUNT = 3

# priority order when an object carries prose under some other key
TEXT_FIELDS = ("text", "content", "response", "message")

_FENCED_ARRAY_RE = re.compile(r"```(?:json)?\s*(\[[\s\S]*?\])\s*```", re.IGNORECASE)
_QUOTED_RE = re.compile(r'"(.*?)"')
_LIST_MARKER_RE = re.compile(r"^[0-9\-\*\.\)]+\s*")
_SKIP_WORDS = ("options", "choices")


# ───────────────────────── envelope variants ───────────────────────────

@dataclass(frozen=True)
class PlainString:
    value: str


@dataclass(frozen=True)
class ObjectWithOutput:
    output: Any


@dataclass(frozen=True)
class ObjectWithTextLike:
    field: str
    value: Any


@dataclass(frozen=True)
class ArrayOfStrings:
    items: list


@dataclass(frozen=True)
class Unrecognized:
    raw: Any


Envelope = Union[PlainString, ObjectWithOutput, ObjectWithTextLike, ArrayOfStrings, Unrecognized]


def _present(value: Any) -> bool:
    return value is not None and value != "" and value != [] and value != {}


def classify_response(raw: Any) -> Envelope:
    """Classify a provider envelope, unwrapping a `data` payload first."""
    if isinstance(raw, dict) and _present(raw.get("data")):
        return classify_response(raw["data"])
    if isinstance(raw, str):
        return PlainString(raw)
    if isinstance(raw, (list, tuple)):
        return ArrayOfStrings(list(raw))
    if isinstance(raw, dict):
        if _present(raw.get("output")):
            return ObjectWithOutput(raw["output"])
        for name in TEXT_FIELDS:
            if _present(raw.get(name)):
                return ObjectWithTextLike(name, raw[name])
    return Unrecognized(raw)


def describe_response(raw: Any) -> str:
    """One-line summary of an envelope for debug logs."""
    try:
        if isinstance(raw, dict):
            sample = json.dumps(raw, default=str)[:150]
            return f"type=dict keys={list(raw)} sample={sample}..."
        if isinstance(raw, (list, tuple)):
            sample = json.dumps(list(raw), default=str)[:150]
            return f"type={type(raw).__name__} len={len(raw)} sample={sample}..."
        return f"type={type(raw).__name__} value={str(raw)[:150]}..."
    except Exception as exc:
        return f"type={type(raw).__name__} (unprintable: {exc})"


# ───────────────────────────── text ────────────────────────────────────

def _text_from_string(value: str) -> str:
    try:
        parsed = json.loads(value)
    except ValueError:
        return value
    if isinstance(parsed, dict) and isinstance(parsed.get("output"), str) and parsed["output"]:
        return parsed["output"]
    return value


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def normalize_text(raw: Any) -> str:
    try:
        if raw is None:
            return DEFAULT_TEXT

        envelope = classify_response(raw)
        if isinstance(envelope, PlainString):
            text = _text_from_string(envelope.value)
        elif isinstance(envelope, ObjectWithOutput):
            text = _as_text(envelope.output)
        elif isinstance(envelope, ObjectWithTextLike):
            text = _as_text(envelope.value)
        elif isinstance(envelope, ArrayOfStrings):
            text = json.dumps(envelope.items, default=str)
        else:
            if envelope.raw is None:
                return DEFAULT_TEXT
            # keep whatever came back rather than dropping it
            text = _as_text(envelope.raw)

        return text if text.strip() else DEFAULT_TEXT
    except Exception:
        logger.warning("Could not normalize story text", exc_info=True)
        return ERROR_TEXT


# ──────────────────────────── choices ──────────────────────────────────

def _clean_items(items: list) -> List[str]:
    cleaned = []
    for item in items:
        if item is None:
            continue
        label = item.strip() if isinstance(item, str) else json.dumps(item, default=str)
        if label:
            cleaned.append(label)
    return cleaned


def _fit(choices: List[str]) -> List[str]:
    if not choices:
        return list(DEFAULT_CHOICES)
    if len(choices) < CHOICE_COUNT:
        return choices + list(DEFAULT_CHOICES[: CHOICE_COUNT - len(choices)])
    return choices[:CHOICE_COUNT]


def _choices_from_json_array(text: str) -> Optional[List[str]]:
    candidates = [m.group(1) for m in _FENCED_ARRAY_RE.finditer(text)]
    stripped = text.strip()
    if stripped.startswith("[") and stripped.endswith("]"):
        candidates.append(stripped)
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            logger.debug("Ignoring unparsable JSON array in choices response")
            continue
        if isinstance(parsed, list):
            cleaned = _clean_items(parsed)
            if cleaned:
                return cleaned
    return None


def _choices_from_quotes(text: str) -> Optional[List[str]]:
    cleaned = [m.strip() for m in _QUOTED_RE.findall(text) if m.strip()]
    return cleaned or None


def _choices_from_lines(text: str) -> Optional[List[str]]:
    lines = []
    for line in text.splitlines():
        line = line.strip()
        lowered = line.lower()
        if not line or "```" in line or any(word in lowered for word in _SKIP_WORDS):
            continue
        label = _LIST_MARKER_RE.sub("", line).strip()
        if label:
            lines.append(label)
    if len(lines) < CHOICE_COUNT:
        return None
    return lines[:CHOICE_COUNT]


def _choices_from_text(text: str) -> Optional[List[str]]:
    for extract in (_choices_from_json_array, _choices_from_quotes, _choices_from_lines):
        found = extract(text)
        if found:
            return found
    return None


def normalize_choices(raw: Any) -> List[str]:
    try:
        if isinstance(raw, (list, tuple)):
            return _fit(_clean_items(list(raw)))
        if not isinstance(raw, dict):
            logger.warning("Invalid choices response, using defaults")
            return list(DEFAULT_CHOICES)

        envelope = classify_response(raw)
        if isinstance(envelope, ArrayOfStrings):
            return _fit(_clean_items(envelope.items))

        if isinstance(envelope, PlainString):
            payload = envelope.value
        elif isinstance(envelope, ObjectWithOutput):
            payload = envelope.output
        elif isinstance(envelope, ObjectWithTextLike):
            payload = envelope.value
        else:
            payload = None

        if isinstance(payload, (list, tuple)):
            return _fit(_clean_items(list(payload)))
        if isinstance(payload, str):
            found = _choices_from_text(payload)
            if found:
                return _fit(found)

        logger.warning("Could not extract valid choices, using defaults")
        return list(DEFAULT_CHOICES)
    except Exception:
        logger.error("Error extracting choices", exc_info=True)
        return list(DEFAULT_CHOICES)


# ───────────────────────────── media ───────────────────────────────────

def _unwrap(raw: Any) -> Any:
    if isinstance(raw, dict) and isinstance(raw.get("data"), dict):
        return raw["data"]
    return raw


def normalize_image_url(raw: Any) -> Optional[str]:
    try:
        payload = _unwrap(raw)
        if not isinstance(payload, dict):
            return None
        for image in payload.get("images") or []:
            if isinstance(image, dict) and isinstance(image.get("url"), str) and image["url"]:
                return image["url"]
            if isinstance(image, str) and image:
                return image
        return None
    except Exception:
        logger.warning("Could not read image URL", exc_info=True)
        return None


def normalize_audio_url(raw: Any) -> Optional[str]:
    try:
        payload = _unwrap(raw)
        if not isinstance(payload, dict):
            return None
        audio = payload.get("audio")
        if isinstance(audio, dict) and isinstance(audio.get("url"), str) and audio["url"]:
            return audio["url"]
        if isinstance(payload.get("audio_url"), str) and payload["audio_url"]:
            return payload["audio_url"]
        logger.warning("No audio URL found in the response")
        return None
    except Exception:
        logger.warning("Could not read audio URL", exc_info=True)
        return None
