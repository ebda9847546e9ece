"""
schema.py — the one decode step every adapter goes through.

Model replies arrive as free text that *should* be JSON but often isn't quite:
markdown fences, a sentence of preamble, trailing commentary. decode_payload()
recovers the JSON value and validates it with the target type's parser, so
every adapter raises UnparseableResponse the same way instead of each call
site re-implementing its own regex fallback.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, TypeVar

from errors import UnparseableResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not valid JSON")


def _loads(text: str) -> Any:
    return json.loads(text, parse_constant=_reject_constant)


def strip_fences(raw: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) fence."""
    return _FENCE_RE.sub("", raw.strip()).strip()


def extract_json(raw: str, source: str) -> Any:
    """
    Parse the JSON value in raw.
    Tries the whole (fence-stripped) text first, then the outermost [...] or {...} span.
    """
    if raw is None or not raw.strip():
        raise UnparseableResponse(source, "empty response")

    text = strip_fences(raw)
    try:
        return _loads(text)
    except ValueError:
        pass

    # Whichever bracket opens first decides whether we look for an array or an object
    spans = []
    for opener, closer in (("[", "]"), ("{", "}")):
        start, end = text.find(opener), text.rfind(closer)
        if start != -1 and end > start:
            spans.append((start, text[start:end + 1]))
    for _, candidate in sorted(spans):
        try:
            return _loads(candidate)
        except ValueError:
            continue

    logger.warning("[%s] Non-JSON response: %s", source, raw[:300])
    raise UnparseableResponse(source, "response is not valid JSON")


def validate(data: Any, source: str, parser: Callable[[Any], T]) -> T:
    """Run parser over an already-decoded JSON value; schema mismatches become UnparseableResponse."""
    try:
        return parser(data)
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("[%s] Response does not match schema: %s", source, exc)
        raise UnparseableResponse(source, f"schema mismatch: {exc}") from exc


def decode_payload(raw: str, source: str, parser: Callable[[Any], T]) -> T:
    return validate(extract_json(raw, source), source, parser)
