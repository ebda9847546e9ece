"""
Shared base class for all LLM providers.

A provider is a thin transport: prompt (+ optional image) in, raw text out.
What the text *means* (product candidates, ingredient ratings, a chat answer)
is decided by the strategies in strategies/llm.py, which decode it through
schema.decode_payload().

Every provider translates its SDK's exceptions into the adapter taxonomy:
  throttled          → RateLimited
  any other API error → AdapterUnavailable
  key not configured → MissingCredentials (before any network call)
  empty reply        → UnparseableResponse
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from errors import MissingCredentials, UnparseableResponse

logger = logging.getLogger(__name__)


def detect_mime(image_bytes: bytes) -> str:
    """Sniff the image type from its magic bytes (default jpeg)."""
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:4] == b"GIF8":
        return "image/gif"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


class LLMProvider(ABC):
    """Base class all LLM providers must implement."""

    name: str                           # e.g. "openai"
    # True when the provider can ground answers in live web search results
    supports_grounding: bool = False

    def __init__(self, api_key: Optional[str], model: str, key_name: str):
        self.model_id = model
        self._api_key = api_key
        self._key_name = key_name
        self._client = None

    @property
    def full_name(self) -> str:
        return f"{self.name}/{self.model_id}"

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def client(self):
        """SDK client, built on first use. Raises MissingCredentials when the key isn't set."""
        if not self._api_key:
            raise MissingCredentials(self.full_name, self._key_name)
        if self._client is None:
            self._client = self._build_client(self._api_key)
        return self._client

    @abstractmethod
    def _build_client(self, api_key: str):
        ...

    @abstractmethod
    async def _complete(
        self,
        prompt: str,
        image_bytes: Optional[bytes],
        system: Optional[str],
        grounded: bool,
        max_tokens: int,
    ) -> Optional[str]:
        ...

    async def generate(
        self,
        prompt: str,
        *,
        image_bytes: Optional[bytes] = None,
        system: Optional[str] = None,
        grounded: bool = False,
        max_tokens: int = 2048,
    ) -> str:
        """Run one completion and return the reply text."""
        raw = await self._complete(
            prompt,
            image_bytes,
            system,
            grounded and self.supports_grounding,
            max_tokens,
        )
        if not raw or not raw.strip():
            raise UnparseableResponse(self.full_name, "empty response")
        return raw.strip()
