"""
Shared pytest fixtures and test doubles.

Every test gets its own Settings (short timeouts, no retry delay, DATA_DIR in
a tmp directory) and a fresh in-memory store, so tests are fully isolated
from each other and from the real data/ directory.

Test doubles:
  FakeStrategy   scripted outcomes per call (value, None or exception), counts calls
  FakeProvider   LLMProvider with scripted replies, records the prompts it saw
  FakeCatalog    StrategyCatalog stand-in built from FakeStrategy lists
"""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from catalog import CHAT_APOLOGY, LookupBackends  # noqa: E402
from config import Settings  # noqa: E402
from fallback import FallbackChain, Resolver  # noqa: E402
from models import (  # noqa: E402
    FACET_TYPES,
    ExtractedText,
    Facet,
    ProductCandidate,
    placeholder_candidate,
)
from providers.base import LLMProvider  # noqa: E402
from storage.memory_store import MemoryStore  # noqa: E402
from strategies.base import Strategy  # noqa: E402

# Smallest valid PNG header; detect_mime() only looks at the magic bytes
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


# ── Test doubles ──────────────────────────────────────────────────────────────

class FakeStrategy(Strategy):
    """
    Each call consumes the next scripted outcome; the last one repeats.
    An outcome that is an exception instance is raised, a callable is called
    with the subject, anything else is returned as-is.
    """

    def __init__(self, name: str, *outcomes: Any, primary: bool = False, delay: float = 0.0):
        self.name = name
        self.primary = primary
        self.outcomes = list(outcomes)
        self.delay = delay
        self.calls = 0
        self.subjects: list = []

    async def run(self, subject):
        self.calls += 1
        self.subjects.append(subject)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.outcomes:
            return None
        outcome = self.outcomes[min(self.calls, len(self.outcomes)) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(subject)
        return outcome


class FakeProvider(LLMProvider):

    def __init__(self, name: str, *replies: Any, grounding: bool = False, api_key: Optional[str] = "test-key"):
        super().__init__(api_key, "fake-model", f"{name.upper()}_API_KEY")
        self.name = name
        self.supports_grounding = grounding
        self.replies = list(replies)
        self.prompts: list[str] = []
        self.grounded_calls = 0
        self.images: list = []

    def _build_client(self, api_key: str):
        return object()

    async def _complete(self, prompt, image_bytes, system, grounded, max_tokens):
        self.client()
        self.prompts.append(prompt)
        self.images.append(image_bytes)
        if grounded:
            self.grounded_calls += 1
        reply = self.replies.pop(0) if len(self.replies) > 1 else (self.replies[0] if self.replies else "")
        if isinstance(reply, BaseException):
            raise reply
        return reply


class FakeCatalog:
    """Same chain shapes as StrategyCatalog, built from the given strategies."""

    def __init__(
        self,
        identify: Optional[list[Strategy]] = None,
        facets: Optional[dict[Facet, list[Strategy]]] = None,
        degraded_facets: Optional[dict[Facet, list[Strategy]]] = None,
        chat: Optional[list[Strategy]] = None,
    ):
        self.providers: list[LLMProvider] = []
        self.identify = identify or []
        self.facets = facets or {}
        self.degraded_facets = degraded_facets or {}
        self.chat = chat or []

    def identify_chain(self) -> FallbackChain:
        return FallbackChain("identify", list(self.identify), lambda: [placeholder_candidate()])

    def facet_chain(self, facet: Facet, degraded: bool) -> FallbackChain:
        strategies = [] if degraded else list(self.facets.get(facet, []))
        strategies += self.degraded_facets.get(facet, [])
        return FallbackChain(f"facet:{facet.value}", strategies, FACET_TYPES[facet].safe_default)

    def chat_chain(self) -> FallbackChain:
        return FallbackChain("chat", list(self.chat), lambda: CHAT_APOLOGY)


def make_candidate(name: str = "Crunchy Oats", **overrides) -> ProductCandidate:
    fields = dict(
        product_name=name,
        extracted_text=ExtractedText(
            ingredients="Whole grain oats, sugar, salt",
            nutrition="Calories 120, Fat 2g, Protein 3g",
            brand="Acme",
        ),
        summary=f"{name} breakfast cereal.",
    )
    fields.update(overrides)
    return ProductCandidate(**fields)


def mock_backends(**overrides) -> LookupBackends:
    """LookupBackends whose every call is an AsyncMock returning nothing."""
    ocr = MagicMock()
    ocr.extract = AsyncMock()
    food, beauty = MagicMock(), MagicMock()
    food.name, beauty.name = "openfoodfacts", "openbeautyfacts"
    food.lookup = AsyncMock(return_value=None)
    beauty.lookup = AsyncMock(return_value=None)
    usda = MagicMock()
    usda.lookup = AsyncMock(return_value=None)
    reddit = MagicMock()
    reddit.search = AsyncMock(return_value=[])
    web = MagicMock()
    web.search = AsyncMock(return_value=[])
    fields = dict(ocr=ocr, food_facts=food, beauty_facts=beauty, usda=usda, reddit=reddit, web=web)
    fields.update(overrides)
    return LookupBackends(**fields)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        llm_providers=(),
        adapter_timeout=1.0,
        adapter_retries=1,
        retry_delay=0.0,
        data_dir=tmp_path / "data",
    )


@pytest.fixture
def resolver(settings) -> Resolver:
    return Resolver.from_settings(settings)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()
