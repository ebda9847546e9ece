"""
catalog.py — builds every fallback chain from Settings.

Chains:
  identify                      vision per provider → OCR fallback → placeholder product
  facet (normal record)         LLM per provider (grounded first) → degraded chain
  facet (degraded record)       lookup backends and heuristics only → safe default
  chat                          LLM per provider → apology

Providers are instantiated even when their key is missing: the call fails fast
with MissingCredentials and the chain moves on, so the log shows which key to set.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from config import Settings
from fallback import FallbackChain, Resolver
from lookup_backends.ocr_space import OcrSpaceBackend
from lookup_backends.open_facts import OpenFactsBackend
from lookup_backends.reddit import RedditSearchBackend
from lookup_backends.usda_fdc import UsdaFdcBackend
from lookup_backends.web_search import WebSearchBackend
from models import FACET_TYPES, Facet, placeholder_candidate
from providers.base import LLMProvider
from strategies import llm, lookup
from strategies.base import Strategy

logger = logging.getLogger(__name__)

CHAT_APOLOGY = "Sorry, I encountered an error while processing your question. Please try again."


@dataclass
class LookupBackends:
    ocr: OcrSpaceBackend
    food_facts: OpenFactsBackend
    beauty_facts: OpenFactsBackend
    usda: UsdaFdcBackend
    reddit: RedditSearchBackend
    web: WebSearchBackend

    @classmethod
    def from_settings(cls, settings: Settings) -> "LookupBackends":
        return cls(
            ocr=OcrSpaceBackend(settings.ocr_api_key),
            food_facts=OpenFactsBackend("food"),
            beauty_facts=OpenFactsBackend("beauty"),
            usda=UsdaFdcBackend(settings.usda_api_key),
            reddit=RedditSearchBackend(),
            web=WebSearchBackend(),
        )


def build_providers(settings: Settings) -> list[LLMProvider]:
    """One provider per name in settings.llm_providers, in that order."""
    providers: list[LLMProvider] = []
    for name in settings.llm_providers:
        if name == "gemini":
            from providers.gemini_provider import GeminiProvider
            p = GeminiProvider(settings.gemini_api_key, settings.gemini_model)
        elif name == "openai":
            from providers.openai_provider import OpenAIProvider
            p = OpenAIProvider(settings.openai_api_key, settings.openai_model)
        elif name == "anthropic":
            from providers.anthropic_provider import AnthropicProvider
            p = AnthropicProvider(settings.anthropic_api_key, settings.anthropic_model)
        else:
            logger.warning("Unknown LLM provider %r ignored", name)
            continue
        providers.append(p)
        if p.configured:
            logger.info("Loaded provider: %s", p.full_name)
        else:
            logger.warning("Provider %s has no API key; it will be skipped at call time", p.full_name)
    return providers


class StrategyCatalog:

    def __init__(
        self,
        settings: Settings,
        providers: Optional[list[LLMProvider]] = None,
        backends: Optional[LookupBackends] = None,
        resolver: Optional[Resolver] = None,
    ):
        self.settings = settings
        self.providers = build_providers(settings) if providers is None else providers
        self.backends = backends or LookupBackends.from_settings(settings)
        self.resolver = resolver or Resolver.from_settings(settings)

    # ── Identification ────────────────────────────────────────────────────────

    def identify_chain(self) -> FallbackChain:
        b = self.backends
        scan_chain = FallbackChain(
            task="identify:ocr",
            strategies=[
                lookup.BarcodeIdentify(b.food_facts),
                lookup.BarcodeIdentify(b.beauty_facts),
                lookup.LabelTextIdentify(),
            ],
            default=lambda: None,
        )
        strategies: list[Strategy] = [llm.VisionIdentify(p) for p in self.providers]
        strategies.append(lookup.OcrFallbackIdentify(b.ocr, self.resolver, scan_chain))
        return FallbackChain(
            task="identify",
            strategies=strategies,
            default=lambda: [placeholder_candidate()],
        )

    # ── Facets ────────────────────────────────────────────────────────────────

    def facet_chain(self, facet: Facet, degraded: bool) -> FallbackChain:
        strategies: list[Strategy] = []
        if not degraded:
            # Providers that can search the web go first
            ordered = sorted(self.providers, key=lambda p: not p.supports_grounding)
            strategies.extend(llm.LlmFacet(p, facet) for p in ordered)
        strategies.extend(self._degraded_strategies(facet))
        return FallbackChain(
            task=f"facet:{facet.value}",
            strategies=strategies,
            default=FACET_TYPES[facet].safe_default,
        )

    def _degraded_strategies(self, facet: Facet) -> list[Strategy]:
        b = self.backends
        barcode_dbs = [b.food_facts, b.beauty_facts]
        if facet is Facet.INGREDIENTS:
            return [
                lookup.BarcodeIngredients(barcode_dbs),
                lookup.WebIngredients(b.web),
                lookup.KeywordIngredients(),
            ]
        if facet is Facet.COMPOSITION:
            return [
                lookup.BarcodeComposition([b.food_facts]),
                lookup.UsdaComposition(b.usda),
                lookup.WebComposition(b.web),
            ]
        if facet is Facet.REDDIT:
            return [
                lookup.RedditSentiment(b.reddit),
                lookup.WebSentiment(b.web),
            ]
        if facet is Facet.FEATURES:
            return [lookup.BarcodeFeatures(barcode_dbs)]
        raise ValueError(f"Unknown facet: {facet}")

    # ── Chat ──────────────────────────────────────────────────────────────────

    def chat_chain(self) -> FallbackChain:
        return FallbackChain(
            task="chat",
            strategies=[llm.LlmChat(p) for p in self.providers],
            default=lambda: CHAT_APOLOGY,
        )
