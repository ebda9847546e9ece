"""
Model-backed strategies: every one wraps a single LLMProvider.

These are the primary path of each chain. Replies are decoded with
schema.decode_payload(), so a malformed answer raises UnparseableResponse and
the resolver moves on to the next provider.
"""
from __future__ import annotations

import logging

from models import FACET_TYPES, Facet, AnalysisRecord, ProductCandidate
from providers import prompts
from providers.base import LLMProvider
from schema import decode_payload
from strategies.base import ChatTurn, Strategy

logger = logging.getLogger(__name__)

_FACET_PROMPTS = {
    Facet.INGREDIENTS: prompts.INGREDIENTS_PROMPT,
    Facet.COMPOSITION: prompts.COMPOSITION_PROMPT,
    Facet.REDDIT:      prompts.SENTIMENT_PROMPT,
    Facet.FEATURES:    prompts.FEATURES_PROMPT,
}


class VisionIdentify(Strategy):
    """Identify every product in the photo with a vision-capable model."""

    primary = True

    def __init__(self, provider: LLMProvider):
        self.provider = provider
        self.name = f"vision:{provider.full_name}"

    async def run(self, image_bytes: bytes) -> list[ProductCandidate]:
        raw = await self.provider.generate(
            prompts.IDENTIFY_PROMPT,
            image_bytes=image_bytes,
            system=prompts.SYSTEM_PROMPT,
        )
        candidates = decode_payload(raw, self.name, ProductCandidate.list_from_payload)
        logger.info("[%s] %d product(s): %s", self.name, len(candidates),
                    ", ".join(c.product_name for c in candidates))
        return candidates


class LlmFacet(Strategy):
    """
    Compute one facet from the record's identity and label text.
    grounded=True lets providers that support it search the web while answering.
    """

    primary = True

    def __init__(self, provider: LLMProvider, facet: Facet, grounded: bool = True):
        self.provider = provider
        self.facet = facet
        self.grounded = grounded and provider.supports_grounding
        self.name = f"{facet.value}:{provider.full_name}{'+search' if self.grounded else ''}"

    async def run(self, record: AnalysisRecord):
        prompt = prompts.build_facet_prompt(_FACET_PROMPTS[self.facet], record)
        raw = await self.provider.generate(
            prompt,
            system=prompts.SYSTEM_PROMPT,
            grounded=self.grounded,
        )
        return decode_payload(raw, self.name, FACET_TYPES[self.facet].from_payload)


class LlmChat(Strategy):

    primary = True

    def __init__(self, provider: LLMProvider):
        self.provider = provider
        self.name = f"chat:{provider.full_name}"

    async def run(self, turn: ChatTurn) -> str:
        return await self.provider.generate(
            prompts.build_chat_prompt(turn.record, turn.question),
            system=prompts.SYSTEM_PROMPT,
            grounded=self.provider.supports_grounding,
            max_tokens=1024,
        )
