"""
Anthropic provider — Claude messages API with optional image input.

Useful as a last LLM opinion: good at reading fine print and small label text.
"""
from __future__ import annotations

import base64
import logging
from typing import Optional

import anthropic

from errors import AdapterUnavailable, RateLimited
from providers.base import LLMProvider, detect_mime

logger = logging.getLogger(__name__)


class AnthropicProvider(LLMProvider):

    name = "anthropic"

    def __init__(self, api_key: Optional[str], model: str = "claude-3-5-haiku-latest"):
        super().__init__(api_key, model, "ANTHROPIC_API_KEY")

    def _build_client(self, api_key: str):
        return anthropic.AsyncAnthropic(api_key=api_key)

    async def _complete(
        self,
        prompt: str,
        image_bytes: Optional[bytes],
        system: Optional[str],
        grounded: bool,
        max_tokens: int,
    ) -> Optional[str]:
        client = self.client()

        content: list[dict] = []
        if image_bytes is not None:
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": detect_mime(image_bytes),
                    "data": base64.b64encode(image_bytes).decode(),
                },
            })
        content.append({"type": "text", "text": prompt})

        kwargs = {}
        if system:
            kwargs["system"] = system

        try:
            message = await client.messages.create(
                model=self.model_id,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": content}],
                **kwargs,
            )
        except anthropic.RateLimitError as exc:
            raise RateLimited(self.full_name, str(exc)) from exc
        except anthropic.APIError as exc:
            raise AdapterUnavailable(self.full_name, str(exc)) from exc

        return "".join(block.text for block in message.content if getattr(block, "type", "") == "text")
