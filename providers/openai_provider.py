"""
OpenAI provider — chat completions with optional image input (gpt-4o family).
No web grounding: the grounded prompts still work, answered from model knowledge.
"""
from __future__ import annotations

import base64
import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from errors import AdapterUnavailable, RateLimited
from providers.base import LLMProvider, detect_mime

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):

    name = "openai"

    def __init__(self, api_key: Optional[str], model: str = "gpt-4o-mini"):
        super().__init__(api_key, model, "OPENAI_API_KEY")

    def _build_client(self, api_key: str):
        return AsyncOpenAI(api_key=api_key)

    async def _complete(
        self,
        prompt: str,
        image_bytes: Optional[bytes],
        system: Optional[str],
        grounded: bool,
        max_tokens: int,
    ) -> Optional[str]:
        client = self.client()

        if image_bytes is not None:
            b64 = base64.b64encode(image_bytes).decode()
            content = [
                {
                    "type": "image_url",
                    "image_url": {
                        "url": f"data:{detect_mime(image_bytes)};base64,{b64}",
                        "detail": "high",
                    },
                },
                {"type": "text", "text": prompt},
            ]
        else:
            content = prompt

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": content})

        try:
            response = await client.chat.completions.create(
                model=self.model_id,
                max_tokens=max_tokens,
                temperature=0,
                messages=messages,
            )
        except openai.RateLimitError as exc:
            raise RateLimited(self.full_name, str(exc)) from exc
        except openai.APIError as exc:
            raise AdapterUnavailable(self.full_name, str(exc)) from exc

        return response.choices[0].message.content
