"""
Google Gemini provider — uses the google-genai SDK.

The primary provider: it is the only one that can ground an answer in live
Google Search results, which the ingredient, composition, sentiment and chat
prompts rely on for current regulatory / review data.
"""
from __future__ import annotations

import logging
from typing import Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from errors import AdapterUnavailable, RateLimited
from providers.base import LLMProvider, detect_mime

logger = logging.getLogger(__name__)

_SAFETY_OFF = [
    genai_types.SafetySetting(category="HARM_CATEGORY_HARASSMENT",        threshold="OFF"),
    genai_types.SafetySetting(category="HARM_CATEGORY_HATE_SPEECH",       threshold="OFF"),
    genai_types.SafetySetting(category="HARM_CATEGORY_SEXUALLY_EXPLICIT", threshold="OFF"),
    genai_types.SafetySetting(category="HARM_CATEGORY_DANGEROUS_CONTENT", threshold="OFF"),
]


class GeminiProvider(LLMProvider):

    name = "gemini"
    supports_grounding = True

    def __init__(self, api_key: Optional[str], model: str = "gemini-2.5-flash"):
        super().__init__(api_key, model, "GEMINI_API_KEY")

    def _build_client(self, api_key: str):
        return genai.Client(api_key=api_key)

    async def _complete(
        self,
        prompt: str,
        image_bytes: Optional[bytes],
        system: Optional[str],
        grounded: bool,
        max_tokens: int,
    ) -> Optional[str]:
        client = self.client()

        contents: list = []
        if image_bytes is not None:
            contents.append(genai_types.Part.from_bytes(data=image_bytes, mime_type=detect_mime(image_bytes)))
        contents.append(prompt)

        gen_config = genai_types.GenerateContentConfig(
            system_instruction=system,
            temperature=0,
            max_output_tokens=max_tokens,
            safety_settings=_SAFETY_OFF,
            tools=[genai_types.Tool(google_search=genai_types.GoogleSearch())] if grounded else None,
        )

        try:
            response = await client.aio.models.generate_content(
                model=self.model_id,
                contents=contents,
                config=gen_config,
            )
        except genai_errors.APIError as exc:
            if exc.code == 429:
                raise RateLimited(self.full_name, str(exc)) from exc
            raise AdapterUnavailable(self.full_name, str(exc)) from exc

        return response.text
