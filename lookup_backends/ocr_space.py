"""
OCR.Space backend — transcribes label text when no vision model could identify the product.

API: https://ocr.space/ocrapi  (POST form, base64 image, free tier ~25k requests/month)

The free tier throttles aggressively. A throttled call surfaces as HTTP 429 or as
a "maximum number of times" / "rate limit" error message inside a 200 body;
both become RateLimited, which the chain never retries.
"""
from __future__ import annotations

import base64
import logging
from typing import Optional

from errors import AdapterUnavailable, MissingCredentials, RateLimited
from lookup_backends.base import OcrResult, request_json
from providers.base import detect_mime

logger = logging.getLogger(__name__)

OCR_API_URL = "https://api.ocr.space/parse/image"

_RATE_LIMIT_MARKERS = ("rate limit", "maximum number", "too many requests")


class OcrSpaceBackend:

    name = "ocr.space"

    def __init__(self, api_key: Optional[str]):
        self._key = api_key

    async def extract(self, image_bytes: bytes) -> OcrResult:
        if not self._key:
            raise MissingCredentials(self.name, "OCR_API_KEY")

        b64 = base64.b64encode(image_bytes).decode()
        data = await request_json(
            "POST",
            OCR_API_URL,
            source=self.name,
            data={
                "base64Image": f"data:{detect_mime(image_bytes)};base64,{b64}",
                "apikey": self._key,
                "language": "eng",
                "isOverlayRequired": "true",
                "scale": "true",
            },
        )
        return self._parse(data or {})

    def _parse(self, data: dict) -> OcrResult:
        errors = data.get("ErrorMessage")
        if errors:
            message = " ".join(errors) if isinstance(errors, list) else str(errors)
            if any(marker in message.lower() for marker in _RATE_LIMIT_MARKERS):
                raise RateLimited(self.name, message)
            raise AdapterUnavailable(self.name, message)

        results = data.get("ParsedResults") or []
        if not results:
            raise AdapterUnavailable(self.name, "no text detected in image")

        first = results[0]
        overlay = []
        for line in (first.get("TextOverlay") or {}).get("Lines") or []:
            words = line.get("Words") or []
            overlay.append({
                "text": line.get("LineText", ""),
                "top": float(line.get("MinTop") or 0),
                "left": float(words[0].get("Left") or 0) if words else 0.0,
            })

        text = (first.get("ParsedText") or "").strip()
        if not text:
            raise AdapterUnavailable(self.name, "no text detected in image")
        logger.info("[%s] Extracted %d characters, %d lines", self.name, len(text), len(overlay))
        return OcrResult(text=text, overlay=overlay)
