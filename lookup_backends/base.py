"""
Shared types and HTTP helper for the non-LLM lookup backends.
Every backend returns plain dataclasses; the strategies don't care which
service produced them.

HTTP failures are mapped onto the adapter taxonomy here, once:
  429                        → RateLimited
  404 (when allow_missing)   → None
  other non-2xx / network    → AdapterUnavailable
  body is not JSON           → UnparseableResponse
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import aiohttp

from errors import AdapterUnavailable, RateLimited, UnparseableResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=15)
USER_AGENT = "label-lens/1.0 (product photo analysis)"


@dataclass
class OcrResult:
    text: str
    # One entry per detected line: {"text": str, "top": float, "left": float}
    overlay: list[dict] = field(default_factory=list)


@dataclass
class BarcodeProduct:
    barcode: str
    database: str               # "food" | "beauty"
    product_name: str
    brand: str
    ingredients_text: str
    categories: str
    quantity: str
    nutriments: dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchSnippet:
    snippet: str
    url: str


@dataclass
class RedditPost:
    title: str
    score: int
    url: str
    text: str = ""
    num_comments: int = 0


async def request_json(
    method: str,
    url: str,
    *,
    source: str,
    allow_missing: bool = False,
    timeout: aiohttp.ClientTimeout = DEFAULT_TIMEOUT,
    **kwargs,
) -> Optional[Any]:
    """Single HTTP call returning the decoded JSON body."""
    headers = {"User-Agent": USER_AGENT, **kwargs.pop("headers", {})}
    try:
        async with aiohttp.ClientSession() as session:
            async with session.request(method, url, headers=headers, timeout=timeout, **kwargs) as resp:
                if resp.status == 429:
                    raise RateLimited(source, "HTTP 429")
                if resp.status == 404 and allow_missing:
                    return None
                if resp.status >= 400:
                    text = await resp.text()
                    raise AdapterUnavailable(source, f"HTTP {resp.status}: {text[:200]}")
                try:
                    return await resp.json(content_type=None)
                except ValueError as exc:
                    raise UnparseableResponse(source, "body is not JSON") from exc
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        raise AdapterUnavailable(source, f"{type(exc).__name__}: {exc}") from exc
