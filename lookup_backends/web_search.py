"""
Generic web search backend used for fallback grounding.

DuckDuckGo Instant Answer API: keyless, returns an abstract plus related
topics rather than a full result page, which is exactly the "top snippets"
shape the grounding strategies need.
"""
from __future__ import annotations

import logging

from lookup_backends.base import SearchSnippet, request_json

logger = logging.getLogger(__name__)

DDG_API_URL = "https://api.duckduckgo.com/"


def _flatten_topics(topics: list) -> list[dict]:
    """RelatedTopics mixes plain topics with {"Name": ..., "Topics": [...]} groups."""
    flat = []
    for topic in topics or []:
        if "Topics" in topic:
            flat.extend(_flatten_topics(topic["Topics"]))
        else:
            flat.append(topic)
    return flat


class WebSearchBackend:

    name = "duckduckgo"

    async def search(self, query: str, max_results: int = 5) -> list[SearchSnippet]:
        data = await request_json(
            "GET",
            DDG_API_URL,
            source=self.name,
            params={"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"},
        )
        data = data or {}
        snippets: list[SearchSnippet] = []
        if data.get("AbstractText"):
            snippets.append(SearchSnippet(snippet=data["AbstractText"], url=data.get("AbstractURL", "")))
        for topic in _flatten_topics(data.get("RelatedTopics") or []):
            if topic.get("Text"):
                snippets.append(SearchSnippet(snippet=topic["Text"], url=topic.get("FirstURL", "")))
        logger.info("[%s] %d snippets for %r", self.name, len(snippets), query)
        return snippets[:max_results]
