"""
Reddit search backend — public JSON search, no OAuth.

  GET https://www.reddit.com/search.json?q=...&sort=relevance&limit=N

Reddit rejects requests without a descriptive User-Agent; request_json() sets one.
"""
from __future__ import annotations

import logging

from lookup_backends.base import RedditPost, request_json

logger = logging.getLogger(__name__)

REDDIT_SEARCH_URL = "https://www.reddit.com/search.json"


class RedditSearchBackend:

    name = "reddit"

    async def search(self, query: str, limit: int = 15) -> list[RedditPost]:
        data = await request_json(
            "GET",
            REDDIT_SEARCH_URL,
            source=self.name,
            params={"q": query, "sort": "relevance", "limit": str(limit), "t": "all"},
        )
        posts: list[RedditPost] = []
        for child in ((data or {}).get("data") or {}).get("children") or []:
            post = child.get("data") or {}
            title = (post.get("title") or "").strip()
            if not title:
                continue
            permalink = post.get("permalink") or ""
            posts.append(RedditPost(
                title=title,
                score=int(post.get("score") or 0),
                url=f"https://www.reddit.com{permalink}" if permalink else (post.get("url") or ""),
                text=(post.get("selftext") or "").strip(),
                num_comments=int(post.get("num_comments") or 0),
            ))
        logger.info("[%s] %d posts for %r", self.name, len(posts), query)
        return posts
