"""
Tests for lookup_backends/ — HTTP error mapping and response parsing.

request_json() is exercised against a mocked aiohttp session; the backends are
exercised with request_json itself patched, so no test touches the network.

Covers:
  - request_json(): 429 → RateLimited, 404 → None when allowed, 5xx / network → AdapterUnavailable,
    non-JSON body → UnparseableResponse
  - OCR.Space: text + overlay, rate-limit message in a 200 body, missing key
  - Open Food / Beauty Facts: found, not found, invalid barcode skipped without a call
  - USDA FDC: search then details, no match
  - Reddit and DuckDuckGo result parsing
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from conftest import PNG_BYTES
from errors import AdapterUnavailable, MissingCredentials, RateLimited, UnparseableResponse
from lookup_backends.base import BarcodeProduct, RedditPost, SearchSnippet, request_json
from lookup_backends.ocr_space import OcrSpaceBackend
from lookup_backends.open_facts import OpenFactsBackend
from lookup_backends.reddit import RedditSearchBackend
from lookup_backends.usda_fdc import UsdaFdcBackend
from lookup_backends.web_search import WebSearchBackend


def fake_session(status: int = 200, body=None, text: str = "", json_error=None, request_error=None):
    """An aiohttp.ClientSession stand-in whose single request returns the given response."""
    resp = MagicMock()
    resp.status = status
    resp.text = AsyncMock(return_value=text)
    resp.json = AsyncMock(return_value=body, side_effect=json_error)

    request_cm = MagicMock()
    request_cm.__aenter__ = AsyncMock(return_value=resp)
    request_cm.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.request = MagicMock(return_value=request_cm, side_effect=request_error)

    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=session)
    session_cm.__aexit__ = AsyncMock(return_value=False)
    return session_cm


# ── request_json ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestRequestJson:

    async def test_ok(self):
        with patch("aiohttp.ClientSession", return_value=fake_session(body={"a": 1})):
            assert await request_json("GET", "https://x", source="t") == {"a": 1}

    async def test_user_agent_set(self):
        session_cm = fake_session(body={})
        with patch("aiohttp.ClientSession", return_value=session_cm):
            await request_json("GET", "https://x", source="t", headers={"X-Key": "k"})
        session = session_cm.__aenter__.return_value
        headers = session.request.call_args.kwargs["headers"]
        assert headers["X-Key"] == "k"
        assert "label-lens" in headers["User-Agent"]

    async def test_429(self):
        with patch("aiohttp.ClientSession", return_value=fake_session(status=429)):
            with pytest.raises(RateLimited):
                await request_json("GET", "https://x", source="t")

    async def test_404_allowed(self):
        with patch("aiohttp.ClientSession", return_value=fake_session(status=404)):
            assert await request_json("GET", "https://x", source="t", allow_missing=True) is None

    async def test_404_not_allowed(self):
        with patch("aiohttp.ClientSession", return_value=fake_session(status=404, text="nope")):
            with pytest.raises(AdapterUnavailable, match="404"):
                await request_json("GET", "https://x", source="t")

    async def test_server_error(self):
        with patch("aiohttp.ClientSession", return_value=fake_session(status=502, text="bad gateway")):
            with pytest.raises(AdapterUnavailable) as exc_info:
                await request_json("GET", "https://x", source="svc")
        assert exc_info.value.source == "svc"
        assert not isinstance(exc_info.value, RateLimited)

    async def test_network_error(self):
        session_cm = fake_session(request_error=aiohttp.ClientConnectionError("refused"))
        with patch("aiohttp.ClientSession", return_value=session_cm):
            with pytest.raises(AdapterUnavailable, match="refused"):
                await request_json("GET", "https://x", source="t")

    async def test_not_json(self):
        session_cm = fake_session(json_error=ValueError("Expecting value"))
        with patch("aiohttp.ClientSession", return_value=session_cm):
            with pytest.raises(UnparseableResponse):
                await request_json("GET", "https://x", source="t")


# ── OCR.Space ─────────────────────────────────────────────────────────────────

OCR_OK = {
    "ParsedResults": [{
        "ParsedText": "CRUNCHY OATS\r\nIngredients: oats, sugar\r\n",
        "TextOverlay": {"Lines": [
            {"LineText": "CRUNCHY OATS", "MinTop": 10, "Words": [{"Left": 5}]},
            {"LineText": "Ingredients: oats, sugar", "MinTop": 40, "Words": []},
        ]},
    }],
    "IsErroredOnProcessing": False,
}


@pytest.mark.asyncio
class TestOcrSpace:

    async def test_extract(self):
        with patch("lookup_backends.ocr_space.request_json", AsyncMock(return_value=OCR_OK)) as req:
            result = await OcrSpaceBackend("k").extract(PNG_BYTES)
        assert result.text.startswith("CRUNCHY OATS")
        assert result.overlay[0] == {"text": "CRUNCHY OATS", "top": 10.0, "left": 5.0}
        assert result.overlay[1]["left"] == 0.0
        form = req.call_args.kwargs["data"]
        assert form["base64Image"].startswith("data:image/png;base64,")

    async def test_rate_limit_message(self):
        body = {"ErrorMessage": ["You may only perform this action upto maximum number of times"]}
        with patch("lookup_backends.ocr_space.request_json", AsyncMock(return_value=body)):
            with pytest.raises(RateLimited):
                await OcrSpaceBackend("k").extract(PNG_BYTES)

    async def test_other_error_message(self):
        body = {"ErrorMessage": "Unable to recognize the file type"}
        with patch("lookup_backends.ocr_space.request_json", AsyncMock(return_value=body)):
            with pytest.raises(AdapterUnavailable) as exc_info:
                await OcrSpaceBackend("k").extract(PNG_BYTES)
        assert not isinstance(exc_info.value, RateLimited)

    async def test_blank_text(self):
        body = {"ParsedResults": [{"ParsedText": "   "}]}
        with patch("lookup_backends.ocr_space.request_json", AsyncMock(return_value=body)):
            with pytest.raises(AdapterUnavailable):
                await OcrSpaceBackend("k").extract(PNG_BYTES)

    async def test_missing_key(self):
        with patch("lookup_backends.ocr_space.request_json", AsyncMock()) as req:
            with pytest.raises(MissingCredentials):
                await OcrSpaceBackend(None).extract(PNG_BYTES)
        req.assert_not_called()


# ── Open Facts ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestOpenFacts:

    async def test_found(self):
        body = {"status": 1, "product": {
            "product_name": "Nutella",
            "brands": "Ferrero",
            "ingredients_text": "Sugar, palm oil, hazelnuts",
            "categories": "Spreads",
            "quantity": "400 g",
            "nutriments": {"energy-kcal_100g": 539},
        }}
        with patch("lookup_backends.open_facts.request_json", AsyncMock(return_value=body)) as req:
            product = await OpenFactsBackend("food").lookup("4006381333931")
        assert product == BarcodeProduct(
            barcode="4006381333931",
            database="food",
            product_name="Nutella",
            brand="Ferrero",
            ingredients_text="Sugar, palm oil, hazelnuts",
            categories="Spreads",
            quantity="400 g",
            nutriments={"energy-kcal_100g": 539},
        )
        assert req.call_args.args[1].startswith("https://world.openfoodfacts.org/")

    async def test_not_found(self):
        with patch("lookup_backends.open_facts.request_json", AsyncMock(return_value={"status": 0})):
            assert await OpenFactsBackend("beauty").lookup("4006381333931") is None

    async def test_sparse_product_gets_defaults(self):
        body = {"status": 1, "product": {"product_name": " "}}
        with patch("lookup_backends.open_facts.request_json", AsyncMock(return_value=body)):
            product = await OpenFactsBackend("beauty").lookup("4006381333931")
        assert product.categories == "Cosmetic/Topical"
        assert product.nutriments == {}

    async def test_invalid_barcode_skips_request(self):
        with patch("lookup_backends.open_facts.request_json", AsyncMock()) as req:
            assert await OpenFactsBackend("food").lookup("4006381333932") is None
        req.assert_not_called()


def test_open_facts_unknown_database():
    with pytest.raises(ValueError):
        OpenFactsBackend("pets")


def test_open_facts_name():
    assert OpenFactsBackend("beauty").name == "openbeautyfacts"


# ── USDA FDC ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestUsda:

    async def test_search_then_details(self):
        details = {"description": "Oats, rolled", "foodNutrients": []}
        with patch("lookup_backends.usda_fdc.request_json",
                   AsyncMock(side_effect=[{"foods": [{"fdcId": 173904}]}, details])) as req:
            assert await UsdaFdcBackend("k").lookup("rolled oats") == details
        assert req.call_args.args[1].endswith("/food/173904")

    async def test_no_match(self):
        with patch("lookup_backends.usda_fdc.request_json", AsyncMock(return_value={"foods": []})) as req:
            assert await UsdaFdcBackend("k").lookup("unobtainium") is None
        assert req.call_count == 1

    async def test_missing_key(self):
        with pytest.raises(MissingCredentials):
            await UsdaFdcBackend("").lookup("oats")


# ── Reddit / web search ───────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestSearchBackends:

    async def test_reddit(self):
        body = {"data": {"children": [
            {"data": {"title": "Crunchy Oats review", "score": 120, "permalink": "/r/cereal/abc",
                      "selftext": "Love it", "num_comments": 14}},
            {"data": {"title": "", "score": 3}},
            {"data": {"title": "Link post", "url": "https://example.com/x"}},
        ]}}
        with patch("lookup_backends.reddit.request_json", AsyncMock(return_value=body)):
            posts = await RedditSearchBackend().search("Crunchy Oats")
        assert posts == [
            RedditPost("Crunchy Oats review", 120, "https://www.reddit.com/r/cereal/abc", "Love it", 14),
            RedditPost("Link post", 0, "https://example.com/x"),
        ]

    async def test_web_search_flattens_topics(self):
        body = {
            "AbstractText": "Oats are a cereal grain.",
            "AbstractURL": "https://en.wikipedia.org/wiki/Oat",
            "RelatedTopics": [
                {"Text": "Oatmeal", "FirstURL": "https://duckduckgo.com/Oatmeal"},
                {"Name": "Nutrition", "Topics": [
                    {"Text": "Beta-glucan", "FirstURL": "https://duckduckgo.com/Beta-glucan"},
                ]},
                {"FirstURL": "https://duckduckgo.com/empty"},
            ],
        }
        with patch("lookup_backends.web_search.request_json", AsyncMock(return_value=body)):
            snippets = await WebSearchBackend().search("oats")
        assert snippets == [
            SearchSnippet("Oats are a cereal grain.", "https://en.wikipedia.org/wiki/Oat"),
            SearchSnippet("Oatmeal", "https://duckduckgo.com/Oatmeal"),
            SearchSnippet("Beta-glucan", "https://duckduckgo.com/Beta-glucan"),
        ]

    async def test_web_search_max_results(self):
        body = {"RelatedTopics": [{"Text": f"t{i}", "FirstURL": ""} for i in range(10)]}
        with patch("lookup_backends.web_search.request_json", AsyncMock(return_value=body)):
            assert len(await WebSearchBackend().search("oats", max_results=3)) == 3
