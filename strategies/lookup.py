"""
Non-LLM strategies: OCR, barcode databases, USDA, Reddit, web search and the
local heuristics. These make up the degraded chains and the tail of every
normal chain.

None of them is primary. A record identified through OcrFallbackIdentify is
in degraded mode.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import heuristics
from errors import AdapterUnavailable
from fallback import FallbackChain, Resolver
from lookup_backends.base import BarcodeProduct, RedditPost, SearchSnippet
from lookup_backends.ocr_space import OcrSpaceBackend
from lookup_backends.open_facts import OpenFactsBackend
from lookup_backends.reddit import RedditSearchBackend
from lookup_backends.usda_fdc import UsdaFdcBackend
from lookup_backends.web_search import WebSearchBackend
from models import (
    AnalysisRecord,
    CompositionReport,
    ExtractedText,
    FeaturesReport,
    IngredientAssessment,
    IngredientsReport,
    PLACEHOLDER_PRODUCT_NAME,
    ProductCandidate,
    ReviewLink,
    SentimentReport,
)
from strategies.base import OcrScan, Strategy

logger = logging.getLogger(__name__)

MAX_WEB_INGREDIENTS = 8


def _searchable_name(record: AnalysisRecord) -> Optional[str]:
    """Product name worth searching for, or None for placeholder identities."""
    name = record.product_name.strip()
    if not name or name in (PLACEHOLDER_PRODUCT_NAME, heuristics.UNKNOWN_PRODUCT):
        return None
    brand = record.extracted_text.brand
    if brand and brand != heuristics.UNKNOWN_BRAND and brand.lower() not in name.lower():
        return f"{brand} {name}"
    return name


def _format_nutriments(nutriments: dict) -> str:
    """Per-100g summary line from an Open Facts nutriments dict."""
    parts = []
    for label, key, unit in (("Energy", "energy-kcal_100g", "kcal"), ("Fat", "fat_100g", "g"),
                             ("Carbohydrates", "carbohydrates_100g", "g"), ("Sugars", "sugars_100g", "g"),
                             ("Protein", "proteins_100g", "g"), ("Salt", "salt_100g", "g")):
        if key in nutriments:
            parts.append(f"{label} {nutriments[key]} {unit}")
    return f"Per 100g: {', '.join(parts)}" if parts else ""


# ── Identification ────────────────────────────────────────────────────────────

class OcrFallbackIdentify(Strategy):
    """
    Transcribe the label with OCR, then identify the product from the text:
    barcode in the food database, barcode in the cosmetics database, then the
    label text itself.
    """

    name = "ocr-fallback"
    # The OCR call and each nested lookup get adapter_timeout apiece
    bounded = False

    def __init__(self, ocr: OcrSpaceBackend, resolver: Resolver, scan_chain: FallbackChain):
        self.ocr = ocr
        self.resolver = resolver
        self.scan_chain = scan_chain

    async def run(self, image_bytes: bytes) -> Optional[list[ProductCandidate]]:
        try:
            result = await asyncio.wait_for(self.ocr.extract(image_bytes), timeout=self.resolver.timeout)
        except asyncio.TimeoutError:
            raise AdapterUnavailable(self.ocr.name, f"timed out after {self.resolver.timeout:.1f}s")
        scan = OcrScan(text=result.text, barcode=heuristics.find_barcode(result.text))
        logger.info("[%s] %d chars of label text, barcode=%s", self.name, len(scan.text), scan.barcode)
        resolution = await self.resolver.resolve(self.scan_chain, scan)
        return resolution.value


class BarcodeIdentify(Strategy):

    def __init__(self, backend: OpenFactsBackend):
        self.backend = backend
        self.name = f"barcode:{backend.name}"

    async def run(self, scan: OcrScan) -> Optional[list[ProductCandidate]]:
        if not scan.barcode:
            return None
        product = await self.backend.lookup(scan.barcode)
        if product is None:
            return None
        return [_candidate_from_barcode(product)]


def _candidate_from_barcode(product: BarcodeProduct) -> ProductCandidate:
    category = product.categories.split(",")[0].strip()
    summary = f"{product.product_name} by {product.brand}"
    if category:
        summary += f", listed under {category}"
    if product.quantity:
        summary += f" ({product.quantity})"
    return ProductCandidate(
        product_name=product.product_name,
        extracted_text=ExtractedText(
            ingredients=product.ingredients_text or "Not available",
            nutrition=_format_nutriments(product.nutriments) or "Not available",
            brand=product.brand,
        ),
        summary=summary + ".",
        barcode=product.barcode,
    )


class LabelTextIdentify(Strategy):
    """Best guess from the raw label text; only fails when OCR returned nothing."""

    name = "label-text"

    async def run(self, scan: OcrScan) -> Optional[list[ProductCandidate]]:
        if not scan.text.strip():
            return None
        guess = heuristics.parse_ocr_product(scan.text)
        item = heuristics.parse_general_item(scan.text)
        brand = guess.brand if guess.brand != heuristics.UNKNOWN_BRAND else item.brand
        nutrition_lines = [
            ln.strip() for ln in scan.text.splitlines()
            if any(k in ln.lower() for k in ("calories", "fat", "protein", "carbohydrate", "sodium"))
        ]
        return [ProductCandidate(
            product_name=guess.product_name,
            extracted_text=ExtractedText(
                ingredients=item.ingredients,
                nutrition="; ".join(nutrition_lines) or "Not available",
                brand=brand,
            ),
            summary=(
                f"Identified from the label text as {guess.product_name}. "
                "Details are limited because the image could not be analysed directly."
            ),
            barcode=scan.barcode,
        )]


# ── Shared barcode lookup for facets ──────────────────────────────────────────

class _BarcodeFacet(Strategy):
    """Looks the record's barcode up in each database in turn; no barcode → None."""

    def __init__(self, backends: list[OpenFactsBackend]):
        self.backends = backends

    async def product(self, record: AnalysisRecord) -> Optional[BarcodeProduct]:
        if not record.barcode:
            return None
        for backend in self.backends:
            product = await backend.lookup(record.barcode)
            if product is not None:
                return product
        return None


# ── Ingredients ───────────────────────────────────────────────────────────────

class BarcodeIngredients(_BarcodeFacet):

    name = "ingredients:barcode"

    async def run(self, record: AnalysisRecord) -> Optional[IngredientsReport]:
        product = await self.product(record)
        if product is None or not product.ingredients_text:
            return None
        source = f"Open {product.database.title()} Facts"
        assessments = []
        for name in heuristics.split_ingredients(product.ingredients_text):
            status, reason = heuristics.classify_ingredient(name)
            assessments.append(IngredientAssessment(name=name, safety_status=status,
                                                    reason=f"{reason} (ingredient list: {source})"))
        return IngredientsReport(ingredients=assessments) if assessments else None


class WebIngredients(Strategy):
    """One web search per ingredient; the top snippet becomes the cited reason."""

    name = "ingredients:web"

    def __init__(self, web: WebSearchBackend):
        self.web = web

    async def run(self, record: AnalysisRecord) -> Optional[IngredientsReport]:
        names = heuristics.split_ingredients(record.extracted_text.ingredients, limit=MAX_WEB_INGREDIENTS)
        if not names:
            return None
        results = await asyncio.gather(
            *[self.web.search(f"{name} ingredient safety", max_results=1) for name in names]
        )
        if not any(results):
            return None
        assessments = []
        for name, snippets in zip(names, results):
            status, reason = heuristics.classify_ingredient(name)
            if snippets:
                top: SearchSnippet = snippets[0]
                reason = f"{top.snippet[:200]} (source: {top.url})" if top.url else top.snippet[:200]
            assessments.append(IngredientAssessment(name=name, safety_status=status, reason=reason))
        return IngredientsReport(ingredients=assessments)


class KeywordIngredients(Strategy):

    name = "ingredients:keywords"

    async def run(self, record: AnalysisRecord) -> Optional[IngredientsReport]:
        names = heuristics.split_ingredients(record.extracted_text.ingredients)
        if not names:
            return None
        return IngredientsReport(ingredients=[
            IngredientAssessment(name=n, safety_status=s, reason=r)
            for n, (s, r) in ((n, heuristics.classify_ingredient(n)) for n in names)
        ])


# ── Composition ───────────────────────────────────────────────────────────────

def _first_number(nutriments: dict, *keys: str) -> float:
    for key in keys:
        value = nutriments.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                continue
    return 0.0


class BarcodeComposition(_BarcodeFacet):

    name = "composition:barcode"

    async def run(self, record: AnalysisRecord) -> Optional[CompositionReport]:
        product = await self.product(record)
        if product is None or not product.nutriments:
            return None
        n = product.nutriments
        quantity, unit = heuristics.parse_quantity(product.quantity)
        details = [
            (key[:-len("_100g")].replace("-", " ").capitalize(),
             f"{value} {n.get(key[:-len('_100g')] + '_unit', 'g')} per 100g")
            for key, value in n.items()
            if key.endswith("_100g")
        ]
        return CompositionReport(
            product_category=product.categories.split(",")[0].strip() or "General/Unspecified",
            net_quantity=quantity,
            unit_type=unit,
            calories=_first_number(n, "energy-kcal_100g", "energy-kcal", "energy_value"),
            total_fat=_first_number(n, "fat_100g", "fat", "fat_value"),
            total_protein=_first_number(n, "proteins_100g", "proteins", "proteins_value"),
            details=details[:20],
        )


class UsdaComposition(Strategy):
    """Per-100g profile of the closest USDA FoodData Central match."""

    name = "composition:usda"

    def __init__(self, usda: UsdaFdcBackend):
        self.usda = usda

    async def run(self, record: AnalysisRecord) -> Optional[CompositionReport]:
        query = _searchable_name(record)
        if query is None:
            return None
        food = await self.usda.lookup(query)
        if not food:
            return None

        report = CompositionReport(
            product_category=food.get("description") or "General/Unspecified",
            net_quantity=100.0,
            unit_type="g",
        )
        for entry in food.get("foodNutrients") or []:
            nutrient = entry.get("nutrient") or {}
            name = nutrient.get("name") or ""
            unit = nutrient.get("unitName") or ""
            amount = entry.get("amount") or 0
            if name == "Energy" and unit.lower() == "kcal":
                report.calories = float(amount)
            elif name == "Protein":
                report.total_protein = float(amount)
            elif name == "Total lipid (fat)":
                report.total_fat = float(amount)
            if name:
                report.details.append((name, f"{amount} {unit}".strip()))
        if food.get("servingSize"):
            report.details.append(("Serving Size", f"{food['servingSize']} {food.get('servingSizeUnit') or 'g'}"))
        return report


class WebComposition(Strategy):

    name = "composition:web"

    def __init__(self, web: WebSearchBackend):
        self.web = web

    async def run(self, record: AnalysisRecord) -> Optional[CompositionReport]:
        query = _searchable_name(record)
        if query is None:
            return None
        snippets = await self.web.search(f"{query} nutrition facts calories", max_results=3)
        if not snippets:
            return None
        top = snippets[0]
        nutrients = heuristics.extract_nutrients(top.snippet)
        details = [("Search Summary", top.snippet)]
        if top.url:
            details.append(("Source", top.url))
        return CompositionReport(
            product_category="General/Unspecified",
            calories=nutrients["calories"],
            total_fat=nutrients["fat"],
            total_protein=nutrients["protein"],
            details=details,
        )


# ── Community sentiment ───────────────────────────────────────────────────────

class RedditSentiment(Strategy):

    name = "reddit:search"

    def __init__(self, reddit: RedditSearchBackend):
        self.reddit = reddit

    async def run(self, record: AnalysisRecord) -> Optional[SentimentReport]:
        query = _searchable_name(record)
        if query is None:
            return None
        posts: list[RedditPost] = await self.reddit.search(f"{query} review")
        if not posts:
            return None
        pros, cons, rating = heuristics.summarize_mentions([f"{p.title}. {p.text[:300]}" for p in posts])
        top = sorted(posts, key=lambda p: p.score, reverse=True)[:5]
        return SentimentReport(
            pros=pros,
            cons=cons,
            average_rating=rating,
            total_mentions=len(posts),
            reviews=[ReviewLink(title=p.title, score=p.score, url=p.url) for p in top],
        )


class WebSentiment(Strategy):
    """Reddit threads found through generic web search, for when Reddit itself refuses us."""

    name = "reddit:web"

    def __init__(self, web: WebSearchBackend):
        self.web = web

    async def run(self, record: AnalysisRecord) -> Optional[SentimentReport]:
        query = _searchable_name(record)
        if query is None:
            return None
        snippets = await self.web.search(f"site:reddit.com {query} review", max_results=5)
        if not snippets:
            return None
        pros, cons, rating = heuristics.summarize_mentions([s.snippet for s in snippets])
        return SentimentReport(
            pros=pros,
            cons=cons,
            average_rating=rating,
            total_mentions=len(snippets),
            reviews=[ReviewLink(title=s.snippet[:120], score=0, url=s.url) for s in snippets],
        )


# ── Features ──────────────────────────────────────────────────────────────────

class BarcodeFeatures(_BarcodeFacet):

    name = "features:barcode"

    async def run(self, record: AnalysisRecord) -> Optional[FeaturesReport]:
        product = await self.product(record)
        if product is None:
            return None
        categories = [c.strip() for c in product.categories.split(",") if c.strip()]
        return FeaturesReport(
            product_category=categories[0] if categories else "",
            main_purpose=", ".join(categories[1:4]),
            usage_instructions="",
            extra_details=f"{product.brand}, {product.quantity}".strip(", ") if product.quantity else product.brand,
        )
