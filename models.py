"""
models.py — analysis records, chat messages and facet payloads.

Facet payloads are plain dataclasses with two halves:
  from_payload(data)  validate a decoded JSON value, raise ValueError/TypeError/KeyError on mismatch
  to_dict()           the JSON wire form stored in the record and returned by the API

schema.decode_payload() turns any exception raised by from_payload into UnparseableResponse.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

SAFETY_LEVELS = ("Safe", "Moderate", "Harmful")
MAX_SENTIMENT_POINTS = 4

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


class Facet(str, Enum):
    """The independently fetchable deep-analysis payloads of a record."""
    INGREDIENTS = "ingredients"
    COMPOSITION = "composition"
    REDDIT      = "reddit"
    FEATURES    = "features"

    @property
    def slot(self) -> str:
        """Attribute name of the facet slot on AnalysisRecord."""
        return _FACET_SLOTS[self]

    @property
    def wire_key(self) -> str:
        """camelCase key of the facet slot in the API payload."""
        return _FACET_WIRE_KEYS[self]


_FACET_SLOTS = {
    Facet.INGREDIENTS: "ingredients_data",
    Facet.COMPOSITION: "composition_data",
    Facet.REDDIT:      "reddit_data",
    Facet.FEATURES:    "features_data",
}

_FACET_WIRE_KEYS = {
    Facet.INGREDIENTS: "ingredientsData",
    Facet.COMPOSITION: "compositionData",
    Facet.REDDIT:      "redditData",
    Facet.FEATURES:    "featuresData",
}


# ── Coercion helpers ──────────────────────────────────────────────────────────

def _as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, (dict, list)):
        raise TypeError(f"expected text, got {type(value).__name__}")
    return str(value).strip()


def _as_number(value: Any) -> float:
    """Numbers pass through; '12 g' → 12.0; 'N/A' and missing → 0.0."""
    if isinstance(value, bool):
        raise TypeError("expected a number, got a boolean")
    if isinstance(value, (int, float)):
        # NaN and Infinity are valid Python JSON but not valid wire JSON
        try:
            number = float(value)
        except OverflowError:
            number = math.inf
        if not math.isfinite(number):
            raise ValueError("expected a finite number")
        return number
    if value is None:
        return 0.0
    if isinstance(value, str):
        match = _NUMBER_RE.search(value.replace(",", ""))
        number = float(match.group()) if match else 0.0
        if not math.isfinite(number):
            raise ValueError("expected a finite number")
        return number
    raise TypeError(f"expected a number, got {type(value).__name__}")


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"expected a list, got {type(value).__name__}")
    return value


def _as_dict(value: Any) -> dict:
    if not isinstance(value, dict):
        raise TypeError(f"expected an object, got {type(value).__name__}")
    return value


# ── Identification ────────────────────────────────────────────────────────────

@dataclass
class ExtractedText:
    ingredients: str = ""
    nutrition: str = ""
    brand: str = ""

    @classmethod
    def from_payload(cls, data: Any) -> "ExtractedText":
        data = _as_dict(data or {})
        return cls(
            ingredients=_as_text(data.get("ingredients")),
            nutrition=_as_text(data.get("nutrition")),
            brand=_as_text(data.get("brand")),
        )

    def to_dict(self) -> dict:
        return {"ingredients": self.ingredients, "nutrition": self.nutrition, "brand": self.brand}


@dataclass
class ProductCandidate:
    """One product (or scene) identified in an uploaded image."""
    product_name: str
    extracted_text: ExtractedText
    summary: str
    barcode: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Any) -> "ProductCandidate":
        data = _as_dict(data)
        name = _as_text(data.get("productName"))
        if not name:
            raise ValueError("candidate has no productName")
        return cls(
            product_name=name,
            extracted_text=ExtractedText.from_payload(data.get("extractedText")),
            summary=_as_text(data.get("summary") or data.get("productSummary")),
        )

    @classmethod
    def list_from_payload(cls, data: Any) -> list["ProductCandidate"]:
        """Vision replies are an array, but a lone object is accepted as a one-item array."""
        items = [data] if isinstance(data, dict) else _as_list(data)
        candidates = [cls.from_payload(item) for item in items]
        if not candidates:
            raise ValueError("no products identified")
        return candidates


PLACEHOLDER_PRODUCT_NAME = "Unidentified Product"


def placeholder_candidate() -> ProductCandidate:
    """Safe default of the identification chain."""
    return ProductCandidate(
        product_name=PLACEHOLDER_PRODUCT_NAME,
        extracted_text=ExtractedText(
            ingredients="Not available",
            nutrition="Not available",
            brand="Unknown Brand",
        ),
        summary=(
            "We could not determine this product from the photo. "
            "Please check the packaging or try again with a clearer picture of the label."
        ),
    )


# ── Facet payloads ────────────────────────────────────────────────────────────

@dataclass
class IngredientAssessment:
    name: str
    safety_status: str      # Safe | Moderate | Harmful
    reason: str

    @classmethod
    def from_payload(cls, data: Any) -> "IngredientAssessment":
        data = _as_dict(data)
        name = _as_text(data.get("name"))
        if not name:
            raise ValueError("ingredient has no name")
        raw_status = _as_text(data.get("safety_status") or data.get("safety"))
        status = next((s for s in SAFETY_LEVELS if s.lower() == raw_status.lower()), None)
        if status is None:
            raise ValueError(f"unknown safety status {raw_status!r}")
        reason = _as_text(data.get("reason") or data.get("reason_with_source"))
        return cls(name=name, safety_status=status, reason=reason)

    def to_dict(self) -> dict:
        return {"name": self.name, "safety_status": self.safety_status, "reason": self.reason}


@dataclass
class IngredientsReport:
    ingredients: list[IngredientAssessment] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Any) -> "IngredientsReport":
        if isinstance(data, list):
            items = data
        else:
            data = _as_dict(data)
            if "ingredients_analysis" in data:
                items = _as_list(data["ingredients_analysis"])
            else:
                items = _as_list(data["ingredients"])
        return cls(ingredients=[IngredientAssessment.from_payload(i) for i in items])

    @classmethod
    def safe_default(cls) -> "IngredientsReport":
        return cls(ingredients=[])

    def to_dict(self) -> dict:
        return {"ingredients_analysis": [i.to_dict() for i in self.ingredients]}


@dataclass
class CompositionReport:
    product_category: str = "General/Unspecified"
    net_quantity: float = 0.0
    unit_type: str = "g"
    calories: float = 0.0
    total_fat: float = 0.0
    total_protein: float = 0.0
    details: list[tuple[str, str]] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Any) -> "CompositionReport":
        data = _as_dict(data)
        if not any(k in data for k in ("productCategory", "calories", "compositionalDetails")):
            raise ValueError("not a composition object")
        details = []
        for item in _as_list(data.get("compositionalDetails")):
            item = _as_dict(item)
            details.append((_as_text(item.get("key")), _as_text(item.get("value"))))
        return cls(
            product_category=_as_text(data.get("productCategory")) or "General/Unspecified",
            net_quantity=_as_number(data.get("netQuantity")),
            unit_type=_as_text(data.get("unitType")),
            calories=_as_number(data.get("calories")),
            total_fat=_as_number(data.get("totalFat")),
            total_protein=_as_number(data.get("totalProtein")),
            details=details,
        )

    @classmethod
    def safe_default(cls) -> "CompositionReport":
        return cls()

    def to_dict(self) -> dict:
        return {
            "productCategory": self.product_category,
            "netQuantity": self.net_quantity,
            "unitType": self.unit_type,
            "calories": self.calories,
            "totalFat": self.total_fat,
            "totalProtein": self.total_protein,
            "compositionalDetails": [{"key": k, "value": v} for k, v in self.details],
        }


@dataclass
class ReviewLink:
    title: str
    score: int
    url: str

    def to_dict(self) -> dict:
        return {"title": self.title, "score": self.score, "url": self.url}


@dataclass
class SentimentReport:
    pros: list[str] = field(default_factory=list)
    cons: list[str] = field(default_factory=list)
    average_rating: float = 0.0
    total_mentions: int = 0
    reviews: list[ReviewLink] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.pros = self.pros[:MAX_SENTIMENT_POINTS]
        self.cons = self.cons[:MAX_SENTIMENT_POINTS]
        rating = self.average_rating if math.isfinite(self.average_rating) else 0.0
        self.average_rating = min(max(rating, 0.0), 5.0)
        self.total_mentions = max(self.total_mentions, 0)

    @classmethod
    def from_payload(cls, data: Any) -> "SentimentReport":
        data = _as_dict(data)
        if "pros" not in data and "cons" not in data:
            raise ValueError("not a sentiment object")
        reviews = []
        for item in _as_list(data.get("reviews")):
            item = _as_dict(item)
            reviews.append(ReviewLink(
                title=_as_text(item.get("title")),
                score=int(_as_number(item.get("score"))),
                url=_as_text(item.get("url")),
            ))
        return cls(
            pros=[_as_text(p) for p in _as_list(data.get("pros")) if _as_text(p)],
            cons=[_as_text(c) for c in _as_list(data.get("cons")) if _as_text(c)],
            average_rating=_as_number(data.get("averageRating")),
            total_mentions=int(_as_number(data.get("totalMentions"))),
            reviews=reviews,
        )

    @classmethod
    def safe_default(cls) -> "SentimentReport":
        return cls()

    def to_dict(self) -> dict:
        return {
            "pros": list(self.pros),
            "cons": list(self.cons),
            "averageRating": self.average_rating,
            "totalMentions": self.total_mentions,
            "reviews": [r.to_dict() for r in self.reviews],
        }


@dataclass
class FeaturesReport:
    product_category: str = ""
    main_purpose: str = ""
    usage_instructions: str = ""
    extra_details: str = ""

    @classmethod
    def from_payload(cls, data: Any) -> "FeaturesReport":
        data = _as_dict(data)
        if "productCategory" not in data and "mainPurpose" not in data:
            raise ValueError("not a features object")
        return cls(
            product_category=_as_text(data.get("productCategory")),
            main_purpose=_as_text(data.get("mainPurpose")),
            usage_instructions=_as_text(data.get("usageInstructions")),
            extra_details=_as_text(data.get("extraDetails")),
        )

    @classmethod
    def safe_default(cls) -> "FeaturesReport":
        return cls()

    def to_dict(self) -> dict:
        return {
            "productCategory": self.product_category,
            "mainPurpose": self.main_purpose,
            "usageInstructions": self.usage_instructions,
            "extraDetails": self.extra_details,
        }


FACET_TYPES = {
    Facet.INGREDIENTS: IngredientsReport,
    Facet.COMPOSITION: CompositionReport,
    Facet.REDDIT:      SentimentReport,
    Facet.FEATURES:    FeaturesReport,
}


# ── Stored entities ───────────────────────────────────────────────────────────

@dataclass
class AnalysisRecord:
    id: str
    product_name: str
    product_summary: str
    extracted_text: ExtractedText
    image_url: Optional[str]
    is_degraded_mode: bool
    created_at: datetime
    barcode: Optional[str] = None
    # Facet slots hold the JSON wire form; None until first computed
    ingredients_data: Optional[dict] = None
    composition_data: Optional[dict] = None
    reddit_data: Optional[dict] = None
    features_data: Optional[dict] = None

    def facet(self, facet: Facet) -> Optional[dict]:
        return getattr(self, facet.slot)

    def to_dict(self) -> dict:
        payload = {
            "analysisId": self.id,
            "productName": self.product_name,
            "productSummary": self.product_summary,
            "extractedText": self.extracted_text.to_dict(),
            "imageUrl": self.image_url,
            "isFallbackMode": self.is_degraded_mode,
            "barcode": self.barcode,
            "createdAt": self.created_at.isoformat(),
        }
        for f in Facet:
            payload[f.wire_key] = self.facet(f)
        return payload


@dataclass
class ChatMessage:
    id: str
    analysis_id: str
    message: str
    response: str
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "analysisId": self.analysis_id,
            "message": self.message,
            "response": self.response,
            "timestamp": self.created_at.isoformat(),
        }
