"""
Tests for models.py.

Covers:
  - ProductCandidate: payload parsing, lone object accepted, empty list rejected
  - IngredientAssessment: case-insensitive safety levels, reason aliases
  - CompositionReport: numeric coercion from strings, defaults
  - SentimentReport: pros/cons capped at 4, rating clamped to 0..5
  - FeaturesReport: payload parsing
  - AnalysisRecord.to_dict(): wire keys
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from models import (
    FACET_TYPES,
    AnalysisRecord,
    ChatMessage,
    CompositionReport,
    ExtractedText,
    Facet,
    FeaturesReport,
    IngredientAssessment,
    IngredientsReport,
    PLACEHOLDER_PRODUCT_NAME,
    ProductCandidate,
    SentimentReport,
    placeholder_candidate,
)


class TestFacet:

    def test_slots_and_wire_keys(self):
        assert Facet.INGREDIENTS.slot == "ingredients_data"
        assert Facet.REDDIT.wire_key == "redditData"
        assert Facet("features") is Facet.FEATURES

    def test_every_facet_has_a_payload_type(self):
        assert set(FACET_TYPES) == set(Facet)


class TestProductCandidate:

    def test_list_from_array(self):
        data = [
            {"productName": "Oats", "extractedText": {"ingredients": "oats"}, "summary": "Cereal"},
            {"productName": "Milk", "summary": "Dairy"},
        ]
        candidates = ProductCandidate.list_from_payload(data)
        assert [c.product_name for c in candidates] == ["Oats", "Milk"]
        assert candidates[1].extracted_text == ExtractedText()

    def test_lone_object_accepted(self):
        candidates = ProductCandidate.list_from_payload({"productName": "Oats", "summary": "x"})
        assert len(candidates) == 1

    def test_empty_list_rejected(self):
        with pytest.raises(ValueError):
            ProductCandidate.list_from_payload([])

    def test_missing_name_rejected(self):
        with pytest.raises(ValueError):
            ProductCandidate.from_payload({"summary": "nameless"})

    def test_placeholder(self):
        p = placeholder_candidate()
        assert p.product_name == PLACEHOLDER_PRODUCT_NAME
        assert p.summary
        assert p.barcode is None


class TestIngredients:

    def test_status_case_insensitive(self):
        a = IngredientAssessment.from_payload({"name": "Sugar", "safety_status": "moderate", "reason": "r"})
        assert a.safety_status == "Moderate"

    def test_reason_with_source_alias(self):
        a = IngredientAssessment.from_payload(
            {"name": "Salt", "safety_status": "Safe", "reason_with_source": "FDA GRAS"}
        )
        assert a.reason == "FDA GRAS"

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            IngredientAssessment.from_payload({"name": "x", "safety_status": "Yummy"})

    def test_report_accepts_bare_list(self):
        report = IngredientsReport.from_payload([{"name": "oats", "safety_status": "Safe", "reason": ""}])
        assert report.to_dict() == {
            "ingredients_analysis": [{"name": "oats", "safety_status": "Safe", "reason": ""}]
        }

    def test_safe_default_is_empty(self):
        assert IngredientsReport.safe_default().to_dict() == {"ingredients_analysis": []}


class TestComposition:

    def test_numeric_strings_coerced(self):
        report = CompositionReport.from_payload({
            "productCategory": "Snack",
            "netQuantity": "250 g",
            "unitType": "g",
            "calories": "120",
            "totalFat": "3.5g",
            "totalProtein": None,
            "compositionalDetails": [{"key": "Sugar", "value": "12 g"}],
        })
        assert report.net_quantity == 250.0
        assert report.calories == 120.0
        assert report.total_fat == 3.5
        assert report.total_protein == 0.0
        assert report.to_dict()["compositionalDetails"] == [{"key": "Sugar", "value": "12 g"}]

    def test_non_composition_object_rejected(self):
        with pytest.raises(ValueError):
            CompositionReport.from_payload({"pros": []})

    @pytest.mark.parametrize("calories", [float("nan"), float("inf"), 10 ** 400, "9" * 400])
    def test_non_finite_number_rejected(self, calories):
        with pytest.raises(ValueError, match="finite"):
            CompositionReport.from_payload({"productCategory": "Snack", "calories": calories})

    def test_safe_default(self):
        d = CompositionReport.safe_default().to_dict()
        assert d["productCategory"] == "General/Unspecified"
        assert d["calories"] == d["totalFat"] == d["totalProtein"] == 0.0
        assert d["compositionalDetails"] == []


class TestSentiment:

    def test_caps_and_clamps(self):
        report = SentimentReport.from_payload({
            "pros": ["a", "b", "c", "d", "e"],
            "cons": ["x"],
            "averageRating": 7,
            "totalMentions": -2,
            "reviews": [{"title": "Thread", "score": "42", "url": "https://reddit.com/r/x"}],
        })
        assert report.pros == ["a", "b", "c", "d"]
        assert report.average_rating == 5.0
        assert report.total_mentions == 0
        assert report.reviews[0].score == 42

    def test_constructor_enforces_bounds(self):
        report = SentimentReport(pros=list("abcdef"), average_rating=-1)
        assert len(report.pros) == 4
        assert report.average_rating == 0.0

    def test_nan_rating_becomes_zero(self):
        assert SentimentReport(average_rating=float("nan")).average_rating == 0.0

    def test_nan_rating_in_payload_rejected(self):
        with pytest.raises(ValueError):
            SentimentReport.from_payload({"pros": ["a"], "averageRating": float("nan")})

    def test_non_sentiment_rejected(self):
        with pytest.raises(ValueError):
            SentimentReport.from_payload({"calories": 10})


class TestFeatures:

    def test_from_payload(self):
        report = FeaturesReport.from_payload({"productCategory": "Shampoo", "mainPurpose": "Cleansing"})
        assert report.to_dict() == {
            "productCategory": "Shampoo",
            "mainPurpose": "Cleansing",
            "usageInstructions": "",
            "extraDetails": "",
        }


class TestRecord:

    def test_to_dict_wire_keys(self):
        created = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        record = AnalysisRecord(
            id="abc",
            product_name="Oats",
            product_summary="Cereal",
            extracted_text=ExtractedText("oats", "120 kcal", "Acme"),
            image_url=None,
            is_degraded_mode=True,
            created_at=created,
        )
        d = record.to_dict()
        assert d["analysisId"] == "abc"
        assert d["isFallbackMode"] is True
        assert d["createdAt"] == created.isoformat()
        for key in ("ingredientsData", "compositionData", "redditData", "featuresData"):
            assert d[key] is None

    def test_chat_message_to_dict(self):
        created = datetime(2026, 1, 2, tzinfo=timezone.utc)
        d = ChatMessage("m1", "abc", "Q?", "A.", created).to_dict()
        assert d == {"id": "m1", "analysisId": "abc", "message": "Q?", "response": "A.",
                     "timestamp": created.isoformat()}
