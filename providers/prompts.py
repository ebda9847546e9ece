"""
Prompt templates shared by all LLM providers.

Every analysis prompt asks for *only* JSON in a fixed shape; the reply is
decoded by schema.decode_payload() with the matching models.*.from_payload().
"""
from __future__ import annotations

from models import AnalysisRecord

SYSTEM_PROMPT = (
    "You are a product analysis expert. You read product packaging and labels, "
    "assess ingredient safety and nutrition, and summarise consumer opinion. "
    "When asked for JSON, reply with JSON only, no markdown and no commentary."
)

IDENTIFY_PROMPT = """Identify every distinct product visible in this photo.
If the photo shows no packaged product, describe the main object or scene instead.

Return a JSON array with one object per product:
[
  {
    "productName": "Brand + product name as printed on the package",
    "extractedText": {
      "ingredients": "ingredient list exactly as printed, or 'Not visible'",
      "nutrition": "nutrition facts as printed, or 'Not visible'",
      "brand": "brand name, or 'Unknown Brand'"
    },
    "summary": "two or three sentences on what the product is and who it is for"
  }
]"""

INGREDIENTS_PROMPT = """Product: {product_name}
Ingredients as printed: {ingredients}

Rate the safety of each ingredient using current regulatory and scientific sources.
Return JSON:
{{"ingredients_analysis": [
  {{"name": "ingredient", "safety_status": "Safe | Moderate | Harmful", "reason": "one sentence, citing the source"}}
]}}"""

COMPOSITION_PROMPT = """Product: {product_name}
Nutrition facts as printed: {nutrition}
Ingredients: {ingredients}

Describe the product's composition. Use numbers only (no units) for numeric fields.
Return JSON:
{{"productCategory": "e.g. Snack Food, Cosmetic/Topical, Beverage",
  "netQuantity": 0, "unitType": "g | ml | oz | count",
  "calories": 0, "totalFat": 0, "totalProtein": 0,
  "compositionalDetails": [{{"key": "nutrient or material", "value": "amount with unit"}}]}}"""

SENTIMENT_PROMPT = """Product: {product_name}
Brand: {brand}

Summarise what people on Reddit and review sites say about this product.
At most 4 pros and 4 cons. averageRating is 0-5.
Return JSON:
{{"pros": ["..."], "cons": ["..."], "averageRating": 0, "totalMentions": 0,
  "reviews": [{{"title": "thread title", "score": 0, "url": "https://..."}}]}}"""

FEATURES_PROMPT = """Product: {product_name}
Brand: {brand}
Description: {summary}

Describe what the product is for and how to use it.
Return JSON:
{{"productCategory": "...", "mainPurpose": "...", "usageInstructions": "...", "extraDetails": "..."}}"""

CHAT_PROMPT = """You are answering questions about one product.

Product: {product_name}
Summary: {summary}
Ingredients as printed: {ingredients}
Nutrition as printed: {nutrition}
Brand: {brand}
{context}
Question: {question}

Answer in plain text, in at most a few short paragraphs."""


def _record_fields(record: AnalysisRecord) -> dict:
    text = record.extracted_text
    return {
        "product_name": record.product_name,
        "summary": record.product_summary,
        "ingredients": text.ingredients or "Not available",
        "nutrition": text.nutrition or "Not available",
        "brand": text.brand or "Unknown Brand",
    }


def build_facet_prompt(template: str, record: AnalysisRecord) -> str:
    return template.format(**_record_fields(record))


def build_chat_prompt(record: AnalysisRecord, question: str) -> str:
    """Chat prompt with whatever ingredient and composition analysis the record already has."""
    context_lines = []
    ingredients = (record.ingredients_data or {}).get("ingredients_analysis") or []
    if ingredients:
        context_lines.append("Ingredient safety analysis:")
        context_lines.extend(
            f"- {i.get('name')}: {i.get('safety_status')} ({i.get('reason')})" for i in ingredients
        )
    if record.composition_data:
        comp = record.composition_data
        context_lines.append(
            f"Composition: {comp.get('productCategory')}, {comp.get('calories')} kcal, "
            f"{comp.get('totalFat')} g fat, {comp.get('totalProtein')} g protein"
        )
    context = "\n".join(context_lines) + "\n" if context_lines else ""
    return CHAT_PROMPT.format(question=question, context=context, **_record_fields(record))
