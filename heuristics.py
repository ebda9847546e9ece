"""
heuristics.py — local, network-free text analysis used by the fallback strategies.

  validate_barcode()           EAN-13 / UPC-A checksum
  find_barcode()               first checksum-valid barcode in OCR text
  parse_ocr_product()          brand / product name guess from the first OCR line
  parse_general_item()         product name, brand and ingredient line from label text
  split_ingredients()          ingredient list text → individual names
  classify_ingredient()        keyword-based Safe / Moderate / Harmful rating
  extract_nutrients()          calories / fat / protein numbers from free text
  parse_quantity()             net quantity and unit from a package size string
  summarize_mentions()         pros / cons / rating from community post titles or snippets
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

UNKNOWN_PRODUCT = "Unknown Product"
UNKNOWN_BRAND = "Unknown Brand"

_BARCODE_RE = re.compile(r"\b(\d{13}|\d{12}|\d{3}\s\d{3}\s\d{3}\s\d{3})\b")
_BRAND_PRODUCT_RE = re.compile(r"^([A-Z][a-zA-Z0-9\-']+(?:\s[A-Z][a-zA-Z0-9\-']+)?)\s*:\s*(.+)$")
_BRAND_LINE_RE = re.compile(r"(?:brand|made by|mfr|manufacturer)[:\s]+([A-Z][a-zA-Z0-9\s\-'&]+)", re.I)
_INGREDIENT_LINE_PATTERNS = [
    re.compile(r"ingredients?\s*[:\-]\s*([^\n]+)", re.I),
    re.compile(r"materials?\s*[:\-]\s*([^\n]+)", re.I),
    re.compile(r"composition\s*[:\-]\s*([^\n]+)", re.I),
    re.compile(r"contains\s*[:\-]?\s*([^\n]+)", re.I),
]

_NOT_LISTED = ("n/a", "none", "not available", "not applicable", "not visible")

_HARMFUL_KEYWORDS = (
    "aspartame", "high fructose corn syrup", "trans fat", "partially hydrogenated",
    "sodium nitrite", "sodium nitrate", "monosodium glutamate", "msg", "bha", "bht",
    "potassium bromate", "red 3", "formaldehyde", "triclosan",
)
_MODERATE_KEYWORDS = (
    "artificial", "preservative", "sugar", "syrup", "palm oil", "sodium benzoate",
    "carrageenan", "red 40", "yellow 5", "yellow 6", "blue 1", "sucralose",
    "acesulfame", "paraben", "fragrance", "parfum", "sulfate",
)


# ── Barcodes ──────────────────────────────────────────────────────────────────

def validate_barcode(barcode: str) -> bool:
    """True for a UPC-A (12 digit) or EAN-13 (13 digit) code with a correct check digit."""
    digits = [int(c) for c in re.sub(r"\D", "", barcode or "")]
    if len(digits) not in (12, 13):
        return False
    body, check = digits[:-1], digits[-1]
    # Weights run right-to-left from the digit next to the check digit: 3, 1, 3, 1, ...
    total = sum(d * (3 if i % 2 == 0 else 1) for i, d in enumerate(reversed(body)))
    return (10 - total % 10) % 10 == check


def find_barcode(text: str) -> Optional[str]:
    for match in _BARCODE_RE.finditer(text or ""):
        candidate = re.sub(r"\s", "", match.group(1))
        if validate_barcode(candidate):
            return candidate
    return None


# ── OCR text → product identity ───────────────────────────────────────────────

@dataclass
class OcrProductGuess:
    product_name: str
    brand: str
    barcode: Optional[str]


def _lines(text: str) -> list[str]:
    return [ln.strip() for ln in (text or "").splitlines() if ln.strip()]


def parse_ocr_product(ocr_text: str) -> OcrProductGuess:
    """
    Guess brand and product name from the first line of the label.
    "Brand: Product" splits into both; otherwise the whole line is the product name.
    """
    lines = _lines(ocr_text)
    product_name, brand = UNKNOWN_PRODUCT, UNKNOWN_BRAND
    if lines:
        match = _BRAND_PRODUCT_RE.match(lines[0])
        if match:
            brand, product_name = match.group(1).strip(), match.group(2).strip()
        else:
            product_name = lines[0]
    return OcrProductGuess(product_name=product_name, brand=brand, barcode=find_barcode(ocr_text))


@dataclass
class GeneralItemInfo:
    product_name: str
    brand: str
    ingredients: str


def parse_general_item(ocr_text: str) -> GeneralItemInfo:
    lines = _lines(ocr_text)
    info = GeneralItemInfo(
        product_name=lines[0] if lines else UNKNOWN_PRODUCT,
        brand=UNKNOWN_BRAND,
        ingredients="Not available",
    )
    for line in lines[1:5]:
        match = _BRAND_LINE_RE.search(line)
        if match:
            info.brand = match.group(1).strip()
            break
    for pattern in _INGREDIENT_LINE_PATTERNS:
        match = pattern.search(ocr_text or "")
        if match:
            info.ingredients = match.group(1).strip()
            break
    return info


# ── Ingredients ───────────────────────────────────────────────────────────────

def split_ingredients(text: str, limit: int = 25) -> list[str]:
    """
    Split an ingredient list on commas, semicolons and newlines.
    Parenthesised sub-ingredients stay attached to their parent.
    """
    names: list[str] = []
    depth, current = 0, []
    for ch in text or "":
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(depth - 1, 0)
        if ch in ",;\n" and depth == 0:
            names.append("".join(current))
            current = []
        else:
            current.append(ch)
    names.append("".join(current))

    cleaned = []
    for name in names:
        name = re.sub(r"^\s*ingredients?\s*[:\-]\s*", "", name, flags=re.I).strip(" .*\t")
        if len(name) > 2 and name.lower() not in _NOT_LISTED:
            cleaned.append(name)
    return cleaned[:limit]


def classify_ingredient(name: str) -> tuple[str, str]:
    """Return (safety_status, reason) from keyword lists."""
    lowered = name.lower()
    for keyword in _HARMFUL_KEYWORDS:
        if keyword in lowered:
            return "Harmful", f"Contains {keyword}, linked to health concerns"
    for keyword in _MODERATE_KEYWORDS:
        if keyword in lowered:
            return "Moderate", f"Contains {keyword}; limit intake or exposure"
    return "Safe", "Generally recognized as safe"


# ── Nutrition ─────────────────────────────────────────────────────────────────

_NUTRIENT_PATTERNS = {
    "calories": [
        re.compile(r"calories\s*[:\-]?\s*(\d+(?:\.\d+)?)", re.I),
        re.compile(r"(\d+(?:\.\d+)?)\s*(?:k?cal|calories)", re.I),
    ],
    "fat": [
        re.compile(r"(?:total\s+)?fat\s*[:\-]?\s*(\d+(?:\.\d+)?)\s*g", re.I),
        re.compile(r"(\d+(?:\.\d+)?)\s*g?\s*(?:total\s+)?fat", re.I),
    ],
    "protein": [
        re.compile(r"protein\s*[:\-]?\s*(\d+(?:\.\d+)?)\s*g", re.I),
        re.compile(r"(\d+(?:\.\d+)?)\s*g?\s*protein", re.I),
    ],
}


def extract_nutrients(text: str) -> dict[str, float]:
    """Pull calories, fat and protein values out of a label or search snippet; missing ones are 0."""
    result = {}
    for nutrient, patterns in _NUTRIENT_PATTERNS.items():
        result[nutrient] = 0.0
        for pattern in patterns:
            match = pattern.search(text or "")
            if match:
                result[nutrient] = float(match.group(1))
                break
    return result


_QUANTITY_RE = re.compile(r"(\d+(?:[.,]\d+)?)\s*(kg|g|mg|ml|cl|l|fl\.?\s?oz|oz|lb)\b", re.I)


def parse_quantity(text: str) -> tuple[float, str]:
    """'400 g' → (400.0, 'g'), '1,5 L' → (1.5, 'l'); unparseable → (0.0, 'g')."""
    match = _QUANTITY_RE.search(text or "")
    if not match:
        return 0.0, "g"
    unit = re.sub(r"[\s.]", "", match.group(2).lower())
    return float(match.group(1).replace(",", ".")), unit


# ── Community sentiment ───────────────────────────────────────────────────────

_POSITIVE_WORDS = (
    "love", "great", "best", "recommend", "amazing", "works", "favorite",
    "excellent", "worth", "good", "tasty", "delicious", "effective",
)
_NEGATIVE_WORDS = (
    "hate", "worst", "broke", "disappoint", "terrible", "waste", "rash",
    "allergic", "refund", "awful", "bad", "overpriced", "stopped working",
)


def _tone_pattern(words: tuple[str, ...]) -> re.Pattern:
    # Whole words, plus the usual endings ("loved", "disappointing", "badly")
    stems = "|".join(re.escape(w) for w in words)
    return re.compile(r"\b(" + stems + r")(?:s|d|n|es|ed|ing|ly|ment)?\b")


_POSITIVE_RE = _tone_pattern(_POSITIVE_WORDS)
_NEGATIVE_RE = _tone_pattern(_NEGATIVE_WORDS)


def _tone(text: str) -> int:
    lowered = text.lower()
    positive = len(set(_POSITIVE_RE.findall(lowered)))
    negative = len(set(_NEGATIVE_RE.findall(lowered)))
    return (positive > negative) - (negative > positive)


def summarize_mentions(texts: list[str], max_points: int = 4) -> tuple[list[str], list[str], float]:
    """
    Split short community texts (post titles, search snippets) into positive and
    negative highlights by keyword tone. Returns (pros, cons, rating).
    The rating maps the positive share onto 1..5, or 0 when no text carries a tone.
    """
    pros: list[str] = []
    cons: list[str] = []
    for text in texts:
        text = " ".join((text or "").split())
        if not text:
            continue
        tone = _tone(text)
        if tone > 0:
            pros.append(text[:160])
        elif tone < 0:
            cons.append(text[:160])
    rated = len(pros) + len(cons)
    rating = round(1 + 4 * len(pros) / rated, 1) if rated else 0.0
    return pros[:max_points], cons[:max_points], rating
