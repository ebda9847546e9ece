"""
Open Food Facts / Open Beauty Facts barcode lookup.

Both projects share one API shape:
  GET https://world.open{food,beauty}facts.org/api/v0/product/{barcode}.json
  → {"status": 1, "product": {...}}   found
  → {"status": 0, ...}                 not found (absence, not an error)

No API key needed.
"""
from __future__ import annotations

import logging
from typing import Optional

from heuristics import UNKNOWN_BRAND, UNKNOWN_PRODUCT, validate_barcode
from lookup_backends.base import BarcodeProduct, request_json

logger = logging.getLogger(__name__)

_DATABASES = {
    "food":   ("https://world.openfoodfacts.org",   "General/Unspecified"),
    "beauty": ("https://world.openbeautyfacts.org", "Cosmetic/Topical"),
}


class OpenFactsBackend:

    def __init__(self, database: str = "food"):
        if database not in _DATABASES:
            raise ValueError(f"Unknown Open Facts database: {database}")
        self.database = database
        self._base_url, self._default_category = _DATABASES[database]

    @property
    def name(self) -> str:
        return f"open{self.database}facts"

    async def lookup(self, barcode: str) -> Optional[BarcodeProduct]:
        """Return the product for a checksum-valid barcode, or None when the database doesn't know it."""
        if not validate_barcode(barcode):
            logger.info("[%s] Skipping invalid barcode %r", self.name, barcode)
            return None

        data = await request_json(
            "GET",
            f"{self._base_url}/api/v0/product/{barcode}.json",
            source=self.name,
            allow_missing=True,
        )
        if not data or data.get("status") != 1 or not data.get("product"):
            logger.info("[%s] Barcode %s not found", self.name, barcode)
            return None

        product = data["product"]
        logger.info("[%s] Barcode %s → %s", self.name, barcode, product.get("product_name", "?"))
        return BarcodeProduct(
            barcode=barcode,
            database=self.database,
            product_name=(product.get("product_name") or "").strip() or UNKNOWN_PRODUCT,
            brand=(product.get("brands") or "").strip() or UNKNOWN_BRAND,
            ingredients_text=(product.get("ingredients_text") or "").strip(),
            categories=(product.get("categories") or "").strip() or self._default_category,
            quantity=(product.get("quantity") or "").strip(),
            nutriments=product.get("nutriments") or {},
        )
