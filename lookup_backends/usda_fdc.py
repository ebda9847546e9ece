"""
USDA FoodData Central backend — per-100g nutrient profile for a food by name.

Two calls:
  GET /foods/search?query=...   → first matching fdcId
  GET /food/{fdcId}             → full nutrient list

DEMO_KEY is accepted by api.data.gov for low-volume use.
"""
from __future__ import annotations

import logging
from typing import Optional

from errors import MissingCredentials
from lookup_backends.base import request_json

logger = logging.getLogger(__name__)

USDA_API_URL = "https://api.nal.usda.gov/fdc/v1"


class UsdaFdcBackend:

    name = "usda-fdc"

    def __init__(self, api_key: Optional[str]):
        self._key = api_key

    async def lookup(self, query: str) -> Optional[dict]:
        """Return the FDC food details for the best match, or None if nothing matches."""
        if not self._key:
            raise MissingCredentials(self.name, "USDA_API_KEY")

        search = await request_json(
            "GET",
            f"{USDA_API_URL}/foods/search",
            source=self.name,
            params={"query": query, "pageSize": "1", "api_key": self._key},
        )
        foods = (search or {}).get("foods") or []
        if not foods:
            logger.info("[%s] No match for %r", self.name, query)
            return None

        fdc_id = foods[0].get("fdcId")
        details = await request_json(
            "GET",
            f"{USDA_API_URL}/food/{fdc_id}",
            source=self.name,
            allow_missing=True,
            params={"api_key": self._key},
        )
        if details:
            logger.info("[%s] %r → fdcId %s (%s)", self.name, query, fdc_id, details.get("description", "?"))
        return details
