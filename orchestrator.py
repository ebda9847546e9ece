"""
orchestrator.py — turns an uploaded photo into analysis records and fills
their facets on demand.

  create_from_image()   identify → one record per product, all sharing the
                        image URL and the degraded flag of this upload
  get_record()          read a record, NotFoundError if unknown
  ensure_facet()        memoized: compute a facet once, then always return the stored value
  recompute_facet()     bypass the memo and overwrite

Facets are computed lazily. At most one computation per (record, facet) is in
flight: concurrent ensure_facet() callers share one asyncio.Task. The task is
shielded, so a caller that disconnects mid-way does not cancel work the other
callers are waiting on.
"""
from __future__ import annotations

import asyncio
import base64
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from catalog import StrategyCatalog
from config import Settings
from errors import NotFoundError, ValidationError
from fallback import Resolver
from models import AnalysisRecord, Facet
from providers.base import detect_mime
from storage.base import AnalysisStore

logger = logging.getLogger(__name__)


def _image_data_url(image_bytes: bytes, content_type: Optional[str]) -> str:
    mime = content_type if content_type and content_type.startswith("image/") else detect_mime(image_bytes)
    return f"data:{mime};base64,{base64.b64encode(image_bytes).decode()}"


class Orchestrator:

    def __init__(
        self,
        settings: Settings,
        store: AnalysisStore,
        catalog: StrategyCatalog,
        resolver: Optional[Resolver] = None,
    ):
        self.settings = settings
        self.store = store
        self.catalog = catalog
        self.resolver = resolver or Resolver.from_settings(settings)
        self._inflight: dict[tuple[str, Facet], asyncio.Task] = {}

    # ── Identification ────────────────────────────────────────────────────────

    async def create_from_image(
        self,
        image_bytes: bytes,
        content_type: Optional[str] = None,
    ) -> list[AnalysisRecord]:
        """Identify every product in the photo and store one record per product."""
        if not image_bytes:
            raise ValidationError("No image uploaded")

        resolution = await self.resolver.resolve(self.catalog.identify_chain(), image_bytes)
        candidates = resolution.value
        degraded = resolution.degraded
        image_url = _image_data_url(image_bytes, content_type) if self.settings.embed_image_url else None
        created_at = datetime.now(timezone.utc)

        records = []
        for candidate in candidates:
            record = AnalysisRecord(
                id=str(uuid.uuid4()),
                product_name=candidate.product_name,
                product_summary=candidate.summary,
                extracted_text=candidate.extracted_text,
                image_url=image_url,
                is_degraded_mode=degraded,
                created_at=created_at,
                barcode=candidate.barcode,
            )
            records.append(await self.store.create_analysis(record))

        logger.info(
            "Created %d record(s) via %s%s: %s",
            len(records),
            resolution.strategy or "safe default",
            " [degraded]" if degraded else "",
            ", ".join(f"{r.id} ({r.product_name})" for r in records),
        )
        return records

    async def get_record(self, analysis_id: str) -> AnalysisRecord:
        record = await self.store.get_analysis(analysis_id)
        if record is None:
            raise NotFoundError(analysis_id)
        return record

    # ── Facets ────────────────────────────────────────────────────────────────

    def _skips_facet(self, record: AnalysisRecord, facet: Facet) -> bool:
        """Degraded records get no sentiment at all under DEGRADED_SENTIMENT=null."""
        return (
            facet is Facet.REDDIT
            and record.is_degraded_mode
            and self.settings.degraded_sentiment == "null"
        )

    async def ensure_facet(self, analysis_id: str, facet: Facet) -> Optional[dict]:
        """Return the stored facet, computing and storing it first if the slot is empty."""
        key = (analysis_id, facet)
        task = self._inflight.get(key)
        if task is None:
            record = await self.get_record(analysis_id)
            if self._skips_facet(record, facet):
                return None
            stored = record.facet(facet)
            if stored is not None:
                return stored
            # get_record() awaited: someone may have started the computation meanwhile
            task = self._inflight.get(key)
            if task is None:
                task = asyncio.create_task(self._compute_once(analysis_id, facet))
                self._inflight[key] = task
                task.add_done_callback(lambda t, k=key: self._forget(k, t))
        return await asyncio.shield(task)

    def _forget(self, key: tuple[str, Facet], task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Every caller may have gone away before the task finished
        if not task.cancelled() and task.exception() is not None:
            analysis_id, facet = key
            logger.error("Facet %s of %s failed: %s", facet.value, analysis_id, task.exception())

    async def _compute_once(self, analysis_id: str, facet: Facet) -> dict:
        record = await self.get_record(analysis_id)
        stored = record.facet(facet)
        if stored is not None:
            return stored
        value = await self._compute(record, facet)
        return await self.store.update_facet(analysis_id, facet, value, overwrite=False)

    async def recompute_facet(self, analysis_id: str, facet: Facet) -> Optional[dict]:
        """Compute the facet again and overwrite whatever is stored."""
        record = await self.get_record(analysis_id)
        if self._skips_facet(record, facet):
            return None
        value = await self._compute(record, facet)
        return await self.store.update_facet(analysis_id, facet, value, overwrite=True)

    async def _compute(self, record: AnalysisRecord, facet: Facet) -> dict:
        chain = self.catalog.facet_chain(facet, degraded=record.is_degraded_mode)
        resolution = await self.resolver.resolve(
            chain, record, record_id=record.id, facet=facet.value,
        )
        return resolution.value.to_dict()
