"""
sqlite_store.py — durable store via aiosqlite.

Tables:
  analyses        — one row per identified product; facet slots are JSON text, NULL until computed
  chat_messages   — append-only Q&A log, read back in rowid (insertion) order

The DB file is created automatically on first run under DATA_DIR.
"""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiosqlite

from errors import NotFoundError
from models import AnalysisRecord, ChatMessage, ExtractedText, Facet
from storage.base import AnalysisStore

logger = logging.getLogger(__name__)

# Only these column names are ever interpolated into SQL
_FACET_COLUMNS = {f: f.slot for f in Facet}


# ── Schema ────────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS analyses (
    id               TEXT    PRIMARY KEY,
    product_name     TEXT    NOT NULL,
    product_summary  TEXT    NOT NULL DEFAULT '',
    extracted_text   TEXT    NOT NULL DEFAULT '{}',   -- JSON {ingredients, nutrition, brand}
    image_url        TEXT,
    is_degraded_mode INTEGER NOT NULL DEFAULT 0,
    barcode          TEXT,
    created_at       TEXT    NOT NULL,
    ingredients_data TEXT,
    composition_data TEXT,
    reddit_data      TEXT,
    features_data    TEXT
);

CREATE TABLE IF NOT EXISTS chat_messages (
    id          TEXT PRIMARY KEY,
    analysis_id TEXT NOT NULL,
    message     TEXT NOT NULL,
    response    TEXT NOT NULL,
    created_at  TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_chat_messages_analysis ON chat_messages (analysis_id);
"""


def _loads(raw: Optional[str]) -> Optional[dict]:
    return json.loads(raw) if raw is not None else None


def _row_to_record(row: aiosqlite.Row) -> AnalysisRecord:
    return AnalysisRecord(
        id=row["id"],
        product_name=row["product_name"],
        product_summary=row["product_summary"],
        extracted_text=ExtractedText(**json.loads(row["extracted_text"])),
        image_url=row["image_url"],
        is_degraded_mode=bool(row["is_degraded_mode"]),
        barcode=row["barcode"],
        created_at=datetime.fromisoformat(row["created_at"]),
        ingredients_data=_loads(row["ingredients_data"]),
        composition_data=_loads(row["composition_data"]),
        reddit_data=_loads(row["reddit_data"]),
        features_data=_loads(row["features_data"]),
    )


class SqliteStore(AnalysisStore):

    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)
        self._lock = asyncio.Lock()          # serialise schema creation

    async def init(self) -> None:
        """Create tables if they don't exist. Safe to call multiple times."""
        async with self._lock:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(self.db_path) as db:
                await db.executescript(_SCHEMA)
                await db.commit()
        logger.info("Database initialised at %s", self.db_path)

    # ── Analyses ──────────────────────────────────────────────────────────────

    async def create_analysis(self, record: AnalysisRecord) -> AnalysisRecord:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """INSERT INTO analyses
                   (id, product_name, product_summary, extracted_text, image_url,
                    is_degraded_mode, barcode, created_at,
                    ingredients_data, composition_data, reddit_data, features_data)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.id,
                    record.product_name,
                    record.product_summary,
                    json.dumps(record.extracted_text.to_dict()),
                    record.image_url,
                    int(record.is_degraded_mode),
                    record.barcode,
                    record.created_at.isoformat(),
                    *(
                        json.dumps(record.facet(f)) if record.facet(f) is not None else None
                        for f in Facet
                    ),
                ),
            )
            await db.commit()
        return record

    async def get_analysis(self, analysis_id: str) -> Optional[AnalysisRecord]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT * FROM analyses WHERE id = ?", (analysis_id,)) as cur:
                row = await cur.fetchone()
        return _row_to_record(row) if row else None

    async def update_facet(
        self,
        analysis_id: str,
        facet: Facet,
        value: dict,
        *,
        overwrite: bool = False,
    ) -> dict:
        column = _FACET_COLUMNS[facet]
        sql = f"UPDATE analyses SET {column} = ? WHERE id = ?"
        if not overwrite:
            sql += f" AND {column} IS NULL"
        async with aiosqlite.connect(self.db_path) as db:
            cur = await db.execute(sql, (json.dumps(value), analysis_id))
            updated = cur.rowcount
            await db.commit()
            async with db.execute(f"SELECT {column} FROM analyses WHERE id = ?", (analysis_id,)) as sel:
                row = await sel.fetchone()
        if row is None:
            raise NotFoundError(analysis_id)
        if not updated:
            logger.debug("Facet %s of %s already set; keeping stored value", facet.value, analysis_id)
        return json.loads(row[0])

    # ── Chat ──────────────────────────────────────────────────────────────────

    async def create_chat_message(self, message: ChatMessage) -> ChatMessage:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT INTO chat_messages (id, analysis_id, message, response, created_at) VALUES (?, ?, ?, ?, ?)",
                (message.id, message.analysis_id, message.message, message.response,
                 message.created_at.isoformat()),
            )
            await db.commit()
        return message

    async def get_chat_messages(self, analysis_id: str) -> list[ChatMessage]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM chat_messages WHERE analysis_id = ? ORDER BY rowid",
                (analysis_id,),
            ) as cur:
                rows = await cur.fetchall()
        return [
            ChatMessage(
                id=r["id"],
                analysis_id=r["analysis_id"],
                message=r["message"],
                response=r["response"],
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]

