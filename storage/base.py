"""
Storage contract shared by the in-memory and SQLite backends.

Records and chat messages go in whole; the only partial write is
update_facet(), which is atomic per (record, facet):
  overwrite=False   compare-and-set, writes only if the slot is still null
  overwrite=True    unconditional, used by recompute
Either way it returns the value now stored, so a caller that lost the
compare-and-set race gets the winner's value.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from models import AnalysisRecord, ChatMessage, Facet


class AnalysisStore(ABC):

    async def init(self) -> None:
        """Prepare the backend (create tables, directories). Safe to call twice."""

    async def close(self) -> None:
        pass

    @abstractmethod
    async def create_analysis(self, record: AnalysisRecord) -> AnalysisRecord:
        ...

    @abstractmethod
    async def get_analysis(self, analysis_id: str) -> Optional[AnalysisRecord]:
        """A snapshot of the record; mutating it does not change the store."""

    @abstractmethod
    async def update_facet(
        self,
        analysis_id: str,
        facet: Facet,
        value: dict,
        *,
        overwrite: bool = False,
    ) -> dict:
        """Raises NotFoundError for an unknown id."""

    @abstractmethod
    async def create_chat_message(self, message: ChatMessage) -> ChatMessage:
        ...

    @abstractmethod
    async def get_chat_messages(self, analysis_id: str) -> list[ChatMessage]:
        """All messages of a record in insertion order (empty for an unknown id)."""


def build_store(settings) -> AnalysisStore:
    """Backend selected by STORE_BACKEND."""
    if settings.store_backend == "sqlite":
        from storage.sqlite_store import SqliteStore
        return SqliteStore(settings.db_path)
    from storage.memory_store import MemoryStore
    return MemoryStore()
