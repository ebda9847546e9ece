"""
In-process store: the default backend and the one the tests run against.
Nothing survives a restart.

No method awaits between reading and writing a slot, so every operation is
atomic with respect to other coroutines on the event loop.
"""
from __future__ import annotations

import copy
import logging
from typing import Optional

from errors import NotFoundError
from models import AnalysisRecord, ChatMessage, Facet
from storage.base import AnalysisStore

logger = logging.getLogger(__name__)


class MemoryStore(AnalysisStore):

    def __init__(self):
        self._analyses: dict[str, AnalysisRecord] = {}
        self._chats: dict[str, list[ChatMessage]] = {}

    async def create_analysis(self, record: AnalysisRecord) -> AnalysisRecord:
        self._analyses[record.id] = copy.deepcopy(record)
        return copy.deepcopy(record)

    async def get_analysis(self, analysis_id: str) -> Optional[AnalysisRecord]:
        record = self._analyses.get(analysis_id)
        return copy.deepcopy(record) if record is not None else None

    async def update_facet(
        self,
        analysis_id: str,
        facet: Facet,
        value: dict,
        *,
        overwrite: bool = False,
    ) -> dict:
        record = self._analyses.get(analysis_id)
        if record is None:
            raise NotFoundError(analysis_id)
        current = getattr(record, facet.slot)
        if current is None or overwrite:
            setattr(record, facet.slot, copy.deepcopy(value))
        else:
            logger.debug("Facet %s of %s already set; keeping stored value", facet.value, analysis_id)
        return copy.deepcopy(getattr(record, facet.slot))

    async def create_chat_message(self, message: ChatMessage) -> ChatMessage:
        self._chats.setdefault(message.analysis_id, []).append(copy.deepcopy(message))
        return message

    async def get_chat_messages(self, analysis_id: str) -> list[ChatMessage]:
        return [copy.deepcopy(m) for m in self._chats.get(analysis_id, [])]
