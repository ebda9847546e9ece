"""
chat.py — free-form questions about one analysed product.

Every question is stored with its answer, even when the answer is the fixed
degraded-mode notice or the apology returned when every provider failed.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from catalog import StrategyCatalog
from errors import ValidationError
from fallback import Resolver
from models import ChatMessage
from orchestrator import Orchestrator
from strategies.base import ChatTurn

logger = logging.getLogger(__name__)

DEGRADED_CHAT_RESPONSE = (
    "Chat is temporarily unavailable for this product because it was identified "
    "in fallback mode. Please try again later with a new photo."
)


class ChatHandler:

    def __init__(
        self,
        orchestrator: Orchestrator,
        catalog: StrategyCatalog,
        resolver: Optional[Resolver] = None,
    ):
        self.orchestrator = orchestrator
        self.store = orchestrator.store
        self.catalog = catalog
        self.resolver = resolver or orchestrator.resolver

    async def post_message(self, analysis_id: str, text: str) -> ChatMessage:
        question = (text or "").strip()
        if not question:
            raise ValidationError("Message is required")
        record = await self.orchestrator.get_record(analysis_id)

        if record.is_degraded_mode:
            logger.info("chat record=%s is degraded; answering with the fixed notice", analysis_id)
            response = DEGRADED_CHAT_RESPONSE
        else:
            resolution = await self.resolver.resolve(
                self.catalog.chat_chain(), ChatTurn(record=record, question=question),
                record_id=analysis_id,
            )
            response = resolution.value

        message = ChatMessage(
            id=str(uuid.uuid4()),
            analysis_id=analysis_id,
            message=question,
            response=response,
            created_at=datetime.now(timezone.utc),
        )
        return await self.store.create_chat_message(message)

    async def get_history(self, analysis_id: str) -> list[ChatMessage]:
        return await self.store.get_chat_messages(analysis_id)
