"""
Strategy interface for the fallback chains.

A strategy is one way of producing a result for a task:
  run(subject) → value        success, the chain stops here
  run(subject) → None         nothing usable (barcode not found, no posts), try the next one
  run(subject) raises         AdapterError subclasses, handled by fallback.Resolver

The subject depends on the chain: image bytes for identification, an
AnalysisRecord for facets, a ChatTurn for chat, an OcrScan inside the
OCR fallback.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from models import AnalysisRecord


@dataclass
class ChatTurn:
    record: AnalysisRecord
    question: str


@dataclass
class OcrScan:
    """Label text transcribed by OCR, plus the barcode printed on it (if any)."""
    text: str
    barcode: Optional[str]


class Strategy(ABC):

    name: str
    # Primary strategies are the model-backed path; a record identified by
    # anything else is in degraded mode.
    primary: bool = False
    # False when run() bounds its own adapter calls (it nests a resolver of its
    # own); the resolver then awaits it without the per-attempt timeout.
    bounded: bool = True

    @abstractmethod
    async def run(self, subject: Any) -> Optional[Any]:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
