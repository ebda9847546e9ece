"""
fallback.py — ordered fallback chains with a safe default.

A FallbackChain is a list of strategies plus a factory for the value returned
when every strategy has failed. Resolver.resolve() walks the chain:

  for each strategy, in order:
    attempt = run(subject) bounded by adapter_timeout (a timeout is a failure)
    (strategies with bounded=False time their own adapter calls)
      value            → done, this strategy wins
      None             → nothing usable, next strategy
      AdapterUnavailable / UnparseableResponse → retry up to adapter_retries times
      RateLimited / MissingCredentials         → no retries, next strategy
      anything else    → logged with traceback, next strategy
  chain exhausted → safe default

resolve() never raises (cancellation aside): the caller always gets a value and
knows whether a primary strategy produced it.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from errors import AdapterError, MissingCredentials, RateLimited
from strategies.base import Strategy

logger = logging.getLogger(__name__)


@dataclass
class FallbackChain:
    task: str                           # e.g. "identify", "facet:ingredients", "chat"
    strategies: list[Strategy]
    default: Callable[[], Any]

    def __len__(self) -> int:
        return len(self.strategies)


@dataclass
class Resolution:
    value: Any
    strategy: Optional[str]             # name of the winning strategy, None when the default was used
    primary: bool

    @property
    def used_default(self) -> bool:
        return self.strategy is None

    @property
    def degraded(self) -> bool:
        return not self.primary


class Resolver:

    def __init__(self, timeout: float = 45.0, retries: int = 1, retry_delay: float = 0.5):
        self.timeout = timeout
        self.retries = max(retries, 0)
        self.retry_delay = retry_delay

    @classmethod
    def from_settings(cls, settings) -> "Resolver":
        return cls(
            timeout=settings.adapter_timeout,
            retries=settings.adapter_retries,
            retry_delay=settings.retry_delay,
        )

    async def resolve(
        self,
        chain: FallbackChain,
        subject: Any,
        *,
        record_id: Optional[str] = None,
        facet: Optional[str] = None,
    ) -> Resolution:
        ctx = _log_context(chain.task, record_id, facet)

        for strategy in chain.strategies:
            value = await self._attempt(strategy, subject, ctx)
            if value is not None:
                logger.info("%s → %s", ctx, strategy.name)
                return Resolution(value=value, strategy=strategy.name, primary=strategy.primary)

        logger.warning("%s: all %d strategies failed, using safe default", ctx, len(chain))
        return Resolution(value=chain.default(), strategy=None, primary=False)

    async def _attempt(self, strategy: Strategy, subject: Any, ctx: str) -> Optional[Any]:
        """Run one strategy with timeout and retries. Returns None on failure."""
        for attempt in range(1, self.retries + 2):
            if attempt > 1 and self.retry_delay > 0:
                await asyncio.sleep(self.retry_delay)
            try:
                if strategy.bounded:
                    value = await asyncio.wait_for(strategy.run(subject), timeout=self.timeout)
                else:
                    value = await strategy.run(subject)
            except asyncio.TimeoutError:
                logger.warning("%s [%s] attempt %d timed out after %.1fs",
                               ctx, strategy.name, attempt, self.timeout)
                continue
            except (RateLimited, MissingCredentials) as exc:
                logger.warning("%s [%s] %s; skipping", ctx, strategy.name, exc)
                return None
            except AdapterError as exc:
                logger.warning("%s [%s] attempt %d failed: %s", ctx, strategy.name, attempt, exc)
                continue
            except Exception as exc:
                logger.error("%s [%s] unexpected error: %s", ctx, strategy.name, exc, exc_info=True)
                return None

            if value is None:
                logger.info("%s [%s] no result", ctx, strategy.name)
            return value
        return None


def _log_context(task: str, record_id: Optional[str], facet: Optional[str]) -> str:
    parts = [task]
    if record_id:
        parts.append(f"record={record_id}")
    if facet:
        parts.append(f"facet={facet}")
    return " ".join(parts)
