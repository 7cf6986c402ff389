"""
Service helpers for answering "how many messages did this sender send?".
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from mailcount.clients.gmail import GmailSessionFactory
from mailcount.core.audit import AuditEvent, audit
from mailcount.services.message_counter import CancellationSignal, MessageCountAggregator
from mailcount.utils.masking import mask_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SenderCountResult:
    sender: str
    count: int
    cached: bool


class SenderCountCache:
    """Process-local freshness window for recently counted senders."""

    def __init__(
        self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(sender: str) -> str:
        return sender.strip().lower()

    def get(self, sender: str) -> Optional[int]:
        if self._ttl <= 0:
            return None
        key = self._key(sender)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, count = entry
            if self._clock() - stored_at >= self._ttl:
                del self._entries[key]
                return None
            return count

    def put(self, sender: str, count: int) -> None:
        if self._ttl <= 0:
            return
        now = self._clock()
        with self._lock:
            expired = [
                key
                for key, (stored_at, _) in self._entries.items()
                if now - stored_at >= self._ttl
            ]
            for key in expired:
                del self._entries[key]
            self._entries[self._key(sender)] = (now, count)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def invalidate(self) -> None:
        with self._lock:
            self._entries.clear()


class SenderCountService:
    """Combine session creation, paging and caching for one sender query."""

    def __init__(
        self,
        session_factory: GmailSessionFactory,
        aggregator: MessageCountAggregator,
        cache: SenderCountCache,
    ) -> None:
        self._sessions = session_factory
        self._aggregator = aggregator
        self._cache = cache

    async def count_from_sender(
        self, sender: str, *, cancel: Optional[CancellationSignal] = None
    ) -> SenderCountResult:
        sender = sender.strip()
        cached = self._cache.get(sender)
        if cached is not None:
            logger.debug("Cache hit for %s", mask_email(sender))
            return SenderCountResult(sender=sender, count=cached, cached=True)

        session = await self._sessions.open()
        with session:
            count = await self._aggregator.count(session, sender, cancel=cancel)

        self._cache.put(sender, count)
        audit(AuditEvent.API_ACCESS, email=sender, count=count)
        logger.info("Email count for %s: %d", mask_email(sender), count)
        return SenderCountResult(sender=sender, count=count, cached=False)

    def invalidate_cache(self) -> None:
        self._cache.invalidate()
        logger.info("Sender count cache invalidated")


__all__ = ["SenderCountCache", "SenderCountResult", "SenderCountService"]
