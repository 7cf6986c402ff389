"""
Count provider messages from one sender across every result page.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Set

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.errors import HttpError

from mailcount.core.audit import AuditEvent, audit
from mailcount.core.exceptions import (
    OperationCancelledError,
    ProviderApiError,
    ProviderErrorKind,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 500

_RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded"}
_DISCONNECT_ERRORS = (BrokenPipeError, ConnectionResetError, ConnectionAbortedError)
_PROVIDER_ERRORS = (HttpError, RefreshError, TransportError, httplib2.HttpLib2Error, OSError)


class MessageListSession(Protocol):
    def list_messages(
        self, *, query: str, page_token: Optional[str], max_results: int
    ) -> Dict[str, Any]:
        ...


class CancellationSignal:
    """Cancellation flag, optionally backed by an async probe such as a disconnect check."""

    def __init__(self, probe: Optional[Callable[[], Awaitable[bool]]] = None) -> None:
        self._probe = probe
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    async def is_cancelled(self) -> bool:
        if not self._cancelled and self._probe is not None and await self._probe():
            self._cancelled = True
        return self._cancelled


def build_sender_query(sender: str) -> str:
    return f"from:{sender.strip()}"


def _error_reasons(exc: HttpError) -> Set[str]:
    details = getattr(exc, "error_details", None)
    if not isinstance(details, list):
        return set()
    return {item.get("reason") for item in details if isinstance(item, dict)}


def classify_provider_error(exc: BaseException) -> Exception:
    """Map a transport/API failure to the error the caller should see."""
    if isinstance(exc, _DISCONNECT_ERRORS):
        return OperationCancelledError("Client connection closed during aggregation.")

    if isinstance(exc, HttpError):
        status = exc.resp.status
        if status == 429 or (status == 403 and _error_reasons(exc) & _RATE_LIMIT_REASONS):
            kind = ProviderErrorKind.RATE_LIMIT
        elif status in (401, 403):
            kind = ProviderErrorKind.AUTH
        else:
            kind = ProviderErrorKind.OTHER
        return ProviderApiError(kind, status_code=status, detail=str(exc))

    if isinstance(exc, RefreshError):
        return ProviderApiError(ProviderErrorKind.AUTH, detail=str(exc))

    return ProviderApiError(ProviderErrorKind.OTHER, detail=str(exc))


class MessageCountAggregator:
    """Pages through ``messages.list`` and sums the page sizes."""

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if not 1 <= page_size <= DEFAULT_PAGE_SIZE:
            raise ValueError("page_size must be between 1 and 500")
        self._page_size = page_size

    async def count(
        self,
        session: MessageListSession,
        sender: str,
        *,
        cancel: Optional[CancellationSignal] = None,
    ) -> int:
        query = build_sender_query(sender)
        total = 0
        pages = 0
        page_token: Optional[str] = None

        while True:
            if cancel is not None and await cancel.is_cancelled():
                self._cancelled(sender, pages)
                raise OperationCancelledError("Aggregation cancelled by the caller.")

            try:
                response = await asyncio.to_thread(
                    session.list_messages,
                    query=query,
                    page_token=page_token,
                    max_results=self._page_size,
                )
            except _PROVIDER_ERRORS as exc:
                error = classify_provider_error(exc)
                if isinstance(error, OperationCancelledError):
                    self._cancelled(sender, pages)
                else:
                    audit(
                        AuditEvent.PROVIDER_FAULT,
                        outcome="failed",
                        email=sender,
                        kind=error.kind.value,
                        status=error.status_code,
                    )
                    logger.debug("Provider fault detail: %s", exc)
                raise error from exc

            pages += 1
            messages = response.get("messages") or []
            total += len(messages)
            logger.debug(
                "Found %d messages in page %d (total so far: %d)", len(messages), pages, total
            )

            page_token = response.get("nextPageToken")
            if not page_token:
                return total

    @staticmethod
    def _cancelled(sender: str, pages: int) -> None:
        logger.info("Aggregation cancelled after %d page(s)", pages)
        audit(AuditEvent.AGGREGATION_CANCELLED, outcome="cancelled", email=sender, pages=pages)


__all__ = [
    "CancellationSignal",
    "DEFAULT_PAGE_SIZE",
    "MessageCountAggregator",
    "MessageListSession",
    "build_sender_query",
    "classify_provider_error",
]
