"""
In-memory store for report and chat sessions. Scoped to the process lifetime.

Sessions are evicted when idle for longer than SESSION_TTL_SECONDS and, least
recently used first, once a registry grows past its size cap. A report session
that is still analysing or exporting is never evicted. Evicted report sessions
delete their generated PDF.
"""
from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Callable, Generic, Optional, TypeVar

from app.config import MAX_CHAT_SESSIONS, MAX_REPORT_SESSIONS, SESSION_TTL_SECONDS
from app.services.chat_service import ChatSession
from app.services.errors import ChatSessionNotFoundError, ReportNotFoundError
from app.services.report_session import ReportSession

logger = logging.getLogger("sbc-store")

T = TypeVar("T")


class _ExpiringRegistry(Generic[T]):
    """Key → value map ordered by last access, with idle expiry and a size cap."""

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        max_items: int,
        clock: Callable[[], float],
        is_busy: Callable[[T], bool] = lambda value: False,
        on_evict: Callable[[T], None] = lambda value: None,
    ) -> None:
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.max_items = max_items
        self._clock = clock
        self._is_busy = is_busy
        self._on_evict = on_evict
        self._items: OrderedDict[str, tuple[float, T]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: str) -> bool:
        return key in self._items

    def put(self, key: str, value: T) -> None:
        self._items[key] = (self._clock(), value)
        self._items.move_to_end(key)
        self.purge(keep=key)

    def get(self, key: str) -> Optional[T]:
        self.purge()
        entry = self._items.get(key)
        if entry is None:
            return None
        self._items[key] = (self._clock(), entry[1])
        self._items.move_to_end(key)
        return entry[1]

    def pop(self, key: str) -> Optional[T]:
        entry = self._items.pop(key, None)
        if entry is None:
            return None
        self._on_evict(entry[1])
        return entry[1]

    def _evictable(self, key: str, value: T, keep: Optional[str]) -> bool:
        return key != keep and not self._is_busy(value)

    def purge(self, keep: Optional[str] = None) -> int:
        """Evict idle entries, then the least recently used ones over the cap."""
        now = self._clock()
        idle = [
            key for key, (touched, value) in self._items.items()
            if now - touched > self.ttl_seconds and self._evictable(key, value, keep)
        ]
        for key in idle:
            self.pop(key)

        overflow = len(self._items) - self.max_items
        evicted = len(idle)
        if overflow > 0:
            oldest = [key for key, (_, value) in self._items.items() if self._evictable(key, value, keep)]
            for key in oldest[:overflow]:
                self.pop(key)
            evicted += min(overflow, len(oldest))

        if evicted:
            logger.info(f"Evicted {evicted} {self.name} session(s); {len(self._items)} remain")
        return evicted

    def clear(self) -> None:
        for key in list(self._items):
            self.pop(key)


def _session_busy(session: ReportSession) -> bool:
    return session.is_analyzing or session.is_exporting


class ReportStore:

    def __init__(
        self,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        max_reports: int = MAX_REPORT_SESSIONS,
        max_chats: int = MAX_CHAT_SESSIONS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._reports: _ExpiringRegistry[ReportSession] = _ExpiringRegistry(
            "report", ttl_seconds, max_reports, clock,
            is_busy=_session_busy, on_evict=ReportSession.close,
        )
        self._chats: _ExpiringRegistry[ChatSession] = _ExpiringRegistry(
            "chat", ttl_seconds, max_chats, clock,
        )

    def new_report_session(self) -> ReportSession:
        session = ReportSession()
        self._reports.put(session.report_id, session)
        return session

    def get_report_session(self, report_id: str, require_report: bool = True) -> ReportSession:
        session = self._reports.get(report_id)
        if session is None or (require_report and session.report is None):
            raise ReportNotFoundError(report_id)
        return session

    def discard(self, report_id: str) -> None:
        """Drop a report session now, deleting its generated PDF."""
        self._reports.pop(report_id)

    def put_chat(self, chat: ChatSession) -> None:
        self._chats.put(chat.session_id, chat)

    def get_chat(self, session_id: str) -> ChatSession:
        chat = self._chats.get(session_id)
        if chat is None:
            raise ChatSessionNotFoundError(session_id)
        return chat

    def purge(self) -> int:
        return self._reports.purge() + self._chats.purge()

    def clear(self) -> None:
        self._reports.clear()
        self._chats.clear()


store = ReportStore()
