"""In-process session registry: a cache of live engine bindings by tab id."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..common.logging_utils import _log_control_event
from ..storage.session_records import SessionRecordStore
from .clicks import ClickEventBuffer
from .errors import ValidationError
from .runtime_common import BrowserEngine, _iso_from_epoch

logger = logging.getLogger(__name__)

EngineFactory = Callable[..., BrowserEngine]


@dataclass
class SessionEntry:
    tab_id: str
    engine: BrowserEngine
    created_at: float = field(default_factory=time.time)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    clicks: ClickEventBuffer = field(default_factory=ClickEventBuffer)
    last_used_at: float = field(default_factory=time.time)
    closed: bool = False

    @property
    def cloud_session_id(self) -> Optional[str]:
        return self.engine.cloud_session_id

    @property
    def alive(self) -> bool:
        return not self.closed and self.engine.launched

    def to_payload(self) -> Dict[str, Any]:
        return {
            "tabId": self.tab_id,
            "createdAt": _iso_from_epoch(self.created_at),
            "lastUsedAt": _iso_from_epoch(self.last_used_at),
            "cloudSessionId": self.cloud_session_id,
        }


class SessionRegistry:
    """
    Addressable map from tab id to a live engine binding.

    At most one live binding exists per tab id. Map access is guarded by a
    single lock; engine launch, navigation and teardown run outside it.
    """

    def __init__(
        self,
        engine_factory: EngineFactory,
        *,
        record_store: Optional[SessionRecordStore] = None,
        default_url: Optional[str] = None,
    ) -> None:
        self._engine_factory = engine_factory
        self._records = record_store
        self._default_url = default_url
        self._sessions: Dict[str, SessionEntry] = {}
        self._manager_lock = asyncio.Lock()

    @property
    def record_store(self) -> Optional[SessionRecordStore]:
        return self._records

    def new_engine(self, tab_id: str, **kwargs: Any) -> BrowserEngine:
        return self._engine_factory(tab_id, **kwargs)

    async def get(self, tab_id: str) -> Optional[SessionEntry]:
        async with self._manager_lock:
            entry = self._sessions.get(tab_id)
            if entry is None:
                return None
            if not entry.alive:
                self._sessions.pop(tab_id, None)
                return None
            entry.last_used_at = time.time()
            return entry

    async def create(
        self,
        tab_id: str,
        *,
        headless: Optional[bool] = None,
        cookies: Optional[List[Dict[str, Any]]] = None,
        default_url: Optional[str] = None,
    ) -> Tuple[SessionEntry, bool]:
        """Return ``(entry, created)``; an already running tab is reused."""
        clean_tab_id = (tab_id or "").strip()
        if not clean_tab_id:
            raise ValidationError("tabId is required")

        existing = await self.get(clean_tab_id)
        if existing is not None:
            _log_control_event(
                logger,
                level=logging.INFO,
                event="session.reused",
                tab_id=clean_tab_id,
                cloud_session_id=existing.cloud_session_id,
            )
            return existing, False

        engine = self.new_engine(clean_tab_id, headless=headless, cookies=cookies)
        try:
            await engine.launch()
        except Exception:
            try:
                await engine.close()
            except Exception as exc:
                logger.debug("Ignoring close error after failed launch tab_id=%s error=%s", clean_tab_id, exc)
            raise

        entry, adopted = await self.adopt(clean_tab_id, engine)
        if not adopted:
            # A concurrent create won the race; keep its binding.
            await engine.close(release=engine.cloud_session_id != entry.cloud_session_id)
            return entry, False

        url = default_url or self._default_url
        if url:
            try:
                await engine.navigate(url, skip_state=True)
            except Exception as exc:
                logger.warning("Default navigation failed tab_id=%s url=%s error=%s", clean_tab_id, url, exc)

        self._persist_running(entry)
        _log_control_event(
            logger,
            level=logging.INFO,
            event="session.created",
            tab_id=clean_tab_id,
            cloud_session_id=entry.cloud_session_id,
        )
        return entry, True

    async def adopt(
        self,
        tab_id: str,
        engine: BrowserEngine,
        *,
        created_at: Optional[float] = None,
    ) -> Tuple[SessionEntry, bool]:
        """Register ``engine`` for ``tab_id`` unless a live binding already exists.

        Returns ``(entry, adopted)``. When ``adopted`` is false the caller still
        owns ``engine`` and must dispose of it.
        """
        async with self._manager_lock:
            current = self._sessions.get(tab_id)
            if current is not None and current.alive:
                return current, False
            entry = SessionEntry(tab_id=tab_id, engine=engine)
            if created_at is not None:
                entry.created_at = float(created_at)
            self._sessions[tab_id] = entry
            return entry, True

    def _persist_running(self, entry: SessionEntry) -> None:
        if self._records is None:
            return
        try:
            self._records.mark_running(entry.tab_id, entry.cloud_session_id)
        except Exception as exc:
            logger.warning("Failed to persist session record tab_id=%s error=%s", entry.tab_id, exc)

    async def close(self, tab_id: str) -> bool:
        """Tear down ``tab_id``; tolerant of tabs that are already gone."""
        async with self._manager_lock:
            entry = self._sessions.pop(tab_id, None)
            if entry is not None:
                entry.closed = True

        if entry is not None:
            try:
                await entry.engine.close(release=True)
            except Exception as exc:
                logger.warning("Engine teardown failed tab_id=%s error=%s", tab_id, exc)
            entry.clicks.clear()

        if self._records is not None:
            try:
                self._records.mark_closed(tab_id)
                self._records.purge()
            except Exception as exc:
                logger.warning("Failed to close session record tab_id=%s error=%s", tab_id, exc)

        _log_control_event(
            logger,
            level=logging.INFO,
            event="session.closed",
            tab_id=tab_id,
            had_binding=entry is not None,
        )
        return entry is not None

    async def close_all(self) -> None:
        """Disconnect every binding without ending cloud sessions or records."""
        async with self._manager_lock:
            entries = list(self._sessions.values())
            self._sessions.clear()
        for entry in entries:
            entry.closed = True
            try:
                await entry.engine.close(release=False)
            except Exception as exc:
                logger.warning("Engine disconnect failed tab_id=%s error=%s", entry.tab_id, exc)

    async def list_sessions(self) -> List[Dict[str, Any]]:
        async with self._manager_lock:
            entries = [entry for entry in self._sessions.values() if entry.alive]
        return [entry.to_payload() for entry in entries]

    async def count(self) -> int:
        async with self._manager_lock:
            return sum(1 for entry in self._sessions.values() if entry.alive)
