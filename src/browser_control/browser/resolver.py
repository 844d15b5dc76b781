"""Reconnection protocol that rebuilds registry entries on demand."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Dict, Optional, Tuple

from ..common.logging_utils import _log_control_event
from ..storage.session_records import SessionRecord, SessionRecordStore
from .cloud_client import CloudBrowserClient
from .errors import BrowserControlError, NoActiveSession
from .registry import SessionEntry, SessionRegistry

logger = logging.getLogger(__name__)

SOURCE_CALLER = "caller"
SOURCE_RECORD = "record"
SOURCE_PROJECT = "project"


class SessionResolver:
    """
    Guarantees a live registry entry for a tab id or raises ``NoActiveSession``.

    Candidates are tried in order: the caller-supplied cloud session id, the
    external record for the tab, then (when enabled) running sessions in the
    cloud project that are tagged for this tab or carry no tab tag at all.
    Each candidate is checked for liveness before attaching. Resolution never
    creates a new session.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        *,
        cloud_client: Optional[CloudBrowserClient] = None,
        record_store: Optional[SessionRecordStore] = None,
        project_fallback: bool = True,
    ) -> None:
        self._registry = registry
        self._cloud = cloud_client
        self._records = record_store
        self._project_fallback = bool(project_fallback)
        self._tab_locks: Dict[str, asyncio.Lock] = {}
        self._tab_waiters: Dict[str, int] = {}

    async def resolve(self, tab_id: str, cloud_session_id: Optional[str] = None) -> SessionEntry:
        entry = await self._registry.get(tab_id)
        if entry is not None:
            return entry
        if self._cloud is None:
            raise NoActiveSession(tab_id)

        # The lock lives as long as anyone holds or waits on it.
        lock = self._tab_locks.setdefault(tab_id, asyncio.Lock())
        self._tab_waiters[tab_id] = self._tab_waiters.get(tab_id, 0) + 1
        try:
            async with lock:
                # A concurrent resolve may have attached while this one waited.
                entry = await self._registry.get(tab_id)
                if entry is not None:
                    return entry
                return await self._resolve_from_candidates(tab_id, cloud_session_id)
        finally:
            remaining = self._tab_waiters.get(tab_id, 1) - 1
            if remaining > 0:
                self._tab_waiters[tab_id] = remaining
            else:
                self._tab_waiters.pop(tab_id, None)
                self._tab_locks.pop(tab_id, None)

    @property
    def pending_tabs(self) -> int:
        return len(self._tab_locks)

    async def _resolve_from_candidates(self, tab_id: str, cloud_session_id: Optional[str]) -> SessionEntry:
        tried: set[str] = set()
        async for source, candidate_id in self._candidates(tab_id, cloud_session_id):
            if not candidate_id or candidate_id in tried:
                continue
            tried.add(candidate_id)
            entry = await self._try_attach(tab_id, candidate_id, source)
            if entry is not None:
                return entry

        _log_control_event(
            logger,
            level=logging.INFO,
            event="session.resolve_exhausted",
            tab_id=tab_id,
            candidates=len(tried),
        )
        raise NoActiveSession(tab_id)

    async def _candidates(
        self,
        tab_id: str,
        cloud_session_id: Optional[str],
    ) -> AsyncIterator[Tuple[str, str]]:
        # Lazy: later sources are only consulted when earlier ones fail.
        if cloud_session_id:
            yield SOURCE_CALLER, cloud_session_id

        record = self._read_record(tab_id)
        if record is not None and record.is_running and record.cloud_session_id:
            yield SOURCE_RECORD, record.cloud_session_id

        if not self._project_fallback:
            return
        if record is not None and not record.is_running:
            # Explicitly closed tabs do not fall back to other sessions.
            return
        try:
            running = await self._cloud.list_running_sessions()
        except BrowserControlError as exc:
            logger.warning("Listing running cloud sessions failed tab_id=%s error=%s", tab_id, exc)
            return
        # Sessions tagged for another tab belong to that tab.
        tagged = [session for session in running if session.tab_id == tab_id]
        untagged = [session for session in running if not session.tab_id]
        for session in tagged + untagged:
            yield SOURCE_PROJECT, session.id

    def _read_record(self, tab_id: str) -> Optional[SessionRecord]:
        if self._records is None:
            return None
        try:
            return self._records.get(tab_id)
        except Exception as exc:
            logger.warning("Reading session record failed tab_id=%s error=%s", tab_id, exc)
            return None

    async def _try_attach(self, tab_id: str, candidate_id: str, source: str) -> Optional[SessionEntry]:
        try:
            session = await self._cloud.get_session(candidate_id)
        except BrowserControlError as exc:
            logger.warning(
                "Liveness check failed tab_id=%s cloud_session_id=%s source=%s error=%s",
                tab_id,
                candidate_id,
                source,
                exc,
            )
            return None
        if session is None or not session.is_running or not session.connect_url:
            _log_control_event(
                logger,
                level=logging.INFO,
                event="session.candidate_dead",
                tab_id=tab_id,
                cloud_session_id=candidate_id,
                source=source,
                status=session.status if session else "missing",
            )
            return None

        engine = self._registry.new_engine(tab_id)
        try:
            await engine.attach(session)
        except BrowserControlError as exc:
            logger.warning(
                "Attach failed tab_id=%s cloud_session_id=%s source=%s error=%s",
                tab_id,
                candidate_id,
                source,
                exc,
            )
            return None

        entry, adopted = await self._registry.adopt(tab_id, engine)
        if not adopted:
            await engine.close(release=False)
            return entry

        if self._records is not None:
            try:
                self._records.mark_running(tab_id, session.id)
            except Exception as exc:
                logger.warning("Failed to refresh session record tab_id=%s error=%s", tab_id, exc)

        _log_control_event(
            logger,
            level=logging.INFO,
            event="session.resolved",
            tab_id=tab_id,
            cloud_session_id=session.id,
            source=source,
        )
        return entry
