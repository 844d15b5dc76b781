"""Bounded readiness polling: is the tab showing a real, interactive page yet?"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from ..common.logging_utils import _log_control_event
from .errors import BrowserControlError, NoActiveSession
from .runtime_common import _clamp_int

logger = logging.getLogger(__name__)

DEFAULT_READY_TIMEOUT_MS = 8_000
MIN_READY_TIMEOUT_MS = 500
MAX_READY_TIMEOUT_MS = 60_000
DEFAULT_READY_POLL_MS = 300
MIN_READY_POLL_MS = 100
MAX_READY_POLL_MS = 2_000

TRANSITION_URL_PREFIXES = ("about:blank", "chrome://", "chrome-error://")


def classify_lite_state(state: Optional[Dict[str, Any]]) -> Optional[str]:
    """Return the not-ready reason for a lite state, or None when it is ready."""
    if not state:
        return "state_not_available"
    url = str(state.get("url") or "")
    if not url:
        return "missing_url"
    if url.startswith(TRANSITION_URL_PREFIXES):
        return "browser_transition"
    if int(state.get("elementCount") or 0) <= 0:
        return "no_visible_elements_yet"
    return None


class ReadinessChecker:
    def __init__(self, dispatcher: Any) -> None:
        self._dispatcher = dispatcher

    async def check(
        self,
        tab_id: str,
        *,
        cloud_session_id: Optional[str] = None,
        timeout_ms: Any = None,
        poll_ms: Any = None,
    ) -> Dict[str, Any]:
        timeout = _clamp_int(
            timeout_ms,
            default=DEFAULT_READY_TIMEOUT_MS,
            minimum=MIN_READY_TIMEOUT_MS,
            maximum=MAX_READY_TIMEOUT_MS,
        )
        poll = _clamp_int(
            poll_ms,
            default=DEFAULT_READY_POLL_MS,
            minimum=MIN_READY_POLL_MS,
            maximum=MAX_READY_POLL_MS,
        )
        started = time.monotonic()
        deadline = started + timeout / 1000.0
        state: Optional[Dict[str, Any]] = None
        reason: Optional[str] = "state_not_available"

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                state = await asyncio.wait_for(
                    self._dispatcher.page_state(tab_id, cloud_session_id=cloud_session_id, mode="lite"),
                    timeout=remaining,
                )
                reason = classify_lite_state(state)
            except NoActiveSession:
                state, reason = None, "no_session"
                break
            except asyncio.TimeoutError:
                break
            except BrowserControlError as exc:
                logger.debug("Readiness poll failed tab_id=%s error=%s", tab_id, exc)
                state, reason = None, "state_not_available"

            if reason is None:
                break
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            await asyncio.sleep(min(poll / 1000.0, remaining))

        waited_ms = int((time.monotonic() - started) * 1000)
        result: Dict[str, Any] = {
            "ready": reason is None,
            "url": (state or {}).get("url"),
            "title": (state or {}).get("title"),
            "elementCount": (state or {}).get("elementCount", 0),
            "waitedMs": waited_ms,
        }
        if reason is not None:
            result["reason"] = reason
        _log_control_event(
            logger,
            level=logging.DEBUG,
            event="session.ready",
            tab_id=tab_id,
            ready=result["ready"],
            reason=reason,
            waited_ms=waited_ms,
        )
        return result
