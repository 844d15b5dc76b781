"""
Action dispatcher.

Validates an action against the closed vocabulary, makes sure the tab has a
live session, executes it against the engine binding and wraps the outcome in
a uniform ``{"success": ...}`` envelope. Failures are reported per request and
never propagate out of ``dispatch``.
"""

from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from ..common.logging_utils import _log_control_event
from .actions import parse_action
from .errors import BrowserControlError, SessionClosed, ValidationError
from .extractor import PageStateExtractor
from .registry import SessionEntry
from .resolver import SessionResolver
from .runtime_common import DEFAULT_SCROLL_AMOUNT

logger = logging.getLogger(__name__)

SCREENSHOT_CONTENT_TYPE = "image/png"


@dataclass(frozen=True)
class _ExecuteContext:
    tab_id: str
    cloud_session_id: Optional[str]
    action: Any
    entry: SessionEntry


class ActionDispatcher:
    def __init__(
        self,
        resolver: SessionResolver,
        extractor: Optional[PageStateExtractor] = None,
    ) -> None:
        self._resolver = resolver
        self._extractor = extractor or PageStateExtractor()
        self._handlers: Dict[str, Callable[[_ExecuteContext], Awaitable[Dict[str, Any]]]] = {
            "navigate": self._navigate,
            "click": self._click,
            "click_element": self._click_element,
            "type": self._type,
            "type_element": self._type_element,
            "key": self._key,
            "scroll": self._scroll,
            "scroll_to": self._scroll_to,
            "back": self._back,
            "forward": self._forward,
            "refresh": self._refresh,
            "get_state": self._get_state,
            "get_state_compact": self._get_state_compact,
            "get_state_lite": self._get_state_lite,
            "screenshot": self._screenshot,
            "hover": self._hover,
            "hover_element": self._hover_element,
        }

    @property
    def extractor(self) -> PageStateExtractor:
        return self._extractor

    async def dispatch(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        started = time.perf_counter()
        body = dict(payload or {})
        tab_id = str(body.pop("tabId", "") or "").strip()
        cloud_session_id = body.pop("cloudSessionId", None) or body.pop("browserbaseSessionId", None)
        action_type = str(body.get("type") or "")

        try:
            if not tab_id:
                raise ValidationError("tabId is required")
            action = parse_action(body)
            entry = await self._resolver.resolve(tab_id, cloud_session_id)
            result = await self.run_locked(
                entry,
                lambda locked: self._handlers[action.type](
                    _ExecuteContext(
                        tab_id=tab_id,
                        cloud_session_id=cloud_session_id,
                        action=action,
                        entry=locked,
                    )
                ),
            )
            envelope = self._ok(**result)
        except BrowserControlError as exc:
            envelope = self._err(str(exc), code=exc.code, details=exc.details)
        except Exception as exc:
            logger.exception("Unexpected action failure type=%s tab_id=%s", action_type, tab_id)
            envelope = self._err(str(exc) or exc.__class__.__name__, code="runtime_error")

        duration_ms = int((time.perf_counter() - started) * 1000)
        _log_control_event(
            logger,
            level=logging.INFO if envelope["success"] else logging.WARNING,
            event="action.done" if envelope["success"] else "action.failed",
            type=action_type or None,
            tab_id=tab_id or None,
            duration_ms=duration_ms,
            code=envelope.get("code"),
        )
        return envelope

    async def run_locked(
        self,
        entry: SessionEntry,
        fn: Callable[[SessionEntry], Awaitable[Any]],
    ) -> Any:
        """Run ``fn`` with exclusive use of the entry's binding."""
        async with entry.lock:
            if entry.closed:
                raise SessionClosed(entry.tab_id)
            entry.last_used_at = time.time()
            try:
                return await fn(entry)
            except Exception:
                if entry.closed:
                    raise SessionClosed(entry.tab_id) from None
                raise

    async def page_state(
        self,
        tab_id: str,
        *,
        cloud_session_id: Optional[str] = None,
        mode: str = "full",
        include_iframes: bool = False,
    ) -> Dict[str, Any]:
        entry = await self._resolver.resolve(tab_id, cloud_session_id)

        async def _read(locked: SessionEntry) -> Dict[str, Any]:
            if mode == "lite":
                return await self._extractor.lite(locked.engine)
            if mode == "compact":
                return await self._extractor.compact(locked.engine)
            return await self._full_state(locked, include_iframes=include_iframes)

        return await self.run_locked(entry, _read)

    async def screenshot_bytes(self, tab_id: str, *, cloud_session_id: Optional[str] = None) -> bytes:
        entry = await self._resolver.resolve(tab_id, cloud_session_id)
        return await self.run_locked(entry, lambda locked: locked.engine.screenshot())

    async def _full_state(
        self,
        entry: SessionEntry,
        *,
        include_iframes: bool,
        max_elements: Optional[int] = None,
    ) -> Dict[str, Any]:
        options = self._extractor.options.with_overrides(
            include_iframes=include_iframes,
            max_elements=max_elements,
        )
        frames = await entry.engine.child_frames() if include_iframes else None
        return await self._extractor.full(entry.engine, options, frames=frames)

    # Handlers

    async def _navigate(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        state = await ctx.entry.engine.navigate(
            ctx.action.url,
            wait_for_idle=ctx.action.waitForIdle,
            skip_state=True,
        )
        return {"state": state}

    async def _click(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        await ctx.entry.engine.click(ctx.action.x, ctx.action.y)
        ctx.entry.clicks.record(ctx.action.x, ctx.action.y, kind="click")
        return {}

    async def _click_element(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        point = await ctx.entry.engine.click_element(ctx.action.selector)
        if point:
            ctx.entry.clicks.record(point["x"], point["y"], kind="click_element", selector=ctx.action.selector)
        return {}

    async def _type(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        await ctx.entry.engine.type_text(ctx.action.text)
        return {}

    async def _type_element(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        await ctx.entry.engine.type_element(ctx.action.selector, ctx.action.text, clear=ctx.action.clear)
        return {}

    async def _key(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        await ctx.entry.engine.press_key(ctx.action.key)
        return {}

    async def _scroll(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        await ctx.entry.engine.scroll(ctx.action.direction, ctx.action.amount or DEFAULT_SCROLL_AMOUNT)
        return {}

    async def _scroll_to(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        await ctx.entry.engine.scroll_to_element(ctx.action.selector)
        return {}

    async def _back(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        return {"state": await ctx.entry.engine.back()}

    async def _forward(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        return {"state": await ctx.entry.engine.forward()}

    async def _refresh(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        return {"state": await ctx.entry.engine.refresh()}

    async def _get_state(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        state = await self._full_state(
            ctx.entry,
            include_iframes=ctx.action.includeIframes,
            max_elements=ctx.action.maxElements,
        )
        return {"state": state}

    async def _get_state_compact(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        return {"state": await self._extractor.compact(ctx.entry.engine)}

    async def _get_state_lite(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        return {"state": await self._extractor.lite(ctx.entry.engine)}

    async def _screenshot(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        data = await ctx.entry.engine.screenshot()
        return {
            "data": base64.b64encode(data).decode("ascii"),
            "contentType": SCREENSHOT_CONTENT_TYPE,
        }

    async def _hover(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        await ctx.entry.engine.hover(ctx.action.x, ctx.action.y)
        return {}

    async def _hover_element(self, ctx: _ExecuteContext) -> Dict[str, Any]:
        await ctx.entry.engine.hover_element(ctx.action.selector)
        return {}

    @staticmethod
    def _ok(**payload: Any) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": True}
        out.update(payload)
        return out

    @staticmethod
    def _err(message: str, *, code: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": False,
            "error": message,
            "code": code,
        }
        if details:
            payload["details"] = details
        return payload
