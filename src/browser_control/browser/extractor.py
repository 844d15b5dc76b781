"""Page-state extraction: lite, full and compact fidelities.

Every fidelity costs exactly one ``evaluate`` round trip per document. The
in-page script only gathers raw facts; ranking, selector generation and
bucketing happen in ``state_reduction``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from ..common.logging_utils import _log_control_event
from .extraction_query import DEFAULT_STATE_OPTIONS, StateOptions, build_page_query
from .page_query_script import _PAGE_QUERY_JS
from .runtime_common import PageTarget
from .state_reduction import reduce_compact, reduce_full, reduce_lite

logger = logging.getLogger(__name__)


class PageStateExtractor:
    def __init__(self, options: Optional[StateOptions] = None) -> None:
        self.options = options or DEFAULT_STATE_OPTIONS

    async def _query(self, target: PageTarget, mode: str, options: StateOptions) -> Dict[str, Any]:
        started = time.perf_counter()
        raw = await target.evaluate(_PAGE_QUERY_JS, build_page_query(mode, options))
        if not isinstance(raw, dict):
            raw = {}
        _log_control_event(
            logger,
            level=logging.DEBUG,
            event="state.query",
            mode=mode,
            candidates=len(raw.get("candidates") or []),
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        return raw

    async def lite(self, target: PageTarget) -> Dict[str, Any]:
        raw = await self._query(target, "lite", self.options)
        return reduce_lite(raw)

    async def compact(self, target: PageTarget, options: Optional[StateOptions] = None) -> Dict[str, Any]:
        opts = options or self.options
        raw = await self._query(target, "compact", opts)
        return reduce_compact(raw, opts)

    async def full(
        self,
        target: PageTarget,
        options: Optional[StateOptions] = None,
        *,
        frames: Optional[List[Any]] = None,
    ) -> Dict[str, Any]:
        """Full state; ``frames`` are child frames merged in when ``include_iframes`` is set."""
        opts = options or self.options
        state = reduce_full(await self._query(target, "full", opts), opts)
        if not opts.include_iframes:
            return state

        for frame in frames or []:
            try:
                frame_state = reduce_full(await self._query(frame, "full", opts), opts)
            except Exception as exc:
                logger.warning("Failed to extract frame state frame_url=%s error=%s", frame.url, exc)
                continue
            state["html"] += f"\n<!-- IFRAME: {frame.url} -->\n{frame_state['html']}\n"
            state["textContent"] += f" [IFRAME: {frame_state['textContent']}]"
            for element in frame_state["interactiveElements"]:
                element["selector"] = f"{frame.selector} >> {element['selector']}"
                element["attributes"] = {**element["attributes"], "frameUrl": frame.url}
                element["index"] = len(state["interactiveElements"])
                state["interactiveElements"].append(element)
        return state
