"""Interaction mixin for PlaywrightEngine: selector routing and error mapping."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from .errors import (
    BrowserControlError,
    ElementNotFound,
    ElementNotInteractable,
    EngineUnavailable,
    SessionClosed,
    ValidationError,
)
from .runtime_common import DEFAULT_SCROLL_AMOUNT, SCROLL_DIRECTIONS

logger = logging.getLogger(__name__)

FRAME_SELECTOR_PREFIX = "iframe["
FRAME_SEPARATOR = " >> "

_CLOSED_MARKERS = (
    "target page, context or browser has been closed",
    "target closed",
    "browser has been closed",
    "browser has disconnected",
    "connection closed",
)
_NOT_INTERACTABLE_MARKERS = (
    "not visible",
    "not enabled",
    "not editable",
    "detached",
    "intercepts pointer events",
    "outside of the viewport",
    "element is not attached",
)


def split_frame_selector(selector: str) -> tuple[Optional[str], str]:
    """Split ``iframe[...] >> inner`` into its frame and inner selectors."""
    clean = (selector or "").strip()
    if clean.startswith(FRAME_SELECTOR_PREFIX) and FRAME_SEPARATOR in clean:
        frame_selector, _, inner = clean.partition(FRAME_SEPARATOR)
        if inner.strip():
            return frame_selector.strip(), inner.strip()
    return None, clean


class EngineInteractionMixin:
    def _require_page(self) -> Any:
        if self._page is None:
            if self._closing:
                raise SessionClosed(self.tab_id)
            raise EngineUnavailable(f"Browser for tab {self.tab_id} is not launched")
        return self._page

    def _locator(self, selector: str) -> Any:
        page = self._require_page()
        frame_selector, inner = split_frame_selector(selector)
        if not inner:
            raise ValidationError("selector is required")
        if frame_selector:
            return page.frame_locator(frame_selector).locator(inner)
        return page.locator(inner)

    def _translate_engine_error(self, exc: Exception) -> BrowserControlError:
        lowered = str(exc).lower()
        if self._closing:
            return SessionClosed(self.tab_id)
        if any(marker in lowered for marker in _CLOSED_MARKERS):
            return EngineUnavailable(f"Browser engine is unavailable: {str(exc).splitlines()[0]}")
        return EngineUnavailable(str(exc).splitlines()[0] if str(exc) else exc.__class__.__name__)

    async def _element_error(self, exc: Exception, locator: Any, selector: str) -> BrowserControlError:
        if isinstance(exc, BrowserControlError):
            return exc
        message = str(exc)
        lowered = message.lower()
        if self._closing or any(marker in lowered for marker in _CLOSED_MARKERS):
            return self._translate_engine_error(exc)

        count: Optional[int] = None
        try:
            count = await locator.count()
        except Exception as count_exc:
            logger.debug("Locator count failed selector=%s error=%s", selector, count_exc)

        if "strict mode violation" in lowered:
            matched = count if count is not None else "multiple"
            return ElementNotInteractable(
                selector,
                f"Selector matched {matched} elements (strict mode): {selector}. "
                "Refine the selector with get_state_compact to find a unique one.",
            )
        if count == 0:
            return ElementNotFound(selector)
        first_line = message.splitlines()[0] if message else exc.__class__.__name__
        if any(marker in lowered for marker in _NOT_INTERACTABLE_MARKERS) or "timeout" in lowered:
            return ElementNotInteractable(selector, f"Element is not interactable: {selector}: {first_line}")
        return ElementNotInteractable(selector, f"Interaction failed for {selector}: {first_line}")

    async def _with_locator(
        self,
        selector: str,
        action: Callable[[Any], Awaitable[Any]],
    ) -> Any:
        locator = self._locator(selector)
        try:
            return await action(locator)
        except Exception as exc:
            raise await self._element_error(exc, locator, selector) from exc

    async def _with_page(self, action: Callable[[Any], Awaitable[Any]]) -> Any:
        page = self._require_page()
        try:
            return await action(page)
        except BrowserControlError:
            raise
        except Exception as exc:
            raise self._translate_engine_error(exc) from exc

    async def click(self, x: float, y: float) -> None:
        await self._with_page(lambda page: page.mouse.click(x, y))

    async def click_element(self, selector: str) -> Optional[Dict[str, float]]:
        """Click ``selector``; returns the click point when the element has a box."""
        timeout = self._settings.action_timeout_ms

        async def _click(locator: Any) -> Optional[Dict[str, float]]:
            # The box is read in the scrolled viewport the click lands in.
            await locator.scroll_into_view_if_needed(timeout=timeout)
            box = await locator.bounding_box(timeout=timeout)
            await locator.click(timeout=timeout)
            if not box:
                return None
            return {"x": box["x"] + box["width"] / 2, "y": box["y"] + box["height"] / 2}

        return await self._with_locator(selector, _click)

    async def type_text(self, text: str) -> None:
        await self._with_page(lambda page: page.keyboard.type(text))

    async def type_element(self, selector: str, text: str, *, clear: bool = True) -> None:
        timeout = self._settings.action_timeout_ms

        async def _type(locator: Any) -> None:
            if clear:
                await locator.fill(text, timeout=timeout)
                return
            await locator.focus(timeout=timeout)
            await locator.press("End", timeout=timeout)
            await locator.press_sequentially(text, timeout=timeout)

        await self._with_locator(selector, _type)

    async def press_key(self, key: str) -> None:
        await self._with_page(lambda page: page.keyboard.press(key))

    async def scroll(self, direction: str, amount: int = DEFAULT_SCROLL_AMOUNT) -> None:
        if direction not in SCROLL_DIRECTIONS:
            raise ValidationError(f"Unknown scroll direction: {direction}")
        delta = int(amount or DEFAULT_SCROLL_AMOUNT)
        delta_x = {"left": -delta, "right": delta}.get(direction, 0)
        delta_y = {"up": -delta, "down": delta}.get(direction, 0)
        await self._with_page(lambda page: page.mouse.wheel(delta_x, delta_y))

    async def scroll_to_element(self, selector: str) -> None:
        timeout = self._settings.action_timeout_ms
        await self._with_locator(selector, lambda locator: locator.scroll_into_view_if_needed(timeout=timeout))

    async def hover(self, x: float, y: float) -> None:
        await self._with_page(lambda page: page.mouse.move(x, y))

    async def hover_element(self, selector: str) -> None:
        timeout = self._settings.action_timeout_ms
        await self._with_locator(selector, lambda locator: locator.hover(timeout=timeout))
