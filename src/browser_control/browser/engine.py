"""
Remote browser engine binding.

`PlaywrightEngine` is the only object that holds a live Playwright page. It
runs either a locally launched Chromium or attaches over CDP to a cloud
session, and exposes the interaction, cookie, screenshot and evaluation
primitives the control plane dispatches to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .cloud_client import CloudBrowserClient
from .engine_interaction import EngineInteractionMixin
from .engine_launch import EngineLaunchMixin, _normalize_cookie
from .errors import ValidationError
from .extractor import PageStateExtractor
from .page_query_script import _FRAME_SELECTOR_JS
from .runtime_common import BrowserEngine, _safe_title
from .settings import ControlPlaneSettings

logger = logging.getLogger(__name__)


@dataclass
class FrameTarget:
    """A child frame addressable through a frame-scoped selector prefix."""

    frame: Any
    selector: str
    url: str

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self.frame.evaluate(script, arg)


class PlaywrightEngine(
    EngineInteractionMixin,
    EngineLaunchMixin,
    BrowserEngine,
):
    """Playwright binding for one tab, local or cloud-hosted."""

    def __init__(
        self,
        tab_id: str,
        settings: Optional[ControlPlaneSettings] = None,
        *,
        cloud_client: Optional[CloudBrowserClient] = None,
        extractor: Optional[PageStateExtractor] = None,
        headless: Optional[bool] = None,
        cookies: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self.tab_id = tab_id
        self._settings = settings or ControlPlaneSettings.from_env()
        self._cloud = cloud_client
        self.extractor = extractor or PageStateExtractor()
        self.headless = self._settings.headless if headless is None else bool(headless)
        self._initial_cookies = list(cookies or [])

        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None
        self._cloud_session_id: Optional[str] = None
        self._launch_strategy: Optional[str] = None
        self._closing = False

    @property
    def launched(self) -> bool:
        return self._browser is not None and self._page is not None and not self._closing

    @property
    def cloud_session_id(self) -> Optional[str]:
        return self._cloud_session_id

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._with_page(lambda page: page.evaluate(script, arg))

    async def child_frames(self) -> List[FrameTarget]:
        page = self._require_page()
        targets: List[FrameTarget] = []
        for frame in page.frames:
            if frame is page.main_frame or frame.is_detached():
                continue
            frame_url = _safe_title(frame.url)
            selector = ""
            try:
                element = await frame.frame_element()
                selector = await element.evaluate(_FRAME_SELECTOR_JS)
            except Exception as exc:
                logger.debug("Frame selector lookup failed frame_url=%s error=%s", frame_url, exc)
            targets.append(
                FrameTarget(
                    frame=frame,
                    selector=selector or f'iframe[src="{frame_url}"]',
                    url=frame_url,
                )
            )
        return targets

    async def navigate(
        self,
        url: str,
        *,
        wait_for_idle: bool = False,
        skip_state: bool = False,
    ) -> Dict[str, Any]:
        wait_until = "networkidle" if wait_for_idle else "domcontentloaded"
        timeout = self._settings.navigation_timeout_ms
        await self._with_page(lambda page: page.goto(url, wait_until=wait_until, timeout=timeout))
        logger.info("Navigated tab_id=%s url=%s wait_until=%s", self.tab_id, url, wait_until)
        if skip_state:
            return await self.extractor.lite(self)
        return await self.extractor.full(self)

    async def back(self) -> Dict[str, Any]:
        timeout = self._settings.navigation_timeout_ms
        await self._with_page(lambda page: page.go_back(wait_until="domcontentloaded", timeout=timeout))
        return await self.extractor.lite(self)

    async def forward(self) -> Dict[str, Any]:
        timeout = self._settings.navigation_timeout_ms
        await self._with_page(lambda page: page.go_forward(wait_until="domcontentloaded", timeout=timeout))
        return await self.extractor.lite(self)

    async def refresh(self) -> Dict[str, Any]:
        timeout = self._settings.navigation_timeout_ms
        await self._with_page(lambda page: page.reload(wait_until="domcontentloaded", timeout=timeout))
        return await self.extractor.lite(self)

    async def screenshot(self) -> bytes:
        return await self._with_page(lambda page: page.screenshot(type="png"))

    async def get_cookies(self, urls: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        self._require_page()
        try:
            cookies = await self._context.cookies(urls) if urls else await self._context.cookies()
        except Exception as exc:
            raise self._translate_engine_error(exc) from exc
        return [
            {
                "name": cookie.get("name"),
                "value": cookie.get("value"),
                "domain": cookie.get("domain"),
                "path": cookie.get("path"),
                "expires": cookie.get("expires"),
                "httpOnly": cookie.get("httpOnly"),
                "secure": cookie.get("secure"),
                "sameSite": cookie.get("sameSite"),
            }
            for cookie in cookies
        ]

    async def set_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        if self._context is None:
            self._require_page()
        try:
            normalized = [_normalize_cookie(dict(cookie)) for cookie in cookies]
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid cookie: {exc}") from exc
        try:
            await self._context.add_cookies(normalized)
        except Exception as exc:
            raise self._translate_engine_error(exc) from exc
        logger.info("Set %s cookies tab_id=%s", len(normalized), self.tab_id)

    async def live_view_url(self) -> Optional[str]:
        if not self._cloud_session_id or self._cloud is None:
            return None
        return await self._cloud.debug_url(self._cloud_session_id)
