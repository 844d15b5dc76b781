"""Launch and attach mixin for PlaywrightEngine."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

from ..common.logging_utils import _log_control_event, redact_secrets
from .errors import EngineUnavailable, LaunchError
from .runtime_common import CloudSession

logger = logging.getLogger(__name__)

_LAUNCH_ARGS = [
    "--disable-dev-shm-usage",
    "--no-first-run",
    "--no-default-browser-check",
]


def _normalize_cookie(cookie: Dict[str, Any]) -> Dict[str, Any]:
    if not cookie.get("name") or "value" not in cookie or not cookie.get("domain"):
        raise ValueError("cookies need name, value and domain")
    normalized: Dict[str, Any] = {
        "name": str(cookie["name"]),
        "value": str(cookie["value"]),
        "domain": str(cookie["domain"]),
        "path": str(cookie.get("path") or "/"),
    }
    expires = cookie.get("expires")
    if expires is not None:
        normalized["expires"] = float(expires)
    for flag in ("httpOnly", "secure"):
        if cookie.get(flag) is not None:
            normalized[flag] = bool(cookie[flag])
    same_site = cookie.get("sameSite")
    if same_site:
        text = str(same_site).strip().lower()
        normalized["sameSite"] = {"strict": "Strict", "lax": "Lax", "none": "None"}.get(text, "Lax")
    return normalized


class EngineLaunchMixin:
    async def _start_playwright(self) -> Any:
        try:
            from playwright.async_api import async_playwright
        except ImportError as exc:
            raise LaunchError(
                "playwright is not installed. Install it with: pip install playwright && playwright install chromium"
            ) from exc
        return await async_playwright().start()

    async def _launch_local_browser(self, playwright: Any) -> Any:
        channels_raw = os.getenv("BROWSER_CONTROL_CHANNELS", "").strip()
        candidates: List[Dict[str, Any]] = [{"label": "bundled"}]
        for channel in (item.strip() for item in channels_raw.split(",")):
            if channel:
                candidates.append({"label": channel, "channel": channel})

        failures: List[str] = []
        for entry in candidates:
            kwargs: Dict[str, Any] = {"headless": self.headless, "args": list(_LAUNCH_ARGS)}
            if entry.get("channel"):
                kwargs["channel"] = entry["channel"]
            try:
                browser = await playwright.chromium.launch(**kwargs)
                self._launch_strategy = entry["label"]
                return browser
            except Exception as exc:
                failures.append(f"{entry['label']}: {str(exc).strip() or exc.__class__.__name__}")
        raise LaunchError(
            "Failed to launch a local browser. Run `playwright install chromium` or set "
            "BROWSER_CONTROL_CHANNELS=chrome. Attempts: " + " | ".join(failures[:5])
        )

    async def _connect_cloud_browser(self, playwright: Any, session: CloudSession) -> Any:
        if not session.connect_url:
            raise EngineUnavailable(f"Cloud session {session.id} has no connect URL")
        logger.info("Connecting over CDP url=%s", redact_secrets(session.connect_url))
        try:
            return await playwright.chromium.connect_over_cdp(
                session.connect_url,
                timeout=self._settings.navigation_timeout_ms,
            )
        except Exception as exc:
            raise EngineUnavailable(
                f"Failed to connect to cloud session {session.id} over CDP: {redact_secrets(exc)}"
            ) from exc

    async def _adopt_first_page(self) -> None:
        contexts = self._browser.contexts
        if contexts:
            self._context = contexts[0]
        else:
            self._context = await self._browser.new_context(viewport=self._settings.viewport)
        pages = self._context.pages
        self._page = pages[0] if pages else await self._context.new_page()
        await self._page.set_viewport_size(self._settings.viewport)

    async def launch(self) -> None:
        if self._browser is not None:
            return

        if self._settings.use_cloud:
            self._settings.require_cloud_credentials()
            if self._cloud is None:
                raise LaunchError("Cloud browser client is not configured")

        self._closing = False
        self._playwright = await self._start_playwright()
        try:
            if self._settings.use_cloud:
                session = await self._cloud.find_running_session(self.tab_id)
                if session is None:
                    session = await self._cloud.create_session(self.tab_id)
                else:
                    logger.info(
                        "Reusing running cloud session tab_id=%s cloud_session_id=%s",
                        self.tab_id,
                        session.id,
                    )
                    session = await self._cloud.get_session(session.id) or session
                self._browser = await self._connect_cloud_browser(self._playwright, session)
                self._cloud_session_id = session.id
                await self._adopt_first_page()
                self._launch_strategy = "cloud"
            else:
                self._browser = await self._launch_local_browser(self._playwright)
                self._context = await self._browser.new_context(viewport=self._settings.viewport)
                self._page = await self._context.new_page()
            if self._initial_cookies:
                await self.set_cookies(self._initial_cookies)
        except EngineUnavailable as exc:
            await self._cleanup_partial_start()
            raise LaunchError(str(exc)) from exc
        except Exception:
            await self._cleanup_partial_start()
            raise

        _log_control_event(
            logger,
            level=logging.INFO,
            event="engine.launched",
            tab_id=self.tab_id,
            strategy=self._launch_strategy,
            headless=self.headless,
            cloud_session_id=self._cloud_session_id,
            cookies=len(self._initial_cookies),
        )

    async def attach(self, session: CloudSession) -> None:
        """Attach to an already running cloud session instead of launching."""
        if self._browser is not None:
            return
        self._closing = False
        self._playwright = await self._start_playwright()
        try:
            self._browser = await self._connect_cloud_browser(self._playwright, session)
            self._cloud_session_id = session.id
            await self._adopt_first_page()
            self._launch_strategy = "cloud-attach"
        except Exception:
            await self._cleanup_partial_start()
            raise
        _log_control_event(
            logger,
            level=logging.INFO,
            event="engine.attached",
            tab_id=self.tab_id,
            cloud_session_id=session.id,
        )

    async def _cleanup_partial_start(self) -> None:
        browser = self._browser
        playwright = self._playwright
        self._browser = None
        self._context = None
        self._page = None
        self._playwright = None
        self._launch_strategy = None
        try:
            if browser is not None:
                await browser.close()
        except Exception as exc:
            logger.debug("Ignoring browser close error during cleanup: %s", exc)
        try:
            if playwright is not None:
                await playwright.stop()
        except Exception as exc:
            logger.debug("Ignoring playwright stop error during cleanup: %s", exc)

    async def close(self, *, release: bool = True) -> None:
        """Tear down the binding; ``release`` also ends the cloud session."""
        self._closing = True
        browser = self._browser
        playwright = self._playwright
        cloud_session_id = self._cloud_session_id

        self._browser = None
        self._context = None
        self._page = None
        self._playwright = None

        try:
            if browser is not None:
                await browser.close()
        finally:
            try:
                if playwright is not None:
                    await playwright.stop()
            finally:
                if release and cloud_session_id and self._cloud is not None:
                    await self._cloud.release_session(cloud_session_id)
        _log_control_event(
            logger,
            level=logging.INFO,
            event="engine.closed",
            tab_id=self.tab_id,
            cloud_session_id=cloud_session_id,
            released=bool(release and cloud_session_id),
        )
