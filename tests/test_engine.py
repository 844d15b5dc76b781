from typing import Any, Dict, List, Optional

import pytest

from browser_control.browser.engine import PlaywrightEngine
from browser_control.browser.engine_interaction import split_frame_selector
from browser_control.browser.errors import (
    ElementNotFound,
    ElementNotInteractable,
    EngineUnavailable,
    LaunchError,
    SessionClosed,
    ValidationError,
)
from browser_control.browser.extraction_query import StateOptions, build_page_query
from browser_control.browser.extractor import PageStateExtractor
from browser_control.browser.page_query_script import _PAGE_QUERY_JS
from browser_control.browser.settings import ControlPlaneSettings

TIMEOUT_MESSAGE = "locator.click: Timeout 10000ms exceeded.\nCall log:\n  - waiting for locator('#gone')"
CLOSED_MESSAGE = "locator.click: Target page, context or browser has been closed"


class PlaywrightError(Exception):
    """Raised by the fakes with Playwright's multi-line message shape."""


class FakeLocator:
    def __init__(
        self,
        selector: str,
        log: List[tuple],
        *,
        count: int = 1,
        error: Optional[str] = None,
        box: Optional[Dict[str, float]] = None,
    ):
        self.selector = selector
        self.log = log
        self._count = count
        self._error = error
        self._box = box

    def _step(self, name: str, *args: Any) -> None:
        self.log.append((name, self.selector) + args)
        if self._error is not None:
            raise PlaywrightError(self._error)

    async def count(self) -> int:
        return self._count

    async def scroll_into_view_if_needed(self, timeout: Optional[float] = None) -> None:
        self._step("scroll")

    async def bounding_box(self, timeout: Optional[float] = None) -> Optional[Dict[str, float]]:
        self._step("box")
        return self._box

    async def click(self, timeout: Optional[float] = None) -> None:
        self._step("click")

    async def fill(self, text: str, timeout: Optional[float] = None) -> None:
        self._step("fill", text)

    async def hover(self, timeout: Optional[float] = None) -> None:
        self._step("hover")


class FakeFrameLocator:
    def __init__(self, page: "FakePlaywrightPage", frame_selector: str):
        self.page = page
        self.frame_selector = frame_selector

    def locator(self, selector: str) -> FakeLocator:
        self.page.routes.append(("frame", self.frame_selector, selector))
        return self.page.locators.get(selector) or FakeLocator(selector, self.page.log)


class FakePlaywrightPage:
    """Just enough of ``playwright.async_api.Page`` for the interaction mixin."""

    def __init__(self, locators: Optional[Dict[str, FakeLocator]] = None, *, evaluate_error: Optional[str] = None):
        self.log: List[tuple] = []
        self.routes: List[tuple] = []
        self.locators = dict(locators or {})
        self.evaluate_error = evaluate_error

    def locator(self, selector: str) -> FakeLocator:
        self.routes.append(("page", selector))
        if selector in self.locators:
            return self.locators[selector]
        return FakeLocator(selector, self.log, count=0, error=TIMEOUT_MESSAGE)

    def frame_locator(self, selector: str) -> FakeFrameLocator:
        return FakeFrameLocator(self, selector)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if self.evaluate_error:
            raise PlaywrightError(self.evaluate_error)
        return {"url": "https://example.com", "title": "", "elementCount": 0}


class FakeContext:
    def __init__(self):
        self.added: List[Dict[str, Any]] = []

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        self.added.extend(cookies)

    async def cookies(self, urls: Any = None) -> List[Dict[str, Any]]:
        return list(self.added)


def _engine(page: Optional[FakePlaywrightPage] = None, **settings: Any) -> PlaywrightEngine:
    engine = PlaywrightEngine("t1", ControlPlaneSettings(**settings))
    if page is not None:
        engine._browser = object()
        engine._context = FakeContext()
        engine._page = page
    return engine


def _page_with(selector: str, **kwargs: Any) -> FakePlaywrightPage:
    page = FakePlaywrightPage()
    page.locators[selector] = FakeLocator(selector, page.log, **kwargs)
    return page


@pytest.mark.asyncio
async def test_zero_matches_is_element_not_found():
    engine = _engine(FakePlaywrightPage())

    with pytest.raises(ElementNotFound) as excinfo:
        await engine.click_element("#gone")
    assert excinfo.value.code == "element_not_found"
    assert excinfo.value.details == {"selector": "#gone"}


@pytest.mark.asyncio
async def test_hidden_element_is_not_interactable():
    message = "locator.click: Timeout 10000ms exceeded.\n  - element is not visible"
    engine = _engine(_page_with("#hidden", error=message))

    with pytest.raises(ElementNotInteractable) as excinfo:
        await engine.click_element("#hidden")
    assert "not interactable" in str(excinfo.value)
    assert "\n" not in str(excinfo.value)


@pytest.mark.asyncio
async def test_timeout_on_existing_element_is_not_interactable():
    engine = _engine(_page_with("#slow", error="locator.fill: Timeout 10000ms exceeded."))

    with pytest.raises(ElementNotInteractable):
        await engine.type_element("#slow", "hello")


@pytest.mark.asyncio
async def test_strict_mode_violation_reports_match_count():
    message = "locator.click: Error: strict mode violation: locator('button') resolved to 3 elements"
    engine = _engine(_page_with("button", count=3, error=message))

    with pytest.raises(ElementNotInteractable) as excinfo:
        await engine.click_element("button")
    assert "matched 3 elements" in str(excinfo.value)


@pytest.mark.asyncio
async def test_closed_browser_is_engine_unavailable():
    engine = _engine(_page_with("#btn", error=CLOSED_MESSAGE))

    with pytest.raises(EngineUnavailable) as excinfo:
        await engine.click_element("#btn")
    assert not isinstance(excinfo.value, SessionClosed)


@pytest.mark.asyncio
async def test_failure_while_closing_is_session_closed():
    engine = _engine(_page_with("#btn", error=CLOSED_MESSAGE))
    engine._closing = True

    with pytest.raises(SessionClosed):
        await engine.click_element("#btn")


@pytest.mark.asyncio
async def test_page_level_failure_is_translated():
    engine = _engine(FakePlaywrightPage(evaluate_error="page.evaluate: Target closed"))

    with pytest.raises(EngineUnavailable):
        await engine.evaluate("() => 1")


@pytest.mark.asyncio
async def test_unlaunched_engine_is_unavailable():
    engine = _engine()

    with pytest.raises(EngineUnavailable):
        await engine.click_element("#btn")
    engine._closing = True
    with pytest.raises(SessionClosed):
        await engine.click_element("#btn")


@pytest.mark.asyncio
async def test_click_reads_box_after_scrolling_into_view():
    page = _page_with("#btn", box={"x": 100, "y": 900, "width": 40, "height": 20})
    engine = _engine(page)

    point = await engine.click_element("#btn")

    assert point == {"x": 120, "y": 910}
    assert [step[0] for step in page.log] == ["scroll", "box", "click"]


@pytest.mark.asyncio
async def test_frame_scoped_selector_routes_through_frame_locator():
    page = FakePlaywrightPage()
    engine = _engine(page)

    await engine.hover_element('iframe[id="pay"] >> #submit')

    assert page.routes == [("frame", 'iframe[id="pay"]', "#submit")]
    assert page.log == [("hover", "#submit")]


def test_split_frame_selector():
    assert split_frame_selector('iframe[name="x"] >> a.next') == ('iframe[name="x"]', "a.next")
    assert split_frame_selector("div >> span") == (None, "div >> span")
    assert split_frame_selector('iframe[id="x"] >> ') == (None, 'iframe[id="x"] >>')


@pytest.mark.asyncio
async def test_set_cookies_normalizes_fields():
    engine = _engine(FakePlaywrightPage())

    await engine.set_cookies([{"name": "sid", "value": 1, "domain": ".example.com", "sameSite": "strict", "secure": 1}])

    assert engine._context.added == [
        {"name": "sid", "value": "1", "domain": ".example.com", "path": "/", "secure": True, "sameSite": "Strict"}
    ]


@pytest.mark.asyncio
async def test_set_cookies_rejects_cookie_without_domain():
    engine = _engine(FakePlaywrightPage())

    with pytest.raises(ValidationError):
        await engine.set_cookies([{"name": "sid", "value": "1"}])
    assert engine._context.added == []


@pytest.mark.asyncio
async def test_cloud_launch_without_api_key_fails_before_starting():
    engine = _engine(use_cloud=True, cloud_project_id="proj")

    with pytest.raises(LaunchError) as excinfo:
        await engine.launch()
    assert "BROWSERBASE_API_KEY" in str(excinfo.value)
    assert engine._playwright is None
    assert not engine.launched


@pytest.mark.asyncio
async def test_cloud_launch_without_client_fails():
    engine = _engine(use_cloud=True, cloud_api_key="key", cloud_project_id="proj")

    with pytest.raises(LaunchError):
        await engine.launch()
    assert engine._playwright is None


@pytest.mark.asyncio
async def test_page_query_bounds_a_large_page():
    async_api = pytest.importorskip("playwright.async_api")
    buttons = "".join(f'<button data-test-id="b{i}">Button {i}</button>' for i in range(10_000))
    options = StateOptions(scan_limit=300, max_per_bucket=40)

    async with async_api.async_playwright() as playwright:
        try:
            browser = await playwright.chromium.launch()
        except Exception as exc:
            pytest.skip(f"Chromium is not installed: {exc}")
        try:
            page = await browser.new_page()
            await page.set_content(f"<html><body>{buttons}</body></html>")
            raw = await page.evaluate(_PAGE_QUERY_JS, build_page_query("compact", options))
            state = await PageStateExtractor(options).compact(page)
        finally:
            await browser.close()

    assert len(raw["candidates"]) == 300
    assert 0 < len(state["buttons"]) <= 40
