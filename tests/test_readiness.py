import asyncio
import time

import pytest

from browser_control.browser.dispatcher import ActionDispatcher
from browser_control.browser.readiness import ReadinessChecker, classify_lite_state
from browser_control.browser.registry import SessionRegistry
from browser_control.browser.resolver import SessionResolver

from browser_fakes import FakeEngineFactory, FakePage, default_candidates


def _checker(page=None):
    factory = FakeEngineFactory(page=page) if page is not None else FakeEngineFactory()
    registry = SessionRegistry(factory)
    return ReadinessChecker(ActionDispatcher(SessionResolver(registry))), registry


def test_classify_lite_state():
    assert classify_lite_state(None) == "state_not_available"
    assert classify_lite_state({"url": "", "elementCount": 3}) == "missing_url"
    assert classify_lite_state({"url": "about:blank", "elementCount": 3}) == "browser_transition"
    assert classify_lite_state({"url": "chrome-error://chromewebdata/", "elementCount": 1}) == "browser_transition"
    assert classify_lite_state({"url": "https://example.com", "elementCount": 0}) == "no_visible_elements_yet"
    assert classify_lite_state({"url": "https://example.com", "elementCount": 4}) is None


@pytest.mark.asyncio
async def test_blank_page_times_out_without_blocking():
    checker, registry = _checker(FakePage(url="about:blank", element_count=0))
    await registry.create("t1")

    started = time.monotonic()
    result = await checker.check("t1", timeout_ms=500, poll_ms=100)
    elapsed = time.monotonic() - started

    assert result["ready"] is False
    assert result["reason"] == "browser_transition"
    assert result["url"] == "about:blank"
    assert 400 <= result["waitedMs"] <= 1500
    assert elapsed < 1.5


@pytest.mark.asyncio
async def test_timeout_is_clamped_to_minimum():
    checker, registry = _checker(FakePage(url="about:blank"))
    await registry.create("t1")

    started = time.monotonic()
    result = await checker.check("t1", timeout_ms=1, poll_ms=1)

    assert result["ready"] is False
    assert time.monotonic() - started < 1.5
    assert result["waitedMs"] >= 400


@pytest.mark.asyncio
async def test_hanging_page_does_not_block_past_timeout():
    class HangingPage(FakePage):
        async def evaluate(self, script, arg=None):
            await asyncio.sleep(30)

    checker, registry = _checker(HangingPage())
    await registry.create("t1")

    started = time.monotonic()
    result = await checker.check("t1", timeout_ms=500)

    assert result["ready"] is False
    assert result["reason"] == "state_not_available"
    assert time.monotonic() - started < 1.5


@pytest.mark.asyncio
async def test_ready_page_returns_immediately():
    page = FakePage(url="https://example.com", title="Example", candidates=default_candidates())
    checker, registry = _checker(page)
    await registry.create("t1")

    result = await checker.check("t1")

    assert result["ready"] is True
    assert "reason" not in result
    assert result["title"] == "Example"
    assert result["elementCount"] == 3
    assert len(page.evaluate_calls) == 1


@pytest.mark.asyncio
async def test_missing_session_reports_no_session():
    checker, _ = _checker()

    result = await checker.check("ghost")

    assert result == {
        "ready": False,
        "reason": "no_session",
        "url": None,
        "title": None,
        "elementCount": 0,
        "waitedMs": result["waitedMs"],
    }
