import asyncio
import base64
import logging

import pytest

from browser_control.browser.dispatcher import ActionDispatcher
from browser_control.browser.registry import SessionRegistry
from browser_control.browser.resolver import SessionResolver

from browser_fakes import FakeEngineFactory


def _build():
    factory = FakeEngineFactory()
    registry = SessionRegistry(factory)
    dispatcher = ActionDispatcher(SessionResolver(registry))
    return dispatcher, registry, factory


@pytest.mark.asyncio
async def test_unknown_action_type_is_rejected():
    dispatcher, registry, factory = _build()
    await registry.create("t1")

    result = await dispatcher.dispatch({"tabId": "t1", "type": "teleport"})

    assert result["success"] is False
    assert result["code"] == "invalid_action"
    assert "teleport" in result["error"]
    assert factory.engines[0].calls == [("launch",)]


@pytest.mark.asyncio
async def test_missing_tab_id_is_invalid():
    dispatcher, _, _ = _build()

    result = await dispatcher.dispatch({"type": "back"})

    assert result == {"success": False, "error": "tabId is required", "code": "invalid_action"}


@pytest.mark.asyncio
async def test_missing_fields_are_invalid():
    dispatcher, registry, _ = _build()
    await registry.create("t1")

    result = await dispatcher.dispatch({"tabId": "t1", "type": "click", "x": 10})

    assert result["success"] is False
    assert result["code"] == "invalid_action"


@pytest.mark.asyncio
async def test_action_without_session_reports_no_active_session():
    dispatcher, _, _ = _build()

    result = await dispatcher.dispatch({"tabId": "ghost", "type": "get_state_lite"})

    assert result["success"] is False
    assert result["code"] == "no_active_session"


@pytest.mark.asyncio
async def test_navigate_returns_lite_state():
    dispatcher, registry, factory = _build()
    await registry.create("t1")

    result = await dispatcher.dispatch(
        {"tabId": "t1", "type": "navigate", "url": "https://example.com", "waitForIdle": True}
    )

    assert result["success"] is True
    assert result["state"]["url"] == "https://example.com"
    assert set(result["state"]) == {"url", "title", "elementCount", "viewport"}
    assert ("navigate", "https://example.com", True) in factory.engines[0].calls


@pytest.mark.asyncio
async def test_state_actions_return_requested_fidelity():
    dispatcher, registry, _ = _build()
    await registry.create("t1")

    compact = await dispatcher.dispatch({"tabId": "t1", "type": "get_state_compact"})
    full = await dispatcher.dispatch({"tabId": "t1", "type": "get_state", "maxElements": 2})
    lite = await dispatcher.dispatch({"tabId": "t1", "type": "get_state_lite"})

    assert compact["state"]["buttons"][0]["selector"] == '[data-test-id="submit-btn"]'
    assert len(full["state"]["interactiveElements"]) == 2
    assert lite["state"]["elementCount"] == 3


@pytest.mark.asyncio
async def test_element_click_is_recorded_as_click_event():
    dispatcher, registry, _ = _build()
    entry, _ = await registry.create("t1")

    result = await dispatcher.dispatch(
        {"tabId": "t1", "type": "click_element", "selector": '[data-test-id="submit-btn"]'}
    )
    await dispatcher.dispatch({"tabId": "t1", "type": "click", "x": 5, "y": 6})

    assert result == {"success": True}
    payloads = [event.to_payload() for event in entry.clicks.since()]
    assert [p["kind"] for p in payloads] == ["click_element", "click"]
    assert payloads[0]["selector"] == '[data-test-id="submit-btn"]'
    assert "selector" not in payloads[1]


@pytest.mark.asyncio
async def test_engine_errors_are_reported_not_raised():
    dispatcher, registry, _ = _build()
    await registry.create("t1")

    result = await dispatcher.dispatch({"tabId": "t1", "type": "click_element", "selector": "#missing"})

    assert result["success"] is False
    assert result["code"] == "element_not_found"
    assert result["details"] == {"selector": "#missing"}


@pytest.mark.asyncio
async def test_unexpected_errors_become_runtime_errors():
    dispatcher, registry, factory = _build()
    await registry.create("t1")

    async def explode(key):
        raise RuntimeError("boom")

    factory.engines[0].press_key = explode
    result = await dispatcher.dispatch({"tabId": "t1", "type": "key", "key": "Enter"})

    assert result == {"success": False, "error": "boom", "code": "runtime_error"}


@pytest.mark.asyncio
async def test_screenshot_is_base64_png():
    dispatcher, registry, _ = _build()
    await registry.create("t1")

    result = await dispatcher.dispatch({"tabId": "t1", "type": "screenshot"})

    assert result["contentType"] == "image/png"
    assert base64.b64decode(result["data"]).startswith(b"\x89PNG")


@pytest.mark.asyncio
async def test_scroll_and_typing_arguments_reach_engine():
    dispatcher, registry, factory = _build()
    await registry.create("t1")

    await dispatcher.dispatch({"tabId": "t1", "type": "scroll", "direction": "down"})
    await dispatcher.dispatch({"tabId": "t1", "type": "scroll", "direction": "up", "amount": 50})
    await dispatcher.dispatch({"tabId": "t1", "type": "type_element", "selector": "#q", "text": "hi", "clear": False})
    await dispatcher.dispatch({"tabId": "t1", "type": "hover_element", "selector": "#q"})

    calls = factory.engines[0].calls
    assert ("scroll", "down", 300) in calls
    assert ("scroll", "up", 50) in calls
    assert ("type_element", "#q", "hi", False) in calls
    assert ("hover_element", "#q") in calls


@pytest.mark.asyncio
async def test_closing_session_fails_in_flight_action_with_session_closed():
    dispatcher, registry, factory = _build()
    await registry.create("t1")
    engine = factory.engines[0]
    engine.gate = asyncio.Event()

    task = asyncio.create_task(dispatcher.dispatch({"tabId": "t1", "type": "click", "x": 1, "y": 1}))
    await asyncio.sleep(0)
    await registry.close("t1")
    engine.gate.set()
    result = await asyncio.wait_for(task, timeout=1)

    assert result["success"] is False
    assert result["code"] == "session_closed"


@pytest.mark.asyncio
async def test_every_action_is_logged_with_type_and_duration(caplog):
    dispatcher, registry, _ = _build()
    await registry.create("t1")
    caplog.set_level(logging.INFO, logger="browser_control.browser.dispatcher")

    await dispatcher.dispatch({"tabId": "t1", "type": "back"})
    await dispatcher.dispatch({"tabId": "t1", "type": "nope"})

    messages = [record.getMessage() for record in caplog.records]
    assert any("event=action.done" in m and "type=back" in m and "duration_ms=" in m for m in messages)
    assert any("event=action.failed" in m and "type=nope" in m and "code=invalid_action" in m for m in messages)
