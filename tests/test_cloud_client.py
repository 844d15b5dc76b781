import json

import httpx
import pytest

from browser_control.browser.cloud_client import CloudBrowserClient
from browser_control.browser.errors import CloudHostError
from browser_control.browser.settings import ControlPlaneSettings


def _client(handler):
    return CloudBrowserClient(
        api_key="key-123",
        project_id="proj",
        region="ap-southeast-1",
        base_url="https://cloud.example/v1",
        transport=httpx.MockTransport(handler),
    )


def _session(session_id, *, status="RUNNING", project="proj", tab_id=None):
    payload = {
        "id": session_id,
        "status": status,
        "projectId": project,
        "connectUrl": f"wss://connect.example/{session_id}",
    }
    if tab_id:
        payload["userMetadata"] = {"tabId": tab_id}
    return payload


@pytest.mark.asyncio
async def test_create_session_sends_keep_alive_and_tab_metadata():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["key"] = request.headers["x-bb-api-key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=_session("cs-1", tab_id="t1"))

    session = await _client(handler).create_session("t1")

    assert session.id == "cs-1"
    assert session.tab_id == "t1"
    assert seen["method"] == "POST"
    assert seen["path"] == "/v1/sessions"
    assert seen["key"] == "key-123"
    assert seen["body"]["projectId"] == "proj"
    assert seen["body"]["keepAlive"] is True
    assert seen["body"]["region"] == "ap-southeast-1"
    assert seen["body"]["userMetadata"]["tabId"] == "t1"


@pytest.mark.asyncio
async def test_get_session_returns_none_for_unknown_id():
    def handler(request):
        return httpx.Response(404, json={"error": "not found"})

    assert await _client(handler).get_session("cs-gone") is None


@pytest.mark.asyncio
async def test_list_running_sessions_filters_project_and_status():
    def handler(request):
        assert request.url.params["status"] == "RUNNING"
        return httpx.Response(
            200,
            json=[
                _session("cs-1", tab_id="t1"),
                _session("cs-2", project="someone-else"),
                _session("cs-3", status="COMPLETED"),
                _session("cs-4"),
            ],
        )

    client = _client(handler)
    sessions = await client.list_running_sessions()

    assert [s.id for s in sessions] == ["cs-1", "cs-4"]
    assert (await client.find_running_session("t1")).id == "cs-1"
    assert await client.find_running_session("t2") is None


@pytest.mark.asyncio
async def test_server_errors_raise_cloud_host_error():
    def handler(request):
        return httpx.Response(500, text="upstream exploded")

    with pytest.raises(CloudHostError) as excinfo:
        await _client(handler).get_session("cs-1")
    assert excinfo.value.details == {"status": 500}
    assert excinfo.value.code == "cloud_host_error"


@pytest.mark.asyncio
async def test_transport_errors_raise_cloud_host_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(CloudHostError):
        await _client(handler).list_running_sessions()


@pytest.mark.asyncio
async def test_release_requests_release_status():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={})

    await _client(handler).release_session("cs-1")

    assert seen["path"] == "/v1/sessions/cs-1"
    assert seen["body"] == {"projectId": "proj", "status": "REQUEST_RELEASE"}


@pytest.mark.asyncio
async def test_debug_url_failure_is_not_fatal():
    def handler(request):
        if request.url.path.endswith("/debug") and "cs-ok" in request.url.path:
            return httpx.Response(200, json={"debuggerFullscreenUrl": "https://live.example/cs-ok"})
        return httpx.Response(503)

    client = _client(handler)
    assert await client.debug_url("cs-ok") == "https://live.example/cs-ok"
    assert await client.debug_url("cs-bad") is None


def test_from_settings_requires_credentials():
    assert CloudBrowserClient.from_settings(ControlPlaneSettings()) is None
    client = CloudBrowserClient.from_settings(
        ControlPlaneSettings(use_cloud=True, cloud_api_key="k", cloud_project_id="p")
    )
    assert client.project_id == "p"
    assert client.build_headers()["x-bb-api-key"] == "k"
