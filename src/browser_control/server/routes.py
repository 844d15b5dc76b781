import base64
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Query, Request, Response
from fastapi.responses import JSONResponse

from browser_control.browser.control_plane import ControlPlane
from browser_control.browser.dispatcher import SCREENSHOT_CONTENT_TYPE
from browser_control.browser.runtime_common import _now_iso

from .models import (
    CreatedSessionResponse,
    CreateSessionRequest,
    ScreenshotRequest,
    SessionResponse,
    SetCookiesRequest,
)

router = APIRouter()

# Failed actions answer 500 unless the code names a caller problem.
ACTION_ERROR_STATUS = {
    "invalid_action": 400,
    "no_active_session": 404,
}


def _control_plane(request: Request) -> ControlPlane:
    return request.app.state.control_plane


@router.get("/health")
async def health(request: Request) -> Dict[str, Any]:
    control_plane = _control_plane(request)
    recorded = control_plane.record_store.list_running() if control_plane.record_store is not None else []
    return {
        "status": "ok",
        "timestamp": _now_iso(),
        "activeSessions": await control_plane.registry.count(),
        "recordedSessions": len(recorded),
        "resolving": control_plane.resolver.pending_tabs,
        "sessions": await control_plane.registry.list_sessions(),
    }


@router.post("/session", status_code=201, response_model=CreatedSessionResponse)
async def create_session(request: Request, body: CreateSessionRequest) -> Dict[str, Any]:
    return await _control_plane(request).create_session(
        body.tabId,
        headless=body.headless,
        cookies=body.cookies,
        default_url=body.defaultUrl,
        website_slug=body.websiteSlug,
        load_from_db=body.loadFromDb,
    )


@router.get("/session", response_model=SessionResponse)
async def get_session(
    request: Request,
    tab_id: str = Query(..., alias="tabId"),
    cloud_session_id: Optional[str] = Query(None, alias="cloudSessionId"),
) -> Dict[str, Any]:
    return await _control_plane(request).get_session(tab_id, cloud_session_id)


@router.delete("/session", status_code=204)
async def delete_session(request: Request, tab_id: str = Query(..., alias="tabId")) -> Response:
    await _control_plane(request).close_session(tab_id)
    return Response(status_code=204)


@router.get("/session/list")
async def list_sessions(request: Request) -> Dict[str, Any]:
    return {"sessions": await _control_plane(request).registry.list_sessions()}


@router.post("/action")
async def run_action(request: Request, payload: Dict[str, Any] = Body(...)) -> JSONResponse:
    result = await _control_plane(request).dispatcher.dispatch(payload)
    status_code = 200
    if not result.get("success"):
        status_code = ACTION_ERROR_STATUS.get(result.get("code"), 500)
    return JSONResponse(result, status_code=status_code)


@router.get("/state")
async def get_state(
    request: Request,
    tab_id: str = Query(..., alias="tabId"),
    cloud_session_id: Optional[str] = Query(None, alias="cloudSessionId"),
    compact: bool = False,
    lite: bool = False,
    include_iframes: bool = Query(False, alias="includeIframes"),
) -> Dict[str, Any]:
    mode = "compact" if compact else "lite" if lite else "full"
    state = await _control_plane(request).dispatcher.page_state(
        tab_id,
        cloud_session_id=cloud_session_id,
        mode=mode,
        include_iframes=include_iframes,
    )
    return {"success": True, "stateType": mode, "state": state}


@router.post("/screenshot")
async def post_screenshot(request: Request, body: ScreenshotRequest) -> Any:
    data = await _control_plane(request).dispatcher.screenshot_bytes(
        body.tabId,
        cloud_session_id=body.cloudSessionId,
    )
    if body.format == "binary":
        return Response(content=data, media_type=SCREENSHOT_CONTENT_TYPE)
    return {
        "success": True,
        "data": base64.b64encode(data).decode("ascii"),
        "contentType": SCREENSHOT_CONTENT_TYPE,
    }


@router.get("/screenshot")
async def get_screenshot(
    request: Request,
    tab_id: str = Query(..., alias="tabId"),
    cloud_session_id: Optional[str] = Query(None, alias="cloudSessionId"),
) -> Response:
    data = await _control_plane(request).dispatcher.screenshot_bytes(tab_id, cloud_session_id=cloud_session_id)
    return Response(content=data, media_type=SCREENSHOT_CONTENT_TYPE)


@router.get("/clicks")
async def get_clicks(
    request: Request,
    tab_id: str = Query(..., alias="tabId"),
    since: Optional[int] = None,
) -> Dict[str, Any]:
    entry = await _control_plane(request).registry.get(tab_id)
    if entry is None:
        return {"clicks": [], "timestamp": int(time.time() * 1000)}
    return {
        "clicks": [event.to_payload() for event in entry.clicks.since(since)],
        "timestamp": int(time.time() * 1000),
    }


@router.get("/live-url")
async def live_url(
    request: Request,
    tab_id: str = Query(..., alias="tabId"),
    cloud_session_id: Optional[str] = Query(None, alias="cloudSessionId"),
) -> Dict[str, Any]:
    entry = await _control_plane(request).resolver.resolve(tab_id, cloud_session_id)
    return {"liveViewUrl": await entry.engine.live_view_url()}


@router.get("/cookies")
async def get_cookies(
    request: Request,
    tab_id: str = Query(..., alias="tabId"),
    cloud_session_id: Optional[str] = Query(None, alias="cloudSessionId"),
    filter_domain: Optional[str] = Query(None, alias="filterDomain"),
) -> Dict[str, Any]:
    control_plane = _control_plane(request)
    entry = await control_plane.resolver.resolve(tab_id, cloud_session_id)
    cookies = await control_plane.dispatcher.run_locked(entry, lambda locked: locked.engine.get_cookies())
    if filter_domain:
        needle = filter_domain.lstrip(".").lower()
        cookies = [
            cookie for cookie in cookies
            if str(cookie.get("domain") or "").lstrip(".").lower().endswith(needle)
        ]
    return {"cookies": cookies}


@router.post("/cookies")
async def set_cookies(request: Request, body: SetCookiesRequest) -> Dict[str, Any]:
    control_plane = _control_plane(request)
    entry = await control_plane.resolver.resolve(body.tabId, body.cloudSessionId)
    await control_plane.dispatcher.run_locked(entry, lambda locked: locked.engine.set_cookies(body.cookies))
    return {"success": True, "count": len(body.cookies)}


@router.get("/ready")
async def ready(
    request: Request,
    tab_id: str = Query(..., alias="tabId"),
    cloud_session_id: Optional[str] = Query(None, alias="cloudSessionId"),
    timeout_ms: Optional[int] = Query(None, alias="timeoutMs"),
    poll_ms: Optional[int] = Query(None, alias="pollMs"),
) -> Dict[str, Any]:
    return await _control_plane(request).readiness.check(
        tab_id,
        cloud_session_id=cloud_session_id,
        timeout_ms=timeout_ms,
        poll_ms=poll_ms,
    )
