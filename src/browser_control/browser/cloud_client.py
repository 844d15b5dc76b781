"""Client for the cloud browser-hosting API (Browserbase)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..common.logging_utils import _log_control_event
from .errors import CloudHostError
from .runtime_common import CloudSession, _now_iso
from .settings import ControlPlaneSettings

logger = logging.getLogger(__name__)


class CloudBrowserClient:
    """Thin async wrapper over the cloud host's session-management endpoints."""

    def __init__(
        self,
        *,
        api_key: str,
        project_id: str,
        region: Optional[str] = None,
        base_url: str = "https://www.browserbase.com/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.project_id = project_id
        self.region = region
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: ControlPlaneSettings) -> Optional["CloudBrowserClient"]:
        if not settings.cloud_configured:
            return None
        return cls(
            api_key=settings.cloud_api_key or "",
            project_id=settings.cloud_project_id or "",
            region=settings.cloud_region,
            base_url=settings.cloud_api_url,
            timeout=settings.cloud_request_timeout_s,
        )

    def build_headers(self) -> Dict[str, str]:
        return {"x-bb-api-key": self._api_key, "Content-Type": "application/json"}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        allow_not_found: bool = False,
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=self.build_headers(),
                )
        except httpx.HTTPError as exc:
            raise CloudHostError(f"Cloud host request failed: {method} {path}: {exc}") from exc

        if allow_not_found and resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise CloudHostError(
                f"Cloud host returned {resp.status_code} for {method} {path}: {resp.text[:200]}",
                details={"status": resp.status_code},
            )
        if not resp.content:
            return {}
        return resp.json()

    async def create_session(self, tab_id: Optional[str] = None) -> CloudSession:
        body: Dict[str, Any] = {"projectId": self.project_id, "keepAlive": True}
        if self.region:
            body["region"] = self.region
        if tab_id:
            body["userMetadata"] = {"tabId": tab_id, "createdAt": _now_iso()}
        data = await self._request("POST", "/sessions", json=body)
        session = CloudSession.from_payload(data or {})
        if not session.id or not session.connect_url:
            raise CloudHostError("Cloud host did not return a session id and connect URL")
        _log_control_event(
            logger,
            level=logging.INFO,
            event="cloud.session_created",
            tab_id=tab_id,
            cloud_session_id=session.id,
            region=self.region,
        )
        return session

    async def get_session(self, session_id: str) -> Optional[CloudSession]:
        data = await self._request("GET", f"/sessions/{session_id}", allow_not_found=True)
        if not data:
            return None
        session = CloudSession.from_payload(data)
        if not session.id:
            session = CloudSession(
                id=session_id,
                status=session.status,
                connect_url=session.connect_url,
                project_id=session.project_id,
                created_at=session.created_at,
                tab_id=session.tab_id,
            )
        return session

    async def list_running_sessions(self) -> List[CloudSession]:
        data = await self._request("GET", "/sessions", params={"status": "RUNNING"})
        items = data if isinstance(data, list) else (data or {}).get("sessions") or []
        sessions: List[CloudSession] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            session = CloudSession.from_payload(item)
            if session.project_id and session.project_id != self.project_id:
                continue
            if not session.is_running:
                continue
            sessions.append(session)
        return sessions

    async def find_running_session(self, tab_id: str) -> Optional[CloudSession]:
        """Return a running session tagged with ``tab_id``, if the host has one."""
        for session in await self.list_running_sessions():
            if session.tab_id == tab_id:
                return session
        return None

    async def debug_url(self, session_id: str) -> Optional[str]:
        try:
            data = await self._request("GET", f"/sessions/{session_id}/debug", allow_not_found=True)
        except CloudHostError as exc:
            logger.warning("Failed to fetch live view URL cloud_session_id=%s error=%s", session_id, exc)
            return None
        if not data:
            return None
        return data.get("debuggerFullscreenUrl") or data.get("debuggerUrl") or None

    async def release_session(self, session_id: str) -> None:
        await self._request(
            "POST",
            f"/sessions/{session_id}",
            json={"projectId": self.project_id, "status": "REQUEST_RELEASE"},
            allow_not_found=True,
        )
        _log_control_event(
            logger,
            level=logging.INFO,
            event="cloud.session_released",
            cloud_session_id=session_id,
        )
