"""Error taxonomy for the browser control plane.

Each error carries a stable ``code`` used in result envelopes and the HTTP
status the server answers with when the error reaches a route.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class BrowserControlError(Exception):
    code = "browser_control_error"
    status_code = 500

    def __init__(self, message: str = "", *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message or self.__class__.__name__)
        self.details = dict(details or {})

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(BrowserControlError):
    """Malformed action payload or request parameters."""

    code = "invalid_action"
    status_code = 400


class NoActiveSession(BrowserControlError):
    """Session resolution exhausted every candidate."""

    code = "no_active_session"
    status_code = 404

    def __init__(self, tab_id: str, message: str = "") -> None:
        super().__init__(
            message or f"No active session for tabId {tab_id}. Create one first via POST /session",
            details={"tabId": tab_id},
        )
        self.tab_id = tab_id


class ElementNotFound(BrowserControlError):
    code = "element_not_found"
    status_code = 422

    def __init__(self, selector: str, message: str = "") -> None:
        super().__init__(
            message or f"No element matches selector: {selector}",
            details={"selector": selector},
        )
        self.selector = selector


class ElementNotInteractable(BrowserControlError):
    code = "element_not_interactable"
    status_code = 422

    def __init__(self, selector: str, message: str = "") -> None:
        super().__init__(
            message or f"Element is not interactable: {selector}",
            details={"selector": selector},
        )
        self.selector = selector


class EngineUnavailable(BrowserControlError):
    """The local or cloud browser engine is down or unreachable."""

    code = "engine_unavailable"
    status_code = 503


class CloudHostError(EngineUnavailable):
    code = "cloud_host_error"
    status_code = 502


class LaunchError(BrowserControlError):
    """Session creation failed, usually a configuration problem."""

    code = "launch_failed"
    status_code = 500


class SessionClosed(BrowserControlError):
    """The session was closed while an action was in flight."""

    code = "session_closed"
    status_code = 409

    def __init__(self, tab_id: str = "", message: str = "") -> None:
        super().__init__(
            message or f"Session {tab_id or '<unknown>'} was closed during the action",
            details={"tabId": tab_id} if tab_id else None,
        )
        self.tab_id = tab_id


__all__ = [
    "BrowserControlError",
    "CloudHostError",
    "ElementNotFound",
    "ElementNotInteractable",
    "EngineUnavailable",
    "LaunchError",
    "NoActiveSession",
    "SessionClosed",
    "ValidationError",
]
