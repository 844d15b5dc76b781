"""Shared constants, protocols, and helpers for browser engine modules."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol


DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_ACTION_TIMEOUT_MS = 10_000
DEFAULT_VIEWPORT_WIDTH = 1280
DEFAULT_VIEWPORT_HEIGHT = 1032
DEFAULT_SCROLL_AMOUNT = 300
SCROLL_DIRECTIONS = ("up", "down", "left", "right")


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def _iso_from_epoch(value: float) -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(float(value)))


def _now_ms() -> int:
    return int(time.time() * 1000)


def _safe_title(value: Any) -> str:
    try:
        return str(value) if value is not None else ""
    except Exception:
        return ""


def _clamp_int(value: Any, *, default: int, minimum: int, maximum: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
    except Exception:
        return default
    return max(minimum, min(maximum, parsed))


def _parse_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    text = raw.strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int_env(name: str, default: int, minimum: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return max(minimum, int(default))
    try:
        parsed = int(raw.strip())
    except Exception:
        return max(minimum, int(default))
    return max(minimum, parsed)


def _parse_str_env(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return default
    text = raw.strip()
    return text or default


@dataclass(frozen=True)
class CloudSession:
    """One remote browser instance as reported by the cloud host."""

    id: str
    status: str
    connect_url: Optional[str] = None
    project_id: Optional[str] = None
    created_at: Optional[str] = None
    tab_id: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.status.upper() == "RUNNING"

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CloudSession":
        metadata = payload.get("userMetadata") or {}
        if not isinstance(metadata, dict):
            metadata = {}
        return cls(
            id=_safe_title(payload.get("id")),
            status=_safe_title(payload.get("status") or "UNKNOWN"),
            connect_url=payload.get("connectUrl") or None,
            project_id=payload.get("projectId") or None,
            created_at=payload.get("createdAt") or None,
            tab_id=metadata.get("tabId") or None,
        )


class PageTarget(Protocol):
    """Anything that can run one in-page evaluation: a page or a child frame."""

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        ...


class BrowserEngine(Protocol):
    tab_id: str

    @property
    def launched(self) -> bool:
        ...

    @property
    def cloud_session_id(self) -> Optional[str]:
        ...

    async def launch(self) -> None:
        ...

    async def attach(self, session: CloudSession) -> None:
        ...

    async def close(self, *, release: bool = True) -> None:
        ...

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        ...

    async def child_frames(self) -> List[Any]:
        ...

    async def navigate(
        self,
        url: str,
        *,
        wait_for_idle: bool = False,
        skip_state: bool = False,
    ) -> Dict[str, Any]:
        ...

    async def back(self) -> Dict[str, Any]:
        ...

    async def forward(self) -> Dict[str, Any]:
        ...

    async def refresh(self) -> Dict[str, Any]:
        ...

    async def click(self, x: float, y: float) -> None:
        ...

    async def click_element(self, selector: str) -> Optional[Dict[str, float]]:
        ...

    async def type_text(self, text: str) -> None:
        ...

    async def type_element(self, selector: str, text: str, *, clear: bool = True) -> None:
        ...

    async def press_key(self, key: str) -> None:
        ...

    async def scroll(self, direction: str, amount: int = DEFAULT_SCROLL_AMOUNT) -> None:
        ...

    async def scroll_to_element(self, selector: str) -> None:
        ...

    async def hover(self, x: float, y: float) -> None:
        ...

    async def hover_element(self, selector: str) -> None:
        ...

    async def screenshot(self) -> bytes:
        ...

    async def get_cookies(self, urls: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        ...

    async def set_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        ...

    async def live_view_url(self) -> Optional[str]:
        ...
