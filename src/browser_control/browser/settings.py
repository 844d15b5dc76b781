from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import LaunchError
from .runtime_common import (
    DEFAULT_ACTION_TIMEOUT_MS,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_VIEWPORT_HEIGHT,
    DEFAULT_VIEWPORT_WIDTH,
    _parse_bool_env,
    _parse_int_env,
    _parse_str_env,
)

DEFAULT_CLOUD_API_URL = "https://www.browserbase.com/v1"
DEFAULT_CLOUD_REGION = "ap-southeast-1"
DEFAULT_RECORD_RETENTION_SECS = 24 * 60 * 60
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3001


def _default_db_path() -> str:
    return str(Path.home() / ".browser_control" / "sessions.db")


@dataclass(frozen=True)
class ControlPlaneSettings:
    use_cloud: bool = False
    cloud_api_key: Optional[str] = None
    cloud_project_id: Optional[str] = None
    cloud_region: Optional[str] = DEFAULT_CLOUD_REGION
    cloud_api_url: str = DEFAULT_CLOUD_API_URL
    cloud_request_timeout_s: float = 10.0
    headless: bool = True
    viewport_width: int = DEFAULT_VIEWPORT_WIDTH
    viewport_height: int = DEFAULT_VIEWPORT_HEIGHT
    navigation_timeout_ms: int = DEFAULT_TIMEOUT_MS
    action_timeout_ms: int = DEFAULT_ACTION_TIMEOUT_MS
    project_fallback: bool = True
    db_provider: str = "sqlite"
    db_path: str = ":memory:"
    record_retention_secs: int = DEFAULT_RECORD_RETENTION_SECS
    default_url: Optional[str] = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    @classmethod
    def from_env(cls) -> "ControlPlaneSettings":
        return cls(
            use_cloud=_parse_bool_env("USE_BROWSERBASE", False),
            cloud_api_key=_parse_str_env("BROWSERBASE_API_KEY"),
            cloud_project_id=_parse_str_env("BROWSERBASE_PROJECT_ID"),
            cloud_region=_parse_str_env("BROWSERBASE_REGION", DEFAULT_CLOUD_REGION),
            cloud_api_url=_parse_str_env("BROWSERBASE_API_URL", DEFAULT_CLOUD_API_URL) or DEFAULT_CLOUD_API_URL,
            headless=_parse_bool_env("BROWSER_CONTROL_HEADLESS", True),
            viewport_width=_parse_int_env("BROWSER_CONTROL_VIEWPORT_WIDTH", DEFAULT_VIEWPORT_WIDTH, 320),
            viewport_height=_parse_int_env("BROWSER_CONTROL_VIEWPORT_HEIGHT", DEFAULT_VIEWPORT_HEIGHT, 240),
            navigation_timeout_ms=_parse_int_env("BROWSER_CONTROL_NAV_TIMEOUT_MS", DEFAULT_TIMEOUT_MS, 1000),
            action_timeout_ms=_parse_int_env(
                "BROWSER_CONTROL_ACTION_TIMEOUT_MS",
                DEFAULT_ACTION_TIMEOUT_MS,
                100,
            ),
            project_fallback=_parse_bool_env("BROWSER_CONTROL_PROJECT_FALLBACK", True),
            db_provider=_parse_str_env("BROWSER_CONTROL_DB_PROVIDER", "sqlite") or "sqlite",
            db_path=_parse_str_env("BROWSER_CONTROL_DB_PATH", _default_db_path()) or _default_db_path(),
            record_retention_secs=_parse_int_env(
                "BROWSER_CONTROL_RECORD_RETENTION_SECS",
                DEFAULT_RECORD_RETENTION_SECS,
                60,
            ),
            default_url=_parse_str_env("BROWSER_CONTROL_DEFAULT_URL"),
            host=_parse_str_env("HOST", DEFAULT_HOST) or DEFAULT_HOST,
            port=_parse_int_env("PORT", DEFAULT_PORT, 1),
        )

    @property
    def viewport(self) -> dict:
        return {"width": self.viewport_width, "height": self.viewport_height}

    @property
    def cloud_configured(self) -> bool:
        return bool(self.cloud_api_key and self.cloud_project_id)

    def require_cloud_credentials(self) -> None:
        if not self.cloud_api_key:
            raise LaunchError("USE_BROWSERBASE is set but BROWSERBASE_API_KEY is missing")
        if not self.cloud_project_id:
            raise LaunchError("USE_BROWSERBASE is set but BROWSERBASE_PROJECT_ID is missing")
