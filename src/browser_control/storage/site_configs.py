"""Per-website browser configuration: seed cookies and landing URLs keyed by slug."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from browser_control.storage.relational_database import RecordNotFoundError, RelationalDatabase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SiteConfig:
    slug: str
    cookies: List[Dict[str, Any]] = field(default_factory=list)
    default_url: Optional[str] = None
    base_url: Optional[str] = None

    @property
    def landing_url(self) -> Optional[str]:
        return self.default_url or self.base_url

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "SiteConfig":
        cookies: List[Dict[str, Any]] = []
        raw = row.get("cookies_json")
        if raw:
            try:
                parsed = json.loads(raw)
            except ValueError:
                logger.warning("Ignoring unreadable cookies_json for site slug=%s", row.get("id"))
                parsed = []
            if isinstance(parsed, list):
                cookies = [cookie for cookie in parsed if isinstance(cookie, dict)]
        return cls(
            slug=str(row["id"]),
            cookies=cookies,
            default_url=row.get("default_url") or None,
            base_url=row.get("base_url") or None,
        )


class SiteConfigStore:
    """Read-mostly lookup of ``SiteConfig`` rows through a ``RelationalDatabase``."""

    TABLE = "website_configs"

    def __init__(self, database: RelationalDatabase, *, clock: Callable[[], float] = time.time) -> None:
        self._db = database
        self._clock = clock
        self.ensure_schema()

    def ensure_schema(self) -> None:
        self._db.execute_sql(
            f"CREATE TABLE IF NOT EXISTS {self.TABLE} ("
            "id TEXT PRIMARY KEY, "
            "cookies_json TEXT, "
            "default_url TEXT, "
            "base_url TEXT, "
            "updated_at REAL NOT NULL)"
        )

    def get(self, slug: str) -> Optional[SiteConfig]:
        try:
            row = self._db.get_record(self.TABLE, slug)
        except RecordNotFoundError:
            return None
        return SiteConfig.from_row(row)

    def save(self, config: SiteConfig) -> None:
        self._db.upsert_record(
            self.TABLE,
            {
                "id": config.slug,
                "cookies_json": json.dumps(list(config.cookies)),
                "default_url": config.default_url,
                "base_url": config.base_url,
                "updated_at": self._clock(),
            },
        )
