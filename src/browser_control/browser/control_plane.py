"""Wiring for one process: settings, record store, registry, resolver, dispatcher."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, Dict, List, Optional

from ..storage.database_factory import DatabaseConfigFactory, DatabaseFactory
from ..storage.relational_database import RelationalDatabase
from ..storage.session_records import SessionRecordStore
from ..storage.site_configs import SiteConfig, SiteConfigStore
from .cloud_client import CloudBrowserClient
from .dispatcher import ActionDispatcher
from .engine import PlaywrightEngine
from .extractor import PageStateExtractor
from .readiness import ReadinessChecker
from .registry import EngineFactory, SessionRegistry
from .resolver import SessionResolver
from .settings import ControlPlaneSettings

logger = logging.getLogger(__name__)

COOKIE_SOURCE_DIRECT = "direct"
COOKIE_SOURCE_DATABASE = "database"
COOKIE_SOURCE_NONE = "none"


@dataclass
class ControlPlane:
    settings: ControlPlaneSettings
    registry: SessionRegistry
    resolver: SessionResolver
    dispatcher: ActionDispatcher
    readiness: ReadinessChecker
    record_store: Optional[SessionRecordStore] = None
    cloud_client: Optional[CloudBrowserClient] = None
    site_configs: Optional[SiteConfigStore] = None

    async def create_session(
        self,
        tab_id: str,
        *,
        headless: Optional[bool] = None,
        cookies: Optional[List[Dict[str, Any]]] = None,
        default_url: Optional[str] = None,
        website_slug: Optional[str] = None,
        load_from_db: bool = False,
    ) -> Dict[str, Any]:
        """Create or reuse the session for ``tab_id``.

        With ``website_slug``, the site's stored landing URL fills in a missing
        ``default_url``; its stored cookies fill in missing ``cookies`` only
        when ``load_from_db`` is set. Explicit request values always win.
        """
        cookie_source = COOKIE_SOURCE_DIRECT
        site = self._site_config(website_slug) if website_slug else None
        if cookies is None and load_from_db and site is not None and site.cookies:
            cookies = list(site.cookies)
            cookie_source = COOKIE_SOURCE_DATABASE
        if not default_url and site is not None:
            default_url = site.landing_url

        entry, _created = await self.registry.create(
            tab_id,
            headless=headless,
            cookies=cookies,
            default_url=default_url,
        )
        payload = entry.to_payload()
        payload["liveViewUrl"] = await entry.engine.live_view_url()
        payload["cookiesLoaded"] = bool(cookies)
        payload["cookieCount"] = len(cookies or [])
        payload["cookieSource"] = cookie_source if cookies else COOKIE_SOURCE_NONE
        return payload

    def _site_config(self, slug: str) -> Optional[SiteConfig]:
        if self.site_configs is None:
            return None
        try:
            return self.site_configs.get(slug)
        except Exception as exc:
            logger.warning("Site config lookup failed slug=%s error=%s", slug, exc)
            return None

    async def get_session(self, tab_id: str, cloud_session_id: Optional[str] = None) -> Dict[str, Any]:
        entry = await self.resolver.resolve(tab_id, cloud_session_id)
        return entry.to_payload()

    async def close_session(self, tab_id: str) -> bool:
        return await self.registry.close(tab_id)

    async def shutdown(self) -> None:
        logger.info("Closing all browser sessions")
        await self.registry.close_all()
        if self.record_store is not None:
            self.record_store.close()


def build_database(settings: ControlPlaneSettings) -> RelationalDatabase:
    config = DatabaseConfigFactory.create(settings.db_provider, database=settings.db_path)
    return DatabaseFactory.create(settings.db_provider, config)


def build_record_store(
    settings: ControlPlaneSettings,
    database: Optional[RelationalDatabase] = None,
) -> SessionRecordStore:
    return SessionRecordStore(
        database or build_database(settings),
        retention_seconds=settings.record_retention_secs,
    )


def build_control_plane(
    settings: Optional[ControlPlaneSettings] = None,
    *,
    engine_factory: Optional[EngineFactory] = None,
    cloud_client: Optional[CloudBrowserClient] = None,
    record_store: Optional[SessionRecordStore] = None,
    site_configs: Optional[SiteConfigStore] = None,
    extractor: Optional[PageStateExtractor] = None,
) -> ControlPlane:
    settings = settings or ControlPlaneSettings.from_env()
    extractor = extractor or PageStateExtractor()
    if cloud_client is None and settings.use_cloud:
        cloud_client = CloudBrowserClient.from_settings(settings)
    if record_store is None:
        record_store = build_record_store(settings)
    if site_configs is None:
        # Site configs share the record store's database.
        site_configs = SiteConfigStore(record_store.database)
    if engine_factory is None:
        engine_factory = partial(
            PlaywrightEngine,
            settings=settings,
            cloud_client=cloud_client,
            extractor=extractor,
        )

    registry = SessionRegistry(
        engine_factory,
        record_store=record_store,
        default_url=settings.default_url,
    )
    resolver = SessionResolver(
        registry,
        cloud_client=cloud_client,
        record_store=record_store,
        project_fallback=settings.project_fallback,
    )
    dispatcher = ActionDispatcher(resolver, extractor)
    logger.info(
        "Control plane ready cloud=%s project_fallback=%s db_provider=%s",
        cloud_client is not None,
        settings.project_fallback,
        settings.db_provider,
    )
    return ControlPlane(
        settings=settings,
        registry=registry,
        resolver=resolver,
        dispatcher=dispatcher,
        readiness=ReadinessChecker(dispatcher),
        record_store=record_store,
        cloud_client=cloud_client,
        site_configs=site_configs,
    )
