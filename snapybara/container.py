"""Explicitly constructed service graph, built once at startup and closed on shutdown."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from snapybara.core.config import Settings
from snapybara.db import create_engine, create_session_factory
from snapybara.infra.unit_of_work import SqlAlchemyUnitOfWork, UnitOfWork
from snapybara.services.auth import IdentityProviderClient
from snapybara.services.cache_invalidation import CacheInvalidator
from snapybara.services.cache_store import CacheStore, build_cache_store
from snapybara.services.collections import CollectionService
from snapybara.services.health import HealthService
from snapybara.services.hybrid_search import HybridSearchEngine
from snapybara.services.notifications import NotificationService
from snapybara.services.open_map import OpenMapClient
from snapybara.services.places import PlacesClient
from snapybara.services.points import PointService
from snapybara.services.reviews import ReviewService
from snapybara.services.users import UserService

logger = structlog.get_logger(__name__)

UnitOfWorkFactory = Callable[[], UnitOfWork]

USER_AGENT = "snapybara-api/0.1"


@dataclass
class ServiceContainer:
    settings: Settings
    http: httpx.AsyncClient
    cache: CacheStore
    uow_factory: UnitOfWorkFactory
    session_factory: async_sessionmaker[AsyncSession] | None = None
    engine: AsyncEngine | None = None

    invalidator: CacheInvalidator = field(init=False)
    places: PlacesClient = field(init=False)
    open_map: OpenMapClient = field(init=False)
    identity: IdentityProviderClient = field(init=False)
    search: HybridSearchEngine = field(init=False)
    points: PointService = field(init=False)
    reviews: ReviewService = field(init=False)
    collections: CollectionService = field(init=False)
    notifications: NotificationService = field(init=False)
    users: UserService = field(init=False)

    def __post_init__(self) -> None:
        s = self.settings
        self.invalidator = CacheInvalidator(self.cache, max_indexed_cells=s.cache_max_indexed_cells)
        self.places = PlacesClient(
            self.http,
            self.cache,
            api_key=s.google_places_api_key,
            language=s.places_language,
            timeout=s.places_timeout_seconds,
        )
        self.open_map = OpenMapClient(
            self.http,
            self.cache,
            endpoints=s.open_map_endpoints,
            enabled=s.open_map_enabled,
            timeout=s.open_map_timeout_seconds,
            max_concurrency=s.open_map_max_concurrency,
        )
        self.identity = IdentityProviderClient(
            self.http,
            base_url=s.supabase_url,
            anon_key=s.supabase_anon_key,
            timeout=s.auth_timeout_seconds,
        )
        self.search = HybridSearchEngine(
            self.uow_factory,
            self.cache,
            self.invalidator,
            self.places,
            self.open_map,
            dedupe_distance_m=s.search_dedupe_distance_m,
            max_limit=s.search_max_limit,
            external_timeout=s.external_search_timeout_seconds,
        )
        self.points = PointService(self.uow_factory, self.cache, self.invalidator, self.places)
        self.reviews = ReviewService(self.uow_factory, self.invalidator)
        self.collections = CollectionService(self.uow_factory)
        self.notifications = NotificationService(self.uow_factory)
        self.users = UserService(self.uow_factory)

    def health(self) -> HealthService | None:
        if self.session_factory is None:
            return None
        return HealthService(self.session_factory, self.cache)

    async def aclose(self) -> None:
        await self.http.aclose()
        await self.cache.close()
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("container_closed")


def build_container(settings: Settings) -> ServiceContainer:
    engine = create_engine(settings.database_url)
    session_factory = create_session_factory(engine)
    http = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.places_timeout_seconds),
        headers={"User-Agent": USER_AGENT},
    )
    cache = build_cache_store(
        settings.redis_url,
        namespace=settings.cache_namespace,
        max_entries=settings.cache_max_entries,
        stale_ttl=settings.cache_stale_ttl_seconds,
    )
    logger.info(
        "container_built",
        cache_backend=cache.backend_name,
        places_enabled=bool(settings.google_places_api_key),
        open_map_enabled=settings.open_map_enabled,
    )
    return ServiceContainer(
        settings=settings,
        http=http,
        cache=cache,
        uow_factory=lambda: SqlAlchemyUnitOfWork(session_factory),
        session_factory=session_factory,
        engine=engine,
    )


__all__ = ["ServiceContainer", "build_container"]
