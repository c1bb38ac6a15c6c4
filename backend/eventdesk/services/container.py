"""
Wiring of the engine components around one row store.

The API keeps a single Services instance on app.state; tests build one over
an InMemoryRowStore and hand it to create_app.
"""

from dataclasses import dataclass
from typing import Optional

from eventdesk.core.config import Settings
from eventdesk.core.logging import get_logger
from eventdesk.db.session import build_engine, build_sessionmaker
from eventdesk.infrastructure.redis_client import get_redis
from eventdesk.rowstore import InMemoryRowStore, RowStore, SheetRepository
from eventdesk.rowstore.sql import SqlRowStore
from eventdesk.services.admission_service import AdmissionEngine
from eventdesk.services.event_service import EventCatalogue
from eventdesk.services.locks import EventLockRegistry
from eventdesk.services.notifications import NotificationDispatcher
from eventdesk.services.rate_limit import (
    InMemoryRateLimitStore,
    RateLimiter,
    RateLimitStore,
    RedisRateLimitStore,
)
from eventdesk.services.status_service import StatusTracker
from eventdesk.services.user_service import UserDirectory
from eventdesk.services.waitlist_service import WaitlistManager

logger = get_logger(__name__)


@dataclass
class Services:
    store: RowStore
    repository: SheetRepository
    locks: EventLockRegistry
    notifier: NotificationDispatcher
    admission: AdmissionEngine
    waitlist: WaitlistManager
    status: StatusTracker
    events: EventCatalogue
    users: UserDirectory
    rate_limiter: RateLimiter

    async def close(self) -> None:
        await self.notifier.close()
        await self.store.close()


def assemble(
    store: RowStore,
    notifier: NotificationDispatcher,
    rate_limiter: RateLimiter,
) -> Services:
    repository = SheetRepository(store)
    locks = EventLockRegistry()
    admission = AdmissionEngine(repository, locks, notifier)
    waitlist = WaitlistManager(repository, locks, admission)
    return Services(
        store=store,
        repository=repository,
        locks=locks,
        notifier=notifier,
        admission=admission,
        waitlist=waitlist,
        status=StatusTracker(repository, locks, waitlist),
        events=EventCatalogue(repository, locks),
        users=UserDirectory(repository),
        rate_limiter=rate_limiter,
    )


async def build_row_store(settings: Settings) -> RowStore:
    if settings.ROW_STORE_BACKEND == "sql":
        engine = build_engine(settings.DATABASE_URL)
        store = SqlRowStore(engine, build_sessionmaker(engine))
        await store.create_schema()
        logger.info("row_store_ready", backend="sql")
        return store
    logger.info("row_store_ready", backend="memory")
    return InMemoryRowStore()


async def build_rate_limit_store(settings: Settings) -> RateLimitStore:
    if settings.RATE_LIMIT_BACKEND == "redis":
        client = await get_redis()
        if client is not None:
            return RedisRateLimitStore(client)
        logger.warning("rate_limit_redis_unavailable", fallback="memory")
    return InMemoryRateLimitStore()


async def build_services(settings: Settings, store: Optional[RowStore] = None) -> Services:
    rate_limiter = RateLimiter(
        await build_rate_limit_store(settings),
        settings.RATE_LIMITS,
        settings.RATE_LIMIT_WINDOW_SECONDS,
    )
    return assemble(
        store if store is not None else await build_row_store(settings),
        NotificationDispatcher.from_settings(settings),
        rate_limiter,
    )
