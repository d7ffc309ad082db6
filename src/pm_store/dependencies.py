"""Process-wide store selection (STORE_BACKEND)."""

from functools import lru_cache

from config.settings import settings
from src.pm_store.domain.repository import StoreProtocol


@lru_cache(maxsize=1)
def get_store() -> StoreProtocol:
    if settings.STORE_BACKEND == "memory":
        from src.pm_store.infrastructure.memory import InMemoryStore

        return InMemoryStore(
            max_attempts=settings.STORE_MAX_ATTEMPTS,
            max_writes_per_transaction=settings.STORE_MAX_WRITES_PER_TRANSACTION,
        )

    from src.pm_common.database import async_session_factory
    from src.pm_store.infrastructure.persistence import SqlStore

    return SqlStore(
        async_session_factory,
        max_attempts=settings.STORE_MAX_ATTEMPTS,
        max_writes_per_transaction=settings.STORE_MAX_WRITES_PER_TRANSACTION,
    )
