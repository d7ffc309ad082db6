"""MarketApplicationService: market creation, lock/unlock and reads.

Privileged operations take the caller identity and check the admin role
themselves; each writes its admin-log record in the same transaction as the
market change.
"""

import logging

from config.settings import settings
from src.pm_admin.domain.models import AdminLogEntry
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import AdminAction, MarketStatus
from src.pm_common.errors import InvalidParameterError, MarketNotFoundError
from src.pm_common.id_generator import generate_id
from src.pm_gateway.auth.identity import CallerIdentity
from src.pm_lmsr.domain.pricing import Pool, get_price, pool_for_probability, validate_b
from src.pm_market.domain import lifecycle
from src.pm_market.domain.models import Market
from src.pm_store.dependencies import get_store
from src.pm_store.domain.repository import StoreProtocol, TransactionProtocol
from src.pm_wallet.domain.resolver import normalize_scope_id

logger = logging.getLogger(__name__)

MAX_QUESTION_LENGTH = 500


def _fresh(market: Market) -> Market:
    """Cached probability is advisory; always re-derive it from the pool."""
    market.probability = market.current_probability()
    return market


class MarketApplicationService:
    def __init__(self, store: StoreProtocol | None = None) -> None:
        self._store_override = store

    @property
    def _store(self) -> StoreProtocol:
        return self._store_override or get_store()

    async def create_market(
        self,
        caller: CallerIdentity,
        question: str,
        b: float | None = None,
        scope_id: str | None = None,
        initial_probability: float | None = None,
        category: str | None = None,
    ) -> Market:
        caller.require_admin()
        question = (question or "").strip()
        if not question or len(question) > MAX_QUESTION_LENGTH:
            raise InvalidParameterError(f"question must be 1-{MAX_QUESTION_LENGTH} characters")
        scope_id = normalize_scope_id(scope_id)
        if b is None:
            b = settings.SCOPED_DEFAULT_B if scope_id else settings.LMSR_DEFAULT_B
        b = validate_b(b)
        pool = Pool() if initial_probability is None else pool_for_probability(initial_probability, b)

        now = utc_now()
        market = Market(
            id=generate_id("mkt"),
            question=question,
            pool=pool,
            b=b,
            probability=get_price(pool, b),
            status=MarketStatus.OPEN,
            scope_id=scope_id,
            category=category,
            created_by=caller.user_id,
            created_at=now,
        )

        async def _create(tx: TransactionProtocol) -> None:
            await tx.add_market(market)
            await tx.add_admin_log(
                AdminLogEntry.new(AdminAction.CREATE, f"Created market: {question}", caller.user_id, now)
            )

        await self._store.transact(_create)
        logger.info("Market created: %s b=%.2f scope=%s p=%.4f", market.id, b, scope_id, market.probability)
        return market

    async def _transition(
        self, caller: CallerIdentity, market_id: str, action: AdminAction
    ) -> Market:
        caller.require_admin()

        async def _apply(tx: TransactionProtocol) -> Market:
            market = await tx.get_market(market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            now = utc_now()
            if action == AdminAction.LOCK:
                updated = lifecycle.lock(market, now)
            else:
                updated = lifecycle.unlock(market)
            await tx.put_market(updated)
            await tx.add_admin_log(
                AdminLogEntry.new(action, f"{action.value.title()}ed market: {market.question}", caller.user_id, now)
            )
            return updated

        market = await self._store.transact(_apply)
        logger.info("Market %s: %s by %s", market_id, market.status.value, caller.user_id)
        return _fresh(market)

    async def lock_market(self, caller: CallerIdentity, market_id: str) -> Market:
        return await self._transition(caller, market_id, AdminAction.LOCK)

    async def unlock_market(self, caller: CallerIdentity, market_id: str) -> Market:
        return await self._transition(caller, market_id, AdminAction.UNLOCK)

    async def get_market(self, market_id: str) -> Market:
        market = await self._store.get_market(market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        return _fresh(market)

    async def list_markets(
        self, status: MarketStatus | None = None, scope_id: str | None = None
    ) -> list[Market]:
        markets = await self._store.list_markets(status, normalize_scope_id(scope_id))
        return [_fresh(m) for m in markets]
