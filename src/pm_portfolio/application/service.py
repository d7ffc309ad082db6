"""PortfolioService: caller positions and summary for one scope.

Folds run outside transactions against a point-in-time read of the ledger.
"""

from config.settings import settings
from src.pm_common.errors import WalletNotFoundError
from src.pm_gateway.auth.identity import CallerIdentity
from src.pm_portfolio.domain.aggregator import aggregate_positions, summarize_portfolio
from src.pm_portfolio.domain.models import PortfolioSummary, Position
from src.pm_store.dependencies import get_store
from src.pm_store.domain.repository import StoreProtocol
from src.pm_wallet.domain.models import WalletKey
from src.pm_wallet.domain.resolver import normalize_scope_id


class PortfolioService:
    def __init__(self, store: StoreProtocol | None = None) -> None:
        self._store_override = store

    @property
    def _store(self) -> StoreProtocol:
        return self._store_override or get_store()

    async def list_positions(
        self, caller: CallerIdentity, scope_id: str | None = None
    ) -> list[Position]:
        caller.require_eligible()
        scope_id = normalize_scope_id(scope_id)
        entries = [
            e for e in await self._store.list_ledger_entries(user_id=caller.user_id)
            if normalize_scope_id(e.scope_id) == scope_id
        ]
        markets = await self._store.get_markets({e.market_id for e in entries})
        return aggregate_positions(entries, markets)

    async def get_summary(
        self, caller: CallerIdentity, scope_id: str | None = None
    ) -> PortfolioSummary:
        scope_id = normalize_scope_id(scope_id)
        positions = await self.list_positions(caller, scope_id)
        wallet = await self._store.get_wallet(WalletKey(caller.user_id, scope_id))
        if wallet is None:
            raise WalletNotFoundError(scope_id)
        starting = settings.SCOPED_STARTING_BALANCE if scope_id else settings.GLOBAL_STARTING_BALANCE
        return summarize_portfolio(wallet.available(), positions, starting)
