"""ScoringService: Oracle score for one caller and the global leaderboard.

Reads are point-in-time and outside any transaction; a score may lag a
just-finished settlement by one request.
"""

from src.pm_common.enums import MarketStatus
from src.pm_gateway.auth.identity import CallerIdentity
from src.pm_scoring.domain.oracle import OracleScore, build_leaderboard, calculate_user_oracle_score
from src.pm_store.dependencies import get_store
from src.pm_store.domain.repository import StoreProtocol


class ScoringService:
    def __init__(self, store: StoreProtocol | None = None) -> None:
        self._store_override = store

    @property
    def _store(self) -> StoreProtocol:
        return self._store_override or get_store()

    async def get_my_score(self, caller: CallerIdentity) -> OracleScore:
        caller.require_eligible()
        entries = await self._store.list_ledger_entries(user_id=caller.user_id)
        markets = await self._store.get_markets({e.market_id for e in entries})
        return calculate_user_oracle_score(caller.user_id, entries, markets)

    async def get_leaderboard(self, limit: int = 50) -> list[OracleScore]:
        """Global (unscoped) resolved markets only."""
        resolved = await self._store.list_markets(MarketStatus.RESOLVED, scope_id=None)
        markets = {m.id: m for m in resolved}
        entries = []
        for market_id in markets:
            entries.extend(await self._store.list_ledger_entries(market_id=market_id))
        return build_leaderboard(entries, markets, limit)
