"""Store Protocol: the only persistence seam the engine depends on.

Unit tests inject InMemoryStore; production uses SqlStore. Both give:
  - transact(fn): fn(tx) runs atomically; optimistic version checks on markets
    and wallets; transient conflicts retried, AppErrors propagated untouched.
  - point-in-time reads outside any transaction (may be slightly stale).
  - list_markets / list_wallets select by exact scope; scope_id=None means global.
"""

from collections.abc import Awaitable, Callable, Collection
from typing import Protocol, TypeVar

from src.pm_admin.domain.models import AdminLogEntry
from src.pm_clearing.domain.models import SettlementRecord
from src.pm_common.enums import MarketStatus
from src.pm_market.domain.models import Market
from src.pm_notification.domain.models import Notification
from src.pm_trading.domain.models import LedgerEntry
from src.pm_wallet.domain.models import Wallet, WalletKey

T = TypeVar("T")


class TransactionProtocol(Protocol):
    async def get_market(self, market_id: str) -> Market | None: ...

    async def get_wallet(self, key: WalletKey) -> Wallet | None: ...

    async def get_ledger_entry(self, entry_id: str) -> LedgerEntry | None: ...

    async def list_ledger_entries(
        self, market_id: str, user_id: str | None = None
    ) -> list[LedgerEntry]: ...

    async def get_settlement(self, market_id: str, user_id: str) -> SettlementRecord | None: ...

    async def add_market(self, market: Market) -> None: ...

    async def put_market(self, market: Market) -> None: ...

    async def add_wallet(self, wallet: Wallet) -> None: ...

    async def put_wallet(self, wallet: Wallet) -> None: ...

    async def add_ledger_entry(self, entry: LedgerEntry) -> None: ...

    async def mark_entry_refunded(self, entry: LedgerEntry) -> None: ...

    async def add_settlement(self, record: SettlementRecord) -> None: ...

    async def add_notification(self, notification: Notification) -> None: ...

    async def add_admin_log(self, entry: AdminLogEntry) -> None: ...


class StoreProtocol(Protocol):
    async def transact(self, fn: Callable[[TransactionProtocol], Awaitable[T]]) -> T: ...

    async def get_market(self, market_id: str) -> Market | None: ...

    async def get_markets(self, market_ids: Collection[str]) -> dict[str, Market]: ...

    async def list_markets(
        self, status: MarketStatus | None = None, scope_id: str | None = None
    ) -> list[Market]: ...

    async def get_wallet(self, key: WalletKey) -> Wallet | None: ...

    async def list_wallets(self, scope_id: str | None = None) -> list[Wallet]: ...

    async def list_ledger_entries(
        self, market_id: str | None = None, user_id: str | None = None
    ) -> list[LedgerEntry]: ...
