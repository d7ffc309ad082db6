"""InMemoryStore: single-process store with the same transaction contract as SqlStore.

Writes are buffered on the transaction and applied at commit. Commit re-checks
the version of every document the transaction read or wrote; any mismatch is a
WriteConflictError and the whole callback is re-run on a fresh snapshot.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Collection
from dataclasses import replace
from typing import Any, TypeVar

from src.pm_admin.domain.models import AdminLogEntry
from src.pm_clearing.domain.models import SettlementRecord
from src.pm_common.enums import MarketStatus
from src.pm_common.errors import (
    InvalidParameterError,
    StoreUnavailableError,
    WriteConflictError,
)
from src.pm_market.domain import lifecycle
from src.pm_market.domain.models import Market
from src.pm_notification.domain.models import Notification
from src.pm_trading.domain.models import LedgerEntry
from src.pm_wallet.domain.models import Wallet, WalletKey

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = -1


class InMemoryTransaction:
    def __init__(self, store: "InMemoryStore", max_writes: int) -> None:
        self._store = store
        self._max_writes = max_writes
        self._writes = 0
        self._seen: dict[tuple[str, Any], int] = {}
        self._markets: dict[str, Market] = {}
        self._new_markets: set[str] = set()
        self._wallets: dict[WalletKey, Wallet] = {}
        self._new_wallets: set[WalletKey] = set()
        self._entries: dict[str, LedgerEntry] = {}
        self._refunds: dict[str, LedgerEntry] = {}
        self._settlements: dict[tuple[str, str], SettlementRecord] = {}
        self._notifications: list[Notification] = []
        self._admin_log: list[AdminLogEntry] = []

    def _observe(self, doc: tuple[str, Any]) -> None:
        self._seen.setdefault(doc, self._store._version(doc))

    def _count_write(self) -> None:
        self._writes += 1
        if self._writes > self._max_writes:
            raise InvalidParameterError(
                f"transaction exceeds {self._max_writes} writes"
            )

    # --- reads (read-your-writes) ---

    async def get_market(self, market_id: str) -> Market | None:
        if market_id in self._markets:
            return replace(self._markets[market_id])
        self._observe(("market", market_id))
        market = self._store._markets.get(market_id)
        return replace(market) if market else None

    async def get_wallet(self, key: WalletKey) -> Wallet | None:
        if key in self._wallets:
            return replace(self._wallets[key])
        self._observe(("wallet", key))
        wallet = self._store._wallets.get(key)
        return replace(wallet) if wallet else None

    async def get_ledger_entry(self, entry_id: str) -> LedgerEntry | None:
        if entry_id in self._refunds:
            return self._refunds[entry_id]
        if entry_id in self._entries:
            return self._entries[entry_id]
        self._observe(("entry", entry_id))
        return self._store._entries.get(entry_id)

    async def list_ledger_entries(
        self, market_id: str, user_id: str | None = None
    ) -> list[LedgerEntry]:
        entries = [
            self._refunds.get(e.id, e)
            for e in self._store._iter_entries(market_id, user_id)
        ]
        entries.extend(
            e for e in self._entries.values()
            if e.market_id == market_id and (user_id is None or e.user_id == user_id)
        )
        for entry in entries:
            self._observe(("entry", entry.id))
        return entries

    async def get_settlement(self, market_id: str, user_id: str) -> SettlementRecord | None:
        doc_key = (market_id, user_id)
        if doc_key in self._settlements:
            return self._settlements[doc_key]
        self._observe(("settlement", doc_key))
        return self._store._settlements.get(doc_key)

    # --- buffered writes ---

    async def add_market(self, market: Market) -> None:
        lifecycle.check_invariants(market)
        self._count_write()
        self._observe(("market", market.id))
        self._new_markets.add(market.id)
        self._markets[market.id] = replace(market)

    async def put_market(self, market: Market) -> None:
        lifecycle.check_invariants(market)
        self._count_write()
        if market.id not in self._markets:
            self._seen.setdefault(("market", market.id), market.version)
        self._markets[market.id] = replace(market)

    async def add_wallet(self, wallet: Wallet) -> None:
        self._count_write()
        self._observe(("wallet", wallet.key))
        self._new_wallets.add(wallet.key)
        self._wallets[wallet.key] = replace(wallet)

    async def put_wallet(self, wallet: Wallet) -> None:
        self._count_write()
        if wallet.key not in self._wallets:
            self._seen.setdefault(("wallet", wallet.key), wallet.version)
        self._wallets[wallet.key] = replace(wallet)

    async def add_ledger_entry(self, entry: LedgerEntry) -> None:
        self._count_write()
        self._observe(("entry", entry.id))
        self._entries[entry.id] = entry

    async def mark_entry_refunded(self, entry: LedgerEntry) -> None:
        self._count_write()
        self._observe(("entry", entry.id))
        self._refunds[entry.id] = entry

    async def add_settlement(self, record: SettlementRecord) -> None:
        self._count_write()
        self._observe(("settlement", (record.market_id, record.user_id)))
        self._settlements[(record.market_id, record.user_id)] = record

    async def add_notification(self, notification: Notification) -> None:
        self._count_write()
        self._notifications.append(notification)

    async def add_admin_log(self, entry: AdminLogEntry) -> None:
        self._count_write()
        self._admin_log.append(entry)

    # --- commit ---

    def commit(self) -> None:
        store = self._store
        for doc, expected in self._seen.items():
            if store._version(doc) != expected:
                raise WriteConflictError(f"{doc[0]} {doc[1]} changed since read")
        for market_id in self._new_markets:
            if store._version(("market", market_id)) != _MISSING:
                raise WriteConflictError(f"market {market_id} already exists")
        for key in self._new_wallets:
            if store._version(("wallet", key)) != _MISSING:
                raise WriteConflictError(f"wallet {key} already exists")

        for market_id, market in self._markets.items():
            current = store._markets.get(market_id)
            store._markets[market_id] = replace(
                market, version=(current.version if current else 0) + 1
            )
        for key, wallet in self._wallets.items():
            current = store._wallets.get(key)
            store._wallets[key] = replace(
                wallet, version=(current.version if current else 0) + 1
            )
        store._entries.update(self._entries)
        store._entries.update(self._refunds)
        store._settlements.update(self._settlements)
        store.notifications.extend(self._notifications)
        store.admin_log.extend(self._admin_log)


class InMemoryStore:
    """Dict-backed store for tests and single-process runs (STORE_BACKEND=memory).

    Commit runs without awaiting, so it is atomic with respect to other
    coroutines on the same event loop.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        max_writes_per_transaction: int = 500,
        retry_delay: float = 0.0,
    ) -> None:
        self._max_attempts = max_attempts
        self._max_writes = max_writes_per_transaction
        self._retry_delay = retry_delay
        self._markets: dict[str, Market] = {}
        self._wallets: dict[WalletKey, Wallet] = {}
        self._entries: dict[str, LedgerEntry] = {}
        self._settlements: dict[tuple[str, str], SettlementRecord] = {}
        self.notifications: list[Notification] = []
        self.admin_log: list[AdminLogEntry] = []

    def _version(self, doc: tuple[str, Any]) -> int:
        kind, ident = doc
        if kind == "market":
            market = self._markets.get(ident)
            return market.version if market else _MISSING
        if kind == "wallet":
            wallet = self._wallets.get(ident)
            return wallet.version if wallet else _MISSING
        if kind == "entry":
            entry = self._entries.get(ident)
            return int(entry.refunded) if entry else _MISSING
        return 0 if ident in self._settlements else _MISSING

    def _iter_entries(self, market_id: str | None, user_id: str | None) -> list[LedgerEntry]:
        return [
            e for e in self._entries.values()
            if (market_id is None or e.market_id == market_id)
            and (user_id is None or e.user_id == user_id)
        ]

    async def transact(self, fn: Callable[[InMemoryTransaction], Awaitable[T]]) -> T:
        for attempt in range(1, self._max_attempts + 1):
            tx = InMemoryTransaction(self, self._max_writes)
            result = await fn(tx)
            try:
                tx.commit()
            except WriteConflictError as exc:
                logger.warning(
                    "Transaction conflict (attempt %d/%d): %s",
                    attempt, self._max_attempts, exc,
                )
                await asyncio.sleep(self._retry_delay * attempt)
                continue
            return result
        raise StoreUnavailableError(self._max_attempts)

    # --- point-in-time reads ---

    async def get_market(self, market_id: str) -> Market | None:
        market = self._markets.get(market_id)
        return replace(market) if market else None

    async def get_markets(self, market_ids: Collection[str]) -> dict[str, Market]:
        return {
            mid: replace(self._markets[mid]) for mid in market_ids if mid in self._markets
        }

    async def list_markets(
        self, status: MarketStatus | None = None, scope_id: str | None = None
    ) -> list[Market]:
        return [
            replace(m) for m in self._markets.values()
            if (status is None or m.status == status) and m.scope_id == scope_id
        ]

    async def get_wallet(self, key: WalletKey) -> Wallet | None:
        wallet = self._wallets.get(key)
        return replace(wallet) if wallet else None

    async def list_wallets(self, scope_id: str | None = None) -> list[Wallet]:
        return [replace(w) for w in self._wallets.values() if w.scope_id == scope_id]

    async def list_ledger_entries(
        self, market_id: str | None = None, user_id: str | None = None
    ) -> list[LedgerEntry]:
        return self._iter_entries(market_id, user_id)
