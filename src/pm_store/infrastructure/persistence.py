"""SqlStore: PostgreSQL implementation of StoreProtocol.

All queries use raw text() SQL (no ORM).
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.

Optimistic concurrency: every UPDATE on markets / wallets carries
`WHERE version = :version`; rowcount 0 means a concurrent writer won and the
transaction is retried from scratch. Unique-key collisions (a second settlement
record for the same market/user, a wallet opened twice) are retried the same way
so the callback re-reads and sees the winner's row.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Collection
from typing import Any, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.pm_admin.domain.models import AdminLogEntry
from src.pm_clearing.domain.models import SettlementRecord
from src.pm_common.enums import MarketStatus, SettlementKind, Side
from src.pm_common.errors import (
    InvalidParameterError,
    StoreUnavailableError,
    WriteConflictError,
)
from src.pm_lmsr.domain.pricing import Pool
from src.pm_market.domain import lifecycle
from src.pm_market.domain.models import Market
from src.pm_notification.domain.models import Notification
from src.pm_trading.domain.models import LedgerEntry
from src.pm_wallet.domain.models import Wallet, WalletKey

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_MARKET_COLUMNS = """
    id, question, pool_yes, pool_no, b, probability, status, resolution,
    scope_id, total_volume, category, created_by, created_at, locked_at,
    resolved_at, cancelled_at, cancellation_reason, settlement_pending, version
"""

_GET_MARKET_SQL = text(f"SELECT {_MARKET_COLUMNS} FROM markets WHERE id = :id")

_GET_MARKETS_SQL = text(f"SELECT {_MARKET_COLUMNS} FROM markets WHERE id = ANY(:ids)")

_LIST_MARKETS_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM markets
    WHERE
        (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
        AND scope_id IS NOT DISTINCT FROM CAST(:scope_id AS TEXT)
    ORDER BY created_at DESC, id DESC
""")

_INSERT_MARKET_SQL = text("""
    INSERT INTO markets (
        id, question, pool_yes, pool_no, b, probability, status, resolution,
        scope_id, total_volume, category, created_by, created_at, locked_at,
        resolved_at, cancelled_at, cancellation_reason, settlement_pending, version
    ) VALUES (
        :id, :question, :pool_yes, :pool_no, :b, :probability, :status, :resolution,
        :scope_id, :total_volume, :category, :created_by, :created_at, :locked_at,
        :resolved_at, :cancelled_at, :cancellation_reason, :settlement_pending, 1
    )
""")

_UPDATE_MARKET_SQL = text("""
    UPDATE markets
    SET question = :question,
        pool_yes = :pool_yes,
        pool_no = :pool_no,
        probability = :probability,
        status = :status,
        resolution = :resolution,
        total_volume = :total_volume,
        category = :category,
        locked_at = :locked_at,
        resolved_at = :resolved_at,
        cancelled_at = :cancelled_at,
        cancellation_reason = :cancellation_reason,
        settlement_pending = :settlement_pending,
        version = version + 1
    WHERE id = :id AND version = :version
""")

_WALLET_COLUMNS = """
    user_id, scope_id, balance, lifetime_rep, stipend_last_injected_at,
    created_at, updated_at, version
"""

_GET_WALLET_SQL = text(f"""
    SELECT {_WALLET_COLUMNS}
    FROM wallets
    WHERE user_id = :user_id
      AND scope_id IS NOT DISTINCT FROM CAST(:scope_id AS TEXT)
""")

_LIST_WALLETS_SQL = text(f"""
    SELECT {_WALLET_COLUMNS}
    FROM wallets
    WHERE scope_id IS NOT DISTINCT FROM CAST(:scope_id AS TEXT)
    ORDER BY user_id
""")

_INSERT_WALLET_SQL = text("""
    INSERT INTO wallets (
        user_id, scope_id, balance, lifetime_rep, stipend_last_injected_at,
        created_at, updated_at, version
    ) VALUES (
        :user_id, :scope_id, :balance, :lifetime_rep, :stipend_last_injected_at,
        :created_at, :updated_at, 1
    )
""")

_UPDATE_WALLET_SQL = text("""
    UPDATE wallets
    SET balance = :balance,
        lifetime_rep = :lifetime_rep,
        stipend_last_injected_at = :stipend_last_injected_at,
        updated_at = :updated_at,
        version = version + 1
    WHERE user_id = :user_id
      AND scope_id IS NOT DISTINCT FROM CAST(:scope_id AS TEXT)
      AND version = :version
""")

_ENTRY_COLUMNS = """
    id, user_id, market_id, scope_id, side, entry_type, amount, shares,
    probability, created_at, refunded, refunded_at, refunded_by
"""

_GET_ENTRY_SQL = text(f"SELECT {_ENTRY_COLUMNS} FROM ledger_entries WHERE id = :id")

_LIST_ENTRIES_SQL = text(f"""
    SELECT {_ENTRY_COLUMNS}
    FROM ledger_entries
    WHERE
        (CAST(:market_id AS TEXT) IS NULL OR market_id = CAST(:market_id AS TEXT))
        AND (CAST(:user_id AS TEXT) IS NULL OR user_id = CAST(:user_id AS TEXT))
    ORDER BY created_at ASC, id ASC
""")

_INSERT_ENTRY_SQL = text("""
    INSERT INTO ledger_entries (
        id, user_id, market_id, scope_id, side, entry_type, amount, shares,
        probability, created_at, refunded, refunded_at, refunded_by
    ) VALUES (
        :id, :user_id, :market_id, :scope_id, :side, :entry_type, :amount, :shares,
        :probability, :created_at, :refunded, :refunded_at, :refunded_by
    )
""")

_MARK_REFUNDED_SQL = text("""
    UPDATE ledger_entries
    SET refunded = TRUE, refunded_at = :refunded_at, refunded_by = :refunded_by
    WHERE id = :id AND refunded = FALSE
""")

_GET_SETTLEMENT_SQL = text("""
    SELECT market_id, user_id, scope_id, kind, amount, created_at
    FROM settlements
    WHERE market_id = :market_id AND user_id = :user_id
""")

_INSERT_SETTLEMENT_SQL = text("""
    INSERT INTO settlements (market_id, user_id, scope_id, kind, amount, created_at)
    VALUES (:market_id, :user_id, :scope_id, :kind, :amount, :created_at)
""")

_INSERT_NOTIFICATION_SQL = text("""
    INSERT INTO notifications (
        id, user_id, type, category, amount, message, market_id,
        market_question, resolution, read, created_at
    ) VALUES (
        :id, :user_id, :type, :category, :amount, :message, :market_id,
        :market_question, :resolution, :read, :created_at
    )
""")

_INSERT_ADMIN_LOG_SQL = text("""
    INSERT INTO admin_log (id, action, detail, actor, created_at)
    VALUES (:id, :action, :detail, :actor, :created_at)
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_market(row: Any) -> Market:
    return Market(
        id=row.id,
        question=row.question,
        pool=Pool(yes=row.pool_yes, no=row.pool_no),
        b=row.b,
        probability=row.probability,
        status=lifecycle.effective_status(row.status, row.resolution),
        resolution=Side(row.resolution) if row.resolution else None,
        scope_id=row.scope_id,
        total_volume=row.total_volume,
        category=row.category,
        created_by=row.created_by,
        created_at=row.created_at,
        locked_at=row.locked_at,
        resolved_at=row.resolved_at,
        cancelled_at=row.cancelled_at,
        cancellation_reason=row.cancellation_reason,
        settlement_pending=row.settlement_pending,
        version=row.version,
    )


def _market_params(market: Market) -> dict[str, Any]:
    lifecycle.check_invariants(market)
    return {
        "id": market.id,
        "question": market.question,
        "pool_yes": market.pool.yes,
        "pool_no": market.pool.no,
        "b": market.b,
        "probability": market.probability,
        "status": market.status.value,
        "resolution": market.resolution.value if market.resolution else None,
        "scope_id": market.scope_id,
        "total_volume": market.total_volume,
        "category": market.category,
        "created_by": market.created_by,
        "created_at": market.created_at,
        "locked_at": market.locked_at,
        "resolved_at": market.resolved_at,
        "cancelled_at": market.cancelled_at,
        "cancellation_reason": market.cancellation_reason,
        "settlement_pending": market.settlement_pending,
        "version": market.version,
    }


def _row_to_wallet(row: Any) -> Wallet:
    return Wallet(
        user_id=row.user_id,
        scope_id=row.scope_id,
        balance=row.balance,
        lifetime_rep=row.lifetime_rep,
        stipend_last_injected_at=row.stipend_last_injected_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
    )


def _wallet_params(wallet: Wallet) -> dict[str, Any]:
    return {
        "user_id": wallet.user_id,
        "scope_id": wallet.scope_id,
        "balance": wallet.balance,
        "lifetime_rep": wallet.lifetime_rep,
        "stipend_last_injected_at": wallet.stipend_last_injected_at,
        "created_at": wallet.created_at,
        "updated_at": wallet.updated_at,
        "version": wallet.version,
    }


def _row_to_entry(row: Any) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,
        user_id=row.user_id,
        market_id=row.market_id,
        scope_id=row.scope_id,
        side=row.side,
        entry_type=row.entry_type,
        amount=row.amount,
        shares=row.shares,
        probability=row.probability,
        created_at=row.created_at,
        refunded=row.refunded,
        refunded_at=row.refunded_at,
        refunded_by=row.refunded_by,
    )


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------


class SqlTransaction:
    """One attempt of a store transaction, bound to a single session."""

    def __init__(self, session: AsyncSession, max_writes: int) -> None:
        self._session = session
        self._max_writes = max_writes
        self._writes = 0

    def _count_write(self) -> None:
        self._writes += 1
        if self._writes > self._max_writes:
            raise InvalidParameterError(
                f"transaction exceeds {self._max_writes} writes"
            )

    async def get_market(self, market_id: str) -> Market | None:
        result = await self._session.execute(_GET_MARKET_SQL, {"id": market_id})
        row = result.fetchone()
        return _row_to_market(row) if row else None

    async def get_wallet(self, key: WalletKey) -> Wallet | None:
        result = await self._session.execute(
            _GET_WALLET_SQL, {"user_id": key.user_id, "scope_id": key.scope_id}
        )
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def get_ledger_entry(self, entry_id: str) -> LedgerEntry | None:
        result = await self._session.execute(_GET_ENTRY_SQL, {"id": entry_id})
        row = result.fetchone()
        return _row_to_entry(row) if row else None

    async def list_ledger_entries(
        self, market_id: str, user_id: str | None = None
    ) -> list[LedgerEntry]:
        result = await self._session.execute(
            _LIST_ENTRIES_SQL, {"market_id": market_id, "user_id": user_id}
        )
        return [_row_to_entry(r) for r in result.fetchall()]

    async def get_settlement(self, market_id: str, user_id: str) -> SettlementRecord | None:
        result = await self._session.execute(
            _GET_SETTLEMENT_SQL, {"market_id": market_id, "user_id": user_id}
        )
        row = result.fetchone()
        if row is None:
            return None
        return SettlementRecord(
            market_id=row.market_id,
            user_id=row.user_id,
            scope_id=row.scope_id,
            kind=SettlementKind(row.kind),
            amount=row.amount,
            created_at=row.created_at,
        )

    async def add_market(self, market: Market) -> None:
        self._count_write()
        await self._session.execute(_INSERT_MARKET_SQL, _market_params(market))

    async def put_market(self, market: Market) -> None:
        self._count_write()
        result = await self._session.execute(_UPDATE_MARKET_SQL, _market_params(market))
        if result.rowcount == 0:
            raise WriteConflictError(f"market {market.id} version {market.version} is stale")

    async def add_wallet(self, wallet: Wallet) -> None:
        self._count_write()
        await self._session.execute(_INSERT_WALLET_SQL, _wallet_params(wallet))

    async def put_wallet(self, wallet: Wallet) -> None:
        self._count_write()
        result = await self._session.execute(_UPDATE_WALLET_SQL, _wallet_params(wallet))
        if result.rowcount == 0:
            raise WriteConflictError(
                f"wallet {wallet.user_id}/{wallet.scope_id} version {wallet.version} is stale"
            )

    async def add_ledger_entry(self, entry: LedgerEntry) -> None:
        self._count_write()
        await self._session.execute(
            _INSERT_ENTRY_SQL,
            {
                "id": entry.id,
                "user_id": entry.user_id,
                "market_id": entry.market_id,
                "scope_id": entry.scope_id,
                "side": entry.side.value,
                "entry_type": entry.entry_type.value,
                "amount": entry.amount,
                "shares": entry.shares,
                "probability": entry.probability,
                "created_at": entry.created_at,
                "refunded": entry.refunded,
                "refunded_at": entry.refunded_at,
                "refunded_by": entry.refunded_by,
            },
        )

    async def mark_entry_refunded(self, entry: LedgerEntry) -> None:
        self._count_write()
        result = await self._session.execute(
            _MARK_REFUNDED_SQL,
            {"id": entry.id, "refunded_at": entry.refunded_at, "refunded_by": entry.refunded_by},
        )
        if result.rowcount == 0:
            raise WriteConflictError(f"ledger entry {entry.id} already refunded")

    async def add_settlement(self, record: SettlementRecord) -> None:
        self._count_write()
        await self._session.execute(
            _INSERT_SETTLEMENT_SQL,
            {
                "market_id": record.market_id,
                "user_id": record.user_id,
                "scope_id": record.scope_id,
                "kind": record.kind.value,
                "amount": record.amount,
                "created_at": record.created_at,
            },
        )

    async def add_notification(self, notification: Notification) -> None:
        self._count_write()
        await self._session.execute(
            _INSERT_NOTIFICATION_SQL,
            {
                "id": notification.id,
                "user_id": notification.user_id,
                "type": notification.type.value,
                "category": notification.category.value,
                "amount": notification.amount,
                "message": notification.message,
                "market_id": notification.market_id,
                "market_question": notification.market_question,
                "resolution": notification.resolution,
                "read": notification.read,
                "created_at": notification.created_at,
            },
        )

    async def add_admin_log(self, entry: AdminLogEntry) -> None:
        self._count_write()
        await self._session.execute(
            _INSERT_ADMIN_LOG_SQL,
            {
                "id": entry.id,
                "action": entry.action.value,
                "detail": entry.detail,
                "actor": entry.actor,
                "created_at": entry.created_at,
            },
        )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SqlStore:
    """Opens one session per transaction attempt; reads outside transact are autocommit-style."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_attempts: int = 5,
        max_writes_per_transaction: int = 500,
        retry_delay: float = 0.02,
    ) -> None:
        self._session_factory = session_factory
        self._max_attempts = max_attempts
        self._max_writes = max_writes_per_transaction
        self._retry_delay = retry_delay

    async def transact(self, fn: Callable[[SqlTransaction], Awaitable[T]]) -> T:
        for attempt in range(1, self._max_attempts + 1):
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        return await fn(SqlTransaction(session, self._max_writes))
            except (WriteConflictError, IntegrityError, OperationalError) as exc:
                logger.warning(
                    "Transaction conflict (attempt %d/%d): %s",
                    attempt, self._max_attempts, exc,
                )
                await asyncio.sleep(self._retry_delay * attempt)
        raise StoreUnavailableError(self._max_attempts)

    async def get_market(self, market_id: str) -> Market | None:
        async with self._session_factory() as session:
            result = await session.execute(_GET_MARKET_SQL, {"id": market_id})
            row = result.fetchone()
        return _row_to_market(row) if row else None

    async def get_markets(self, market_ids: Collection[str]) -> dict[str, Market]:
        if not market_ids:
            return {}
        async with self._session_factory() as session:
            result = await session.execute(_GET_MARKETS_SQL, {"ids": list(market_ids)})
            rows = result.fetchall()
        return {row.id: _row_to_market(row) for row in rows}

    async def list_markets(
        self, status: MarketStatus | None = None, scope_id: str | None = None
    ) -> list[Market]:
        async with self._session_factory() as session:
            result = await session.execute(
                _LIST_MARKETS_SQL,
                {"status": status.value if status else None, "scope_id": scope_id},
            )
            rows = result.fetchall()
        return [_row_to_market(r) for r in rows]

    async def get_wallet(self, key: WalletKey) -> Wallet | None:
        async with self._session_factory() as session:
            return await SqlTransaction(session, self._max_writes).get_wallet(key)

    async def list_wallets(self, scope_id: str | None = None) -> list[Wallet]:
        async with self._session_factory() as session:
            result = await session.execute(_LIST_WALLETS_SQL, {"scope_id": scope_id})
            rows = result.fetchall()
        return [_row_to_wallet(r) for r in rows]

    async def list_ledger_entries(
        self, market_id: str | None = None, user_id: str | None = None
    ) -> list[LedgerEntry]:
        async with self._session_factory() as session:
            result = await session.execute(
                _LIST_ENTRIES_SQL, {"market_id": market_id, "user_id": user_id}
            )
            rows = result.fetchall()
        return [_row_to_entry(r) for r in rows]
