"""SettlementService: resolve, cancel and single-entry refunds.

Bulk settlement runs in three phases so no transaction exceeds the store's
write limit:

  1. begin   - one transaction fixes the terminal status and sets
               settlement_pending; from here on no trade can touch the market.
  2. chunks  - users are paid in SETTLEMENT_BATCH_SIZE chunks. Each user gets a
               SettlementRecord in the same transaction as the wallet credit;
               a user that already has one is skipped.
  3. finish  - one transaction clears settlement_pending.

A crash between phases leaves settlement_pending set. Calling resolve (with the
same resolution) or cancel again resumes at phase 2 without paying anyone twice.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from config.settings import settings
from src.pm_admin.domain.models import AdminLogEntry
from src.pm_clearing.domain.models import SettlementRecord, UserResolution
from src.pm_clearing.domain.settlement import compute_refunds, compute_resolution_payouts
from src.pm_common.batching import chunked
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import (
    AdminAction,
    MarketStatus,
    NotificationType,
    SettlementKind,
    Side,
)
from src.pm_common.errors import (
    EntryNotRefundableError,
    LedgerEntryNotFoundError,
    MarketAlreadyTerminalError,
    MarketNotFoundError,
    WalletNotFoundError,
)
from src.pm_common.money import money_display, round2
from src.pm_gateway.auth.identity import CallerIdentity
from src.pm_lmsr.domain.pricing import parse_side
from src.pm_market.domain import lifecycle
from src.pm_market.domain.models import Market
from src.pm_notification.domain.models import Notification
from src.pm_store.dependencies import get_store
from src.pm_store.domain.repository import StoreProtocol, TransactionProtocol
from src.pm_trading.domain.models import LedgerEntry
from src.pm_wallet.domain.models import WalletKey
from src.pm_wallet.domain.resolver import normalize_scope_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementReport:
    market_id: str
    status: MarketStatus
    resolution: Side | None
    resumed: bool
    users_settled: int
    users_skipped: int
    total_amount: float


class SettlementService:
    def __init__(self, store: StoreProtocol | None = None, batch_size: int | None = None) -> None:
        self._store_override = store
        self._batch_size = batch_size or settings.SETTLEMENT_BATCH_SIZE

    @property
    def _store(self) -> StoreProtocol:
        return self._store_override or get_store()

    # ------------------------------------------------------------------
    # phase 1 / phase 3
    # ------------------------------------------------------------------

    async def _begin(
        self,
        caller: CallerIdentity,
        market_id: str,
        status: MarketStatus,
        resolution: Side | None,
        reason: str | None = None,
    ) -> tuple[Market, bool]:
        async def _apply(tx: TransactionProtocol) -> tuple[Market, bool]:
            market = await tx.get_market(market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            if market.is_terminal:
                if lifecycle.is_resumable(market, status, resolution):
                    return market, True
                raise MarketAlreadyTerminalError(market_id, market.status.value)

            now = utc_now()
            if resolution is not None:
                updated = lifecycle.resolve(market, resolution, now)
                detail = f"Resolved market as {resolution.value}: {market.question}"
                action = AdminAction.RESOLVE
            else:
                updated = lifecycle.cancel(market, reason, now)
                detail = f"Cancelled market: {market.question}"
                if updated.cancellation_reason:
                    detail += f". Reason: {updated.cancellation_reason}"
                action = AdminAction.CANCEL
            await tx.put_market(updated)
            await tx.add_admin_log(AdminLogEntry.new(action, detail, caller.user_id, now))
            return updated, False

        market, resumed = await self._store.transact(_apply)
        logger.info(
            "Settlement %s: market=%s status=%s resolution=%s",
            "resumed" if resumed else "started",
            market_id, market.status.value, resolution.value if resolution else None,
        )
        return market, resumed

    async def _finish(self, market_id: str) -> None:
        async def _apply(tx: TransactionProtocol) -> None:
            market = await tx.get_market(market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            if market.settlement_pending:
                market.settlement_pending = False
                await tx.put_market(market)

        await self._store.transact(_apply)

    # ------------------------------------------------------------------
    # phase 2
    # ------------------------------------------------------------------

    async def _settle_chunks(
        self,
        market: Market,
        amounts: dict[str, tuple[float, float]],
        kind: SettlementKind,
    ) -> tuple[int, int, float]:
        """Credit each user once. amounts: user_id -> (credit, lifetime_rep delta)."""
        scope_id = normalize_scope_id(market.scope_id)
        settled = skipped = 0
        total = 0.0

        for chunk in chunked(list(amounts.items()), self._batch_size):

            async def _pay(tx: TransactionProtocol, rows=chunk) -> tuple[int, int, float]:
                paid = passed = 0
                paid_total = 0.0
                now = utc_now()
                for user_id, (credit, rep_delta) in rows:
                    if await tx.get_settlement(market.id, user_id) is not None:
                        passed += 1
                        continue
                    wallet = await tx.get_wallet(WalletKey(user_id, scope_id))
                    if wallet is None:
                        raise WalletNotFoundError(scope_id)
                    updated = wallet.credited(credit, now) if credit > 0 else wallet
                    updated.lifetime_rep = round2(wallet.lifetime_rep + rep_delta)
                    updated.updated_at = now
                    await tx.put_wallet(updated)
                    await tx.add_settlement(
                        SettlementRecord(
                            market_id=market.id,
                            user_id=user_id,
                            scope_id=scope_id,
                            kind=kind,
                            amount=credit,
                            created_at=now,
                        )
                    )
                    await tx.add_notification(self._notification(market, kind, user_id, credit, -rep_delta, now))
                    paid += 1
                    paid_total += credit
                return paid, passed, paid_total

            paid, passed, paid_total = await self._store.transact(_pay)
            settled += paid
            skipped += passed
            total = round2(total + paid_total)
            logger.info(
                "Settlement chunk committed: market=%s kind=%s paid=%d skipped=%d",
                market.id, kind.value, paid, passed,
            )
        return settled, skipped, total

    @staticmethod
    def _notification(
        market: Market,
        kind: SettlementKind,
        user_id: str,
        credit: float,
        loss: float,
        now: datetime,
    ) -> Notification:
        resolution = market.resolution.value if market.resolution else None
        if kind == SettlementKind.REFUND:
            notice_type = NotificationType.REFUND
            amount = credit
            message = f"Market cancelled. {money_display(credit)} refunded to your balance."
        elif credit > 0:
            notice_type = NotificationType.PAYOUT
            amount = credit
            message = f"Market resolved {resolution}. You won {money_display(credit)}."
        else:
            notice_type = NotificationType.LOSS
            amount = round2(max(0.0, loss))
            message = f"Market resolved {resolution}. You lost {money_display(amount)}."
        return Notification.new(
            user_id=user_id,
            kind=notice_type,
            amount=amount,
            now=now,
            message=message,
            market_id=market.id,
            market_question=market.question,
            resolution=resolution,
        )

    # ------------------------------------------------------------------
    # public operations
    # ------------------------------------------------------------------

    async def resolve_market(
        self, caller: CallerIdentity, market_id: str, resolution: Side | str
    ) -> SettlementReport:
        caller.require_admin()
        resolution = parse_side(resolution)
        market, resumed = await self._begin(caller, market_id, MarketStatus.RESOLVED, resolution)

        entries = await self._store.list_ledger_entries(market_id=market_id)
        outcomes: dict[str, UserResolution] = compute_resolution_payouts(entries, resolution)
        amounts = {
            user_id: (o.payout, round2(o.payout - o.lost_investment))
            for user_id, o in outcomes.items()
        }
        settled, skipped, total = await self._settle_chunks(market, amounts, SettlementKind.PAYOUT)
        await self._finish(market_id)

        logger.info(
            "Market resolved: %s as %s, %d users paid %.2f", market_id, resolution.value, settled, total
        )
        return SettlementReport(
            market_id=market_id,
            status=MarketStatus.RESOLVED,
            resolution=resolution,
            resumed=resumed,
            users_settled=settled,
            users_skipped=skipped,
            total_amount=total,
        )

    async def cancel_market(
        self, caller: CallerIdentity, market_id: str, reason: str | None = None
    ) -> SettlementReport:
        caller.require_admin()
        market, resumed = await self._begin(caller, market_id, MarketStatus.CANCELLED, None, reason)

        entries = await self._store.list_ledger_entries(market_id=market_id)
        amounts = {user_id: (refund, 0.0) for user_id, refund in compute_refunds(entries).items()}
        settled, skipped, total = await self._settle_chunks(market, amounts, SettlementKind.REFUND)
        await self._finish(market_id)

        logger.info("Market cancelled: %s, %d users refunded %.2f", market_id, settled, total)
        return SettlementReport(
            market_id=market_id,
            status=MarketStatus.CANCELLED,
            resolution=None,
            resumed=resumed,
            users_settled=settled,
            users_skipped=skipped,
            total_amount=total,
        )

    async def refund_entry(self, caller: CallerIdentity, entry_id: str) -> LedgerEntry:
        """Refund one BUY entry to its wallet and mark it so no fold counts it again."""
        caller.require_admin()

        async def _apply(tx: TransactionProtocol) -> LedgerEntry:
            entry = await tx.get_ledger_entry(entry_id)
            if entry is None:
                raise LedgerEntryNotFoundError(entry_id)
            if not entry.is_buy:
                raise EntryNotRefundableError("only BUY entries can be refunded")
            if entry.refunded:
                raise EntryNotRefundableError("entry was already refunded")
            market = await tx.get_market(entry.market_id)
            if market is None:
                raise MarketNotFoundError(entry.market_id)
            if market.is_terminal:
                raise EntryNotRefundableError(f"market is {market.status.value}")
            key = WalletKey(entry.user_id, normalize_scope_id(entry.scope_id))
            wallet = await tx.get_wallet(key)
            if wallet is None:
                raise WalletNotFoundError(key.scope_id)

            now = utc_now()
            refunded = entry.as_refunded(caller.user_id, now)
            await tx.mark_entry_refunded(refunded)
            await tx.put_wallet(wallet.credited(entry.amount, now))
            # version bump: a concurrent sell re-validates against the refunded ledger
            await tx.put_market(market)
            await tx.add_notification(
                Notification.new(
                    user_id=entry.user_id,
                    kind=NotificationType.REFUND,
                    amount=entry.amount,
                    now=now,
                    message=f"{money_display(entry.amount)} refunded for a bet on: {market.question}",
                    market_id=market.id,
                    market_question=market.question,
                )
            )
            await tx.add_admin_log(
                AdminLogEntry.new(
                    AdminAction.REFUND,
                    f"Refunded {money_display(entry.amount)} to {entry.user_id} for entry {entry.id}",
                    caller.user_id,
                    now,
                )
            )
            return refunded

        refunded = await self._store.transact(_apply)
        logger.info("Ledger entry refunded: %s amount=%.2f by %s", entry_id, refunded.amount, caller.user_id)
        return refunded
