"""WalletService: opening wallets, balances and the weekly stipend."""

import logging
from dataclasses import dataclass

from config.settings import settings
from src.pm_admin.domain.models import AdminLogEntry
from src.pm_common.batching import chunked
from src.pm_common.datetime_utils import older_than, utc_now
from src.pm_common.enums import AdminAction, NotificationType
from src.pm_common.errors import WalletNotFoundError
from src.pm_common.money import money_display, round2
from src.pm_gateway.auth.identity import CallerIdentity
from src.pm_notification.domain.models import Notification
from src.pm_store.dependencies import get_store
from src.pm_store.domain.repository import StoreProtocol, TransactionProtocol
from src.pm_wallet.domain.models import Wallet, WalletKey
from src.pm_wallet.domain.resolver import normalize_scope_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StipendReport:
    dry_run: bool
    stipend_amount: float
    eligible_count: int
    injected_count: int
    skipped_count: int
    total_stipend: float


class WalletService:
    def __init__(self, store: StoreProtocol | None = None) -> None:
        self._store_override = store

    @property
    def _store(self) -> StoreProtocol:
        return self._store_override or get_store()

    async def open_wallet(self, caller: CallerIdentity, scope_id: str | None = None) -> Wallet:
        """Create the caller's wallet for a scope, or return the one that exists."""
        caller.require_eligible()
        key = WalletKey(caller.user_id, normalize_scope_id(scope_id))
        starting = (
            settings.SCOPED_STARTING_BALANCE if key.scope_id else settings.GLOBAL_STARTING_BALANCE
        )

        async def _open(tx: TransactionProtocol) -> Wallet:
            existing = await tx.get_wallet(key)
            if existing is not None:
                return existing
            now = utc_now()
            wallet = Wallet(
                user_id=key.user_id,
                scope_id=key.scope_id,
                balance=round2(starting),
                created_at=now,
                updated_at=now,
            )
            await tx.add_wallet(wallet)
            logger.info("Wallet opened: user=%s scope=%s balance=%.2f", key.user_id, key.scope_id, starting)
            return wallet

        return await self._store.transact(_open)

    async def get_balance(self, caller: CallerIdentity, scope_id: str | None = None) -> Wallet:
        caller.require_eligible()
        key = WalletKey(caller.user_id, normalize_scope_id(scope_id))
        wallet = await self._store.get_wallet(key)
        if wallet is None:
            raise WalletNotFoundError(key.scope_id)
        wallet.available()
        return wallet

    async def run_stipend(
        self,
        actor: str,
        dry_run: bool = False,
        batch_size: int | None = None,
    ) -> StipendReport:
        """Credit the weekly stipend to every global wallet that is due one.

        Each chunk re-reads its wallets inside the transaction, so a wallet paid
        by an overlapping run is skipped rather than paid twice.
        """
        amount = settings.STIPEND_AMOUNT
        interval = settings.STIPEND_INTERVAL_DAYS
        now = utc_now()
        wallets = await self._store.list_wallets(scope_id=None)
        due = [w.key for w in wallets if older_than(w.stipend_last_injected_at, interval, now)]
        skipped = len(wallets) - len(due)

        if dry_run:
            return StipendReport(
                dry_run=True,
                stipend_amount=amount,
                eligible_count=len(wallets),
                injected_count=len(due),
                skipped_count=skipped,
                total_stipend=round2(len(due) * amount),
            )

        injected = 0
        for chunk in chunked(due, batch_size or settings.SETTLEMENT_BATCH_SIZE):

            async def _inject(tx: TransactionProtocol, keys=chunk) -> int:
                paid = 0
                stamp = utc_now()
                for key in keys:
                    wallet = await tx.get_wallet(key)
                    if wallet is None or not older_than(wallet.stipend_last_injected_at, interval, stamp):
                        continue
                    credited = wallet.credited(amount, stamp)
                    credited.stipend_last_injected_at = stamp
                    await tx.put_wallet(credited)
                    await tx.add_notification(
                        Notification.new(
                            user_id=key.user_id,
                            kind=NotificationType.STIPEND,
                            amount=amount,
                            now=stamp,
                            message=f"+{money_display(amount)} weekly stipend added to your balance.",
                        )
                    )
                    paid += 1
                return paid

            paid = await self._store.transact(_inject)
            injected += paid
            skipped += len(chunk) - paid
            logger.info("Stipend chunk committed: %d/%d wallets credited", paid, len(chunk))

        if injected:
            detail = f"Weekly stipend of {money_display(amount)} injected to {injected} users."

            async def _log(tx: TransactionProtocol) -> None:
                await tx.add_admin_log(AdminLogEntry.new(AdminAction.STIPEND_INJECT, detail, actor, utc_now()))

            await self._store.transact(_log)

        logger.info("Stipend run finished: injected=%d skipped=%d actor=%s", injected, skipped, actor)
        return StipendReport(
            dry_run=False,
            stipend_amount=amount,
            eligible_count=len(wallets),
            injected_count=injected,
            skipped_count=skipped,
            total_stipend=round2(injected * amount),
        )
