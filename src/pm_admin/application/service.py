"""Admin application service: the privileged surface in one place.

Every operation re-checks the admin role in the owning service; this layer
only composes them and shapes the results for the API.
"""
from typing import Any

from src.pm_clearing.application.service import SettlementReport, SettlementService
from src.pm_common.enums import Side
from src.pm_gateway.auth.identity import CallerIdentity
from src.pm_market.application.schemas import MarketDetail
from src.pm_market.application.service import MarketApplicationService
from src.pm_store.domain.repository import StoreProtocol
from src.pm_wallet.application.service import WalletService


def _report(report: SettlementReport) -> dict[str, Any]:
    return {
        "market_id": report.market_id,
        "status": report.status.value,
        "resolution": report.resolution.value if report.resolution else None,
        "resumed": report.resumed,
        "users_settled": report.users_settled,
        "users_skipped": report.users_skipped,
        "total_amount": report.total_amount,
    }


class AdminService:
    def __init__(self, store: StoreProtocol | None = None) -> None:
        self._markets = MarketApplicationService(store)
        self._settlement = SettlementService(store)
        self._wallets = WalletService(store)

    async def create_market(
        self,
        caller: CallerIdentity,
        question: str,
        b: float | None = None,
        scope_id: str | None = None,
        initial_probability: float | None = None,
        category: str | None = None,
    ) -> dict[str, Any]:
        market = await self._markets.create_market(
            caller, question, b, scope_id, initial_probability, category
        )
        return MarketDetail.from_domain(market).model_dump()

    async def lock_market(self, caller: CallerIdentity, market_id: str) -> dict[str, Any]:
        market = await self._markets.lock_market(caller, market_id)
        return MarketDetail.from_domain(market).model_dump()

    async def unlock_market(self, caller: CallerIdentity, market_id: str) -> dict[str, Any]:
        market = await self._markets.unlock_market(caller, market_id)
        return MarketDetail.from_domain(market).model_dump()

    async def resolve_market(
        self, caller: CallerIdentity, market_id: str, resolution: Side
    ) -> dict[str, Any]:
        return _report(await self._settlement.resolve_market(caller, market_id, resolution))

    async def cancel_market(
        self, caller: CallerIdentity, market_id: str, reason: str | None
    ) -> dict[str, Any]:
        return _report(await self._settlement.cancel_market(caller, market_id, reason))

    async def refund_entry(self, caller: CallerIdentity, entry_id: str) -> dict[str, Any]:
        entry = await self._settlement.refund_entry(caller, entry_id)
        return {
            "entry_id": entry.id,
            "user_id": entry.user_id,
            "market_id": entry.market_id,
            "amount": entry.amount,
            "refunded_at": entry.refunded_at.isoformat() if entry.refunded_at else None,
            "refunded_by": entry.refunded_by,
        }

    async def run_stipend(self, caller: CallerIdentity, dry_run: bool) -> dict[str, Any]:
        caller.require_admin()
        report = await self._wallets.run_stipend(actor=caller.user_id, dry_run=dry_run)
        return {
            "dry_run": report.dry_run,
            "stipend_amount": report.stipend_amount,
            "eligible_count": report.eligible_count,
            "injected_count": report.injected_count,
            "skipped_count": report.skipped_count,
            "total_stipend": report.total_stipend,
        }
