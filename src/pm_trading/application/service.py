"""TradingService: placeBet / sellShares.

Each trade runs in three stages:
  Validated   - optimistic pre-check on a point-in-time snapshot, outside any
                transaction; rejects obviously bad requests without contention.
  Recomputed  - inside store.transact: re-read market, wallet and (for sells) the
                caller's ledger for the market, re-validate everything, re-price.
  Committed   - ledger entry + market pool/probability/volume + wallet balance,
                written together by the same transaction.

AppErrors raised at any stage abort without writing. Version conflicts are
retried by the store, so a retried callback re-runs Recomputed from scratch.
"""

import logging

from config.settings import settings
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import Side
from src.pm_common.errors import (
    InsufficientSharesError,
    InvalidPayoutError,
    LiquidityExceededError,
    MarketNotFoundError,
    WalletNotFoundError,
)
from src.pm_common.money import require_money, require_positive, round2
from src.pm_gateway.auth.identity import CallerIdentity
from src.pm_lmsr.domain.pricing import parse_side
from src.pm_lmsr.domain.sizing import SellQuote, calculate_buy, calculate_sell
from src.pm_market.domain.lifecycle import assert_tradeable
from src.pm_market.domain.models import Market
from src.pm_portfolio.domain.aggregator import held_shares
from src.pm_store.dependencies import get_store
from src.pm_store.domain.repository import StoreProtocol, TransactionProtocol
from src.pm_trading.domain.models import BetResult, LedgerEntry, SellResult
from src.pm_wallet.domain.models import Wallet
from src.pm_wallet.domain.resolver import (
    assert_matching_scope,
    normalize_scope_id,
    resolve_wallet_key,
)

logger = logging.getLogger(__name__)

# A sell request this close above the held amount is treated as "sell everything"
HELD_SHARES_EPSILON = 1e-6


def side_liquidity(market: Market, side: Side) -> float:
    return max(0.0, market.pool.side(side))


def validate_sell_quote(quote: SellQuote, max_payout: float) -> None:
    if quote.payout > max_payout:
        raise InvalidPayoutError(f"{quote.payout} exceeds {max_payout}")
    if quote.payout <= 0:
        raise InvalidPayoutError("payout and shares must be positive")


def _check_sell_size(shares: float, available: float, side: Side) -> float:
    """Clamp float noise down to what is held; reject anything beyond it."""
    if shares > available + HELD_SHARES_EPSILON:
        raise InsufficientSharesError(side.value, available)
    return min(shares, available)


class TradingService:
    def __init__(
        self,
        store: StoreProtocol | None = None,
        sell_bound_multiplier: float | None = None,
        max_sell_payout: float | None = None,
    ) -> None:
        self._store_override = store
        self._bound = sell_bound_multiplier or settings.SELL_BOUND_MULTIPLIER
        self._max_payout = max_sell_payout or settings.MAX_SELL_PAYOUT

    @property
    def _store(self) -> StoreProtocol:
        return self._store_override or get_store()

    # ------------------------------------------------------------------
    # shared checks
    # ------------------------------------------------------------------

    @staticmethod
    def _check_market(
        market: Market | None, market_id: str, requested_scope_id: str | None
    ) -> Market:
        if market is None:
            raise MarketNotFoundError(market_id)
        assert_matching_scope(requested_scope_id, market)
        assert_tradeable(market)
        return market

    @staticmethod
    def _check_wallet(wallet: Wallet | None, market: Market) -> Wallet:
        if wallet is None:
            raise WalletNotFoundError(normalize_scope_id(market.scope_id))
        wallet.available()
        return wallet

    # ------------------------------------------------------------------
    # placeBet
    # ------------------------------------------------------------------

    async def place_bet(
        self,
        caller: CallerIdentity,
        market_id: str,
        side: Side | str,
        amount: float,
        scope_id: str | None = None,
    ) -> BetResult:
        caller.require_eligible()
        side = parse_side(side)
        amount = require_money(amount, "amount")
        requested_scope = normalize_scope_id(scope_id)

        # Validated
        market = self._check_market(await self._store.get_market(market_id), market_id, requested_scope)
        key = resolve_wallet_key(caller.user_id, market)
        wallet = self._check_wallet(await self._store.get_wallet(key), market)
        wallet.debited(amount, utc_now())
        calculate_buy(market.pool, amount, side, market.b)
        logger.debug("bet %s %s %.2f on %s: validated", caller.user_id, side.value, amount, market_id)

        async def _commit(tx: TransactionProtocol) -> BetResult:
            # Recomputed
            latest = self._check_market(await tx.get_market(market_id), market_id, requested_scope)
            latest_key = resolve_wallet_key(caller.user_id, latest)
            latest_wallet = self._check_wallet(await tx.get_wallet(latest_key), latest)
            now = utc_now()
            debited = latest_wallet.debited(amount, now)
            quote = calculate_buy(latest.pool, amount, side, latest.b)

            # Committed
            entry = LedgerEntry.buy(
                user_id=caller.user_id,
                market_id=market_id,
                scope_id=latest_key.scope_id,
                side=side,
                amount=amount,
                shares=quote.shares,
                probability=quote.new_probability,
                now=now,
            )
            latest.pool = quote.new_pool
            latest.probability = quote.new_probability
            latest.total_volume = round2(latest.total_volume + amount)
            await tx.add_ledger_entry(entry)
            await tx.put_market(latest)
            await tx.put_wallet(debited)
            return BetResult(
                shares=quote.shares,
                new_probability=quote.new_probability,
                new_pool=quote.new_pool,
                entry_id=entry.id,
                balance=debited.balance,
            )

        result = await self._store.transact(_commit)
        logger.info(
            "Bet committed: user=%s market=%s side=%s amount=%.2f shares=%.6f p=%.4f",
            caller.user_id, market_id, side.value, amount, result.shares, result.new_probability,
        )
        return result

    # ------------------------------------------------------------------
    # sellShares
    # ------------------------------------------------------------------

    async def sell_shares(
        self,
        caller: CallerIdentity,
        market_id: str,
        side: Side | str,
        shares: float,
        scope_id: str | None = None,
    ) -> SellResult:
        caller.require_eligible()
        side = parse_side(side)
        shares = require_positive(shares, "shares")
        requested_scope = normalize_scope_id(scope_id)

        # Validated
        market = self._check_market(await self._store.get_market(market_id), market_id, requested_scope)
        key = resolve_wallet_key(caller.user_id, market)
        self._check_wallet(await self._store.get_wallet(key), market)
        entries = await self._store.list_ledger_entries(market_id=market_id, user_id=caller.user_id)
        to_sell = _check_sell_size(shares, held_shares(entries).side(side), side)
        if to_sell > side_liquidity(market, side):
            raise LiquidityExceededError()
        calculate_sell(market.pool, to_sell, side, market.b, self._bound)
        logger.debug("sell %s %s %.6f on %s: validated", caller.user_id, side.value, to_sell, market_id)

        async def _commit(tx: TransactionProtocol) -> SellResult:
            # Recomputed
            latest = self._check_market(await tx.get_market(market_id), market_id, requested_scope)
            latest_key = resolve_wallet_key(caller.user_id, latest)
            latest_wallet = self._check_wallet(await tx.get_wallet(latest_key), latest)
            latest_entries = await tx.list_ledger_entries(market_id, caller.user_id)
            selling = _check_sell_size(shares, held_shares(latest_entries).side(side), side)
            if selling > side_liquidity(latest, side):
                raise LiquidityExceededError()
            quote = calculate_sell(latest.pool, selling, side, latest.b, self._bound)
            validate_sell_quote(quote, self._max_payout)

            # Committed
            now = utc_now()
            entry = LedgerEntry.sell(
                user_id=caller.user_id,
                market_id=market_id,
                scope_id=latest_key.scope_id,
                side=side,
                payout=quote.payout,
                shares=selling,
                probability=quote.new_probability,
                now=now,
            )
            credited = latest_wallet.credited(quote.payout, now)
            latest.pool = quote.new_pool
            latest.probability = quote.new_probability
            latest.total_volume = round2(latest.total_volume + quote.payout)
            await tx.add_ledger_entry(entry)
            await tx.put_market(latest)
            await tx.put_wallet(credited)
            return SellResult(
                payout=quote.payout,
                new_probability=quote.new_probability,
                new_pool=quote.new_pool,
                entry_id=entry.id,
                balance=credited.balance,
            )

        result = await self._store.transact(_commit)
        logger.info(
            "Sell committed: user=%s market=%s side=%s shares=%.6f payout=%.2f p=%.4f",
            caller.user_id, market_id, side.value, to_sell, result.payout, result.new_probability,
        )
        return result
