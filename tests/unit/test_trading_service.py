"""Unit tests for TradingService (placeBet / sellShares) against InMemoryStore."""

import pytest

from src.pm_clearing.application.service import SettlementService
from src.pm_common.enums import EntryType, MarketStatus, Side
from src.pm_common.errors import (
    InsufficientBalanceError,
    InsufficientSharesError,
    InvalidParameterError,
    InvalidPayoutError,
    LiquidityExceededError,
    MarketNotFoundError,
    MarketNotTradeableError,
    NotEligibleError,
    ScopeMismatchError,
    WalletNotFoundError,
)
from src.pm_common.money import round2
from src.pm_lmsr.domain.pricing import Pool, get_price
from src.pm_lmsr.domain.sizing import SellQuote
from src.pm_store.infrastructure.memory import InMemoryStore
from src.pm_trading.application.service import (
    TradingService,
    side_liquidity,
    validate_sell_quote,
)
from src.pm_wallet.domain.models import WalletKey
from tests.factories import NOW, admin, make_entry, make_market, make_wallet, outsider, seed, user

ALICE = user("alice")


@pytest.fixture
def service(store: InMemoryStore) -> TradingService:
    return TradingService(store)


async def _wallet_balance(store: InMemoryStore, user_id: str = "alice", scope_id=None) -> float:
    return (await store.get_wallet(WalletKey(user_id, scope_id))).balance


def _interleave(store: InMemoryStore, concurrent) -> None:
    """Commit `concurrent` just before the service's own transaction runs."""
    original = store.transact

    async def _write_first(fn):
        await original(concurrent)
        return await original(fn)

    store.transact = _write_first


class TestPlaceBet:
    async def test_commits_entry_pool_and_balance(self, store, service) -> None:
        await seed(store, markets=[make_market()], wallets=[make_wallet()])

        result = await service.place_bet(ALICE, "mkt-1", Side.YES, 50.0)

        assert result.shares > 0
        assert result.new_probability > 0.5
        assert result.balance == 950.0
        market = await store.get_market("mkt-1")
        assert market.pool == result.new_pool
        assert market.probability == result.new_probability
        assert market.total_volume == 50.0
        [entry] = await store.list_ledger_entries(market_id="mkt-1")
        assert entry.id == result.entry_id
        assert entry.entry_type == EntryType.BUY
        assert entry.amount == 50.0
        assert entry.shares == result.shares
        assert await _wallet_balance(store) == 950.0

    async def test_accepts_side_as_string(self, store, service) -> None:
        await seed(store, markets=[make_market()], wallets=[make_wallet()])
        result = await service.place_bet(ALICE, "mkt-1", "NO", 10.0)
        assert result.new_probability < 0.5

    async def test_insufficient_balance(self, store, service) -> None:
        await seed(store, markets=[make_market()], wallets=[make_wallet(balance=20.0)])

        with pytest.raises(InsufficientBalanceError):
            await service.place_bet(ALICE, "mkt-1", Side.YES, 20.01)
        assert await store.list_ledger_entries() == []

    async def test_spending_entire_balance_is_allowed(self, store, service) -> None:
        await seed(store, markets=[make_market()], wallets=[make_wallet(balance=20.0)])
        result = await service.place_bet(ALICE, "mkt-1", Side.YES, 20.0)
        assert result.balance == 0.0

    @pytest.mark.parametrize("status", [MarketStatus.LOCKED, MarketStatus.CANCELLED])
    async def test_market_not_open(self, store, service, status) -> None:
        await seed(store, markets=[make_market(status=status)], wallets=[make_wallet()])
        with pytest.raises(MarketNotTradeableError):
            await service.place_bet(ALICE, "mkt-1", Side.YES, 10.0)

    async def test_unknown_market(self, store, service) -> None:
        await seed(store, wallets=[make_wallet()])
        with pytest.raises(MarketNotFoundError):
            await service.place_bet(ALICE, "mkt-404", Side.YES, 10.0)

    async def test_scoped_market_needs_scoped_wallet(self, store, service) -> None:
        await seed(store, markets=[make_market(scope_id="dorm-7")], wallets=[make_wallet()])
        with pytest.raises(WalletNotFoundError) as exc_info:
            await service.place_bet(ALICE, "mkt-1", Side.YES, 10.0, scope_id="dorm-7")
        assert "dorm-7" in exc_info.value.message

    async def test_scoped_market_debits_scoped_wallet_only(self, store, service) -> None:
        await seed(
            store,
            markets=[make_market(scope_id="dorm-7")],
            wallets=[make_wallet(), make_wallet(scope_id="dorm-7", balance=500.0)],
        )

        await service.place_bet(ALICE, "mkt-1", Side.YES, 25.0, scope_id="dorm-7")

        assert await _wallet_balance(store, scope_id="dorm-7") == 475.0
        assert await _wallet_balance(store) == 1000.0
        [entry] = await store.list_ledger_entries()
        assert entry.scope_id == "dorm-7"

    async def test_stale_scope_rejected(self, store, service) -> None:
        await seed(store, markets=[make_market(scope_id="dorm-7")], wallets=[make_wallet()])
        with pytest.raises(ScopeMismatchError):
            await service.place_bet(ALICE, "mkt-1", Side.YES, 10.0, scope_id=None)

    async def test_blank_scope_means_global(self, store, service) -> None:
        await seed(store, markets=[make_market()], wallets=[make_wallet()])
        result = await service.place_bet(ALICE, "mkt-1", Side.YES, 10.0, scope_id="  ")
        assert result.balance == 990.0

    async def test_ineligible_caller(self, store, service) -> None:
        await seed(store, markets=[make_market()], wallets=[make_wallet(user_id="mallory")])
        with pytest.raises(NotEligibleError):
            await service.place_bet(outsider(), "mkt-1", Side.YES, 10.0)

    @pytest.mark.parametrize("amount", [0, -1.0, float("nan"), float("inf")])
    async def test_bad_amount_rejected_before_store_access(self, amount) -> None:
        store = InMemoryStore()
        with pytest.raises(InvalidParameterError):
            await TradingService(store).place_bet(ALICE, "mkt-1", Side.YES, amount)

    @pytest.mark.parametrize("amount", [0.004, 0.009])
    async def test_sub_cent_amount_rejected(self, store, service, amount) -> None:
        await seed(store, markets=[make_market()], wallets=[make_wallet()])
        with pytest.raises(InvalidParameterError):
            await service.place_bet(ALICE, "mkt-1", Side.YES, amount)
        assert await store.list_ledger_entries() == []
        assert await _wallet_balance(store) == 1000.0
        assert (await store.get_market("mkt-1")).pool == Pool()

    async def test_fractional_cents_agree_across_wallet_ledger_and_payout(self, store, service) -> None:
        await seed(store, markets=[make_market()], wallets=[make_wallet()])

        result = await service.place_bet(ALICE, "mkt-1", Side.YES, 10.006)

        [entry] = await store.list_ledger_entries()
        assert entry.amount == 10.01
        assert result.balance == 989.99
        assert await _wallet_balance(store) == 989.99
        assert (await store.get_market("mkt-1")).total_volume == 10.01

        await SettlementService(store).resolve_market(admin(), "mkt-1", Side.YES)

        assert await _wallet_balance(store) == round2(1000.0 - entry.amount + round2(entry.shares))

    async def test_market_locked_between_check_and_commit(self, store, service) -> None:
        """The transaction re-reads the market; a lock that lands first wins."""
        await seed(store, markets=[make_market()], wallets=[make_wallet()])

        async def _lock(tx):
            market = await tx.get_market("mkt-1")
            market.status = MarketStatus.LOCKED
            await tx.put_market(market)

        _interleave(store, _lock)
        with pytest.raises(MarketNotTradeableError):
            await service.place_bet(ALICE, "mkt-1", Side.YES, 10.0)
        assert await store.list_ledger_entries() == []
        assert await _wallet_balance(store) == 1000.0

    async def test_wallet_drained_between_check_and_commit(self, store, service) -> None:
        """A concurrent spend that commits first leaves too little for this bet."""
        await seed(store, markets=[make_market()], wallets=[make_wallet()])

        async def _spend(tx):
            wallet = await tx.get_wallet(WalletKey("alice", None))
            await tx.put_wallet(wallet.debited(995.0, NOW))

        _interleave(store, _spend)
        with pytest.raises(InsufficientBalanceError):
            await service.place_bet(ALICE, "mkt-1", Side.YES, 10.0)
        assert await store.list_ledger_entries() == []
        assert await _wallet_balance(store) == 5.0
        assert (await store.get_market("mkt-1")).pool == Pool()

    async def test_scope_changed_between_check_and_commit(self, store, service) -> None:
        """The transaction re-resolves the wallet against the market it re-reads."""
        await seed(
            store,
            markets=[make_market()],
            wallets=[make_wallet(), make_wallet(scope_id="dorm-7", balance=500.0)],
        )

        async def _rescope(tx):
            market = await tx.get_market("mkt-1")
            market.scope_id = "dorm-7"
            await tx.put_market(market)

        _interleave(store, _rescope)
        with pytest.raises(ScopeMismatchError):
            await service.place_bet(ALICE, "mkt-1", Side.YES, 10.0)
        assert await store.list_ledger_entries() == []
        assert await _wallet_balance(store) == 1000.0
        assert await _wallet_balance(store, scope_id="dorm-7") == 500.0
        assert (await store.get_market("mkt-1")).pool == Pool()

    async def test_sequential_bets_never_overdraw(self, store, service) -> None:
        await seed(store, markets=[make_market()], wallets=[make_wallet(balance=30.0)])

        await service.place_bet(ALICE, "mkt-1", Side.YES, 20.0)
        with pytest.raises(InsufficientBalanceError):
            await service.place_bet(ALICE, "mkt-1", Side.NO, 20.0)
        assert await _wallet_balance(store) == 10.0


class TestSellShares:
    async def _bought(self, store, service, amount: float = 50.0, side: Side = Side.YES):
        await seed(store, markets=[make_market()], wallets=[make_wallet()])
        return await service.place_bet(ALICE, "mkt-1", side, amount)

    async def test_round_trip_returns_stake(self, store, service) -> None:
        bet = await self._bought(store, service)

        result = await service.sell_shares(ALICE, "mkt-1", Side.YES, bet.shares)

        assert result.payout == pytest.approx(50.0, abs=0.05)
        assert result.new_probability == pytest.approx(0.5, abs=1e-6)
        assert result.balance == pytest.approx(1000.0, abs=0.05)
        sell = [e for e in await store.list_ledger_entries() if e.entry_type == EntryType.SELL]
        assert sell[0].amount == -result.payout
        assert sell[0].shares == -bet.shares

    async def test_partial_sell(self, store, service) -> None:
        bet = await self._bought(store, service)
        result = await service.sell_shares(ALICE, "mkt-1", Side.YES, bet.shares / 2)
        # the upper half of the position was the expensive half
        assert 25.0 < result.payout < 50.0

    async def test_more_than_held_rejected(self, store, service) -> None:
        bet = await self._bought(store, service)

        with pytest.raises(InsufficientSharesError):
            await service.sell_shares(ALICE, "mkt-1", Side.YES, bet.shares + 1.0)
        assert len(await store.list_ledger_entries()) == 1

    async def test_wrong_side_rejected(self, store, service) -> None:
        await self._bought(store, service)
        with pytest.raises(InsufficientSharesError):
            await service.sell_shares(ALICE, "mkt-1", Side.NO, 1.0)

    async def test_float_noise_above_holding_is_clamped(self, store, service) -> None:
        bet = await self._bought(store, service)

        await service.sell_shares(ALICE, "mkt-1", Side.YES, bet.shares + 5e-7)

        sell = [e for e in await store.list_ledger_entries() if e.entry_type == EntryType.SELL]
        assert sell[0].shares == -bet.shares

    async def test_refunded_entries_are_not_sellable(self, store, service) -> None:
        entry = make_entry(shares=20.0, refunded=True)
        await seed(
            store,
            markets=[make_market(pool=Pool(yes=20.0))],
            wallets=[make_wallet()],
            entries=[entry],
        )
        with pytest.raises(InsufficientSharesError):
            await service.sell_shares(ALICE, "mkt-1", Side.YES, 5.0)

    async def test_liquidity_exceeded(self, store, service) -> None:
        # Alice holds 30 YES but the pool only carries 10 on that side
        await seed(
            store,
            markets=[make_market(pool=Pool(yes=10.0, no=40.0))],
            wallets=[make_wallet()],
            entries=[make_entry(shares=30.0, amount=15.0)],
        )
        with pytest.raises(LiquidityExceededError):
            await service.sell_shares(ALICE, "mkt-1", Side.YES, 20.0)

    async def test_locked_market_blocks_sells(self, store, service) -> None:
        bet = await self._bought(store, service)

        async def _lock(tx):
            m = await tx.get_market("mkt-1")
            m.status = MarketStatus.LOCKED
            await tx.put_market(m)

        await store.transact(_lock)
        with pytest.raises(MarketNotTradeableError):
            await service.sell_shares(ALICE, "mkt-1", Side.YES, bet.shares)

    async def test_holding_sold_between_check_and_commit(self, store, service) -> None:
        """A concurrent sell of the whole holding wins; this sell finds nothing left."""
        bet = await self._bought(store, service)
        pool_before = (await store.get_market("mkt-1")).pool

        async def _sell_all(tx):
            await tx.add_ledger_entry(
                make_entry(entry_type=EntryType.SELL, amount=49.0, shares=bet.shares)
            )

        _interleave(store, _sell_all)
        with pytest.raises(InsufficientSharesError):
            await service.sell_shares(ALICE, "mkt-1", Side.YES, bet.shares)
        assert len(await store.list_ledger_entries()) == 2
        assert await _wallet_balance(store) == 950.0
        assert (await store.get_market("mkt-1")).pool == pool_before

    async def test_max_payout_guard(self, store) -> None:
        service = TradingService(store, max_sell_payout=10.0)
        bet = await self._bought(store, service)
        with pytest.raises(InvalidPayoutError):
            await service.sell_shares(ALICE, "mkt-1", Side.YES, bet.shares)


class TestHelpers:
    def test_side_liquidity_floors_negative_pool(self) -> None:
        market = make_market(pool=Pool(yes=-5.0, no=12.0))
        assert side_liquidity(market, Side.YES) == 0.0
        assert side_liquidity(market, Side.NO) == 12.0

    def test_zero_payout_rejected(self) -> None:
        quote = SellQuote(payout=0.0, new_pool=Pool(), new_probability=get_price(Pool(), 1.0))
        with pytest.raises(InvalidPayoutError):
            validate_sell_quote(quote, 100.0)
