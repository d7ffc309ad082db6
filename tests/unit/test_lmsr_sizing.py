"""Unit tests for LMSR trade sizing: buy search and direct sell valuation."""

import pytest

from src.pm_common.enums import Side
from src.pm_common.errors import (
    ConvergenceFailureError,
    InvalidParameterError,
    UnsafeSellBoundsError,
)
from src.pm_lmsr.domain import sizing
from src.pm_lmsr.domain.pricing import Pool, cost, get_price
from src.pm_lmsr.domain.sizing import calculate_buy, calculate_sell


class TestCalculateBuy:
    def test_fifty_dollar_yes_buy_on_fresh_market(self) -> None:
        quote = calculate_buy(Pool(), 50.0, Side.YES, 100.0)
        assert quote.shares > 0
        assert quote.new_probability > 0.5
        assert quote.new_pool == Pool(yes=quote.shares, no=0.0)

    def test_no_buy_lowers_yes_price(self) -> None:
        quote = calculate_buy(Pool(), 50.0, Side.NO, 100.0)
        assert quote.new_probability < 0.5
        assert quote.new_pool.yes == 0.0

    @pytest.mark.parametrize(
        "pool,amount,side,b",
        [
            (Pool(), 1.0, Side.YES, 100.0),
            (Pool(yes=300.0, no=-50.0), 75.0, Side.NO, 100.0),
            (Pool(yes=-80.0), 500.0, Side.YES, 50.0),
            (Pool(no=10.0), 0.01, Side.YES, 1000.0),
        ],
    )
    def test_cost_of_shares_matches_amount(self, pool, amount, side, b) -> None:
        quote = calculate_buy(pool, amount, side, b)
        spent = cost(quote.new_pool.yes, quote.new_pool.no, b) - cost(pool.yes, pool.no, b)
        assert spent == pytest.approx(amount, abs=1e-2)

    def test_cheap_side_in_skewed_pool_converges(self) -> None:
        quote = calculate_buy(Pool(yes=2000.0), 10.0, Side.NO, 100.0)
        assert quote.shares > 10.0
        assert quote.new_probability < get_price(Pool(yes=2000.0), 100.0)

    def test_expensive_side_costs_close_to_one_per_share(self) -> None:
        quote = calculate_buy(Pool(yes=200.0), 10.0, Side.YES, 100.0)
        assert 10.0 < quote.shares < 20.0

    def test_path_independence(self) -> None:
        first = calculate_buy(Pool(), 30.0, Side.YES, 100.0)
        second = calculate_buy(first.new_pool, 20.0, Side.YES, 100.0)
        single = calculate_buy(Pool(), 50.0, Side.YES, 100.0)
        assert second.new_probability == pytest.approx(single.new_probability, abs=1e-3)

    @pytest.mark.parametrize("amount", [0, -5.0, float("nan"), float("inf"), "10"])
    def test_rejects_bad_amount(self, amount) -> None:
        with pytest.raises(InvalidParameterError):
            calculate_buy(Pool(), amount, Side.YES, 100.0)

    def test_rejects_bad_b(self) -> None:
        with pytest.raises(InvalidParameterError):
            calculate_buy(Pool(), 10.0, Side.YES, 0.0)

    def test_rejects_bad_side(self) -> None:
        with pytest.raises(InvalidParameterError):
            calculate_buy(Pool(), 10.0, "UP", 100.0)

    def test_search_out_of_budget_fails_instead_of_approximating(self, monkeypatch) -> None:
        monkeypatch.setattr(sizing, "MAX_ITERATIONS", 1)
        with pytest.raises(ConvergenceFailureError):
            calculate_buy(Pool(), 50.0, Side.YES, 100.0)


class TestCalculateSell:
    def test_round_trip_returns_stake(self) -> None:
        bought = calculate_buy(Pool(), 50.0, Side.YES, 100.0)
        sold = calculate_sell(bought.new_pool, bought.shares, Side.YES, 100.0)
        assert sold.payout == pytest.approx(50.0, abs=0.05)
        assert sold.new_probability == pytest.approx(0.5, abs=1e-6)

    @pytest.mark.parametrize(
        "pool,amount,side,b",
        [
            (Pool(yes=40.0, no=90.0), 12.5, Side.NO, 100.0),
            (Pool(yes=-60.0), 250.0, Side.YES, 25.0),
            (Pool(no=500.0), 3.0, Side.YES, 100.0),
        ],
    )
    def test_round_trip_on_existing_pools(self, pool, amount, side, b) -> None:
        bought = calculate_buy(pool, amount, side, b)
        sold = calculate_sell(bought.new_pool, bought.shares, side, b)
        assert sold.payout == pytest.approx(amount, abs=0.05)

    def test_yes_sell_lowers_yes_price(self) -> None:
        pool = Pool(yes=100.0)
        quote = calculate_sell(pool, 10.0, Side.YES, 100.0)
        assert quote.new_probability < get_price(pool, 100.0)
        assert quote.new_pool == Pool(yes=90.0, no=0.0)
        assert quote.payout > 0

    def test_payout_never_negative(self) -> None:
        quote = calculate_sell(Pool(yes=-1000.0), 1e-6, Side.YES, 100.0)
        assert quote.payout >= 0.0

    def test_sell_beyond_bound_rejected(self) -> None:
        with pytest.raises(UnsafeSellBoundsError):
            calculate_sell(Pool(), 250.0, Side.YES, 10.0)

    def test_bound_is_configurable(self) -> None:
        quote = calculate_sell(Pool(), 250.0, Side.YES, 10.0, bound_multiplier=30.0)
        assert quote.new_pool.yes == -250.0

    @pytest.mark.parametrize("shares", [0, -1.0, float("nan")])
    def test_rejects_bad_shares(self, shares) -> None:
        with pytest.raises(InvalidParameterError):
            calculate_sell(Pool(yes=10.0), shares, Side.YES, 100.0)
