"""Unit tests for resolution payouts and cancellation refunds."""

import pytest

from src.pm_clearing.domain.settlement import compute_refunds, compute_resolution_payouts
from src.pm_common.enums import EntryType, Side
from tests.factories import make_entry

SELL = EntryType.SELL


class TestRefunds:
    def test_net_seller_is_not_charged(self) -> None:
        entries = [
            make_entry(user_id="A", amount=50.0),
            make_entry(user_id="A", entry_type=SELL, amount=10.0, shares=5.0),
            make_entry(user_id="B", amount=20.0),
            make_entry(user_id="B", entry_type=SELL, amount=30.0, shares=20.0),
        ]

        refunds = compute_refunds(entries)

        assert refunds == {"A": 40.0}

    def test_refunds_never_exceed_total_staked(self) -> None:
        entries = [
            make_entry(user_id="A", amount=12.34),
            make_entry(user_id="B", side=Side.NO, amount=7.77),
            make_entry(user_id="B", entry_type=SELL, amount=1.11, shares=2.0),
            make_entry(user_id="C", amount=0.01),
        ]
        staked = sum(e.amount for e in entries if e.entry_type == EntryType.BUY)

        refunds = compute_refunds(entries)

        assert sum(refunds.values()) <= staked
        assert refunds["B"] == 6.66

    def test_refunded_entries_excluded(self) -> None:
        entries = [make_entry(user_id="A", amount=25.0, refunded=True)]
        assert compute_refunds(entries) == {}

    def test_exactly_zero_net_is_not_refunded(self) -> None:
        entries = [
            make_entry(user_id="A", amount=10.0),
            make_entry(user_id="A", entry_type=SELL, amount=10.0, shares=20.0),
        ]
        assert compute_refunds(entries) == {}


class TestResolution:
    def _entries(self):
        return [
            make_entry(user_id="A", amount=10.0, shares=20.0),
            make_entry(user_id="B", side=Side.NO, amount=15.0, shares=30.0),
            make_entry(user_id="C", amount=5.0, shares=10.0),
            make_entry(user_id="C", entry_type=SELL, amount=2.5, shares=4.0),
            make_entry(user_id="D", side=Side.NO, amount=5.0, shares=10.0),
            make_entry(user_id="D", side=Side.NO, entry_type=SELL, amount=5.0, shares=10.0),
        ]

    def test_yes_pays_net_winning_shares(self) -> None:
        results = compute_resolution_payouts(self._entries(), Side.YES)

        assert results["A"].payout == 20.0
        assert results["A"].lost_investment == 0.0
        assert results["B"].payout == 0.0
        assert results["B"].lost_investment == 15.0
        assert results["C"].payout == 6.0
        assert "D" not in results

    def test_no_resolution(self) -> None:
        results = compute_resolution_payouts(self._entries(), Side.NO)

        assert results["B"].payout == 30.0
        assert results["A"].lost_investment == 10.0
        assert results["C"].lost_investment == 2.5

    def test_total_payout_equals_outstanding_winning_shares(self) -> None:
        entries = self._entries()
        outstanding = sum(
            e.shares for e in entries if e.side == Side.YES
        )
        results = compute_resolution_payouts(entries, Side.YES)
        assert sum(r.payout for r in results.values()) == pytest.approx(outstanding)

    def test_refunded_entry_does_not_pay(self) -> None:
        entries = [make_entry(user_id="A", shares=20.0, refunded=True)]
        assert compute_resolution_payouts(entries, Side.YES) == {}
