"""Tests for pending-trade entry decisions."""

import pytest

from papertrade.services.status_evaluator import evaluate_pending
from papertrade.services.trade_state import InvalidTradeError
from conftest import make_state


def _pending(**kwargs):
    kwargs.setdefault("status", "pending_entry")
    return make_state(**kwargs)


def test_long_enters_exactly_at_entry_price():
    trade = _pending(entry=2400.0, sl=2300.0, tps=(2500.0,), size=1000.0)
    result = evaluate_pending(trade, 2400.0)
    assert result.should_update is True
    assert result.updates == {"status": "entered"}


def test_long_waits_below_entry():
    trade = _pending(entry=2400.0, sl=2300.0, tps=(2500.0,))
    result = evaluate_pending(trade, 2399.0)
    assert result.should_update is False
    assert result.updates == {}


def test_short_enters_at_or_below_entry():
    trade = _pending(direction="short", entry=100.0, sl=110.0, tps=(90.0,))
    assert evaluate_pending(trade, 99.0).updates == {"status": "entered"}
    assert evaluate_pending(trade, 101.0).should_update is False


@pytest.mark.parametrize("status", ["entered", "sl_hit", "tp_all_hit", "cancelled"])
def test_non_pending_trade_is_untouched(status):
    trade = _pending(status=status)
    result = evaluate_pending(trade, 1_000_000.0, invalidate_on_pre_entry_sl_hit=True)
    assert result.should_update is False


# ---------------------------------------------------------------------------
# Pre-entry stop-loss invalidation policy
# ---------------------------------------------------------------------------

class TestPreEntryInvalidation:
    def test_disabled_by_default_leaves_trade_pending(self):
        trade = _pending(entry=100.0, sl=90.0)
        result = evaluate_pending(trade, 85.0)
        assert result.should_update is False

    def test_enabled_cancels_long_when_stop_trades_first(self):
        trade = _pending(entry=100.0, sl=90.0)
        result = evaluate_pending(trade, 90.0, invalidate_on_pre_entry_sl_hit=True)
        assert result.should_update is True
        assert result.updates["status"] == "cancelled"

    def test_enabled_cancels_short_when_stop_trades_first(self):
        trade = _pending(direction="short", entry=100.0, sl=110.0, tps=(90.0,))
        result = evaluate_pending(trade, 112.0, invalidate_on_pre_entry_sl_hit=True)
        assert result.updates["status"] == "cancelled"

    def test_enabled_still_enters_normally(self):
        trade = _pending(entry=100.0, sl=90.0)
        result = evaluate_pending(trade, 101.0, invalidate_on_pre_entry_sl_hit=True)
        assert result.updates == {"status": "entered"}


def test_zero_entry_price_is_rejected():
    trade = _pending(entry=0.0)
    with pytest.raises(InvalidTradeError):
        evaluate_pending(trade, 100.0)
