"""Tests for trigger predicates and PnL math."""

import pytest

from papertrade.services.pnl_engine import (
    calculate_pnl,
    is_triggered,
    return_rate,
    unrealized_pnl,
)
from conftest import make_state


# ---------------------------------------------------------------------------
# 1. Trigger predicate
# ---------------------------------------------------------------------------

class TestIsTriggered:
    @pytest.mark.parametrize("direction", ["long", "short"])
    @pytest.mark.parametrize("is_stop_loss", [False, True])
    @pytest.mark.parametrize("price", [0.5, 100.0, 2400.0, 98765.4321])
    def test_touching_the_level_triggers(self, direction, is_stop_loss, price):
        assert is_triggered(direction, price, price, is_stop_loss) is True

    def test_long_target_fires_at_or_above(self):
        assert is_triggered("long", 101, 100, False) is True
        assert is_triggered("long", 99, 100, False) is False

    def test_long_stop_fires_at_or_below(self):
        assert is_triggered("long", 99, 100, True) is True
        assert is_triggered("long", 101, 100, True) is False

    def test_short_target_fires_at_or_below(self):
        assert is_triggered("short", 99, 100, False) is True
        assert is_triggered("short", 101, 100, False) is False

    def test_short_stop_fires_at_or_above(self):
        assert is_triggered("short", 101, 100, True) is True
        assert is_triggered("short", 99, 100, True) is False

    def test_float_noise_below_precision_counts_as_touch(self):
        assert is_triggered("long", 2399.99999, 2400.0, False) is True
        assert is_triggered("long", 2399.999, 2400.0, False) is False


# ---------------------------------------------------------------------------
# 2. Return rate and PnL
# ---------------------------------------------------------------------------

def test_long_take_profit_profit():
    assert calculate_pnl("long", 100, 110, 10) == pytest.approx(1.0)


def test_long_stop_loss_loss():
    assert calculate_pnl("long", 100, 90, 10) == pytest.approx(-1.0)


def test_short_take_profit_profit():
    assert calculate_pnl("short", 100, 90, 10) == pytest.approx(1.0)


def test_short_stop_loss_loss():
    assert calculate_pnl("short", 100, 110, 10) == pytest.approx(-1.0)


@pytest.mark.parametrize("direction", ["long", "short"])
@pytest.mark.parametrize("capital", [0.0, 10.0, 1000.0])
def test_no_movement_no_pnl(direction, capital):
    assert calculate_pnl(direction, 2500.0, 2500.0, capital) == 0


def test_zero_capital_has_no_pnl():
    assert calculate_pnl("long", 100, 110, 0) == 0


def test_zero_entry_returns_zero_rate():
    assert return_rate("long", 0, 110) == 0.0
    assert return_rate("short", 0, 110) == 0.0


def test_return_rate_is_fractional():
    assert return_rate("long", 3000, 3100) == pytest.approx(1 / 30)
    assert return_rate("short", 3000, 3100) == pytest.approx(-1 / 30)


# ---------------------------------------------------------------------------
# 3. Unrealized (live) PnL
# ---------------------------------------------------------------------------

def test_unrealized_pnl_adds_floating_leg_for_entered_trade():
    trade = make_state(hit=(105.0,), pnl=0.5, remaining=20.0)
    # 0.5 realized + (120-100)/100 * 20
    assert unrealized_pnl(trade, 120.0) == pytest.approx(4.5)


def test_unrealized_pnl_of_closed_trade_is_stored_pnl():
    trade = make_state(status="sl_hit", pnl=-3.0, remaining=0.0)
    assert unrealized_pnl(trade, 150.0) == -3.0


def test_unrealized_pnl_without_price_is_realized_only():
    trade = make_state(pnl=0.5, remaining=20.0)
    assert unrealized_pnl(trade, None) == 0.5
