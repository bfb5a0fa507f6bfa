"""Stateless trigger and PnL math for directional paper positions.

All functions are pure computation with no I/O.
"""

from papertrade.utils.constants import ENTERED, LONG, PRICE_DECIMALS


def is_triggered(
    direction: str,
    current_price: float,
    target_price: float,
    is_stop_loss: bool,
) -> bool:
    """Whether the current price has reached a level.

    Long: entry/TP fire on price >= target, stop-loss on price <= target.
    Short: both comparisons invert. Touching the level exactly counts.
    """
    cp = round(current_price, PRICE_DECIMALS)
    tp = round(target_price, PRICE_DECIMALS)

    if direction == LONG:
        return cp <= tp if is_stop_loss else cp >= tp
    return cp >= tp if is_stop_loss else cp <= tp


def return_rate(direction: str, entry_price: float, exit_price: float) -> float:
    """Fractional return of a move from entry to exit. 0 when entry is 0."""
    if entry_price == 0:
        return 0.0
    diff = exit_price - entry_price if direction == LONG else entry_price - exit_price
    return diff / entry_price


def calculate_pnl(
    direction: str,
    entry_price: float,
    exit_price: float,
    capital: float,
) -> float:
    """Currency PnL of exiting `capital` at `exit_price`."""
    return return_rate(direction, entry_price, exit_price) * capital


def unrealized_pnl(trade, current_price: float | None) -> float:
    """Realized PnL plus the floating PnL of the capital still exposed.

    Only an entered trade floats; every other status reports its stored PnL.
    """
    total = trade.pnl or 0.0
    remaining = trade.remaining_position or 0.0
    if trade.status == ENTERED and current_price and remaining > 0:
        total += calculate_pnl(trade.direction, trade.entry_price, current_price, remaining)
    return total
