"""Entry decisions for trades still waiting on their entry price."""

from papertrade.services.pnl_engine import is_triggered
from papertrade.services.trade_evaluator import EvaluationResult, validate_setup
from papertrade.services.trade_state import TradeState
from papertrade.utils.constants import CANCELLED, ENTERED, PENDING_ENTRY


def evaluate_pending(
    trade: TradeState,
    current_price: float,
    invalidate_on_pre_entry_sl_hit: bool = False,
) -> EvaluationResult:
    """Decide whether a pending trade enters (or, optionally, is cancelled).

    With `invalidate_on_pre_entry_sl_hit`, a stop-loss touch before the entry
    has triggered cancels the setup instead of leaving it pending.
    """
    result = EvaluationResult(trade=trade)
    if trade.status != PENDING_ENTRY:
        return result

    validate_setup(trade)

    if invalidate_on_pre_entry_sl_hit and is_triggered(
        trade.direction, current_price, trade.sl, True
    ):
        result.should_update = True
        result.updates = {"status": CANCELLED, "remaining_position": 0.0}
        return result

    if is_triggered(trade.direction, current_price, trade.entry_price, False):
        result.should_update = True
        result.updates = {"status": ENTERED}
    return result
