"""Take-profit / stop-loss state machine for entered trades.

Given a trade snapshot and one observed price, decide which take-profits
fire, whether the stop-loss fires and whether the trade closes. The result
describes the writes to make; nothing here performs I/O.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone

from papertrade.services.pnl_engine import calculate_pnl, is_triggered
from papertrade.services.trade_state import InvalidTradeError, TradeState
from papertrade.utils.constants import (
    DIRECTIONS,
    ENTERED,
    POSITION_EPSILON,
    SL_HIT,
    TP_ALL_HIT,
    TP_PARTIAL_THEN_SL,
)

logger = logging.getLogger(__name__)

DEFAULT_POSITION_SIZE = 1000.0

# Cached totals further than this from the rebuilt values get rewritten
PNL_DRIFT_TOLERANCE = 1e-6


@dataclass
class TakeProfitUpdate:
    id: int
    pnl_portion: float
    hit_at: datetime

    def as_fields(self) -> dict:
        return {"is_hit": True, "hit_at": self.hit_at, "pnl_portion": self.pnl_portion}


@dataclass
class CloseAction:
    new_status: str
    final_pnl: float
    exit_price: float


@dataclass
class EvaluationResult:
    trade: TradeState
    should_update: bool = False
    updates: dict = field(default_factory=dict)
    tp_updates: list[TakeProfitUpdate] = field(default_factory=list)
    close: CloseAction | None = None


def validate_setup(trade: TradeState):
    """Raise InvalidTradeError for setups the PnL math cannot price."""
    if trade.direction not in DIRECTIONS:
        raise InvalidTradeError(f"Trade {trade.id}: unknown direction {trade.direction!r}")
    for name in ("entry_price", "sl"):
        value = getattr(trade, name)
        if value is None or not math.isfinite(value) or value <= 0:
            raise InvalidTradeError(f"Trade {trade.id}: invalid {name}={value!r}")


def settle_remaining(remaining: float, trade_id: int) -> float:
    """Snap dust to zero; clamp (and report) anything meaningfully negative."""
    if remaining < -POSITION_EPSILON:
        logger.warning(
            f"Trade {trade_id}: remaining position {remaining:.6f} is negative, clamping to 0"
        )
    if remaining < POSITION_EPSILON:
        return 0.0
    return remaining


def _drifted(trade: TradeState, realized: float, remaining: float) -> bool:
    """Whether the trade row's cached totals disagree with its take-profit rows."""
    stored_remaining = trade.remaining_position
    if stored_remaining is None:
        return True
    return (
        abs((trade.pnl or 0.0) - realized) > PNL_DRIFT_TOLERANCE
        or abs(stored_remaining - remaining) > PNL_DRIFT_TOLERANCE
    )


def evaluate_entered(
    trade: TradeState,
    current_price: float,
    now: datetime | None = None,
) -> EvaluationResult:
    """Evaluate an entered trade against the current price.

    Realized PnL and remaining capital are rebuilt from the take-profit rows
    rather than the trade's cached totals, so a pass that died between the TP
    write and the trade write is repaired instead of double counted.
    """
    result = EvaluationResult(trade=trade)
    if trade.status != ENTERED:
        return result

    validate_setup(trade)
    now = now or datetime.now(timezone.utc)

    tps = trade.take_profits
    total_tps = len(tps)
    position_size = trade.position_size or DEFAULT_POSITION_SIZE
    capital_per_tp = position_size / total_tps if total_tps > 0 else 0.0

    hit_tps = [tp for tp in tps if tp.is_hit]
    if total_tps > 0:
        realized = sum(tp.pnl_portion or 0.0 for tp in hit_tps)
        remaining = position_size - len(hit_tps) * capital_per_tp
    else:
        # No TP ledger to rebuild from
        realized = trade.pnl or 0.0
        remaining = (
            trade.remaining_position if trade.remaining_position is not None else position_size
        )
    remaining = settle_remaining(remaining, trade.id)

    # Every rung already hit but the close never landed
    if total_tps > 0 and len(hit_tps) == total_tps:
        result.should_update = True
        result.close = CloseAction(
            new_status=TP_ALL_HIT,
            final_pnl=realized,
            exit_price=current_price,
        )
        return result

    # 1. Stop-loss wins over take-profits in the same pass
    if is_triggered(trade.direction, current_price, trade.sl, True):
        loss = calculate_pnl(trade.direction, trade.entry_price, trade.sl, remaining)
        result.should_update = True
        result.close = CloseAction(
            new_status=TP_PARTIAL_THEN_SL if hit_tps else SL_HIT,
            final_pnl=realized + loss,
            exit_price=trade.sl,  # stop order filled at its trigger
        )
        return result

    # 2. Take-profits not yet hit; a gap can fill several at once
    new_profit = 0.0
    for tp in tps:
        if tp.is_hit:
            continue
        if not is_triggered(trade.direction, current_price, tp.tp_price, False):
            continue
        profit = calculate_pnl(trade.direction, trade.entry_price, tp.tp_price, capital_per_tp)
        result.tp_updates.append(TakeProfitUpdate(id=tp.id, pnl_portion=profit, hit_at=now))
        new_profit += profit
        remaining -= capital_per_tp

    if not result.tp_updates:
        if total_tps > 0 and _drifted(trade, realized, remaining):
            result.should_update = True
            result.updates = {"pnl": realized, "remaining_position": remaining}
        return result

    result.should_update = True
    remaining = settle_remaining(remaining, trade.id)
    total_pnl = realized + new_profit

    if total_tps > 0 and len(hit_tps) + len(result.tp_updates) == total_tps:
        result.close = CloseAction(
            new_status=TP_ALL_HIT,
            final_pnl=total_pnl,
            exit_price=current_price,
        )
    else:
        result.updates = {"pnl": total_pnl, "remaining_position": remaining}
    return result
