"""Ledger audit for closed trades.

Recomputes what a closed trade's PnL should be from its take-profit rows and
its stop-loss leg, and reports (optionally repairs) trades whose stored PnL
disagrees. Strategy balances and the result ledger are left alone.
"""

import logging
from dataclasses import dataclass

from papertrade.services.pnl_engine import calculate_pnl
from papertrade.services.trade_evaluator import DEFAULT_POSITION_SIZE
from papertrade.services.trade_repository import TradeRepository
from papertrade.services.trade_state import TradeState
from papertrade.utils.constants import CLOSED_STATUSES, SL_HIT, TP_ALL_HIT, TP_PARTIAL_THEN_SL

logger = logging.getLogger(__name__)

PNL_TOLERANCE = 0.1


@dataclass
class PnlDiscrepancy:
    trade_id: int
    status: str
    stored_pnl: float
    expected_pnl: float

    @property
    def delta(self) -> float:
        return self.expected_pnl - self.stored_pnl


def recompute_trade_pnl(trade: TradeState) -> float:
    """Expected final PnL of a closed trade.

    Every hit rung is repriced at its own level; a stop-loss close adds the
    loss on the capital of the rungs that never hit. A `tp_all_hit` trade
    counts every rung as hit.
    """
    tps = trade.take_profits
    total = len(tps)
    position_size = trade.position_size or DEFAULT_POSITION_SIZE
    capital_per_tp = position_size / total if total > 0 else 0.0

    pnl = 0.0
    hits = 0
    for tp in tps:
        if tp.is_hit or trade.status == TP_ALL_HIT:
            pnl += calculate_pnl(trade.direction, trade.entry_price, tp.tp_price, capital_per_tp)
            hits += 1

    if trade.status in (SL_HIT, TP_PARTIAL_THEN_SL):
        remaining = (total - hits) * capital_per_tp if total > 0 else position_size
        pnl += calculate_pnl(trade.direction, trade.entry_price, trade.sl, remaining)
    return pnl


def audit_closed_trades(
    repository: TradeRepository,
    apply: bool = False,
    tolerance: float = PNL_TOLERANCE,
) -> list[PnlDiscrepancy]:
    """Find closed trades whose stored PnL is off by more than `tolerance`."""
    found = []
    for trade in repository.list_trades(CLOSED_STATUSES):
        expected = recompute_trade_pnl(trade)
        if abs(trade.pnl - expected) <= tolerance:
            continue
        issue = PnlDiscrepancy(trade.id, trade.status, trade.pnl, expected)
        found.append(issue)
        logger.warning(
            f"[trade {trade.id}] Stored PnL {trade.pnl:.2f} != expected {expected:.2f} ({trade.status})"
        )
        if apply:
            repository.update_trade(trade.id, {"pnl": expected}, expected_status=trade.status)
            logger.info(f"[trade {trade.id}] PnL rewritten to {expected:.2f}")
    return found
