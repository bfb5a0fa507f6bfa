"""Dashboard API: summary stats across all paper trades."""

import logging

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from papertrade.database import get_session
from papertrade.models.strategy import Strategy
from papertrade.models.trade import Trade
from papertrade.services.pnl_engine import unrealized_pnl
from papertrade.services.price_oracle import PriceOracle, PriceUnavailableError, get_price_oracle
from papertrade.utils.constants import CLOSED_STATUSES, ENTERED, PENDING_ENTRY

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/summary")
async def dashboard_summary(
    session: Session = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
):
    """Aggregated stats across all trades and strategies."""
    trades = session.exec(select(Trade)).all()
    strategies = session.exec(select(Strategy)).all()

    closed = [t for t in trades if t.status in CLOSED_STATUSES]
    entered = [t for t in trades if t.status == ENTERED]
    winning = [t for t in closed if t.pnl > 0]
    win_rate = len(winning) / len(closed) * 100 if closed else 0.0

    status_counts: dict[str, int] = {}
    for t in trades:
        status_counts[t.status] = status_counts.get(t.status, 0) + 1

    price = None
    open_pnl = None
    try:
        price = await oracle.get_current_price()
        # Floating leg only; realized partial exits are already in each trade's pnl
        open_pnl = round(sum(unrealized_pnl(t, price) - t.pnl for t in entered), 2)
    except PriceUnavailableError as e:
        logger.warning(f"Could not price open trades for summary: {e}")

    return {
        "total_trades": len(trades),
        "pending_trades": status_counts.get(PENDING_ENTRY, 0),
        "open_trades": len(entered),
        "closed_trades": len(closed),
        "status_counts": status_counts,
        "realized_pnl": round(sum(t.pnl for t in closed), 2),
        "open_pnl": open_pnl,
        "win_rate": round(win_rate, 1),
        "total_strategy_balance": round(sum(s.balance for s in strategies), 2),
        "price": price,
    }
