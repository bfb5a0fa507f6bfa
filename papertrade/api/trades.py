"""Paper trade API: create trades and read their state."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from papertrade.config import settings
from papertrade.database import get_session
from papertrade.models.strategy import Strategy, TradeAttribution
from papertrade.models.trade import TakeProfit, Trade
from papertrade.schemas.trade import TradeCreate, TradeRead
from papertrade.services.pnl_engine import unrealized_pnl
from papertrade.services.price_oracle import PriceOracle, PriceUnavailableError, get_price_oracle
from papertrade.utils.constants import ENTERED, PENDING_ENTRY

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/trades", tags=["trades"])


def _to_read(trade: Trade, strategy: Strategy | None, price: float | None = None) -> TradeRead:
    data = TradeRead.model_validate(trade)
    data.take_profits = sorted(data.take_profits, key=lambda tp: tp.id)
    if strategy is not None:
        data.strategy_id = strategy.id
        data.strategy_name = strategy.name
    if price is not None:
        data.live_pnl = round(unrealized_pnl(trade, price), 4)
    elif trade.status != ENTERED:
        data.live_pnl = trade.pnl
    return data


async def _current_price(oracle: PriceOracle) -> float | None:
    try:
        return await oracle.get_current_price()
    except PriceUnavailableError:
        logger.warning("Live PnL unavailable: no current price")
        return None


@router.get("", response_model=list[TradeRead])
async def list_trades(
    status: str | None = None,
    strategy_id: int | None = None,
    live: bool = False,
    limit: int = 50,
    offset: int = 0,
    session: Session = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
):
    stmt = (
        select(Trade, Strategy)
        .join(TradeAttribution, TradeAttribution.trade_id == Trade.id, isouter=True)
        .join(Strategy, Strategy.id == TradeAttribution.strategy_id, isouter=True)
        .options(selectinload(Trade.take_profits))
        .order_by(Trade.created_at.desc())
    )
    if status is not None:
        stmt = stmt.where(Trade.status == status)
    if strategy_id is not None:
        stmt = stmt.where(TradeAttribution.strategy_id == strategy_id)
    stmt = stmt.offset(offset).limit(limit)
    rows = session.exec(stmt).all()

    price = await _current_price(oracle) if live else None
    return [_to_read(trade, strategy, price) for trade, strategy in rows]


@router.get("/{trade_id}", response_model=TradeRead)
async def get_trade(
    trade_id: int,
    session: Session = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
):
    trade = session.get(Trade, trade_id)
    if not trade:
        raise HTTPException(status_code=404, detail="Trade not found")
    strategy = session.exec(
        select(Strategy)
        .join(TradeAttribution, TradeAttribution.strategy_id == Strategy.id)
        .where(TradeAttribution.trade_id == trade_id)
    ).first()
    price = await _current_price(oracle) if trade.status == ENTERED else None
    return _to_read(trade, strategy, price)


@router.post("", response_model=TradeRead, status_code=201)
def create_trade(data: TradeCreate, session: Session = Depends(get_session)):
    """Create a pending trade with its take-profit rungs and strategy attribution."""
    strategy = session.get(Strategy, data.strategy_id)
    if not strategy:
        raise HTTPException(status_code=400, detail="Strategy not found")

    position_size = data.position_size or settings.default_position_size
    trade = Trade(
        user_id=data.user_id,
        direction=data.direction,
        entry_price=data.entry_price,
        sl=data.sl,
        status=PENDING_ENTRY,
        position_size=position_size,
        remaining_position=position_size,
    )
    session.add(trade)
    session.flush()

    for price in data.take_profits:
        session.add(TakeProfit(trade_id=trade.id, tp_price=price))
    session.add(TradeAttribution(trade_id=trade.id, strategy_id=strategy.id))
    session.commit()
    session.refresh(trade)

    logger.info(
        f"[trade {trade.id}] Created {trade.direction} entry={trade.entry_price} sl={trade.sl} "
        f"tps={data.take_profits} strategy={strategy.name}"
    )
    return _to_read(trade, strategy)
