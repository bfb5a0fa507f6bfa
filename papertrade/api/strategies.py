"""Strategy API: virtual balances and realized performance per strategy."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from papertrade.config import settings
from papertrade.database import get_session
from papertrade.models.strategy import Strategy, StrategyResult, TradeAttribution
from papertrade.schemas.strategy import StrategyCreate, StrategyRead

router = APIRouter(prefix="/api/strategies", tags=["strategies"])


def _stats_by_strategy(session: Session) -> dict[int, tuple[float, int, int]]:
    """strategy_id -> (realized pnl, closed trades, winning trades) from the result ledger."""
    rows = session.exec(
        select(TradeAttribution.strategy_id, StrategyResult.pnl)
        .join(StrategyResult, StrategyResult.attribution_id == TradeAttribution.id)
    ).all()

    stats: dict[int, tuple[float, int, int]] = {}
    for strategy_id, pnl in rows:
        total, count, wins = stats.get(strategy_id, (0.0, 0, 0))
        stats[strategy_id] = (total + pnl, count + 1, wins + (1 if pnl > 0 else 0))
    return stats


def _to_read(strategy: Strategy, stats: tuple[float, int, int] | None) -> StrategyRead:
    data = StrategyRead.model_validate(strategy)
    if stats:
        data.realized_pnl = round(stats[0], 2)
        data.trades = stats[1]
        data.wins = stats[2]
    return data


@router.get("", response_model=list[StrategyRead])
def list_strategies(session: Session = Depends(get_session)):
    strategies = session.exec(select(Strategy).order_by(Strategy.id)).all()
    stats = _stats_by_strategy(session)
    return [_to_read(s, stats.get(s.id)) for s in strategies]


@router.post("", response_model=StrategyRead, status_code=201)
def create_strategy(data: StrategyCreate, session: Session = Depends(get_session)):
    existing = session.exec(select(Strategy).where(Strategy.name == data.name)).first()
    if existing:
        raise HTTPException(status_code=409, detail="Strategy name already exists")

    payload = data.model_dump()
    if payload["balance"] is None:
        payload["balance"] = settings.default_strategy_balance
    strategy = Strategy(**payload)
    session.add(strategy)
    session.commit()
    session.refresh(strategy)
    return _to_read(strategy, None)


@router.get("/{strategy_id}", response_model=StrategyRead)
def get_strategy(strategy_id: int, session: Session = Depends(get_session)):
    strategy = session.get(Strategy, strategy_id)
    if not strategy:
        raise HTTPException(status_code=404, detail="Strategy not found")
    return _to_read(strategy, _stats_by_strategy(session).get(strategy_id))
