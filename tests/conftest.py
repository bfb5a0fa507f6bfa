"""Shared fixtures: in-memory database, repository and trade factories."""

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session

from papertrade.database import build_engine, create_db_and_tables
from papertrade.models.strategy import Strategy, TradeAttribution
from papertrade.models.trade import TakeProfit, Trade
from papertrade.services.trade_repository import SqlTradeRepository
from papertrade.services.trade_state import TakeProfitState, TradeState


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def repository(db_engine) -> SqlTradeRepository:
    return SqlTradeRepository(db_engine)


def make_state(
    direction="long",
    entry=100.0,
    sl=90.0,
    tps=(105.0, 110.0, 115.0),
    size=30.0,
    status="entered",
    hit=(),
    trade_id=1,
    pnl=0.0,
    remaining=None,
) -> TradeState:
    """Snapshot of a trade; `hit` lists TP prices already hit (pnl_portion filled in)."""
    from papertrade.services.pnl_engine import calculate_pnl

    capital = size / len(tps) if tps else 0.0
    take_profits = []
    for i, price in enumerate(tps, start=1):
        is_hit = price in hit
        take_profits.append(
            TakeProfitState(
                id=i,
                tp_price=price,
                is_hit=is_hit,
                pnl_portion=calculate_pnl(direction, entry, price, capital) if is_hit else 0.0,
            )
        )
    return TradeState(
        id=trade_id,
        direction=direction,
        entry_price=entry,
        sl=sl,
        status=status,
        pnl=pnl,
        position_size=size,
        remaining_position=size if remaining is None else remaining,
        take_profits=take_profits,
    )


def add_strategy(engine, name="Alpha", balance=1000.0) -> int:
    with Session(engine) as session:
        strategy = Strategy(name=name, balance=balance)
        session.add(strategy)
        session.commit()
        return strategy.id


def add_trade(
    engine,
    direction="long",
    entry=100.0,
    sl=90.0,
    tps=(105.0, 110.0, 115.0),
    size=30.0,
    status="entered",
    strategy_id=None,
) -> int:
    with Session(engine) as session:
        trade = Trade(
            direction=direction,
            entry_price=entry,
            sl=sl,
            status=status,
            position_size=size,
            remaining_position=size,
        )
        session.add(trade)
        session.flush()
        for price in tps:
            session.add(TakeProfit(trade_id=trade.id, tp_price=price))
        if strategy_id is not None:
            session.add(TradeAttribution(trade_id=trade.id, strategy_id=strategy_id))
        session.commit()
        return trade.id


def get_trade(engine, trade_id: int) -> Trade:
    with Session(engine) as session:
        trade = session.get(Trade, trade_id)
        trade.take_profits  # load before the session closes
        return trade


def get_balance(engine, strategy_id: int) -> float:
    with Session(engine) as session:
        return session.get(Strategy, strategy_id).balance
