"""Storage access used by the sync engine.

`TradeRepository` is the capability set the engine needs; `SqlTradeRepository`
implements it on SQLModel. Writes on the settlement path are conditional
updates so a stale evaluation cannot overwrite newer state.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, Protocol

from sqlalchemy import insert, update
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select, col

from papertrade.models.strategy import Strategy, StrategyResult, TradeAttribution
from papertrade.models.sync_log import SyncLog
from papertrade.models.trade import TakeProfit, Trade
from papertrade.services.trade_state import Attribution, Settlement, TradeState

logger = logging.getLogger(__name__)


class TradeRepository(Protocol):
    def list_trades(self, statuses: Iterable[str]) -> list[TradeState]: ...

    def update_trade(self, trade_id: int, fields: dict, expected_status: str | None = None) -> bool: ...

    def update_take_profit(self, tp_id: int, fields: dict) -> bool: ...

    def get_attribution(self, trade_id: int) -> Attribution | None: ...

    def insert_result(self, attribution_id: int, pnl: float) -> None: ...

    def get_strategy_balance(self, strategy_id: int) -> float | None: ...

    def update_strategy_balance(self, strategy_id: int, balance: float) -> None: ...

    def increment_strategy_balance(self, strategy_id: int, delta: float) -> float | None: ...

    def settle_trade(
        self, trade_id: int, fields: dict, expected_status: str, pnl: float
    ) -> Settlement | None: ...

    def record_sync_pass(self, log: SyncLog) -> None: ...


class SqlTradeRepository:
    """TradeRepository on a SQLAlchemy engine."""

    def __init__(self, engine):
        self.engine = engine

    def list_trades(self, statuses: Iterable[str]) -> list[TradeState]:
        stmt = (
            select(Trade)
            .where(col(Trade.status).in_(list(statuses)))
            .options(selectinload(Trade.take_profits))
            .order_by(Trade.id)
        )
        with Session(self.engine) as session:
            return [TradeState.from_model(t) for t in session.exec(stmt).all()]

    def update_trade(self, trade_id: int, fields: dict, expected_status: str | None = None) -> bool:
        """Apply `fields` to a trade; only if it still has `expected_status` when given."""
        stmt = update(Trade).where(Trade.id == trade_id)
        if expected_status is not None:
            stmt = stmt.where(Trade.status == expected_status)
        stmt = stmt.values(**fields, updated_at=datetime.now(timezone.utc))
        with self.engine.connect() as conn:
            result = conn.execute(stmt)
            conn.commit()
        return result.rowcount > 0

    def update_take_profit(self, tp_id: int, fields: dict) -> bool:
        """Mark a take-profit; a rung that is already hit is never rewritten."""
        stmt = (
            update(TakeProfit)
            .where(TakeProfit.id == tp_id)
            .where(TakeProfit.is_hit == False)  # noqa: E712
            .values(**fields)
        )
        with self.engine.connect() as conn:
            result = conn.execute(stmt)
            conn.commit()
        return result.rowcount > 0

    def get_attribution(self, trade_id: int) -> Attribution | None:
        with Session(self.engine) as session:
            row = session.exec(
                select(TradeAttribution).where(TradeAttribution.trade_id == trade_id)
            ).first()
            if row is None:
                return None
            return Attribution(id=row.id, trade_id=row.trade_id, strategy_id=row.strategy_id)

    def insert_result(self, attribution_id: int, pnl: float) -> None:
        with Session(self.engine) as session:
            session.add(StrategyResult(attribution_id=attribution_id, pnl=pnl))
            session.commit()

    def get_strategy_balance(self, strategy_id: int) -> float | None:
        with Session(self.engine) as session:
            strategy = session.get(Strategy, strategy_id)
            return strategy.balance if strategy else None

    def update_strategy_balance(self, strategy_id: int, balance: float) -> None:
        """Overwrite a balance. Settlement credits through settle_trade instead."""
        stmt = update(Strategy).where(Strategy.id == strategy_id).values(balance=balance)
        with self.engine.connect() as conn:
            conn.execute(stmt)
            conn.commit()

    def increment_strategy_balance(self, strategy_id: int, delta: float) -> float | None:
        """Add `delta` in a single UPDATE and return the new balance (None if no such strategy)."""
        with self.engine.begin() as conn:
            return self._credit_strategy(conn, strategy_id, delta)

    def settle_trade(
        self,
        trade_id: int,
        fields: dict,
        expected_status: str,
        pnl: float,
    ) -> Settlement | None:
        """Close a trade and credit its strategy in one transaction.

        The terminal trade write, the ledger row and the balance increment
        commit together or not at all, so a failed settlement leaves the trade
        open for the next pass. Returns None, writing nothing, when the trade
        no longer has `expected_status`.
        """
        now = datetime.now(timezone.utc)
        with self.engine.begin() as conn:
            result = conn.execute(
                update(Trade)
                .where(Trade.id == trade_id)
                .where(Trade.status == expected_status)
                .values(**fields, updated_at=now)
            )
            if result.rowcount == 0:
                return None

            attribution = conn.execute(
                select(TradeAttribution.id, TradeAttribution.strategy_id)
                .where(TradeAttribution.trade_id == trade_id)
            ).first()
            if attribution is None:
                return Settlement()

            conn.execute(
                insert(StrategyResult).values(
                    attribution_id=attribution.id, pnl=pnl, created_at=now
                )
            )
            balance = self._credit_strategy(conn, attribution.strategy_id, pnl)
            return Settlement(strategy_id=attribution.strategy_id, balance=balance)

    def _credit_strategy(self, conn, strategy_id: int, delta: float) -> float | None:
        result = conn.execute(
            update(Strategy)
            .where(Strategy.id == strategy_id)
            .values(balance=Strategy.balance + delta)
        )
        if result.rowcount == 0:
            return None
        return conn.execute(
            select(Strategy.balance).where(Strategy.id == strategy_id)
        ).scalar_one()

    def record_sync_pass(self, log: SyncLog) -> None:
        with Session(self.engine) as session:
            session.add(log)
            session.commit()
