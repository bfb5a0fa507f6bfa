"""Strategy models: attribution buckets, trade links and the append-only result ledger."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class Strategy(SQLModel, table=True):
    __tablename__ = "strategy"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    description: str = ""
    balance: float = 1000.0  # virtual; moved only by realized PnL on trade close
    user_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TradeAttribution(SQLModel, table=True):
    __tablename__ = "trade_attribution"

    id: int | None = Field(default=None, primary_key=True)
    trade_id: int = Field(foreign_key="trade.id", unique=True, index=True)
    strategy_id: int = Field(foreign_key="strategy.id", index=True)


class StrategyResult(SQLModel, table=True):
    """One row per closed attributed trade. Never updated or deleted."""

    __tablename__ = "strategy_result"

    id: int | None = Field(default=None, primary_key=True)
    attribution_id: int = Field(foreign_key="trade_attribution.id", unique=True, index=True)
    pnl: float
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
