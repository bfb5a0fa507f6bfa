"""Trade and TakeProfit models: one simulated position and its exit rungs."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field, Relationship


class Trade(SQLModel, table=True):
    __tablename__ = "trade"

    id: int | None = Field(default=None, primary_key=True)
    user_id: str | None = Field(default=None, index=True)
    direction: str  # "long" or "short"
    entry_price: float
    sl: float
    status: str = Field(default="pending_entry", index=True)

    # Virtual capital; split evenly across take-profits
    position_size: float = 1000.0
    remaining_position: float = 1000.0
    pnl: float = 0.0  # realized so far; final once closed
    exit_price: float | None = None
    is_sl_hit: bool = False

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime | None = None

    take_profits: list["TakeProfit"] = Relationship(back_populates="trade")


class TakeProfit(SQLModel, table=True):
    __tablename__ = "trade_tp"

    id: int | None = Field(default=None, primary_key=True)
    trade_id: int = Field(foreign_key="trade.id", index=True)
    tp_price: float
    is_hit: bool = False
    hit_at: datetime | None = None
    pnl_portion: float = 0.0

    trade: Trade | None = Relationship(back_populates="take_profits")
