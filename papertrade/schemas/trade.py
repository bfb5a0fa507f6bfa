"""Pydantic schemas for the Trade API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from papertrade.utils.constants import LONG


class TradeCreate(BaseModel):
    direction: Literal["long", "short"]
    entry_price: float = Field(gt=0)
    sl: float = Field(gt=0)
    take_profits: list[float] = Field(min_length=1, max_length=10)
    strategy_id: int = Field(gt=0)
    position_size: float = Field(default=1000.0, gt=0)
    user_id: str | None = Field(default=None, max_length=64)

    @field_validator("take_profits")
    @classmethod
    def _validate_tp_prices(cls, value: list[float]) -> list[float]:
        if any(p <= 0 for p in value):
            raise ValueError("take-profit prices must be positive")
        return value

    @model_validator(mode="after")
    def _validate_levels(self):
        if self.direction == LONG:
            if self.sl >= self.entry_price:
                raise ValueError("stop-loss must be below entry for a long trade")
            if any(p <= self.entry_price for p in self.take_profits):
                raise ValueError("take-profits must be above entry for a long trade")
        else:
            if self.sl <= self.entry_price:
                raise ValueError("stop-loss must be above entry for a short trade")
            if any(p >= self.entry_price for p in self.take_profits):
                raise ValueError("take-profits must be below entry for a short trade")
        return self


class TakeProfitRead(BaseModel):
    id: int
    tp_price: float
    is_hit: bool
    hit_at: datetime | None
    pnl_portion: float

    model_config = {"from_attributes": True}


class TradeRead(BaseModel):
    id: int
    user_id: str | None
    direction: str
    entry_price: float
    sl: float
    status: str
    position_size: float
    remaining_position: float
    pnl: float
    exit_price: float | None
    is_sl_hit: bool
    created_at: datetime
    updated_at: datetime | None
    take_profits: list[TakeProfitRead] = []
    strategy_id: int | None = None
    strategy_name: str | None = None
    live_pnl: float | None = None

    model_config = {"from_attributes": True}
