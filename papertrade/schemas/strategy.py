"""Pydantic schemas for the Strategy API."""

from datetime import datetime
from pydantic import BaseModel, Field, field_validator


class StrategyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str = Field(default="", max_length=500)
    balance: float | None = Field(default=None, ge=0)
    user_id: str | None = Field(default=None, max_length=64)

    @field_validator("name")
    @classmethod
    def _trim_name(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("must not be empty")
        return text


class StrategyRead(BaseModel):
    id: int
    name: str
    description: str
    balance: float
    user_id: str | None
    created_at: datetime
    realized_pnl: float = 0.0
    trades: int = 0
    wins: int = 0

    model_config = {"from_attributes": True}
