"""SyncLog model: one row per trade sync pass."""

from datetime import datetime, timezone
from typing import Any

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import JSON


class SyncLog(SQLModel, table=True):
    __tablename__ = "sync_log"

    id: int | None = Field(default=None, primary_key=True)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    status: str  # "success", "partial", "error", "skipped"
    price: float | None = None
    price_source: str | None = None  # provider name, or "cache"
    degraded: bool = False
    trades_checked: int = 0
    trades_entered: int = 0
    trades_updated: int = 0
    trades_closed: int = 0
    trades_failed: int = 0
    message: str | None = None
    details: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
