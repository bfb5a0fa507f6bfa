"""Database models."""

from papertrade.models.trade import Trade, TakeProfit
from papertrade.models.strategy import Strategy, TradeAttribution, StrategyResult
from papertrade.models.sync_log import SyncLog

__all__ = [
    "Trade",
    "TakeProfit",
    "Strategy",
    "TradeAttribution",
    "StrategyResult",
    "SyncLog",
]
