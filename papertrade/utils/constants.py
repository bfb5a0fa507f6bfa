"""Shared constants: trade lifecycle values and scheduling intervals."""

LONG = "long"
SHORT = "short"
DIRECTIONS = (LONG, SHORT)

# Trade lifecycle
PENDING_ENTRY = "pending_entry"
ENTERED = "entered"
TP_ALL_HIT = "tp_all_hit"
SL_HIT = "sl_hit"
TP_PARTIAL_THEN_SL = "tp_partial_then_sl"
CANCELLED = "cancelled"

OPEN_STATUSES = (PENDING_ENTRY, ENTERED)
CLOSED_STATUSES = (TP_ALL_HIT, SL_HIT, TP_PARTIAL_THEN_SL)

# Remaining capital below this is treated as fully exited
POSITION_EPSILON = 0.01

# Price comparisons are made at this many decimals
PRICE_DECIMALS = 4

VALID_INTERVALS = ["1m", "5m", "15m", "30m", "1h", "2h", "4h", "8h", "1d"]

# Interval to hours mapping for APScheduler
INTERVAL_HOURS: dict[str, float] = {
    "1m": 1 / 60,
    "5m": 5 / 60,
    "15m": 0.25,
    "30m": 0.5,
    "1h": 1.0,
    "2h": 2.0,
    "4h": 4.0,
    "8h": 8.0,
    "1d": 24.0,
}

DEFAULT_STRATEGIES = [
    {"name": "Trend Master 3000", "description": "Follows strong trends on 15m timeframe"},
    {"name": "Mean Reversion X", "description": "Buys oversold RSI and sells overbought"},
    {"name": "ETH Whale Tracker", "description": "Tracks large wallet movements"},
]
