"""Plain snapshots of persisted trades, handed to the evaluators.

The evaluators never see ORM instances: the repository copies rows into these
dataclasses so evaluation stays free of sessions and lazy loads.
"""

from dataclasses import dataclass, field
from datetime import datetime

from papertrade.utils.constants import PENDING_ENTRY


class InvalidTradeError(ValueError):
    """A trade whose setup cannot be evaluated (e.g. zero entry price)."""


@dataclass
class TakeProfitState:
    id: int
    tp_price: float
    is_hit: bool = False
    hit_at: datetime | None = None
    pnl_portion: float = 0.0


@dataclass
class TradeState:
    id: int
    direction: str
    entry_price: float
    sl: float
    status: str = PENDING_ENTRY
    pnl: float = 0.0
    position_size: float = 1000.0
    remaining_position: float | None = None
    exit_price: float | None = None
    user_id: str | None = None
    take_profits: list[TakeProfitState] = field(default_factory=list)

    @classmethod
    def from_model(cls, trade) -> "TradeState":
        """Copy a Trade row (with loaded take_profits) into a snapshot."""
        return cls(
            id=trade.id,
            direction=trade.direction,
            entry_price=trade.entry_price,
            sl=trade.sl,
            status=trade.status,
            pnl=trade.pnl or 0.0,
            position_size=trade.position_size,
            remaining_position=trade.remaining_position,
            exit_price=trade.exit_price,
            user_id=trade.user_id,
            take_profits=[
                TakeProfitState(
                    id=tp.id,
                    tp_price=tp.tp_price,
                    is_hit=tp.is_hit,
                    hit_at=tp.hit_at,
                    pnl_portion=tp.pnl_portion or 0.0,
                )
                for tp in sorted(trade.take_profits, key=lambda t: t.id)
            ],
        )


@dataclass
class Attribution:
    id: int
    trade_id: int
    strategy_id: int


@dataclass
class Settlement:
    """Outcome of closing a trade: the credited strategy and its new balance, if any."""

    strategy_id: int | None = None
    balance: float | None = None
