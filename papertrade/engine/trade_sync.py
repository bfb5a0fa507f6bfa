"""Trade sync pass.

This is the function APScheduler calls on each interval. It orchestrates:
price fetch → open trade fetch → per-trade evaluation → persistence → strategy settlement.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from papertrade.config import settings
from papertrade.models.sync_log import SyncLog
from papertrade.services.price_oracle import PriceOracle, PriceQuote, PriceUnavailableError
from papertrade.services.status_evaluator import evaluate_pending
from papertrade.services.trade_evaluator import CloseAction, EvaluationResult, evaluate_entered
from papertrade.services.trade_repository import TradeRepository
from papertrade.services.trade_state import TradeState
from papertrade.utils.constants import (
    CANCELLED,
    ENTERED,
    OPEN_STATUSES,
    PENDING_ENTRY,
    TP_ALL_HIT,
)

logger = logging.getLogger(__name__)

# Per-trade outcomes
UNCHANGED = "unchanged"
ENTERED_OUTCOME = "entered"
CANCELLED_OUTCOME = "cancelled"
UPDATED = "updated"
CLOSED = "closed"
CONFLICT = "conflict"


class SyncConflict(Exception):
    """A conditional write matched no row: the trade moved on since it was read."""


@dataclass
class TradeFailure:
    trade_id: int
    error: str


@dataclass
class SyncReport:
    status: str = "success"  # "success", "partial", "error", "skipped"
    price: float | None = None
    price_source: str | None = None
    degraded: bool = False
    checked: int = 0
    entered: int = 0
    cancelled: int = 0
    updated: int = 0
    closed: int = 0
    conflicts: list[int] = field(default_factory=list)
    failures: list[TradeFailure] = field(default_factory=list)
    message: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def count(self, outcome: str):
        if outcome == ENTERED_OUTCOME:
            self.entered += 1
        elif outcome == CANCELLED_OUTCOME:
            self.cancelled += 1
        elif outcome == UPDATED:
            self.updated += 1
        elif outcome == CLOSED:
            self.closed += 1

    def as_dict(self) -> dict:
        return {
            "status": self.status,
            "price": self.price,
            "price_source": self.price_source,
            "degraded": self.degraded,
            "checked": self.checked,
            "entered": self.entered,
            "cancelled": self.cancelled,
            "updated": self.updated,
            "closed": self.closed,
            "conflicts": self.conflicts,
            "failures": [{"trade_id": f.trade_id, "error": f.error} for f in self.failures],
            "message": self.message,
        }

    def to_log(self) -> SyncLog:
        details = None
        if self.failures or self.conflicts or self.cancelled:
            details = {
                "failures": [{"trade_id": f.trade_id, "error": f.error} for f in self.failures],
                "conflicts": self.conflicts,
                "cancelled": self.cancelled,
            }
        return SyncLog(
            timestamp=self.started_at,
            status=self.status,
            price=self.price,
            price_source=self.price_source,
            degraded=self.degraded,
            trades_checked=self.checked,
            trades_entered=self.entered,
            trades_updated=self.updated,
            trades_closed=self.closed,
            trades_failed=len(self.failures),
            message=self.message,
            details=details,
        )


class TradeSyncService:
    """Runs sync passes against one repository and one price oracle."""

    def __init__(
        self,
        repository: TradeRepository,
        oracle: PriceOracle,
        invalidate_on_pre_entry_sl_hit: bool = False,
    ):
        self.repository = repository
        self.oracle = oracle
        self.invalidate_on_pre_entry_sl_hit = invalidate_on_pre_entry_sl_hit
        self._lock = asyncio.Lock()

    async def run_pass(self) -> SyncReport:
        """Run one pass, skipping if a prior pass is still in-flight."""
        if self._lock.locked():
            logger.warning("Skipping overlapping sync pass")
            report = SyncReport(
                status="skipped",
                message="Skipped pass because previous run is still in progress",
            )
            self._record(report)
            return report

        async with self._lock:
            return await self._run_pass_once()

    async def _run_pass_once(self) -> SyncReport:
        """Execute one sync pass.

        Steps:
        1. Fetch one price snapshot for the whole pass
        2. Load pending and entered trades with their take-profits
        3. Evaluate each trade and write its updates
        4. Settle closed trades into their strategy
        5. Log the pass
        """
        report = SyncReport()

        try:
            quote: PriceQuote = await self.oracle.get_quote()
        except PriceUnavailableError as e:
            report.status = "error"
            report.message = f"Price unavailable: {e}"
            logger.error(f"Sync pass aborted: {e}")
            self._record(report)
            return report

        report.price = quote.price
        report.price_source = quote.source
        report.degraded = quote.from_cache

        try:
            trades = self.repository.list_trades(OPEN_STATUSES)
        except SQLAlchemyError as e:
            report.status = "error"
            report.message = f"Could not load trades: {e}"
            logger.error(f"Sync pass aborted, repository unavailable: {e}")
            self._record(report)
            return report

        logger.info(f"Syncing {len(trades)} trades at ${quote.price:.2f} ({quote.source})")

        for trade in trades:
            report.checked += 1
            try:
                outcome = self.process_trade(trade, quote.price)
            except SyncConflict as e:
                logger.warning(f"[trade {trade.id}] {e}; will re-evaluate next pass")
                report.conflicts.append(trade.id)
                continue
            except Exception as e:
                logger.error(f"[trade {trade.id}] Sync error: {e}", exc_info=True)
                report.failures.append(TradeFailure(trade_id=trade.id, error=str(e)))
                continue
            report.count(outcome)

        if report.failures:
            report.status = "partial"
        report.message = (
            f"{report.checked} checked, {report.entered} entered, {report.updated} updated, "
            f"{report.closed} closed, {len(report.failures)} failed"
        )
        logger.info(f"Sync pass complete: {report.message}")
        self._record(report)
        return report

    def process_trade(self, trade: TradeState, price: float) -> str:
        """Evaluate one trade at `price` and persist the outcome."""
        if trade.status == PENDING_ENTRY:
            result = evaluate_pending(trade, price, self.invalidate_on_pre_entry_sl_hit)
            return self._apply_pending(result, price)
        if trade.status == ENTERED:
            result = evaluate_entered(trade, price)
            return self._apply_entered(result)
        return UNCHANGED

    def _apply_pending(self, result: EvaluationResult, price: float) -> str:
        trade = result.trade
        if not result.should_update:
            return UNCHANGED

        new_status = result.updates["status"]
        if not self.repository.update_trade(trade.id, result.updates, expected_status=PENDING_ENTRY):
            raise SyncConflict("Pending trade changed status before entry was written")

        if new_status == CANCELLED:
            logger.info(
                f"[trade {trade.id}] Cancelled: stop-loss {trade.sl} reached at ${price:.2f} before entry"
            )
            return CANCELLED_OUTCOME
        logger.info(f"[trade {trade.id}] Entered {trade.direction} at ${price:.2f} (entry {trade.entry_price})")
        return ENTERED_OUTCOME

    def _apply_entered(self, result: EvaluationResult) -> str:
        trade = result.trade
        if not result.should_update:
            return UNCHANGED

        for tp_update in result.tp_updates:
            if not self.repository.update_take_profit(tp_update.id, tp_update.as_fields()):
                raise SyncConflict(f"Take-profit {tp_update.id} was already marked hit")
            logger.info(
                f"[trade {trade.id}] TP {tp_update.id} hit, profit ${tp_update.pnl_portion:.4f}"
            )

        if result.close is not None:
            self.close_trade(trade, result.close)
            return CLOSED

        if result.updates:
            if not self.repository.update_trade(trade.id, result.updates, expected_status=ENTERED):
                raise SyncConflict("Trade left entered state before partial update was written")
            logger.info(
                f"[trade {trade.id}] Partial exit: PnL ${result.updates['pnl']:.4f}, "
                f"remaining ${result.updates['remaining_position']:.2f}"
            )
        return UPDATED

    def close_trade(self, trade: TradeState, close: CloseAction):
        """Write the terminal state and credit the owning strategy in one settlement."""
        fields = {
            "status": close.new_status,
            "pnl": close.final_pnl,
            "exit_price": close.exit_price,
            "remaining_position": 0.0,
            "is_sl_hit": close.new_status != TP_ALL_HIT,
        }
        settlement = self.repository.settle_trade(
            trade.id, fields, expected_status=ENTERED, pnl=close.final_pnl
        )
        if settlement is None:
            raise SyncConflict("Trade was already closed by another pass")

        logger.info(
            f"[trade {trade.id}] Closed {close.new_status} at ${close.exit_price:.2f}, "
            f"PnL ${close.final_pnl:.4f}"
        )

        if settlement.strategy_id is None:
            logger.info(f"[trade {trade.id}] No strategy attribution, balance untouched")
        elif settlement.balance is None:
            logger.warning(
                f"[trade {trade.id}] Strategy {settlement.strategy_id} not found, balance not updated"
            )
        else:
            logger.info(
                f"[trade {trade.id}] Strategy {settlement.strategy_id} balance "
                f"{settlement.balance - close.final_pnl:.2f} -> {settlement.balance:.2f}"
            )

    def _record(self, report: SyncReport):
        """Write the SyncLog row; a logging failure never fails the pass."""
        try:
            self.repository.record_sync_pass(report.to_log())
        except SQLAlchemyError as e:
            logger.error(f"Could not record sync pass: {e}")


_service: TradeSyncService | None = None


def get_sync_service() -> TradeSyncService:
    """Process-wide sync service on the default database and price oracle."""
    global _service
    if _service is None:
        from papertrade.database import engine
        from papertrade.services.price_oracle import get_price_oracle
        from papertrade.services.trade_repository import SqlTradeRepository

        _service = TradeSyncService(
            SqlTradeRepository(engine),
            get_price_oracle(),
            invalidate_on_pre_entry_sl_hit=settings.invalidate_on_pre_entry_sl_hit,
        )
    return _service


async def run_sync_cycle() -> SyncReport:
    """Scheduler entry point."""
    return await get_sync_service().run_pass()
