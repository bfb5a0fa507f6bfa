"""Tests for the SQL repository: snapshots, conditional writes, atomic balance."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import inspect
from sqlmodel import Session, select

from papertrade.database import create_db_and_tables
from papertrade.models.strategy import StrategyResult
from papertrade.models.sync_log import SyncLog
from conftest import add_strategy, add_trade, get_balance, get_trade


def test_list_trades_filters_by_status_and_loads_take_profits(db_engine, repository):
    pending = add_trade(db_engine, status="pending_entry")
    entered = add_trade(db_engine, status="entered", tps=(105.0, 110.0))
    add_trade(db_engine, status="sl_hit")

    trades = repository.list_trades(["pending_entry", "entered"])

    assert [t.id for t in trades] == [pending, entered]
    assert [tp.tp_price for tp in trades[1].take_profits] == [105.0, 110.0]
    assert all(tp.is_hit is False for tp in trades[1].take_profits)


def test_update_trade_respects_expected_status(db_engine, repository):
    trade_id = add_trade(db_engine, status="entered")

    assert repository.update_trade(trade_id, {"pnl": 1.0}, expected_status="pending_entry") is False
    assert get_trade(db_engine, trade_id).pnl == 0.0

    assert repository.update_trade(trade_id, {"pnl": 1.0}, expected_status="entered") is True
    trade = get_trade(db_engine, trade_id)
    assert trade.pnl == 1.0
    assert trade.updated_at is not None


def test_take_profit_is_marked_only_once(db_engine, repository):
    trade_id = add_trade(db_engine, tps=(105.0,))
    tp_id = get_trade(db_engine, trade_id).take_profits[0].id
    fields = {"is_hit": True, "hit_at": datetime.now(timezone.utc), "pnl_portion": 1.5}

    assert repository.update_take_profit(tp_id, fields) is True
    assert repository.update_take_profit(tp_id, {**fields, "pnl_portion": 99.0}) is False
    assert get_trade(db_engine, trade_id).take_profits[0].pnl_portion == 1.5


def test_attribution_lookup(db_engine, repository):
    strategy_id = add_strategy(db_engine)
    attributed = add_trade(db_engine, strategy_id=strategy_id)
    orphan = add_trade(db_engine)

    attribution = repository.get_attribution(attributed)
    assert attribution.strategy_id == strategy_id
    assert attribution.trade_id == attributed
    assert repository.get_attribution(orphan) is None


def test_insert_result_appends_ledger_row(db_engine, repository):
    strategy_id = add_strategy(db_engine)
    trade_id = add_trade(db_engine, strategy_id=strategy_id)
    attribution = repository.get_attribution(trade_id)

    repository.insert_result(attribution.id, -2.5)

    with Session(db_engine) as session:
        rows = session.exec(select(StrategyResult)).all()
    assert [(r.attribution_id, r.pnl) for r in rows] == [(attribution.id, -2.5)]


class TestStrategyBalance:
    def test_read_and_overwrite(self, db_engine, repository):
        strategy_id = add_strategy(db_engine, balance=1000.0)
        assert repository.get_strategy_balance(strategy_id) == 1000.0
        repository.update_strategy_balance(strategy_id, 1200.0)
        assert repository.get_strategy_balance(strategy_id) == 1200.0

    def test_unknown_strategy(self, repository):
        assert repository.get_strategy_balance(404) is None
        assert repository.increment_strategy_balance(404, 5.0) is None

    def test_increment_is_relative_to_stored_value(self, db_engine, repository):
        strategy_id = add_strategy(db_engine, balance=1000.0)
        stale = repository.get_strategy_balance(strategy_id)

        # Another writer lands between our read and our write
        repository.increment_strategy_balance(strategy_id, 5.0)
        new_balance = repository.increment_strategy_balance(strategy_id, -2.0)

        assert stale == 1000.0
        assert new_balance == pytest.approx(1003.0)
        assert get_balance(db_engine, strategy_id) == pytest.approx(1003.0)


def test_record_sync_pass(db_engine, repository):
    repository.record_sync_pass(SyncLog(status="success", price=2400.0, trades_checked=3))
    with Session(db_engine) as session:
        log = session.exec(select(SyncLog)).one()
    assert log.status == "success"
    assert log.trades_checked == 3


# ---------------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------------

CLOSE_FIELDS = {"status": "sl_hit", "pnl": -3.0, "exit_price": 90.0, "remaining_position": 0.0}


def test_settle_trade_closes_and_credits_together(db_engine, repository):
    strategy_id = add_strategy(db_engine, balance=1000.0)
    trade_id = add_trade(db_engine, strategy_id=strategy_id)

    settlement = repository.settle_trade(trade_id, CLOSE_FIELDS, "entered", -3.0)

    assert settlement.strategy_id == strategy_id
    assert settlement.balance == pytest.approx(997.0)
    assert get_trade(db_engine, trade_id).status == "sl_hit"
    with Session(db_engine) as session:
        assert [r.pnl for r in session.exec(select(StrategyResult)).all()] == [-3.0]


def test_settle_trade_with_stale_status_writes_nothing(db_engine, repository):
    strategy_id = add_strategy(db_engine, balance=1000.0)
    trade_id = add_trade(db_engine, status="tp_all_hit", strategy_id=strategy_id)

    assert repository.settle_trade(trade_id, CLOSE_FIELDS, "entered", -3.0) is None
    assert get_trade(db_engine, trade_id).status == "tp_all_hit"
    assert get_balance(db_engine, strategy_id) == 1000.0


def test_settle_trade_without_attribution(db_engine, repository):
    trade_id = add_trade(db_engine)
    settlement = repository.settle_trade(trade_id, CLOSE_FIELDS, "entered", -3.0)
    assert settlement.strategy_id is None
    assert settlement.balance is None
    assert get_trade(db_engine, trade_id).status == "sl_hit"


def test_create_db_and_tables_builds_full_schema_and_is_repeatable(db_engine):
    create_db_and_tables(db_engine)

    inspector = inspect(db_engine)
    assert {"trade", "trade_tp", "strategy", "trade_attribution", "strategy_result", "sync_log"} <= set(
        inspector.get_table_names()
    )
    assert "is_sl_hit" in {c["name"] for c in inspector.get_columns("trade")}
