"""CLI tool for admin operations.

Usage:
    python -m papertrade.cli sync
    python -m papertrade.cli seed-strategies
    python -m papertrade.cli audit-pnl [--apply]
"""

import asyncio
import json
import sys

from sqlmodel import Session, select

from papertrade.config import settings
from papertrade.database import engine, create_db_and_tables
from papertrade.models.strategy import Strategy
from papertrade.utils.constants import DEFAULT_STRATEGIES
from papertrade.utils.logging import setup_logging


def run_sync():
    """Run one sync pass and print its report."""
    from papertrade.engine.trade_sync import get_sync_service

    create_db_and_tables()
    report = asyncio.run(get_sync_service().run_pass())
    print(json.dumps(report.as_dict(), indent=2))
    if report.status == "error":
        sys.exit(1)


def seed_strategies(target_engine=None):
    """Create the default strategies that do not exist yet."""
    target_engine = target_engine or engine
    create_db_and_tables(target_engine)

    created = 0
    with Session(target_engine) as session:
        for entry in DEFAULT_STRATEGIES:
            existing = session.exec(select(Strategy).where(Strategy.name == entry["name"])).first()
            if existing:
                print(f"Strategy already exists: {entry['name']}")
                continue
            session.add(Strategy(balance=settings.default_strategy_balance, **entry))
            print(f"Created strategy: {entry['name']}")
            created += 1
        session.commit()
    return created


def audit_pnl(apply: bool = False):
    """Compare stored PnL of closed trades with the PnL their TP rows imply."""
    from papertrade.services.reconcile import audit_closed_trades
    from papertrade.services.trade_repository import SqlTradeRepository

    create_db_and_tables()
    issues = audit_closed_trades(SqlTradeRepository(engine), apply=apply)
    if not issues:
        print("All closed trades match their ledger.")
        return
    for issue in issues:
        print(
            f"Trade {issue.trade_id} ({issue.status}): stored {issue.stored_pnl:.2f}, "
            f"expected {issue.expected_pnl:.2f}, delta {issue.delta:+.2f}"
        )
    verb = "Fixed" if apply else "Found"
    print(f"\n{verb} {len(issues)} trade(s).")
    if not apply:
        print("Re-run with --apply to rewrite stored PnL.")


def main():
    setup_logging()
    if len(sys.argv) < 2:
        print("Usage: python -m papertrade.cli <command>")
        print("Commands: sync, seed-strategies, audit-pnl [--apply]")
        sys.exit(1)

    command = sys.argv[1]
    if command == "sync":
        run_sync()
    elif command == "seed-strategies":
        seed_strategies()
    elif command == "audit-pnl":
        audit_pnl(apply="--apply" in sys.argv[2:])
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
