"""Command-line entry point: migrations, fee lookups, statistics."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from decimal import Decimal

import structlog
from sqlalchemy.orm import Session

from crypto_ledger.config.loader import load_config
from crypto_ledger.config.schema import AppConfig
from crypto_ledger.db.engine import init_engine, session_scope
from crypto_ledger.db.migrate import upgrade
from crypto_ledger.fees.schedule import FeeSchedule, format_fee_with_level
from crypto_ledger.ledger.errors import LedgerError
from crypto_ledger.ledger.sql_store import SqlStore
from crypto_ledger.logging.setup import bind_command, setup_logging
from crypto_ledger.metrics.periods import date_range_for_month, date_range_for_year
from crypto_ledger.metrics.queries import compute_portfolio_statistics

log = structlog.get_logger("cli")


def _emit(payload) -> None:
    json.dump(payload, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="crypto-ledger", description="Crypto position ledger")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    sub = parser.add_subparsers(dest="command", required=True)

    migrate = sub.add_parser("migrate", help="Create or upgrade the ledger tables")
    migrate.add_argument("--revision", default="head", help="Target revision (default: head)")

    fee = sub.add_parser("fee", help="Look up the fee tier for a 30-day volume")
    fee.add_argument("--volume", type=Decimal, required=True, help="Rolling volume in USD")

    stats = sub.add_parser("stats", help="Print portfolio statistics")
    stats.add_argument("--portfolio", required=True, help="Portfolio id")
    stats.add_argument("--user", required=True, help="Owner id")
    stats.add_argument("--year", type=int, default=None)
    stats.add_argument("--month", type=int, default=None, help="1-12, requires --year")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_config(args.config)
    setup_logging(config.logging.level, config.logging.format)
    bind_command(args.command)

    if args.command == "fee":
        level = FeeSchedule.from_config(config.fees).lookup(args.volume)
        _emit({**asdict(level), "display": format_fee_with_level(level.fee_percent, level.level)})
        return 0

    if args.command == "stats" and args.month is not None and args.year is None:
        parser.error("--month requires --year")

    if args.command == "migrate":
        upgrade(config.database.url, args.revision)
        _emit({"status": "ok", "revision": args.revision})
        return 0

    init_engine(config.database.url)
    with session_scope() as session:
        return _stats(args, config, session)


def _stats(args: argparse.Namespace, config: AppConfig, session: Session) -> int:
    period = None
    if args.month is not None:
        period = date_range_for_month(args.year, args.month)
    elif args.year is not None:
        period = date_range_for_year(args.year)
    try:
        stats = compute_portfolio_statistics(
            SqlStore(session), args.portfolio, args.user, period, config.ledger,
        )
    except LedgerError as exc:
        log.error("stats_failed", portfolio_id=args.portfolio, error=str(exc))
        _emit({"error": str(exc), "kind": type(exc).__name__})
        return 1
    _emit(asdict(stats))
    return 0


if __name__ == "__main__":
    sys.exit(main())
