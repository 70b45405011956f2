"""Command line interface for the 0DTE collector and scanners."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
from datetime import date
from pathlib import Path
from typing import Any, Optional, Sequence

from zerodte.config import get_settings
from zerodte.models import serialize_models
from zerodte.services import Services, build_services

LOG_DIR = Path("logs")

LOGGER = logging.getLogger("zerodte.cli")


def _tokenize_symbols(raw: str) -> Sequence[str]:
    if not raw:
        return []
    return [token.strip().upper() for token in raw.split(",") if token.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="zerodte", description="0DTE options flow collector")
    parser.add_argument("--env", default=None, help="Configuration environment (default: APP_ENV or dev)")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    commands = parser.add_subparsers(dest="command", required=True)

    collect = commands.add_parser("collect", help="Run the polling loop until interrupted")
    collect.add_argument("--symbols", type=str, default="", help="Comma separated symbols (defaults to config)")
    collect.add_argument("--interval-ms", type=int, default=None, help="Polling interval in milliseconds")

    once = commands.add_parser("once", help="Run a single collection cycle and print its report")
    once.add_argument("--symbols", type=str, default="", help="Comma separated symbols (defaults to config)")

    for name, help_text in (("spreads", "Score credit spreads for a symbol"), ("atm", "Score ATM contracts for a symbol")):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("symbol", help="Underlying symbol")
        sub.add_argument("--fresh", action="store_true", help="Fetch a new chain instead of the stored one")
        sub.add_argument("--top", type=int, default=10, help="Number of results to print")

    pnl = commands.add_parser("pnl", help="Calculate daily P&L aggregates")
    pnl.add_argument("--date", type=date.fromisoformat, default=None, help="Trading date (YYYY-MM-DD)")
    pnl.add_argument("--symbols", type=str, default="", help="Comma separated symbols (defaults to config)")

    cleanup = commands.add_parser("cleanup", help="Delete records past the retention window")
    cleanup.add_argument("--days", type=int, default=None, help="Retention in days (defaults to config)")
    return parser


def _configure_logging(verbose: bool = False) -> None:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(LOG_DIR / "zerodte.log", encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger("zerodte")
    if not any(isinstance(existing, logging.FileHandler) for existing in root.handlers):
        root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def _collect(services: Services, symbols: Sequence[str], interval_ms: Optional[int]) -> None:
    collector = services.collector
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, collector.stop)
        except NotImplementedError:  # pragma: no cover - Windows event loops
            pass
    collector.start(symbols=symbols or None, interval_ms=interval_ms)
    await collector.join()


def _run(args: argparse.Namespace, services: Services) -> int:
    if args.command == "collect":
        asyncio.run(_collect(services, _tokenize_symbols(args.symbols), args.interval_ms))
        return 0

    if args.command == "once":
        symbols = _tokenize_symbols(args.symbols)
        if symbols:
            reports = [services.collector.collect_symbol(symbol) for symbol in symbols]
            _print_json([report.__dict__ for report in reports])
            return 0 if all(report.ok for report in reports) else 1
        report = asyncio.run(services.collector.run_cycle())
        _print_json(report.to_dict())
        return 0 if report.fetch_failures == 0 else 1

    if args.command in {"spreads", "atm"}:
        chain = services.scanner.load_chain(args.symbol, fresh=args.fresh)
        if chain is None:
            LOGGER.error("No chain available for %s", args.symbol.upper())
            return 1
        if args.command == "spreads":
            results = services.scanner.find_best_spreads(chain)
        else:
            results = services.scanner.find_atm_signals(chain)
        if not results:
            print("No opportunities found.")
            return 0
        for item in results[: args.top]:
            status = "FAILED" if item.failed else f"{item.score:6.2f} ({item.confidence:.0f}%)"
            print(f"{item.candidate.label:<20} {status}  {item.rationale}")
        return 0

    if args.command == "pnl":
        rows = services.pnl.calculate(args.date, _tokenize_symbols(args.symbols) or None)
        _print_json(serialize_models(rows))
        return 0

    if args.command == "cleanup":
        days = args.days if args.days is not None else services.settings.storage.retention_days
        deleted = services.storage.cleanup(days)
        print(f"Deleted {deleted} records older than {days} days.")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    services = build_services(get_settings(args.env))
    try:
        return _run(args, services)
    finally:
        services.close()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
