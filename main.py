"""CLI entry point for the CoinGecko quote feed."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from data_providers.base import PricePoint, QuoteFeedData, Security, as_price
from data_providers.coingecko import CoinGeckoQuoteFeed
from data_providers.web_access import WebAccess
from quote_feed.config_manager import ConfigManager, QuoteFeedConfig, configure_logging
from quote_feed.messages import MSG_NO_QUOTE_AVAILABLE, format_message

logger = logging.getLogger("quote_feed.cli")


@dataclass
class AppContext:
    manager: ConfigManager
    config: QuoteFeedConfig


def build_context(args: argparse.Namespace) -> AppContext:
    manager_kwargs: Dict[str, Path] = {}
    if args.defaults:
        manager_kwargs["default_path"] = Path(args.defaults)
    if args.settings:
        manager_kwargs["user_path"] = Path(args.settings)
    manager = ConfigManager(**manager_kwargs)
    config = manager.load(force_reload=True)
    return AppContext(manager=manager, config=config)


def build_feed(config: QuoteFeedConfig) -> CoinGeckoQuoteFeed:
    web_access = WebAccess(
        timeout=config.http.timeout_seconds,
        max_retries=config.http.max_retries,
        backoff_seconds=config.http.backoff_seconds,
        rate_limit_sleep=config.http.rate_limit_sleep,
        headers=config.coingecko.headers(),
    )
    return CoinGeckoQuoteFeed(
        web_access,
        host=config.coingecko.host,
        catalog_path=config.coingecko.catalog_path,
        market_chart_path=config.coingecko.market_chart_path,
        interval=config.coingecko.interval,
    )


def load_price_history_from_csv(path: Path) -> List[PricePoint]:
    """Read stored prices from a CSV with a ``date`` column and ``value`` or ``close``."""
    if not path.exists():
        raise FileNotFoundError(f"Price file not found: {path}")
    frame = pd.read_csv(path)
    frame.columns = [str(column).lower() for column in frame.columns]
    if "date" not in frame.columns:
        raise ValueError(f"Price file {path} has no date column")
    frame["date"] = pd.to_datetime(frame["date"])
    frame = frame.sort_values("date")

    if "value" in frame.columns:
        values = [int(value) for value in frame["value"]]
    elif "close" in frame.columns:
        values = [as_price(str(value)) for value in frame["close"]]
    else:
        raise ValueError(f"Price file {path} needs a value or close column")

    return [
        PricePoint(date=timestamp.date(), value=value)
        for timestamp, value in zip(frame["date"], values)
    ]


def build_security(args: argparse.Namespace) -> Security:
    prices = load_price_history_from_csv(Path(args.prices)) if getattr(args, "prices", None) else []
    return Security(
        name=args.name or args.symbol,
        ticker_symbol=args.symbol,
        currency_code=args.currency.upper(),
        prices=prices,
    )


def report_errors(data: QuoteFeedData) -> int:
    for error in data.errors:
        logger.error("%s", error)
    return 1 if data.errors else 0


def handle_latest(args: argparse.Namespace, ctx: AppContext) -> int:
    feed = build_feed(ctx.config)
    security = build_security(args)
    price = feed.get_latest_quote(security)
    if price is None:
        print(format_message(MSG_NO_QUOTE_AVAILABLE, security.name))
        return 1
    print(f"{security.name} {price.date.isoformat()} {price.close:.8f} {security.currency_code}")
    return 0


def handle_history(args: argparse.Namespace, ctx: AppContext) -> int:
    feed = build_feed(ctx.config)
    security = build_security(args)
    data = feed.get_historical_quotes(security, collect_raw_response=False)
    frame = data.to_frame()

    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(output, index=True, index_label="date")
        logger.info("Saved %s prices to %s", len(frame), output)
    else:
        print(frame.tail(args.preview_rows).to_string())

    return report_errors(data)


def handle_preview(args: argparse.Namespace, ctx: AppContext) -> int:
    feed = build_feed(ctx.config)
    security = build_security(args)
    data = feed.preview_historical_quotes(security)

    print(data.to_frame().to_string())
    if args.show_raw:
        for response in data.responses:
            print(response.url)
            print(response.body)

    return report_errors(data)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CoinGecko cryptocurrency quote feed CLI")
    parser.add_argument("--settings", type=Path, help="Path to user settings override JSON")
    parser.add_argument("--defaults", type=Path, help="Path to alternate default settings JSON")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    def add_security_arguments(command: argparse.ArgumentParser) -> None:
        command.add_argument("--symbol", required=True, help="Cryptocurrency ticker symbol (e.g. BTC)")
        command.add_argument("--currency", default="EUR", help="Quote currency code (default: EUR)")
        command.add_argument("--name", help="Display name for the security (default: the symbol)")

    latest = subparsers.add_parser("latest", help="Fetch the latest quote")
    add_security_arguments(latest)
    latest.set_defaults(handler=handle_latest)

    history = subparsers.add_parser("history", help="Fetch historical quotes since the last stored price")
    add_security_arguments(history)
    history.add_argument("--prices", type=Path, help="CSV of stored prices used to pick the start date")
    history.add_argument("--output", type=Path, help="Optional CSV path for the fetched prices")
    history.add_argument("--preview-rows", type=int, default=10, help="Rows to show in CLI preview")
    history.set_defaults(handler=handle_history)

    preview = subparsers.add_parser("preview", help="Preview the last two months of quotes")
    add_security_arguments(preview)
    preview.add_argument("--show-raw", action="store_true", help="Print the request URL and raw response")
    preview.set_defaults(handler=handle_preview)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "handler"):
        parser.print_help()
        return 0

    ctx = build_context(args)
    configure_logging(ctx.config.logging, args.verbose)

    return args.handler(args, ctx)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
