from datetime import date
from pathlib import Path
from types import SimpleNamespace

import pandas as pd
import pytest

from data_providers.base import PricePoint, QuoteFeedData, TransportError
from main import (
    AppContext,
    build_feed,
    build_parser,
    load_price_history_from_csv,
    main,
)
from quote_feed.config_manager import DEFAULT_SETTINGS_PATH, QuoteFeedConfig


class DummyFeed:
    def __init__(self, data=None, latest=None):
        self.data = data or QuoteFeedData()
        self.latest = latest
        self.securities = []

    def get_latest_quote(self, security):
        self.securities.append(security)
        return self.latest

    def get_historical_quotes(self, security, collect_raw_response=False):
        self.securities.append(security)
        return self.data

    def preview_historical_quotes(self, security):
        self.securities.append(security)
        return self.data


def _ctx():
    return AppContext(manager=None, config=QuoteFeedConfig())


def test_build_parser_attaches_handlers():
    parser = build_parser()
    for command in ("latest", "history", "preview"):
        args = parser.parse_args([command, "--symbol", "BTC"])
        assert args.command == command
        assert args.currency == "EUR"
        assert hasattr(args, "handler")


def test_build_feed_uses_configuration():
    config = QuoteFeedConfig()
    config.coingecko.api_key = "demo"
    config.http.max_retries = 5

    feed = build_feed(config)

    assert feed.host == "api.coingecko.com"
    assert feed.http.max_retries == 5
    assert feed.http.headers == {"x-cg-demo-api-key": "demo"}
    assert feed.resolver.catalog_path == "/api/v3/coins/list"


def test_load_price_history_from_csv_sorts_and_scales(tmp_path):
    path = tmp_path / "btc.csv"
    pd.DataFrame({"Date": ["2024-05-01", "2024-04-30"], "Close": [60000.5, 59000.0]}).to_csv(path, index=False)

    prices = load_price_history_from_csv(path)

    assert prices == [
        PricePoint(date=date(2024, 4, 30), value=5_900_000_000_000),
        PricePoint(date=date(2024, 5, 1), value=6_000_050_000_000),
    ]


def test_load_price_history_requires_date_column(tmp_path):
    path = tmp_path / "btc.csv"
    pd.DataFrame({"close": [1.0]}).to_csv(path, index=False)

    with pytest.raises(ValueError):
        load_price_history_from_csv(path)


def test_handle_latest_prints_quote(monkeypatch, capsys):
    feed = DummyFeed(latest=PricePoint(date=date(2024, 6, 9), value=6_100_000_000_000))
    monkeypatch.setattr("main.build_feed", lambda config: feed)
    args = build_parser().parse_args(["latest", "--symbol", "btc", "--currency", "usd"])

    result = args.handler(args, _ctx())

    assert result == 0
    assert "2024-06-09 61000.00000000 USD" in capsys.readouterr().out
    assert feed.securities[0].ticker_symbol == "btc"


def test_handle_latest_without_quote(monkeypatch, capsys):
    monkeypatch.setattr("main.build_feed", lambda config: DummyFeed())
    args = build_parser().parse_args(["latest", "--symbol", "BTC", "--name", "Bitcoin"])

    assert args.handler(args, _ctx()) == 1
    assert "No quote available for Bitcoin" in capsys.readouterr().out


def test_handle_history_writes_output_and_uses_stored_prices(monkeypatch, tmp_path):
    stored = tmp_path / "stored.csv"
    pd.DataFrame({"date": ["2024-05-01"], "value": [100]}).to_csv(stored, index=False)
    data = QuoteFeedData(prices=[PricePoint(date=date(2024, 5, 2), value=200)])
    feed = DummyFeed(data=data)
    monkeypatch.setattr("main.build_feed", lambda config: feed)
    output = tmp_path / "out" / "btc.csv"
    args = build_parser().parse_args(
        ["history", "--symbol", "BTC", "--prices", str(stored), "--output", str(output)]
    )

    result = args.handler(args, _ctx())

    assert result == 0
    assert feed.securities[0].prices == [PricePoint(date=date(2024, 5, 1), value=100)]
    written = pd.read_csv(output)
    assert list(written["date"]) == ["2024-05-02"]
    assert list(written["value"]) == [200]


def test_handle_preview_reports_errors(monkeypatch, capsys):
    data = QuoteFeedData()
    data.add_response("https://api.coingecko.com/api/v3/coins/bitcoin/market_chart?days=62", '{"prices": []}')
    data.add_error(TransportError("timeout"))
    monkeypatch.setattr("main.build_feed", lambda config: DummyFeed(data=data))
    args = build_parser().parse_args(["preview", "--symbol", "BTC", "--show-raw"])

    result = args.handler(args, _ctx())

    assert result == 1
    out = capsys.readouterr().out
    assert "days=62" in out
    assert '{"prices": []}' in out


def test_main_without_command_prints_help(monkeypatch, tmp_path, capsys):
    monkeypatch.setattr("main.configure_logging", lambda settings, verbose: None)
    defaults = DEFAULT_SETTINGS_PATH

    result = main(["--defaults", str(defaults), "--settings", str(tmp_path / "none.json")])

    assert result == 0
    assert "usage" in capsys.readouterr().out.lower()


def test_main_dispatches_to_handler(monkeypatch, tmp_path):
    monkeypatch.setattr("main.configure_logging", lambda settings, verbose: None)
    monkeypatch.setattr("main.build_feed", lambda config: DummyFeed(latest=PricePoint(date=date(2024, 1, 1), value=1)))
    defaults = DEFAULT_SETTINGS_PATH

    result = main(["--defaults", str(defaults), "--settings", str(tmp_path / "none.json"), "latest", "--symbol", "BTC"])

    assert result == 0


def test_context_stub_accepts_namespace_config(monkeypatch, capsys):
    monkeypatch.setattr("main.build_feed", lambda config: DummyFeed())
    args = build_parser().parse_args(["history", "--symbol", "ETH"])

    assert args.handler(args, AppContext(manager=None, config=SimpleNamespace())) == 0
    assert "Empty DataFrame" in capsys.readouterr().out


def test_main_without_command_does_not_need_configuration(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)

    result = main(["--defaults", str(tmp_path / "missing.json")])

    assert result == 0
    assert "usage" in capsys.readouterr().out.lower()
