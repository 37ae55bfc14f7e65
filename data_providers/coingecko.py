"""CoinGecko quote feed for cryptocurrencies."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from typing import Callable, Optional

import pandas as pd

from quote_feed.messages import MSG_MISSING_TICKER_SYMBOL, format_message

from .base import (
    HttpFetcher,
    MalformedPayloadError,
    MissingTickerSymbolError,
    PricePoint,
    QuoteFeedData,
    QuoteFeedError,
    Security,
)
from .normalizer import normalize
from .ticker_ids import DEFAULT_CATALOG_PATH, DEFAULT_HOST, TickerIdResolver

LOGGER = logging.getLogger(__name__)

EPOCH_START = date(1970, 1, 1)
DEFAULT_MARKET_CHART_PATH = "/api/v3/coins/{coin_id}/market_chart"
DAILY_INTERVAL = "daily"
PREVIEW_MONTHS = 2


def utc_today() -> date:
    """Return the current calendar date in UTC, the zone trading dates are computed in."""
    return datetime.now(timezone.utc).date()


def days_since(start: date, today: date) -> int:
    """Return the number of daily points to request for a window from *start* to *today*."""
    return max(1, (today - start).days + 1)


class CoinGeckoQuoteFeed:
    """Fetch historical and latest prices from the CoinGecko market chart API."""

    ID = "COINGECKO"
    name = "CoinGecko"

    def __init__(
        self,
        http: HttpFetcher,
        *,
        resolver: Optional[TickerIdResolver] = None,
        host: str = DEFAULT_HOST,
        catalog_path: str = DEFAULT_CATALOG_PATH,
        market_chart_path: str = DEFAULT_MARKET_CHART_PATH,
        interval: str = DAILY_INTERVAL,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.http = http
        self.host = host
        self.market_chart_path = market_chart_path
        self.interval = interval
        self.today = today
        self.resolver = resolver or TickerIdResolver(http, host=host, catalog_path=catalog_path)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get_latest_quote(self, security: Security) -> Optional[PricePoint]:
        data = self._fetch_since(security, False, self.today())

        for error in data.errors:
            LOGGER.error("%s: %s", security.name, error)

        if not data.prices:
            return None

        return sorted(data.prices, key=PricePoint.by_date)[-1]

    def get_historical_quotes(self, security: Security, collect_raw_response: bool = False) -> QuoteFeedData:
        latest = security.latest_stored_price()
        start = latest.date if latest is not None else EPOCH_START
        return self._fetch_since(security, collect_raw_response, start)

    def preview_historical_quotes(self, security: Security) -> QuoteFeedData:
        start = (pd.Timestamp(self.today()) - pd.DateOffset(months=PREVIEW_MONTHS)).date()
        return self._fetch_since(security, True, start)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _fetch_since(self, security: Security, collect_raw_response: bool, start: date) -> QuoteFeedData:
        if not security.ticker_symbol:
            return QuoteFeedData.with_error(
                MissingTickerSymbolError(
                    security.ticker_symbol,
                    format_message(MSG_MISSING_TICKER_SYMBOL, security.name),
                )
            )

        data = QuoteFeedData()
        as_of = self.today()

        try:
            coin_id = self.resolver.resolve(security.ticker_symbol)
            path = self.market_chart_path.format(coin_id=coin_id)
            params = {
                "vs_currency": security.currency_code,
                "days": str(days_since(start, as_of)),
                "interval": self.interval,
            }
            LOGGER.debug("Requesting %s days of %s for %s", params["days"], coin_id, security.name)
            body = self.http.get(self.host, path, params)

            if collect_raw_response:
                data.add_response(self.http.build_url(self.host, path, params), body)

            raw_prices = self._extract_prices(body)
            if raw_prices:
                points = normalize(raw_prices, data.errors)
                data.add_all_prices([point for point in points if point.date <= as_of])
        except QuoteFeedError as exc:
            data.add_error(exc)

        return data

    @staticmethod
    def _extract_prices(body: str) -> list:
        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise MalformedPayloadError("Market chart response is not valid JSON") from exc

        if not isinstance(payload, dict):
            raise MalformedPayloadError("Unexpected market chart payload format")

        prices = payload.get("prices")
        if prices is None:
            return []
        if not isinstance(prices, list):
            raise MalformedPayloadError("Market chart 'prices' is not an array")
        return prices


__all__ = ["CoinGeckoQuoteFeed", "days_since", "utc_today", "EPOCH_START"]
