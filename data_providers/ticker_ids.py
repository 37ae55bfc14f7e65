"""Ticker symbol to CoinGecko coin id resolution with a lazily built cache."""

from __future__ import annotations

import json
import logging
import threading
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional

from .base import HttpFetcher, MalformedPayloadError, MissingTickerSymbolError, QuoteFeedError

LOGGER = logging.getLogger(__name__)

DEFAULT_HOST = "api.coingecko.com"
DEFAULT_CATALOG_PATH = "/api/v3/coins/list"


class TickerIdCache:
    """Holds the ticker to coin id mapping and builds it at most once.

    Readers take the lock only while the mapping is missing. A failed build
    leaves the cache empty so that a later call can try again.
    """

    def __init__(self, mapping: Optional[Mapping[str, str]] = None) -> None:
        self._lock = threading.Lock()
        self._mapping: Optional[Mapping[str, str]] = None
        if mapping is not None:
            self._mapping = MappingProxyType(dict(mapping))

    @property
    def is_populated(self) -> bool:
        return self._mapping is not None

    def get_or_build(self, builder: Callable[[], Dict[str, str]]) -> Mapping[str, str]:
        mapping = self._mapping
        if mapping is not None:
            return mapping

        with self._lock:
            if self._mapping is None:
                self._mapping = MappingProxyType(builder())
            return self._mapping


def parse_catalog(body: str) -> Dict[str, str]:
    """Return ``{symbol: id}`` for a ``/coins/list`` response body."""

    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise MalformedPayloadError("Coin list response is not valid JSON") from exc

    if not isinstance(payload, list):
        raise MalformedPayloadError("Unexpected coin list payload format")

    mapping: Dict[str, str] = {}
    for record in payload:
        if not isinstance(record, dict) or record.get("symbol") is None or record.get("id") is None:
            raise MalformedPayloadError(f"Coin list entry missing symbol or id: {record!r}")
        mapping[str(record["symbol"])] = str(record["id"])
    return mapping


class TickerIdResolver:
    """Resolve ticker symbols to the provider's internal coin ids."""

    def __init__(
        self,
        http: HttpFetcher,
        *,
        host: str = DEFAULT_HOST,
        catalog_path: str = DEFAULT_CATALOG_PATH,
        cache: Optional[TickerIdCache] = None,
    ) -> None:
        self.http = http
        self.host = host
        self.catalog_path = catalog_path
        self.cache = cache if cache is not None else TickerIdCache()

    def resolve(self, ticker: str) -> str:
        """Return the coin id for *ticker*, matching case-insensitively.

        Raises:
            MissingTickerSymbolError: if the symbol is unknown or the coin
                list could not be fetched.
        """
        symbol = ticker.lower()
        try:
            mapping = self.cache.get_or_build(self._fetch_catalog)
        except QuoteFeedError as exc:
            LOGGER.warning("Unable to load coin list: %s", exc)
            raise MissingTickerSymbolError(symbol, f"Missing ticker symbol: {symbol} ({exc})") from exc

        coin_id = mapping.get(symbol)
        if coin_id is None:
            raise MissingTickerSymbolError(symbol)
        return coin_id

    def _fetch_catalog(self) -> Dict[str, str]:
        body = self.http.get(self.host, self.catalog_path)
        mapping = parse_catalog(body)
        LOGGER.info("Loaded %s coin ids from %s", len(mapping), self.host)
        return mapping


__all__ = [
    "DEFAULT_CATALOG_PATH",
    "DEFAULT_HOST",
    "TickerIdCache",
    "TickerIdResolver",
    "parse_catalog",
]
