"""Domain types, protocols and errors shared by quote feed implementations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional, Protocol

import pandas as pd

QUOTE_FACTOR = 100_000_000


class QuoteFeedError(RuntimeError):
    """Base class for failures raised while gathering quotes."""


class TransportError(QuoteFeedError):
    """Raised when the HTTP request to the provider fails."""


class MalformedPayloadError(QuoteFeedError):
    """Raised when a provider response does not have the expected shape."""


class MissingTickerSymbolError(QuoteFeedError):
    """Raised when a ticker symbol is absent or cannot be mapped to a provider id."""

    def __init__(self, symbol: Optional[str], message: Optional[str] = None) -> None:
        self.symbol = symbol
        super().__init__(message or f"Missing ticker symbol: {symbol}")


class PriceParseError(QuoteFeedError):
    """Raised when a single price value cannot be parsed."""


def as_price(text: str) -> int:
    """Parse a decimal price string into the integer-scaled representation."""

    try:
        value = Decimal(str(text).strip())
        if not value.is_finite():
            raise PriceParseError(f"Unparseable price '{text}'")
        scaled = (value * QUOTE_FACTOR).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ArithmeticError) as exc:
        raise PriceParseError(f"Unparseable price '{text}'") from exc
    return int(scaled)


@dataclass(frozen=True)
class PricePoint:
    """Closing price attributed to a single trading date."""

    date: date
    value: int

    @staticmethod
    def by_date(point: "PricePoint") -> date:
        return point.date

    @property
    def close(self) -> float:
        return self.value / QUOTE_FACTOR


@dataclass(frozen=True)
class RawResponse:
    url: str
    body: str


@dataclass
class Security:
    """Read-only view of an instrument as consumed by quote feeds."""

    name: str
    ticker_symbol: Optional[str]
    currency_code: str
    prices: List[PricePoint] = field(default_factory=list)

    def latest_stored_price(self) -> Optional[PricePoint]:
        return self.prices[-1] if self.prices else None


@dataclass
class QuoteFeedData:
    """Prices, errors and optional raw responses gathered for one request."""

    prices: List[PricePoint] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)
    responses: List[RawResponse] = field(default_factory=list)

    @classmethod
    def with_error(cls, error: Exception) -> "QuoteFeedData":
        data = cls()
        data.add_error(error)
        return data

    def add_price(self, price: PricePoint) -> None:
        self.prices.append(price)

    def add_all_prices(self, prices: List[PricePoint]) -> None:
        self.prices.extend(prices)

    def add_error(self, error: Exception) -> None:
        self.errors.append(error)

    def add_response(self, url: str, body: str) -> None:
        self.responses.append(RawResponse(url=url, body=body))

    def to_frame(self) -> pd.DataFrame:
        """Return the gathered prices as a frame indexed by trading date."""
        frame = pd.DataFrame(
            {
                "date": [pd.Timestamp(point.date) for point in self.prices],
                "value": [point.value for point in self.prices],
            }
        )
        frame["close"] = frame["value"] / QUOTE_FACTOR
        frame = frame.set_index("date")
        frame.index.name = "date"
        return frame


class HttpFetcher(Protocol):
    """Protocol describing the HTTP access required by quote feeds."""

    def build_url(self, host: str, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Return the fully-constructed request URL."""

    def get(self, host: str, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Perform a GET request and return the response body."""


class QuoteFeed(Protocol):
    """Protocol describing the operations exposed by a quote feed."""

    ID: str
    name: str

    def get_latest_quote(self, security: Security) -> Optional[PricePoint]:
        """Return the most recent price for *security*."""

    def get_historical_quotes(self, security: Security, collect_raw_response: bool = False) -> QuoteFeedData:
        """Return prices since the last stored price of *security*."""

    def preview_historical_quotes(self, security: Security) -> QuoteFeedData:
        """Return recent prices for inspection, including raw responses."""


__all__ = [
    "QUOTE_FACTOR",
    "HttpFetcher",
    "MalformedPayloadError",
    "MissingTickerSymbolError",
    "PriceParseError",
    "PricePoint",
    "QuoteFeed",
    "QuoteFeedData",
    "QuoteFeedError",
    "RawResponse",
    "Security",
    "TransportError",
    "as_price",
]
