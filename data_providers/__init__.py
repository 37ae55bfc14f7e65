from .base import (
    MalformedPayloadError,
    MissingTickerSymbolError,
    PriceParseError,
    PricePoint,
    QuoteFeedData,
    QuoteFeedError,
    Security,
    TransportError,
)
from .coingecko import CoinGeckoQuoteFeed
from .ticker_ids import TickerIdCache, TickerIdResolver
from .web_access import WebAccess

__all__ = [
    'CoinGeckoQuoteFeed',
    'MalformedPayloadError',
    'MissingTickerSymbolError',
    'PriceParseError',
    'PricePoint',
    'QuoteFeedData',
    'QuoteFeedError',
    'Security',
    'TickerIdCache',
    'TickerIdResolver',
    'TransportError',
    'WebAccess',
]
