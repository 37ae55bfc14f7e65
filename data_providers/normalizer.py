"""Conversion of CoinGecko ``[timestamp, price]`` pairs into price points."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, List, MutableSequence, Sequence

from .base import MalformedPayloadError, PricePoint, PriceParseError, as_price

LOGGER = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_timestamp(value: Any) -> int:
    """Return *value* as epoch milliseconds or raise :class:`MalformedPayloadError`."""

    if isinstance(value, bool):
        raise MalformedPayloadError(f"Invalid timestamp {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise MalformedPayloadError(f"Invalid timestamp {value!r}") from exc


def trading_date(timestamp_ms: int) -> date:
    """Return the trading date a UTC millisecond timestamp is attributed to.

    CoinGecko reports the close of day D at 00:00:00 UTC of day D+1, so an
    exact midnight belongs to the previous calendar day.
    """

    try:
        instant = _EPOCH + timedelta(milliseconds=timestamp_ms)
        if instant.hour == 0 and instant.minute == 0 and instant.second == 0:
            return instant.date() - timedelta(days=1)
    except (OverflowError, ValueError) as exc:
        raise MalformedPayloadError(f"Timestamp out of range: {timestamp_ms}") from exc
    return instant.date()


def normalize(raw_pairs: Sequence[Any], errors: MutableSequence[Exception]) -> List[PricePoint]:
    """Convert *raw_pairs* into price points in input order.

    Unparseable prices are appended to *errors* and the pair is dropped. A
    missing or null price counts as zero. Entries that are not arrays are
    ignored.

    Raises:
        MalformedPayloadError: if a timestamp is missing, not an integer or
            outside the representable date range.
    """

    points: List[PricePoint] = []
    for pair in raw_pairs:
        if not isinstance(pair, (list, tuple)):
            continue
        if not pair:
            raise MalformedPayloadError("Price entry without timestamp")

        timestamp = parse_timestamp(pair[0])
        raw_price = pair[1] if len(pair) > 1 else None
        try:
            value = as_price(str(raw_price)) if raw_price is not None else 0
        except PriceParseError as exc:
            LOGGER.debug("Skipping price at %s: %s", timestamp, exc)
            errors.append(exc)
            continue

        points.append(PricePoint(date=trading_date(timestamp), value=value))
    return points


__all__ = ["normalize", "parse_timestamp", "trading_date"]
