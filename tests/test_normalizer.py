from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from data_providers.base import (
    QUOTE_FACTOR,
    MalformedPayloadError,
    PriceParseError,
    as_price,
)
from data_providers.normalizer import normalize, parse_timestamp, trading_date


def _millis(*args: int) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)


def test_midnight_timestamp_belongs_to_previous_day():
    assert trading_date(_millis(2024, 3, 2, 0, 0, 0)) == date(2024, 3, 1)


def test_intraday_timestamp_keeps_its_own_day():
    assert trading_date(_millis(2024, 3, 2, 13, 45, 0)) == date(2024, 3, 2)


def test_midnight_on_first_of_month_rolls_back_across_month():
    assert trading_date(_millis(2024, 1, 1)) == date(2023, 12, 31)


def test_one_second_past_midnight_is_not_a_close():
    assert trading_date(_millis(2024, 3, 2, 0, 0, 1)) == date(2024, 3, 2)


def test_normalize_converts_pairs_in_order():
    errors: list[Exception] = []
    pairs = [
        [_millis(2024, 3, 2), 61000.5],
        [_millis(2024, 3, 3), "62000.25"],
        [_millis(2024, 3, 3, 9, 30), 62500],
    ]

    points = normalize(pairs, errors)

    assert errors == []
    assert [point.date for point in points] == [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3)]
    assert [point.value for point in points] == [
        6_100_050_000_000,
        6_200_025_000_000,
        62_500 * QUOTE_FACTOR,
    ]


def test_normalize_empty_input():
    errors: list[Exception] = []
    assert normalize([], errors) == []
    assert errors == []


def test_null_price_is_zero_without_error():
    errors: list[Exception] = []
    points = normalize([[_millis(2024, 3, 2, 12), None]], errors)

    assert len(points) == 1
    assert points[0].value == 0
    assert errors == []


def test_missing_price_element_is_zero_without_error():
    errors: list[Exception] = []
    points = normalize([[_millis(2024, 3, 2, 12)]], errors)

    assert [point.value for point in points] == [0]
    assert errors == []


def test_bad_price_is_dropped_and_reported():
    errors: list[Exception] = []
    pairs = [
        [_millis(2024, 3, 1, 12), "1.5"],
        [_millis(2024, 3, 2, 12), "not-a-price"],
        [_millis(2024, 3, 3, 12), "2.5"],
        [_millis(2024, 3, 4, 12), "NaN"],
    ]

    points = normalize(pairs, errors)

    assert len(points) == len(pairs) - 2
    assert [point.date for point in points] == [date(2024, 3, 1), date(2024, 3, 3)]
    assert len(errors) == 2
    assert all(isinstance(error, PriceParseError) for error in errors)


def test_bad_timestamp_aborts_whole_series():
    errors: list[Exception] = []
    with pytest.raises(MalformedPayloadError):
        normalize([[_millis(2024, 3, 1, 12), 1.0], ["yesterday", 2.0]], errors)


def test_empty_entry_is_malformed():
    with pytest.raises(MalformedPayloadError):
        normalize([[]], [])


def test_non_array_entries_are_ignored():
    errors: list[Exception] = []
    points = normalize([{"unexpected": True}, [_millis(2024, 3, 1, 12), 3]], errors)

    assert len(points) == 1
    assert errors == []


def test_parse_timestamp_accepts_numeric_strings():
    assert parse_timestamp("1709337600000") == 1_709_337_600_000
    with pytest.raises(MalformedPayloadError):
        parse_timestamp(True)
    with pytest.raises(MalformedPayloadError):
        parse_timestamp(1.5e12)


def test_as_price_rounds_half_up():
    assert as_price("0.000000015") == 2
    assert as_price("0.1") == 10_000_000
    with pytest.raises(PriceParseError):
        as_price("")


def test_oversized_price_is_dropped_and_neighbours_survive():
    errors: list[Exception] = []
    pairs = [
        [_millis(2024, 3, 1, 12), "1.5"],
        [_millis(2024, 3, 2, 12), "1e30"],
        [_millis(2024, 3, 3, 12), "2"],
    ]

    points = normalize(pairs, errors)

    assert [point.date for point in points] == [date(2024, 3, 1), date(2024, 3, 3)]
    assert len(errors) == 1
    assert isinstance(errors[0], PriceParseError)


def test_out_of_range_timestamp_is_malformed():
    with pytest.raises(MalformedPayloadError):
        trading_date(10**15)
    with pytest.raises(MalformedPayloadError):
        normalize([[10**15, 1.0]], [])
