"""Unit tests for tracking-report normalization."""

from __future__ import annotations

from datetime import date

import pytest

from app.services.rankings.normalizer import (
    DateKeyedMap,
    DateKeyedNestedMap,
    Scalar,
    classify_field,
    normalize_keyword_entry,
    normalize_tracking_data,
    parse_int,
    parse_position,
    parse_share_percent,
    read_dated_value,
)

TODAY = date(2026, 10, 18)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("3", 3),
        (7, 7),
        ("4.5", 4.5),
        ("100", 100),
        ("1", 1),
    ],
)
def test_parse_position_accepts_ranked_values(raw: object, expected: float) -> None:
    assert parse_position(raw) == expected


@pytest.mark.parametrize("raw", ["-", "", None, "0", "101", "-3", "n/a", True])
def test_parse_position_drops_unranked_values(raw: object) -> None:
    assert parse_position(raw) is None


def test_parse_int_handles_provider_number_formats() -> None:
    assert parse_int("1,300") == 1300
    assert parse_int("880.0") == 880
    assert parse_int(None) == 0
    assert parse_int("junk", default=5) == 5


def test_parse_share_percent_scales_fraction() -> None:
    assert parse_share_percent(0.25) == 25.0
    assert parse_share_percent("0.5") == 50.0
    assert parse_share_percent(None) == 0.0
    assert parse_share_percent("bad") == 0.0


def test_classify_field_tags_each_shape() -> None:
    assert classify_field("3") == Scalar("3")
    assert isinstance(classify_field({"20261018": "3"}), DateKeyedMap)
    assert isinstance(classify_field({"20261018": {"*.example.com": "3"}}), DateKeyedNestedMap)
    assert classify_field({}) is None
    assert classify_field(None) is None


def test_read_dated_value_prefers_requested_key() -> None:
    raw = {"20261017": "https://example.com/old", "20261018": "https://example.com/new"}

    assert read_dated_value(raw, prefer_key="20261018") == "https://example.com/new"


def test_read_dated_value_falls_back_to_first_entry() -> None:
    raw = {"20261011": "https://example.com/a", "20261012": "https://example.com/b"}

    assert read_dated_value(raw, prefer_key="20261018") == "https://example.com/a"
    assert read_dated_value(raw) == "https://example.com/a"


def test_read_dated_value_unwraps_nested_maps() -> None:
    raw = {
        "20261017": {"*.example.com/*": "https://example.com/old"},
        "20261018": {"*.example.com/*": "https://example.com/new"},
    }

    assert read_dated_value(raw, prefer_key="20261018") == "https://example.com/new"
    assert read_dated_value(raw, prefer_key="20260101") == "https://example.com/old"


def test_read_dated_value_handles_mixed_maps() -> None:
    raw = {"20261017": {"*.example.com": "5"}, "20261018": "4"}

    assert read_dated_value(raw) == "5"
    assert read_dated_value(raw, prefer_key="20261018") == "4"


def test_normalize_keyword_entry_reads_every_field() -> None:
    entry = {
        "Ph": "seo tools",
        "Fi": {"20261018": "3"},
        "Be": {"20261011": "5"},
        "Nq": "1,300",
        "Lu": {
            "20261017": {"*.example.com/*": "https://example.com/a"},
            "20261018": {"*.example.com/*": "https://example.com/b"},
        },
        "Tr": {"20261018": 0.25},
    }

    record = normalize_keyword_entry(entry, date_key="20261018")

    assert record is not None
    assert record.keyword == "seo tools"
    assert record.position == 3
    assert record.previous_position == 5
    assert record.search_volume == 1300
    assert record.url == "https://example.com/b"
    assert record.traffic_percent == 25.0


def test_normalize_keyword_entry_skips_unranked_placeholder() -> None:
    entry = {"Ph": "not ranked", "Fi": {"20261018": "-"}, "Nq": "90"}

    assert normalize_keyword_entry(entry, date_key="20261018") is None


def test_normalize_keyword_entry_tolerates_sparse_entries() -> None:
    record = normalize_keyword_entry({"Ph": "sparse", "Fi": "12"}, date_key="20261018")

    assert record is not None
    assert record.previous_position is None
    assert record.search_volume == 0
    assert record.url == ""
    assert record.traffic_percent == 0.0


def test_normalize_keyword_entry_requires_keyword() -> None:
    assert normalize_keyword_entry({"Fi": "2"}, date_key="20261018") is None


def test_normalize_tracking_data_keeps_top_twenty_sorted_by_position() -> None:
    data = {str(index): {"Ph": f"keyword {index}", "Fi": {"20261018": str(index)}} for index in range(30, 0, -1)}
    data["unranked"] = {"Ph": "gone", "Fi": {"20261018": "-"}}
    data["too-far"] = {"Ph": "far away", "Fi": "150"}
    data["broken"] = "not a mapping"

    records = normalize_tracking_data(data, today=TODAY)

    assert len(records) == 20
    assert [record.position for record in records] == list(range(1, 21))
    assert all(record.keyword != "gone" for record in records)


def test_normalize_tracking_data_honours_limit_and_empty_input() -> None:
    data = {"0": {"Ph": "a", "Fi": "2"}, "1": {"Ph": "b", "Fi": "1"}}

    assert [record.keyword for record in normalize_tracking_data(data, today=TODAY, limit=1)] == ["b"]
    assert normalize_tracking_data({}, today=TODAY) == []
    assert normalize_tracking_data(None, today=TODAY) == []


@pytest.mark.parametrize("raw", ["inf", "-inf", "Infinity", "1e999", "nan"])
def test_parse_int_treats_non_finite_numbers_as_default(raw: str) -> None:
    assert parse_int(raw) == 0
    assert parse_int(raw, default=7) == 7


@pytest.mark.parametrize("raw", ["nan", "inf", "-inf", "1e999", "1.5", "-0.1", 42])
def test_parse_share_percent_rejects_values_outside_unit_range(raw: object) -> None:
    assert parse_share_percent(raw) == 0.0


def test_parse_share_percent_accepts_unit_range_bounds() -> None:
    assert parse_share_percent(0) == 0.0
    assert parse_share_percent("1") == 100.0


def test_normalize_tracking_data_keeps_entries_with_non_finite_numbers() -> None:
    data = {
        "0": {"Ph": "huge volume", "Fi": "2", "Nq": "inf", "Tr": {"20261018": "nan"}},
        "1": {"Ph": "normal", "Fi": "1", "Nq": "1e999", "Tr": {"20261018": 0.5}},
    }

    records = normalize_tracking_data(data, today=TODAY)

    assert [(record.keyword, record.search_volume, record.traffic_percent) for record in records] == [
        ("normal", 0, 50.0),
        ("huge volume", 0, 0.0),
    ]
