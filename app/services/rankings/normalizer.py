"""Normalize primary tracking-report payloads into keyword records.

The tracking report is sparse and date-keyed: most fields are maps from a
`YYYYMMDD` snapshot key to a value, and the value itself is sometimes another
map (keyed by URL mask). The provider's snapshot cadence does not line up with
the querying day, so every dated field is read with one rule: take the exact
date key when asked for and present, otherwise the first available entry,
otherwise a default.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from app.services.rankings.types import (
    DEFAULT_TOP_LIMIT,
    KeywordRecord,
    is_valid_position,
    top_keywords,
)

logger = logging.getLogger(__name__)

# Field keys of one tracking-report entry.
FIELD_KEYWORD = "Ph"
FIELD_POSITION = "Fi"
FIELD_PREVIOUS_POSITION = "Be"
FIELD_SEARCH_VOLUME = "Nq"
FIELD_LANDING_URL = "Lu"
FIELD_TRAFFIC = "Tr"

UNRANKED_PLACEHOLDER = "-"
DATE_KEY_FORMAT = "%Y%m%d"


@dataclass(frozen=True, slots=True)
class Scalar:
    value: Any


@dataclass(frozen=True, slots=True)
class DateKeyedMap:
    entries: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class DateKeyedNestedMap:
    entries: Mapping[str, Mapping[str, Any]]


DatedField = Scalar | DateKeyedMap | DateKeyedNestedMap


def classify_field(raw: Any) -> DatedField | None:
    """Tag a raw field value with its shape. Empty or missing values yield None."""
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        if not raw:
            return None
        if all(isinstance(value, Mapping) for value in raw.values()):
            return DateKeyedNestedMap(raw)
        return DateKeyedMap(raw)
    return Scalar(raw)


def _first_value(entries: Mapping[str, Any]) -> Any:
    for value in entries.values():
        return value
    return None


def _pick_entry(entries: Mapping[str, Any], prefer_key: str | None) -> Any:
    if prefer_key is not None and prefer_key in entries:
        return entries[prefer_key]
    return _first_value(entries)


def representative_value(field: DatedField | None, prefer_key: str | None = None) -> Any:
    """Unwrap a dated field to the single value that represents it."""
    if field is None:
        return None
    if isinstance(field, Scalar):
        return field.value
    if isinstance(field, DateKeyedNestedMap):
        inner = _pick_entry(field.entries, prefer_key)
        return _first_value(inner) if inner else None

    value = _pick_entry(field.entries, prefer_key)
    # Mixed maps: a scalar date next to a nested one.
    if isinstance(value, Mapping):
        return _first_value(value)
    return value


def read_dated_value(raw: Any, prefer_key: str | None = None) -> Any:
    return representative_value(classify_field(raw), prefer_key)


def parse_position(value: Any) -> float | None:
    """Parse a ranking position; placeholders, junk and out-of-range values give None."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not text or text == UNRANKED_PLACEHOLDER:
        return None
    try:
        position = float(text)
    except ValueError:
        return None
    if not is_valid_position(position):
        return None
    return int(position) if position.is_integer() else position


def parse_int(value: Any, default: int = 0) -> int:
    """Parse provider volume strings such as `"1,300"` or `"880.0"`."""
    if value is None or isinstance(value, bool):
        return default
    text = str(value).strip().replace(",", "")
    if not text:
        return default
    try:
        number = float(text)
    except ValueError:
        return default
    if not math.isfinite(number):
        return default
    return int(number)


def parse_share_percent(value: Any) -> float:
    """Convert a traffic share in [0, 1] into a percentage; anything else counts as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        share = float(str(value).strip())
    except ValueError:
        return 0.0
    if not math.isfinite(share) or not 0 <= share <= 1:
        return 0.0
    return share * 100


def today_key(today: date | None = None) -> str:
    return (today or date.today()).strftime(DATE_KEY_FORMAT)


def normalize_keyword_entry(entry: Mapping[str, Any], *, date_key: str) -> KeywordRecord | None:
    """Convert one raw tracking-report entry, or return None when it is unranked."""
    keyword = str(entry.get(FIELD_KEYWORD) or "").strip()
    if not keyword:
        return None

    position = parse_position(read_dated_value(entry.get(FIELD_POSITION)))
    if position is None:
        return None

    previous_position = parse_position(read_dated_value(entry.get(FIELD_PREVIOUS_POSITION)))

    url = read_dated_value(entry.get(FIELD_LANDING_URL), prefer_key=date_key)
    traffic = read_dated_value(entry.get(FIELD_TRAFFIC), prefer_key=date_key)

    return KeywordRecord(
        keyword=keyword,
        position=position,
        previous_position=previous_position,
        search_volume=parse_int(entry.get(FIELD_SEARCH_VOLUME)),
        url=str(url) if url else "",
        traffic_percent=parse_share_percent(traffic),
    )


def normalize_tracking_data(
    data: Mapping[str, Any] | None,
    *,
    today: date | None = None,
    limit: int = DEFAULT_TOP_LIMIT,
) -> list[KeywordRecord]:
    """Normalize the `data` map of a tracking report into the best `limit` keywords."""
    if not data:
        return []

    date_key = today_key(today)
    records: list[KeywordRecord] = []
    skipped = 0
    for entry in data.values():
        if not isinstance(entry, Mapping):
            skipped += 1
            continue
        record = normalize_keyword_entry(entry, date_key=date_key)
        if record is None:
            skipped += 1
            continue
        records.append(record)

    logger.debug(
        "Normalized tracking data",
        extra={"entries": len(data), "kept": len(records), "skipped": skipped},
    )
    return top_keywords(records, limit)
