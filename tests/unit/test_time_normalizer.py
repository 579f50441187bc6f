# pylint: disable=missing-module-docstring,missing-function-docstring
from datetime import datetime, timedelta, timezone

import pytest

from errors import InvalidArgumentsError
from services.time_normalizer import (
    local_date,
    normalize,
    parse_hhmm,
    parse_instant,
    resolve_zone,
    wall_clock_iso,
)


def test_minute_precision_is_padded_and_anchored_to_account_zone() -> None:
    assert normalize("2025-01-15T10:00", "America/New_York") == "2025-01-15T10:00:00-05:00"


def test_caller_offset_is_discarded() -> None:
    assert normalize("2025-01-15T10:00:00+02:00", "America/New_York") == "2025-01-15T10:00:00-05:00"
    assert normalize("2025-01-15T10:00:00Z", "America/New_York") == "2025-01-15T10:00:00-05:00"


def test_daylight_saving_offset_follows_the_date() -> None:
    assert normalize("2025-07-01T10:00:00", "America/New_York") == "2025-07-01T10:00:00-04:00"


def test_without_timezone_result_is_utc() -> None:
    assert normalize("2025-01-15T10:00") == "2025-01-15T10:00:00Z"
    assert normalize("2025-01-15T10:00:00-07:00", None) == "2025-01-15T10:00:00Z"


def test_utc_zone_renders_plus_zero() -> None:
    assert normalize("2025-01-15T10:00:00", "UTC") == "2025-01-15T10:00:00+00:00"


def test_half_hour_zone_rounds_to_whole_hour() -> None:
    # Known limitation: +05:30 is rendered as +06:00.
    assert normalize("2025-01-15T10:00:00", "Asia/Kolkata") == "2025-01-15T10:00:00+06:00"


def test_round_trip_preserves_wall_clock_fields() -> None:
    normalized = normalize("2025-03-04T14:30", "Europe/Berlin")
    parsed = parse_instant(normalized)

    assert (parsed.year, parsed.month, parsed.day) == (2025, 3, 4)
    assert (parsed.hour, parsed.minute, parsed.second) == (14, 30, 0)
    assert parsed.utcoffset() == timedelta(hours=1)


def test_unknown_zone_raises() -> None:
    with pytest.raises(InvalidArgumentsError):
        resolve_zone("Mars/Olympus_Mons")

    with pytest.raises(InvalidArgumentsError):
        normalize("2025-01-15T10:00:00", "Not/AZone")


def test_impossible_date_raises() -> None:
    with pytest.raises(InvalidArgumentsError):
        normalize("2025-02-30T10:00:00", "UTC")


def test_parse_instant_handles_z_and_naive() -> None:
    assert parse_instant("2025-01-15T10:00:00Z") == datetime(2025, 1, 15, 10, tzinfo=timezone.utc)
    assert parse_instant("2025-01-15T10:00:00").tzinfo is not None

    with pytest.raises(InvalidArgumentsError):
        parse_instant("next tuesday")


def test_wall_clock_iso_builds_normalized_string() -> None:
    assert wall_clock_iso(2025, 1, 15, 9, 0, 0, "America/New_York") == "2025-01-15T09:00:00-05:00"
    assert wall_clock_iso(2025, 1, 15, 23, 59, 59, None) == "2025-01-15T23:59:59Z"


def test_parse_hhmm() -> None:
    assert parse_hhmm("09:00") == (9, 0)
    assert parse_hhmm("7:45") == (7, 45)

    for bad in ("24:00", "12:60", "noon", ""):
        with pytest.raises(InvalidArgumentsError):
            parse_hhmm(bad)


def test_local_date() -> None:
    assert local_date("2025-01-15T10:00:00-05:00") == "2025-01-15"
