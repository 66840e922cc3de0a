"""Unit tests for servertime._parts — zone-aware part extraction.

Test Techniques Used:
    - Specification-based Testing: Padded/unpadded fields, day period
    - Boundary Value Analysis: Midnight and noon in 12-hour mode
    - Equivalence Partitioning: Known zone, unknown zone, no zone
    - State Inspection: FormatterCache reuse and entry count
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from servertime._parts import (
    FormatterCache,
    PartFormatter,
    extract_day_period,
    extract_part,
    get_formatter,
    resolve_zone,
)

# 2025-01-01T01:02:03Z
INSTANT = datetime(2025, 1, 1, 1, 2, 3, tzinfo=UTC)


@pytest.fixture
def cache() -> FormatterCache:
    return FormatterCache()


class TestResolveZone:
    """Technique: Equivalence Partitioning."""

    def test_name_resolves_to_zoneinfo(self) -> None:
        assert resolve_zone("Asia/Tokyo") == ZoneInfo("Asia/Tokyo")

    def test_tzinfo_passes_through(self) -> None:
        tz = timezone(timedelta(hours=3))
        assert resolve_zone(tz) is tz

    def test_none_uses_local_zone(self) -> None:
        local = ZoneInfo("Europe/Berlin")
        assert resolve_zone(None, local) is local

    def test_unknown_name_falls_back_with_warning(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        local = ZoneInfo("Europe/Berlin")
        with caplog.at_level(logging.WARNING, logger="servertime._parts"):
            assert resolve_zone("Not/AZone_For_Tests", local) is local
        assert "Not/AZone_For_Tests" in caplog.text


class TestExtractPart:
    """Technique: Specification-based Testing."""

    @pytest.mark.parametrize(
        ("field", "expected"),
        [
            ("year", "2025"),
            ("month", "01"),
            ("day", "01"),
            ("hour", "01"),
            ("minute", "02"),
            ("second", "03"),
        ],
    )
    def test_padded_fields_in_utc(
        self, field: str, expected: str, cache: FormatterCache
    ) -> None:
        assert extract_part(INSTANT, field, "UTC", cache=cache) == expected  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        ("field", "expected"),
        [("month", "1"), ("day", "1"), ("hour", "1"), ("minute", "2"), ("second", "3")],
    )
    def test_unpadded_fields(self, field: str, expected: str, cache: FormatterCache) -> None:
        result = extract_part(INSTANT, field, "UTC", padded=False, cache=cache)  # type: ignore[arg-type]
        assert result == expected

    def test_zone_shifts_fields(self, cache: FormatterCache) -> None:
        # Tokyo is UTC+9 all year.
        assert extract_part(INSTANT, "hour", "Asia/Tokyo", cache=cache) == "10"

    def test_zone_crosses_date_line(self, cache: FormatterCache) -> None:
        # New York is UTC-5 in January: 2024-12-31 20:02.
        assert extract_part(INSTANT, "year", "America/New_York", cache=cache) == "2024"
        assert extract_part(INSTANT, "day", "America/New_York", cache=cache) == "31"

    def test_naive_instant_read_as_utc(self, cache: FormatterCache) -> None:
        naive = INSTANT.replace(tzinfo=None)
        assert extract_part(naive, "hour", "UTC", cache=cache) == "01"

    def test_no_zone_uses_local_zone(self, cache: FormatterCache) -> None:
        result = extract_part(
            INSTANT, "hour", None, local_zone=ZoneInfo("Asia/Tokyo"), cache=cache
        )
        assert result == "10"

    def test_unknown_zone_uses_local_zone(self, cache: FormatterCache) -> None:
        result = extract_part(
            INSTANT, "hour", "Bogus/Zone_Name", local_zone=UTC, cache=cache
        )
        assert result == "01"


class TestTwelveHour:
    """Technique: Boundary Value Analysis."""

    @pytest.mark.parametrize(
        ("hour", "expected"),
        [(0, "12"), (1, "01"), (11, "11"), (12, "12"), (13, "01"), (23, "11")],
    )
    def test_hour_cycle(self, hour: int, expected: str, cache: FormatterCache) -> None:
        instant = datetime(2025, 1, 1, hour, tzinfo=UTC)
        assert extract_part(instant, "hour", "UTC", twelve_hour=True, cache=cache) == expected

    def test_twelve_hour_ignored_for_other_fields(self, cache: FormatterCache) -> None:
        instant = datetime(2025, 1, 1, 13, 45, tzinfo=UTC)
        assert extract_part(instant, "minute", "UTC", twelve_hour=True, cache=cache) == "45"

    @pytest.mark.parametrize(
        ("hour", "expected"),
        [(0, "AM"), (11, "AM"), (12, "PM"), (23, "PM")],
    )
    def test_day_period(self, hour: int, expected: str, cache: FormatterCache) -> None:
        instant = datetime(2025, 1, 1, hour, tzinfo=UTC)
        assert extract_day_period(instant, "UTC", cache=cache) == expected

    def test_day_period_lowercase(self, cache: FormatterCache) -> None:
        instant = datetime(2025, 1, 1, 15, tzinfo=UTC)
        assert extract_day_period(instant, "UTC", uppercase=False, cache=cache) == "pm"

    def test_day_period_follows_zone(self, cache: FormatterCache) -> None:
        # 01:02 UTC is 10:02 in Tokyo, still morning.
        assert extract_day_period(INSTANT, "Asia/Tokyo", cache=cache) == "AM"


class TestFormatterCache:
    """Technique: State Inspection."""

    def test_same_options_reuse_formatter(self, cache: FormatterCache) -> None:
        first = get_formatter(UTC, cache=cache)
        second = get_formatter(UTC, cache=cache)
        assert first is second
        assert len(cache) == 1

    def test_distinct_options_create_entries(self, cache: FormatterCache) -> None:
        get_formatter(UTC, cache=cache)
        get_formatter(UTC, hour12=True, cache=cache)
        get_formatter(ZoneInfo("Asia/Tokyo"), cache=cache)
        assert len(cache) == 3

    def test_entries_bounded_per_zone(self, cache: FormatterCache) -> None:
        """Every field of every kind in two zones creates at most 3 x 2 entries."""
        for zone in ("UTC", "Europe/London"):
            for field in ("year", "month", "day", "hour", "minute", "second"):
                extract_part(INSTANT, field, zone, cache=cache)  # type: ignore[arg-type]
                extract_part(INSTANT, field, zone, padded=False, cache=cache)  # type: ignore[arg-type]
            extract_part(INSTANT, "hour", zone, twelve_hour=True, cache=cache)
            extract_day_period(INSTANT, zone, cache=cache)
        assert len(cache) <= 6

    def test_clear(self, cache: FormatterCache) -> None:
        get_formatter(UTC, cache=cache)
        cache.clear()
        assert len(cache) == 0

    def test_key_contains_locale_and_zone(self, cache: FormatterCache) -> None:
        get_formatter(ZoneInfo("Asia/Tokyo"), cache=cache)
        key = next(iter(cache._entries))
        assert "en-US" in key
        assert "Asia/Tokyo" in key


class TestPartFormatter:
    """Technique: Specification-based Testing."""

    def test_emits_day_period_in_twelve_hour_mode(self) -> None:
        formatter = PartFormatter(locale="en-US", zone=UTC, hour12=True)
        types = [part.type for part in formatter.format_to_parts(INSTANT)]
        assert types[-1] == "dayPeriod"

    def test_no_day_period_in_twenty_four_hour_mode(self) -> None:
        formatter = PartFormatter(locale="en-US", zone=UTC, hour12=False)
        types = [part.type for part in formatter.format_to_parts(INSTANT)]
        assert types == ["year", "month", "day", "hour", "minute", "second"]
