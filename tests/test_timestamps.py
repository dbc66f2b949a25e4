from datetime import datetime, timezone

from thisisme.core.timestamps import parse_timestamp


def test_parse_timestamp_accepts_any_fraction_length():
    parsed = parse_timestamp("2026-10-18T10:14:00.12345+00:00")
    assert parsed == datetime(2026, 10, 18, 10, 14, 0, 123450, tzinfo=timezone.utc)
    assert parse_timestamp("2026-10-18T10:14:00.1Z").microsecond == 100000


def test_parse_timestamp_defaults_to_utc():
    assert parse_timestamp("2026-10-18T10:14:00").tzinfo is not None
    assert parse_timestamp(datetime(2026, 1, 1)).tzinfo is not None
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
