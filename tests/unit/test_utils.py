from datetime import datetime, timezone

from ledgersync.core.utils import ensure_aware, is_business_hours, local_hour


def test_business_hours_in_utc():
    wednesday = datetime(2026, 10, 14, 7, 0, tzinfo=timezone.utc)

    assert is_business_hours(wednesday) is True
    assert is_business_hours(wednesday.replace(hour=6, minute=59)) is False
    assert is_business_hours(wednesday.replace(hour=18, minute=59)) is True
    assert is_business_hours(wednesday.replace(hour=19)) is False


def test_weekend_is_outside_business_hours():
    saturday = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
    assert is_business_hours(saturday) is False


def test_business_hours_use_named_timezone():
    # 15:00 UTC is 08:00 in Los Angeles (PDT)
    moment = datetime(2026, 10, 14, 15, 0, tzinfo=timezone.utc)

    assert local_hour(moment, "America/Los_Angeles") == 8
    assert is_business_hours(moment, "America/Los_Angeles") is True
    assert is_business_hours(moment.replace(hour=3), "America/Los_Angeles") is False


def test_naive_datetimes_are_utc():
    naive = datetime(2026, 10, 14, 10, 0)
    assert ensure_aware(naive) == datetime(2026, 10, 14, 10, 0, tzinfo=timezone.utc)
    assert ensure_aware(None) is None
