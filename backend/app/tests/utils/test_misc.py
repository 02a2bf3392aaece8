import random
from datetime import datetime, timedelta, timezone

from app.utils.misc import format_date, format_relative_time, shuffle_array

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def test_shuffle_array_returns_copy():
    items = [1, 2, 3, 4, 5]
    shuffled = shuffle_array(items, rng=random.Random(7))

    assert sorted(shuffled) == items
    assert items == [1, 2, 3, 4, 5]


def test_format_date():
    assert format_date(datetime(2024, 3, 5)) == "05 Mar 2024"
    assert format_date(None) == ""


def test_format_relative_time():
    assert format_relative_time(NOW - timedelta(seconds=30), now=NOW) == "just now"
    assert format_relative_time(NOW - timedelta(minutes=1), now=NOW) == "1 minute ago"
    assert format_relative_time(NOW - timedelta(hours=2), now=NOW) == "2 hours ago"
    assert format_relative_time(NOW + timedelta(days=1), now=NOW) == "1 day from now"


def test_format_relative_time_accepts_naive_datetimes():
    naive = datetime(2024, 1, 7, 12, 0)
    assert format_relative_time(naive, now=NOW) == "3 days ago"
