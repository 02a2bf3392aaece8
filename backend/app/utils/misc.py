import random
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TypeVar

T = TypeVar("T")


def shuffle_array(items: Sequence[T], rng: random.Random | None = None) -> list[T]:
    """Return a shuffled copy; the input sequence is left untouched."""
    shuffled = list(items)
    (rng or random).shuffle(shuffled)
    return shuffled


def format_date(value: datetime | None, fmt: str = "%d %b %Y") -> str:
    if value is None:
        return ""
    return value.strftime(fmt)


def format_relative_time(value: datetime, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    seconds = int((now - value).total_seconds())
    suffix = "ago"
    if seconds < 0:
        seconds = -seconds
        suffix = "from now"
    if seconds < 60:
        return "just now"

    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        amount = seconds // size
        if amount:
            plural = "" if amount == 1 else "s"
            return f"{amount} {unit}{plural} {suffix}"
    return "just now"
