"""Split a report time range into buckets."""
import math
from enum import Enum
from typing import Iterator, List, NamedTuple

SECONDS_1HOUR = 3600
SECONDS_1DAY = 86400


class Resolution(Enum):
    """How finely a report range is split.

    The detail levels fix the number of buckets, hourly/daily fix their
    width and exact keeps the whole range as a single bucket.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    ULTRA = "ultra"
    HOURLY = "hourly"
    DAILY = "daily"
    EXACT = "exact"

    @classmethod
    def parse(cls, value):
        """Accept a member, its name/value, or a bucket count; default to EXACT."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.EXACT
        text = str(value).strip().lower()
        if text.isdigit():
            return _BY_COUNT.get(int(text), cls.EXACT)
        for member in cls:
            if text in (member.value, member.name.lower()):
                return member
        return cls.EXACT

    @property
    def bucket_count(self):
        return _BUCKET_COUNTS.get(self)


_BUCKET_COUNTS = {
    Resolution.LOW: 6,
    Resolution.MEDIUM: 12,
    Resolution.HIGH: 24,
    Resolution.ULTRA: 30,
}
_BY_COUNT = {count: resolution for resolution, count in _BUCKET_COUNTS.items()}


class Bucket(NamedTuple):
    start: int
    end: int

    @property
    def duration(self):
        return self.end - self.start


def bucket_width(start, end, resolution):
    resolution = Resolution.parse(resolution)
    if resolution.bucket_count:
        return math.ceil((end - start) / resolution.bucket_count)
    if resolution is Resolution.HOURLY:
        return SECONDS_1HOUR
    if resolution is Resolution.DAILY:
        return SECONDS_1DAY
    return end - start


def partition(start, end, resolution) -> List[int]:
    """Return bucket boundaries for [start, end].

    The list opens with ``start - width``, steps by ``width`` and always ends
    exactly at ``end``; the last bucket may be shorter. ``start > end`` gives
    an empty list.
    """
    if start > end:
        return []
    width = bucket_width(start, end, resolution)
    if width <= 0:
        return [start]

    boundaries = [start - width]
    while boundaries[-1] < end:
        boundaries.append(min(boundaries[-1] + width, end))
    return boundaries


def iter_buckets(start, end, resolution) -> Iterator[Bucket]:
    """Yield the real buckets, skipping the synthetic one before ``start``."""
    boundaries = partition(start, end, resolution)
    for i in range(1, len(boundaries) - 1):
        yield Bucket(boundaries[i], boundaries[i + 1])
