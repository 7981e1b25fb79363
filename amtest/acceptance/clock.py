#!filepath: amtest/acceptance/clock.py
from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from amtest.utils.datetime_utils import DateTimeUtils

_MICROSECOND = timedelta(microseconds=1)


@dataclass(frozen=True)
class VirtualClock:
    """
    Maps the test's relative time axis (seconds, 0 = test start) onto
    wall-clock time and back.

    base_time is POSIX seconds, fixed at construction and rounded to the
    microsecond, the resolution of the wire timestamps. The datetime
    conversions count whole microseconds from that base, so
    relativize_datetime(expand_datetime(r)) == r for any r with at most
    six decimals.
    """

    base_time: float = field(default_factory=time.time)
    _base: datetime = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        base = DateTimeUtils.from_posix(self.base_time)
        object.__setattr__(self, "_base", base)
        object.__setattr__(self, "base_time", DateTimeUtils.to_posix(base))

    def expand(self, rel: float) -> float:
        return self.base_time + rel

    def relativize(self, absolute: float) -> float:
        return absolute - self.base_time

    def expand_datetime(self, rel: float) -> datetime:
        return self._base + timedelta(microseconds=round(rel * 1_000_000))

    def relativize_datetime(self, dt: datetime) -> float:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=DateTimeUtils.UTC)
        return ((dt - self._base) // _MICROSECOND) / 1_000_000

    def now(self) -> float:
        return self.relativize(time.time())

    def sleep_until(self, rel: float) -> None:
        """
        Block until expand(rel); a deadline in the past returns at once.
        """
        deadline = self.expand(rel)
        # time.sleep runs on the monotonic clock; re-check the wall clock
        while True:
            delay = deadline - time.time()
            if delay <= 0:
                return
            time.sleep(delay)
