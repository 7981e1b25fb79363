#!filepath: amtest/utils/datetime_utils.py
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional, Union

# Go RFC3339Nano may carry up to 9 fractional digits
_FRACTION = re.compile(r"\.(\d+)")


class DateTimeUtils:
    UTC = timezone.utc

    # ================================================================
    # wire format <-> datetime
    # ================================================================
    @classmethod
    def parse(cls, ts: Union[str, datetime, float, int, None]) -> Optional[datetime]:
        """
        Inputs seen on the wire:
            "2024-05-01T10:00:00.123456789Z"
            "2024-05-01T10:00:00+02:00"
            "0001-01-01T00:00:00Z"        # Go zero time -> None
            1714557600.25                 # POSIX seconds
        """
        if ts is None:
            return None

        if isinstance(ts, datetime):
            dt = ts if ts.tzinfo else ts.replace(tzinfo=cls.UTC)
        elif isinstance(ts, (int, float)):
            dt = datetime.fromtimestamp(ts, cls.UTC)
        elif isinstance(ts, str):
            s = ts.strip()
            if not s:
                return None
            if s.endswith("Z") or s.endswith("z"):
                s = s[:-1] + "+00:00"
            s = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), s, count=1)
            try:
                dt = datetime.fromisoformat(s)
            except ValueError:
                raise ValueError(f"cannot parse timestamp: {ts}") from None
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=cls.UTC)
        else:
            raise TypeError(f"unsupported timestamp type: {type(ts)}")

        if dt.year <= 1:
            return None
        return dt.astimezone(cls.UTC)

    @classmethod
    def format(cls, dt: Optional[datetime]) -> Optional[str]:
        if dt is None:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=cls.UTC)
        return dt.astimezone(cls.UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")

    @classmethod
    def from_posix(cls, seconds: float) -> datetime:
        return datetime.fromtimestamp(seconds, cls.UTC)

    @classmethod
    def to_posix(cls, dt: datetime) -> float:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=cls.UTC)
        return dt.timestamp()
