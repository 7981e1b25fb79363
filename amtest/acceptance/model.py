#!filepath: amtest/acceptance/model.py
from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from amtest.acceptance.clock import VirtualClock
from amtest.utils.datetime_utils import DateTimeUtils
from amtest.utils.errors import MissingSilenceIDError

Pairs = Tuple[Tuple[str, str], ...]


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Pairs:
    return tuple(sorted((str(k), str(v)) for k, v in (mapping or {}).items()))


def _pairs(keyval: Tuple[str, ...]) -> Dict[str, str]:
    if len(keyval) % 2:
        raise ValueError(f"odd number of key/value arguments: {keyval}")
    return dict(zip(keyval[::2], keyval[1::2]))


def _quantize(t: Optional[float]) -> Optional[float]:
    # wire timestamps carry whole microseconds
    return None if t is None else round(t * 1_000_000) / 1_000_000


def _time_close(a: Optional[float], b: Optional[float], tolerance: float) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return abs(a - b) <= tolerance


# ============================================================
# Alert records (relative time)
# ============================================================
@dataclass(frozen=True)
class Alert:
    """
    One alert record. starts_at / ends_at are relative seconds, None when unset,
    held at the microsecond resolution of the wire format.
    generator_url does not take part in equality.
    """

    labels: Pairs
    annotations: Pairs = ()
    starts_at: Optional[float] = None
    ends_at: Optional[float] = None
    generator_url: str = field(default="", compare=False)

    def __post_init__(self):
        object.__setattr__(self, "starts_at", _quantize(self.starts_at))
        object.__setattr__(self, "ends_at", _quantize(self.ends_at))

    @classmethod
    def create(
        cls,
        labels: Mapping[str, Any],
        annotations: Optional[Mapping[str, Any]] = None,
        starts_at: Optional[float] = None,
        ends_at: Optional[float] = None,
        generator_url: str = "",
    ) -> "Alert":
        return cls(_freeze(labels), _freeze(annotations), starts_at, ends_at, generator_url)

    def matches(self, other: "Alert", tolerance: float = 0.0) -> bool:
        return (
            self.labels == other.labels
            and self.annotations == other.annotations
            and _time_close(self.starts_at, other.starts_at, tolerance)
            and _time_close(self.ends_at, other.ends_at, tolerance)
        )

    # ---------------- wire format ----------------
    def to_payload(self, clock: VirtualClock) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "labels": dict(self.labels),
            "annotations": dict(self.annotations),
        }
        if self.starts_at is not None:
            payload["startsAt"] = DateTimeUtils.format(clock.expand_datetime(self.starts_at))
        if self.ends_at is not None:
            payload["endsAt"] = DateTimeUtils.format(clock.expand_datetime(self.ends_at))
        if self.generator_url:
            payload["generatorURL"] = self.generator_url
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], clock: VirtualClock) -> "Alert":
        starts = DateTimeUtils.parse(payload.get("startsAt"))
        ends = DateTimeUtils.parse(payload.get("endsAt"))
        return cls.create(
            labels=payload.get("labels") or {},
            annotations=payload.get("annotations") or {},
            starts_at=clock.relativize_datetime(starts) if starts else None,
            ends_at=clock.relativize_datetime(ends) if ends else None,
            generator_url=payload.get("generatorURL") or "",
        )

    def __str__(self) -> str:
        labels = ",".join(f"{k}={v}" for k, v in self.labels)
        window = f"{_fmt(self.starts_at)}..{_fmt(self.ends_at)}"
        if self.annotations:
            ann = ",".join(f"{k}={v}" for k, v in self.annotations)
            return f"{{{labels}}}[{ann}]@{window}"
        return f"{{{labels}}}@{window}"


def _fmt(t: Optional[float]) -> str:
    return "-" if t is None else f"{t:.2f}"


class AlertBatch:
    """
    Unordered multiset of Alert records, matched as one unit.

    ==        : value equality, order ignored
    matches() : same, but start/end times may differ by up to `tolerance`
    """

    __slots__ = ("alerts",)

    def __init__(self, alerts: Iterable[Alert] = ()):
        self.alerts: Tuple[Alert, ...] = tuple(alerts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AlertBatch):
            return NotImplemented
        return Counter(self.alerts) == Counter(other.alerts)

    def __hash__(self) -> int:
        return hash(frozenset(Counter(self.alerts).items()))

    def __len__(self) -> int:
        return len(self.alerts)

    def __iter__(self) -> Iterator[Alert]:
        return iter(self.alerts)

    def matches(self, other: "AlertBatch", tolerance: float = 0.0) -> bool:
        if len(self) != len(other):
            return False
        return _pair_up(list(self.alerts), list(other.alerts), tolerance)

    def __repr__(self) -> str:
        return f"AlertBatch({list(self.alerts)!r})"

    def __str__(self) -> str:
        return "[" + "; ".join(str(a) for a in self.alerts) + "]"


def _pair_up(expected: List[Alert], candidates: List[Alert], tolerance: float) -> bool:
    # batches are small; plain backtracking
    if not expected:
        return not candidates
    head, rest = expected[0], expected[1:]
    for i, cand in enumerate(candidates):
        if head.matches(cand, tolerance) and _pair_up(
            rest, candidates[:i] + candidates[i + 1:], tolerance
        ):
            return True
    return False


# ============================================================
# Intervals
# ============================================================
@dataclass(frozen=True, order=True)
class Interval:
    earliest: float
    latest: float

    def __post_init__(self):
        if self.earliest > self.latest:
            raise ValueError(f"invalid interval: {self.earliest} > {self.latest}")

    def contains(self, t: float, tolerance: float = 0.0) -> bool:
        return self.earliest - tolerance <= t <= self.latest + tolerance

    def __str__(self) -> str:
        return f"[{self.earliest:.2f},{self.latest:.2f}]"


def between(earliest: float, latest: float) -> Interval:
    return Interval(earliest, latest)


def at(t: float) -> Interval:
    return Interval(t, t)


# ============================================================
# Author-side builders
# ============================================================
class TestAlert:
    """
    Alert declared by a test, in relative time.

        alert("alertname", "test", "lbl", "v1").annotate("ann", "v1").active(1, 3)
    """

    __test__ = False

    def __init__(self, *keyval: str):
        self.labels: Dict[str, str] = _pairs(keyval)
        self.annotations: Dict[str, str] = {}
        self.starts_at: Optional[float] = None
        self.ends_at: Optional[float] = None

    def annotate(self, *keyval: str) -> "TestAlert":
        self.annotations.update(_pairs(keyval))
        return self

    def active(self, start: float, end: Optional[float] = None) -> "TestAlert":
        self.starts_at = start
        self.ends_at = end
        return self

    def to_alert(self) -> Alert:
        return Alert.create(self.labels, self.annotations, self.starts_at, self.ends_at)


def alert(*keyval: str) -> TestAlert:
    return TestAlert(*keyval)


def to_batch(alerts: Iterable[TestAlert | Alert]) -> AlertBatch:
    return AlertBatch(a.to_alert() if isinstance(a, TestAlert) else a for a in alerts)


class SilenceID:
    """
    Cell for a silence identifier, written by each create-or-update action
    and read by later actions. An update may come back with a new id (the
    service expires an active silence and recreates it), so set() keeps the
    latest value. Whoever schedules a read must schedule it at or after the
    write; nothing here waits for the value.
    """

    def __init__(self):
        self._value: Optional[str] = None
        self._lock = threading.Lock()

    def set(self, value: str) -> None:
        with self._lock:
            self._value = value

    def get(self) -> Optional[str]:
        with self._lock:
            return self._value

    def require(self) -> str:
        value = self.get()
        if value is None:
            raise MissingSilenceIDError("silence has no identifier yet")
        return value


class TestSilence:
    """
    Silence declared by a test, active over [start, end] in relative time.
    """

    __test__ = False

    def __init__(self, start: float, end: float):
        self.starts_at = start
        self.ends_at = end
        self.matchers: List[Dict[str, Any]] = []
        self.created_by = "amtest"
        self.comment = "acceptance test"
        self._id = SilenceID()

    @property
    def id(self) -> Optional[str]:
        return self._id.get()

    @id.setter
    def id(self, value: str) -> None:
        self._id.set(value)

    def require_id(self) -> str:
        return self._id.require()

    def match(self, *keyval: str) -> "TestSilence":
        for name, value in _pairs(keyval).items():
            self.matchers.append({"name": name, "value": value, "isRegex": False, "isEqual": True})
        return self

    def match_re(self, *keyval: str) -> "TestSilence":
        for name, value in _pairs(keyval).items():
            self.matchers.append({"name": name, "value": value, "isRegex": True, "isEqual": True})
        return self

    def to_payload(self, clock: VirtualClock) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "matchers": [dict(m) for m in self.matchers],
            "startsAt": DateTimeUtils.format(clock.expand_datetime(self.starts_at)),
            "endsAt": DateTimeUtils.format(clock.expand_datetime(self.ends_at)),
            "createdBy": self.created_by,
            "comment": self.comment,
        }
        if self.id is not None:
            payload["id"] = self.id
        return payload


def silence(start: float, end: float) -> TestSilence:
    return TestSilence(start, end)
