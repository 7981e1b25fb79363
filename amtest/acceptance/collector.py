#!filepath: amtest/acceptance/collector.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from amtest.acceptance.clock import VirtualClock
from amtest.acceptance.model import Alert, AlertBatch, Interval, TestAlert, to_batch
from amtest.acceptance.webhook import WebhookSink
from amtest.config.acceptance_config import AcceptanceOpts
from amtest.utils.logger import logs


@dataclass(frozen=True)
class Expectation:
    interval: Interval
    batch: AlertBatch
    seq: int = 0  # declaration order, breaks ties on interval.earliest


@dataclass(frozen=True)
class Observation:
    observed_at: float
    batch: AlertBatch


@dataclass
class Report:
    """
    Outcome of Collector.reconcile().

    passed: every expectation was satisfied, and (strict only) nothing
    unexpected was observed.
    """

    name: str
    tolerance: float
    satisfied: List[Tuple[Expectation, Observation]] = field(default_factory=list)
    unsatisfied: List[Expectation] = field(default_factory=list)
    unexpected: List[Observation] = field(default_factory=list)
    strict: bool = False

    @property
    def total(self) -> int:
        return len(self.satisfied) + len(self.unsatisfied)

    @property
    def passed(self) -> bool:
        if self.unsatisfied:
            return False
        return not (self.strict and self.unexpected)

    def render(self) -> str:
        status = "PASSED" if self.passed else "FAILED"
        lines = [
            f"collector {self.name!r}: {len(self.satisfied)}/{self.total} expectation(s) satisfied, "
            f"{len(self.unsatisfied)} unsatisfied, {len(self.unexpected)} unexpected "
            f"(tolerance {self.tolerance:.3f}s) -> {status}"
        ]
        for exp, obs in self.satisfied:
            lines.append(f"  [OK]    {exp.interval} seen at t={obs.observed_at:.3f} {exp.batch}")
        for exp in self.unsatisfied:
            lines.append(f"  [MISS]  {exp.interval} expected {exp.batch}")
        for obs in self.unexpected:
            tag = "[EXTRA!]" if self.strict else "[EXTRA] "
            lines.append(f"  {tag} t={obs.observed_at:.3f} {obs.batch}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()


class Collector:
    """
    One notification destination: what should arrive there, and when,
    against what actually arrived.
    """

    def __init__(
        self,
        name: str,
        *,
        clock: VirtualClock,
        opts: Optional[AcceptanceOpts] = None,
        sink: Optional[WebhookSink] = None,
    ):
        self.name = name
        self.clock = clock
        self.opts = opts or AcceptanceOpts()
        self.sink = sink

        self.expected: List[Expectation] = []
        self.collected: List[Observation] = []

    @property
    def url(self) -> str:
        if self.sink is None:
            raise AttributeError(f"collector {self.name!r} has no webhook sink")
        return self.sink.url

    # --------------------------------------------------
    # declarations
    # --------------------------------------------------
    def want(self, interval: Interval, *alerts: TestAlert | Alert) -> None:
        """
        Expect the batch `alerts` to arrive within `interval`.
        """
        self.expected.append(Expectation(interval, to_batch(alerts), seq=len(self.expected)))

    expect = want

    def latest(self) -> float:
        if not self.expected:
            return 0.0
        return max(e.interval.latest for e in self.expected)

    latest_expected_time = latest

    # --------------------------------------------------
    # observations
    # --------------------------------------------------
    def add(self, batch: AlertBatch, at: Optional[float] = None) -> None:
        observed_at = self.clock.now() if at is None else at
        self.collected.append(Observation(observed_at, batch))

    def observe(self) -> None:
        """
        Pull everything the sink received and record it in relative time.
        """
        if self.sink is None:
            return

        received = self.sink.drain()
        for received_at, alerts in received:
            batch = AlertBatch(Alert.from_payload(a, self.clock) for a in alerts)
            at = self.clock.relativize(received_at) if received_at is not None else None
            self.add(batch, at=at)

        logs.info(f"[Collector] {self.name} observed {len(received)} batch(es)")

    # --------------------------------------------------
    # reconciliation
    # --------------------------------------------------
    def reconcile(self) -> Report:
        tol = self.opts.tolerance
        report = Report(
            name=self.name,
            tolerance=tol,
            strict=self.opts.fail_on_unexpected,
        )

        pool = sorted(self.collected, key=lambda o: o.observed_at)
        used = [False] * len(pool)

        for exp in sorted(self.expected, key=lambda e: (e.interval.earliest, e.seq)):
            match = None
            for i, obs in enumerate(pool):
                if used[i] or not exp.interval.contains(obs.observed_at, tol):
                    continue
                if obs.batch.matches(exp.batch, tol):
                    match = i
                    break

            if match is None:
                report.unsatisfied.append(exp)
                continue

            used[match] = True
            report.satisfied.append((exp, pool[match]))

        report.unexpected = [obs for i, obs in enumerate(pool) if not used[i]]

        for obs in report.unexpected:
            logs.warning(f"[Collector] {self.name} unexpected t={obs.observed_at:.3f} {obs.batch}")

        return report
