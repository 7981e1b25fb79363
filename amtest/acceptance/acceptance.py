#!filepath: amtest/acceptance/acceptance.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from amtest.acceptance.clock import VirtualClock
from amtest.acceptance.collector import Collector, Report
from amtest.acceptance.failures import FailureChannel
from amtest.acceptance.instance import ManagedInstance
from amtest.acceptance.scheduler import ActionScheduler
from amtest.acceptance.webhook import WebhookSink
from amtest.config.acceptance_config import AcceptanceOpts
from amtest.config.harness_config import HarnessConfig
from amtest.config.instance_config import InstanceConfig
from amtest.utils.errors import AcceptanceFailure, HarnessError
from amtest.utils.logger import init_logging, logs


class RunState(str, Enum):
    BUILT = "built"
    RUNNING = "running"
    RECONCILING = "reconciling"
    TORN_DOWN = "torn_down"


@dataclass
class RunResult:
    reports: List[Report] = field(default_factory=list)
    errors: List[BaseException] = field(default_factory=list)

    @property
    def failed_reports(self) -> List[Report]:
        return [r for r in self.reports if not r.passed]

    @property
    def passed(self) -> bool:
        return not self.errors and not self.failed_reports

    def raise_for_failures(self) -> None:
        if not self.passed:
            raise AcceptanceFailure(self.errors, self.failed_reports)


class AcceptanceTest:
    """
    Declarative acceptance test against one or more alerting service instances.

    Usage:
        t = AcceptanceTest(AcceptanceOpts(tolerance=0.5))
        co = t.collector("webhook")
        am = t.alertmanager(config_with(co.url))

        am.push(1, alert("alertname", "test").active(1))
        co.want(between(2, 2.5), alert("alertname", "test").active(1))

        t.run().raise_for_failures()

    State machine (single use):
        BUILT -> RUNNING -> RECONCILING -> TORN_DOWN
    TORN_DOWN is reached even when start-up fails.
    """

    def __init__(
        self,
        opts: Optional[AcceptanceOpts] = None,
        *,
        instance_cfg: Optional[InstanceConfig] = None,
        clock: Optional[VirtualClock] = None,
    ):
        self.opts = opts or AcceptanceOpts()
        self.instance_cfg = instance_cfg or InstanceConfig()
        self.clock = clock or VirtualClock()

        self.failures = FailureChannel()
        self.scheduler = ActionScheduler(self.clock, self.failures)

        self.instances: List[ManagedInstance] = []
        self.collectors: List[Collector] = []
        self.state = RunState.BUILT

    @classmethod
    def from_config(cls, cfg: HarnessConfig) -> "AcceptanceTest":
        """
        Build from a loaded HarnessConfig; also applies its log section.
        """
        init_logging(cfg.log)
        return cls(cfg.acceptance.model_copy(), instance_cfg=cfg.instance)

    # --------------------------------------------------
    # builders
    # --------------------------------------------------
    def do(self, at: float, action: Callable[[], None]) -> None:
        """
        Run `action` at relative time `at`.
        """
        self._check_built()
        self.scheduler.schedule(at, action)

    def alertmanager(self, config: str) -> ManagedInstance:
        self._check_built()
        am = ManagedInstance(
            f"am{len(self.instances)}",
            config,
            clock=self.clock,
            scheduler=self.scheduler,
            failures=self.failures,
            cfg=self.instance_cfg,
        )
        self.instances.append(am)
        return am

    def collector(self, name: str) -> Collector:
        self._check_built()
        co = Collector(name, clock=self.clock, opts=self.opts, sink=WebhookSink(name))
        self.collectors.append(co)
        return co

    # --------------------------------------------------
    # run
    # --------------------------------------------------
    def run(self) -> RunResult:
        """
        Start everything, fire the scheduled actions, wait for the last
        expectation to close, reconcile every collector, tear down.
        """
        self._check_built()
        self.state = RunState.RUNNING
        result = RunResult()

        try:
            for co in self.collectors:
                co.sink.start()
            for am in self.instances:
                am.start()

            self.scheduler.run()

            self.state = RunState.RECONCILING
            latest = max((co.latest() for co in self.collectors), default=0.0)
            logs.info(f"[Acceptance] waiting until t={latest:.2f} (now t={self.clock.now():.2f})")
            self.clock.sleep_until(latest)

            for co in self.collectors:
                co.observe()
                report = co.reconcile()
                logs.info(f"[Acceptance]\n{report.render()}")
                result.reports.append(report)
        finally:
            self._teardown()

        result.errors = self.failures.errors
        return result

    # --------------------------------------------------
    # internal
    # --------------------------------------------------
    def _check_built(self) -> None:
        if self.state is not RunState.BUILT:
            raise HarnessError(f"acceptance test already run (state={self.state.value})")

    def _teardown(self) -> None:
        for am in self.instances:
            try:
                am.terminate()
                am.wait()
                out, err = am.stdout_tail(), am.stderr_tail()
                if out or err:
                    logs.debug(f"[AM] {am.name} stdout:\n{out}")
                    logs.debug(f"[AM] {am.name} stderr:\n{err}")
            except Exception as e:
                self.failures.error(e, context=f"teardown {am.name}")
            finally:
                am.cleanup()

        for co in self.collectors:
            co.sink.stop()

        self.state = RunState.TORN_DOWN
        logs.info("[Acceptance] torn down")
