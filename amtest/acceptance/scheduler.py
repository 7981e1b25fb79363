# amtest/acceptance/scheduler.py
from __future__ import annotations

from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Dict, List

from amtest.acceptance.clock import VirtualClock
from amtest.acceptance.failures import FailureChannel
from amtest.utils.logger import logs

Action = Callable[[], None]


class ActionScheduler:
    """
    ActionScheduler

    - schedule(at, fn) registers fn at relative time `at`; same times accumulate
    - run() gives every action its own worker thread, which sleeps until
      clock.expand(at) and then calls the action
    - run() returns only after every action returned or raised
    - exceptions go to the FailureChannel; siblings keep running
    """

    def __init__(self, clock: VirtualClock, failures: FailureChannel):
        self.clock = clock
        self.failures = failures
        self._actions: Dict[float, List[Action]] = defaultdict(list)

    def schedule(self, at: float, action: Action) -> None:
        self._actions[float(at)].append(action)

    def times(self) -> List[float]:
        return sorted(self._actions)

    def __len__(self) -> int:
        return sum(len(fs) for fs in self._actions.values())

    def run(self) -> None:
        total = len(self)
        if not total:
            logs.info("[Scheduler] no actions to run")
            return

        logs.info(f"[Scheduler] start total={total} times={self.times()}")

        # one worker per action: none of them may queue behind another
        with ThreadPoolExecutor(max_workers=total, thread_name_prefix="action") as pool:
            futures = [
                pool.submit(self._fire, at, action)
                for at in self.times()
                for action in self._actions[at]
            ]
            wait(futures)

        logs.info(f"[Scheduler] done total={total}")

    # ---------------- internal ----------------

    def _fire(self, at: float, action: Action) -> None:
        self.clock.sleep_until(at)
        name = getattr(action, "__name__", repr(action))
        logs.debug(f"[Scheduler] t={at:.2f} fire {name} (now={self.clock.now():.3f})")
        try:
            action()
        except Exception as e:
            self.failures.error(e, context=f"Scheduler t={at:.2f} {name}")
