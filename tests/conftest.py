# tests/conftest.py
from __future__ import annotations

import pytest
from loguru import logger

from amtest.acceptance.clock import VirtualClock
from amtest.acceptance.failures import FailureChannel
from amtest.acceptance.scheduler import ActionScheduler
from amtest.config.instance_config import InstanceConfig


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)  # or sys.stderr
    yield


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def failures() -> FailureChannel:
    return FailureChannel()


@pytest.fixture
def scheduler(clock, failures) -> ActionScheduler:
    return ActionScheduler(clock, failures)


@pytest.fixture
def instance_cfg() -> InstanceConfig:
    """
    No warm-up, short shutdown: fake processes start and stop instantly.
    """
    return InstanceConfig(binary="alertmanager", warmup=0.0, shutdown_timeout=1.0)
