#!filepath: amtest/acceptance/__init__.py

from .acceptance import AcceptanceTest, RunResult, RunState
from .client import AlertmanagerClient
from .clock import VirtualClock
from .collector import Collector, Expectation, Observation, Report
from .failures import FailureChannel
from .instance import ManagedInstance
from .model import (
    Alert,
    AlertBatch,
    Interval,
    TestAlert,
    TestSilence,
    alert,
    at,
    between,
    silence,
)
from .scheduler import ActionScheduler
from .webhook import WebhookSink

__all__ = [
    "AcceptanceTest", "RunResult", "RunState",
    "AlertmanagerClient",
    "VirtualClock",
    "Collector", "Expectation", "Observation", "Report",
    "FailureChannel",
    "ManagedInstance",
    "Alert", "AlertBatch", "Interval", "TestAlert", "TestSilence",
    "alert", "at", "between", "silence",
    "ActionScheduler",
    "WebhookSink",
]
