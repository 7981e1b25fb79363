#!filepath: amtest/__init__.py

from .utils.logger import Logging, logs, init_logging
from .utils.filesystem import FileSystem
from .utils.datetime_utils import DateTimeUtils
from .config import AcceptanceOpts, HarnessConfig, InstanceConfig, LogConfig
from .acceptance import (
    AcceptanceTest,
    RunResult,
    alert,
    at,
    between,
    silence,
)

# alias
fs = FileSystem
datetime_utils = DateTimeUtils

__all__ = [
    "logs", "Logging", "init_logging",
    "fs",
    "datetime_utils",
    "AcceptanceOpts", "HarnessConfig", "InstanceConfig", "LogConfig",
    "AcceptanceTest", "RunResult",
    "alert", "at", "between", "silence",
]
