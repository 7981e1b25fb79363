#!filepath: amtest/utils/logger.py
import os
import sys
from functools import wraps
from time import perf_counter
from loguru import logger
from typing import Callable, Optional


class Logging:
    """
    Harness logger
    ---------------------------------------
    - stderr sink, always on
    - optional daily-rotated file sink
    - function-level exception/timing decorator
    ---------------------------------------
    """

    def __init__(
        self,
        log_dir: Optional[str] = None,
        rotation: str = "1 day",
        retention: str = "30 days",
        log_level: str = "INFO",
    ):
        self.log_dir = log_dir
        self.rotation = rotation
        self.retention = retention
        self.level = log_level

        if self.log_dir:
            os.makedirs(self.log_dir, exist_ok=True)
        self._configure()

    def _configure(self) -> None:
        """
        Replace every loguru sink with the harness sinks.
        """
        logger.remove()

        logger.add(
            sink=sys.stderr,
            level=self.level,
            format="{time:HH:mm:ss.SSS} | {level} | {message}",
            enqueue=True,  # scheduled actions log from worker threads
            backtrace=True,
            diagnose=False,
        )

        if self.log_dir:
            logger.add(
                sink=f"{self.log_dir}/{{time:YYYY-MM-DD}}.log",
                rotation=self.rotation,
                retention=self.retention,
                level=self.level,
                format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {thread.name} | {message}",
                enqueue=True,
                backtrace=True,
                diagnose=True,
            )

    # ----------- log methods -----------
    def debug(self, msg: str, *args, **kwargs):
        logger.opt(depth=1).debug(msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        logger.opt(depth=1).info(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        logger.opt(depth=1).warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        logger.opt(depth=1).error(msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        logger.opt(depth=1).exception(msg, *args, **kwargs)

    # ---------- decorator ----------
    def catch(
        self,
        msg: str = "Exception occurred",
        log_time: bool = True,
    ) -> Callable:
        """
        Log (and re-raise) any exception escaping the wrapped function,
        and optionally how long the call took.
        """

        def decorator(func: Callable):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start = perf_counter()

                try:
                    result = func(*args, **kwargs)
                except Exception:
                    logger.exception(f"[ERROR] {func.__name__}: {msg}")
                    raise

                if log_time:
                    cost = perf_counter() - start
                    logger.debug(f"[TIME] {func.__name__} took {cost:.4f}s")

                return result

            return wrapper

        return decorator


def init_logging(cfg) -> Logging:
    """
    Rebuild the global sinks from a LogConfig, in place, so every module
    holding ``logs`` picks up the new sinks.
    """
    logs.log_dir = cfg.dir
    logs.rotation = cfg.rotation
    logs.retention = cfg.retention
    logs.level = cfg.level

    if logs.log_dir:
        os.makedirs(logs.log_dir, exist_ok=True)
    logs._configure()
    return logs


# default global logs (replaced by init_logging)
logs = Logging()
