#!filepath: amtest/acceptance/failures.py
from __future__ import annotations

import threading
from typing import List

from amtest.utils.logger import logs


class FailureChannel:
    """
    Single collection point for recoverable errors raised from scheduled
    actions, config writes and teardown. Thread-safe; never raises.
    """

    def __init__(self):
        self._errors: List[BaseException] = []
        self._lock = threading.Lock()

    def error(self, err: BaseException | str, *, context: str = "") -> None:
        if isinstance(err, str):
            err = RuntimeError(err)
        with self._lock:
            self._errors.append(err)
        prefix = f"[{context}] " if context else ""
        logs.error(f"{prefix}{type(err).__name__}: {err}")

    @property
    def errors(self) -> List[BaseException]:
        with self._lock:
            return list(self._errors)

    @property
    def failed(self) -> bool:
        with self._lock:
            return bool(self._errors)

    def __len__(self) -> int:
        with self._lock:
            return len(self._errors)
