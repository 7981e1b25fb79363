"""HTTP client for the alerting service API (Alertmanager v2 routes)."""

from __future__ import annotations

import threading
from typing import Any, Iterable, List, Mapping, Optional

import requests

from amtest.utils.errors import ClientError


def _wrap_with_timeout(request_func, default_timeout: float):
    def wrapped(method, url, **kwargs):
        if "timeout" not in kwargs:
            kwargs["timeout"] = default_timeout
        return request_func(method, url, **kwargs)

    return wrapped


def build_session(*, timeout: float = 5.0, user_agent: str = "amtest") -> requests.Session:
    s = requests.Session()
    s.headers.update({"User-Agent": user_agent})
    s.request = _wrap_with_timeout(s.request, timeout)
    return s


class AlertmanagerClient:
    """Thin client bound to one instance address.

    Scheduled actions call it from several threads at once. Each thread gets
    its own requests.Session unless a session is passed in explicitly.
    """

    def __init__(
        self,
        address: str,
        *,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        base = address if "://" in address else f"http://{address}"
        self._base_url = base.rstrip("/")
        self._timeout = timeout
        self._shared = session
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._lock = threading.Lock()

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def session(self) -> requests.Session:
        """The calling thread's session."""
        if self._shared is not None:
            return self._shared
        s = getattr(self._local, "session", None)
        if s is None:
            s = build_session(timeout=self._timeout)
            self._local.session = s
            with self._lock:
                self._sessions.append(s)
        return s

    # Public API -----------------------------------------------------------
    def push_alerts(self, alerts: Iterable[Mapping[str, Any]]) -> None:
        self._request("POST", "/api/v2/alerts", json=list(alerts))

    def set_silence(self, silence: Mapping[str, Any]) -> str:
        """Create or update a silence and return its identifier."""
        payload = self._request("POST", "/api/v2/silences", json=dict(silence))
        sid = payload.get("silenceID") if isinstance(payload, Mapping) else None
        if not sid:
            raise ClientError(f"silence response without silenceID: {payload!r}")
        return str(sid)

    def delete_silence(self, silence_id: str) -> None:
        self._request("DELETE", f"/api/v2/silence/{silence_id}")

    def close(self) -> None:
        if self._shared is not None:
            self._shared.close()
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for s in sessions:
            s.close()

    # Internal helpers -----------------------------------------------------
    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._base_url}{path}"
        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise ClientError(f"{method} {url} failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            body = (resp.text or "").strip()[:500]
            raise ClientError(
                f"{method} {url} -> {resp.status_code}: {body}",
                status_code=resp.status_code,
            )

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None
