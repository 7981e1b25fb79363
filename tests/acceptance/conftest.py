# tests/acceptance/conftest.py
from __future__ import annotations

import itertools
import os
import signal
import subprocess
import threading
import uuid
from types import SimpleNamespace

import pytest
import requests
import yaml
from flask import Flask, jsonify, request

from amtest.utils.network import BackgroundServer


# =============================================================================
# Fake Alertmanager (HTTP API only)
# =============================================================================

class FakeAlertmanager:
    """
    In-process stand-in for the service under test.

    - POST /api/v2/alerts     stores the alerts, forwards them to every
                              webhook url in the config file (no grouping, no delay)
    - POST /api/v2/silences   returns a fresh silenceID, also for updates
    - DELETE /api/v2/silence/<id>   404 for unknown ids
    - reload() re-reads the config file (what SIGHUP does)
    """

    def __init__(self, address: str, config_file: str | None = None):
        self.address = address
        self.config_file = config_file
        self.alerts: list[dict] = []
        self.silences: dict[str, dict] = {}
        self.created: list[tuple[str, dict]] = []
        self.deleted: list[str] = []
        self.reloads = 0
        self.webhook_urls: list[str] = []
        self.fail_pushes = False
        self._lock = threading.Lock()
        self._server = BackgroundServer(self._build_app(), address)
        self.reload()

    def start(self):
        self._server.start()

    def stop(self):
        self._server.stop()

    def reload(self):
        self.reloads += 1
        if not self.config_file:
            return
        with open(self.config_file, encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
        self.webhook_urls = [
            wc["url"]
            for recv in cfg.get("receivers", [])
            for wc in recv.get("webhook_configs", [])
        ]

    def _build_app(self) -> Flask:
        app = Flask(__name__)

        @app.post("/api/v2/alerts")
        def push_alerts():
            if self.fail_pushes:
                return jsonify({"error": "boom"}), 500
            alerts = request.get_json(force=True)
            with self._lock:
                self.alerts.extend(alerts)
            for url in self.webhook_urls:
                requests.post(url, json={"status": "firing", "alerts": alerts}, timeout=5)
            return "", 200

        @app.post("/api/v2/silences")
        def set_silence():
            payload = request.get_json(force=True)
            sid = uuid.uuid4().hex
            with self._lock:
                self.silences[sid] = payload
                self.created.append((sid, payload))
            return jsonify({"silenceID": sid})

        @app.delete("/api/v2/silence/<sid>")
        def delete_silence(sid: str):
            with self._lock:
                if sid not in self.silences:
                    return jsonify({"error": "not found"}), 404
                del self.silences[sid]
                self.deleted.append(sid)
            return "", 200

        return app


@pytest.fixture
def fake_am_server():
    """
    Factory: serve a FakeAlertmanager on a given address; stopped at teardown.
    """
    servers = []

    def _serve(address: str, config_file: str | None = None) -> FakeAlertmanager:
        am = FakeAlertmanager(address, config_file)
        am.start()
        servers.append(am)
        return am

    yield _serve

    for am in servers:
        am.stop()


# =============================================================================
# Fake processes (subprocess.Popen / os.kill)
# =============================================================================

_pids = itertools.count(40000)


def _flag(cmd: list[str], name: str) -> str | None:
    prefix = f"--{name}="
    for arg in cmd:
        if arg.startswith(prefix):
            return arg[len(prefix):]
    return None


class DummyProcess:
    """
    Popen look-alike.

    Contract:
    - wait() blocks until stop()/kill(), TimeoutExpired otherwise
    - when serve=True, an HTTP fake Alertmanager runs on --web.listen-address
      until SIGTERM
    """

    def __init__(self, cmd: list[str], serve: bool):
        self.cmd = cmd
        self.pid = next(_pids)
        self.returncode = None
        self._stopped = threading.Event()
        self.am: FakeAlertmanager | None = None
        if serve:
            self.am = FakeAlertmanager(_flag(cmd, "web.listen-address"), _flag(cmd, "config.file"))
            self.am.start()

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        if not self._stopped.wait(timeout):
            raise subprocess.TimeoutExpired(self.cmd, timeout)
        return self.returncode

    def stop(self, code: int):
        if self.am is not None:
            self.am.stop()
        self.returncode = code
        self._stopped.set()

    def kill(self):
        self.stop(-signal.SIGKILL)


@pytest.fixture
def fake_processes(monkeypatch):
    """
    Patch subprocess.Popen and os.kill.

    Returns a namespace:
        procs    : pid -> DummyProcess, in launch order
        signals  : [(pid, sig)] as sent
        serve    : set False to launch processes without an HTTP API
        fail     : set True to make Popen raise FileNotFoundError
        fail_after : launch this many processes, then fail like `fail`
        ignore_term : set True to make SIGTERM a no-op
    """
    state = SimpleNamespace(procs={}, signals=[], serve=True, fail=False, fail_after=None, ignore_term=False)

    def fake_popen(cmd, *args, **kwargs):
        if state.fail or (state.fail_after is not None and len(state.procs) >= state.fail_after):
            raise FileNotFoundError(2, "No such file or directory", cmd[0])
        proc = DummyProcess(list(cmd), serve=state.serve)
        state.procs[proc.pid] = proc
        return proc

    def fake_kill(pid, sig):
        state.signals.append((pid, sig))
        proc = state.procs.get(pid)
        if proc is None:
            raise ProcessLookupError(pid)
        if sig == signal.SIGTERM and not state.ignore_term:
            proc.stop(-signal.SIGTERM)
        elif sig == signal.SIGHUP and proc.am is not None:
            proc.am.reload()

    monkeypatch.setattr(subprocess, "Popen", fake_popen)
    monkeypatch.setattr(os, "kill", fake_kill)

    yield state

    # safety cleanup
    for proc in state.procs.values():
        if proc.returncode is None:
            proc.kill()


def webhook_config(url: str) -> str:
    return yaml.safe_dump(
        {
            "route": {"receiver": "default", "group_wait": "0s", "group_interval": "1s"},
            "receivers": [{"name": "default", "webhook_configs": [{"url": url}]}],
        }
    )


@pytest.fixture
def make_config():
    return webhook_config
