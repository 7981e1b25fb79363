# amtest/acceptance/webhook.py
from __future__ import annotations

import threading
import time
from typing import Any, Dict, List, Optional, Tuple

from flask import Flask, jsonify, request

from amtest.utils.logger import logs
from amtest.utils.network import BackgroundServer, free_address

Received = Tuple[float, List[Dict[str, Any]]]


class WebhookSink:
    """
    HTTP endpoint the service under test delivers notifications to.

    Contract:
    - any POST path is accepted; the body is an Alertmanager webhook
      payload {"alerts": [...], ...}
    - every accepted payload is stored with its receive time (POSIX seconds)
    - drain() hands the stored payloads over and forgets them
    """

    def __init__(self, name: str, host: str = "127.0.0.1"):
        self.name = name
        self.address = free_address(host)
        self._received: List[Received] = []
        self._lock = threading.Lock()
        self.app = self._build_app()
        self._server = BackgroundServer(self.app, self.address)

    @property
    def url(self) -> str:
        return f"http://{self.address}/"

    @property
    def running(self) -> bool:
        return self._server.running

    def start(self) -> None:
        self._server.start()
        logs.info(f"[Webhook] {self.name} listening on {self.url}")

    def stop(self) -> None:
        self._server.stop()

    def record(self, alerts: List[Dict[str, Any]], at: Optional[float] = None) -> None:
        received_at = time.time() if at is None else at
        with self._lock:
            self._received.append((received_at, list(alerts)))

    def drain(self) -> List[Received]:
        with self._lock:
            received, self._received = self._received, []
        return received

    def __len__(self) -> int:
        with self._lock:
            return len(self._received)

    # ---------------- internal ----------------

    def _build_app(self) -> Flask:
        app = Flask(__name__)

        @app.post("/", defaults={"path": ""})
        @app.post("/<path:path>")
        def receive(path: str):
            payload = request.get_json(force=True, silent=True)
            if not isinstance(payload, dict) or not isinstance(payload.get("alerts"), list):
                logs.warning(f"[Webhook] {self.name} rejected payload on /{path}")
                return jsonify({"error": "invalid payload"}), 400

            self.record(payload["alerts"])
            logs.debug(
                f"[Webhook] {self.name} received {len(payload['alerts'])} alert(s) "
                f"status={payload.get('status')}"
            )
            return jsonify({"ok": True})

        @app.get("/health")
        def health():
            return jsonify({"ok": True})

        return app
