# amtest/utils/network.py
from __future__ import annotations

import socket
import threading

from flask import Flask
from werkzeug.serving import BaseWSGIServer, make_server

from amtest.utils.errors import HarnessSetupError
from amtest.utils.logger import logs


def free_address(host: str = "127.0.0.1") -> str:
    """
    Let the OS pick a free port, close the socket and hope it is still
    free when the process binds it.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind((host, 0))
            port = s.getsockname()[1]
    except OSError as e:
        raise HarnessSetupError(f"cannot allocate listen address: {e}") from e
    return f"{host}:{port}"


def split_address(address: str) -> tuple[str, int]:
    host, _, port = address.rpartition(":")
    return host, int(port)


class BackgroundServer:
    """
    Serve a Flask app on a fixed address from a daemon thread.

    Contract:
    - start() returns once the socket is bound
    - stop() shuts the serve loop down and joins the thread
    - threaded=True: concurrent requests are fine
    """

    def __init__(self, app: Flask, address: str):
        self.app = app
        self.address = address
        self._server: BaseWSGIServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._server is not None

    def start(self) -> None:
        if self._server is not None:
            return

        host, port = split_address(self.address)
        # werkzeug reports bind errors with sys.exit(1)
        try:
            self._server = make_server(host, port, self.app, threaded=True)
        except (OSError, SystemExit) as e:
            raise HarnessSetupError(f"cannot bind {self.address}: {e}") from e

        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name=f"server-{self.address}",
            daemon=True,
        )
        self._thread.start()
        logs.debug(f"[Server] serving on {self.address}")

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._server = None
        self._thread = None
        logs.debug(f"[Server] stopped {self.address}")
