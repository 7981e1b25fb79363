# amtest/acceptance/instance.py
from __future__ import annotations

import os
import signal
import subprocess
import time
from typing import IO, List, Optional

from amtest.acceptance.client import AlertmanagerClient
from amtest.acceptance.clock import VirtualClock
from amtest.acceptance.failures import FailureChannel
from amtest.acceptance.model import Alert, TestAlert, TestSilence, to_batch
from amtest.acceptance.scheduler import ActionScheduler
from amtest.config.instance_config import InstanceConfig
from amtest.utils.errors import HarnessError, HarnessSetupError, InstanceStartError
from amtest.utils.filesystem import FileSystem
from amtest.utils.logger import logs
from amtest.utils.network import free_address


class ManagedInstance:
    """
    One out-of-process alerting service on its own address.

    Lifecycle:
        constructed -> configure() -> start() -> [reload()/configure()]*
        -> terminate() -> cleanup()

    Construction allocates the address, the work dir (config file, storage,
    stdout/stderr logs) and the client; failures there are fatal
    (HarnessSetupError).
    """

    def __init__(
        self,
        name: str,
        config: str,
        *,
        clock: VirtualClock,
        scheduler: ActionScheduler,
        failures: FailureChannel,
        cfg: Optional[InstanceConfig] = None,
    ):
        self.name = name
        self.clock = clock
        self.scheduler = scheduler
        self.failures = failures
        self.cfg = cfg or InstanceConfig()

        self.address = free_address()

        work_dir = None
        try:
            work_dir = FileSystem.temp_dir(prefix=f"amtest_{name}_")
            config_file = FileSystem.temp_file(prefix="am_config_", suffix=".yml")
        except OSError as e:
            if work_dir is not None:
                FileSystem.remove(work_dir)
            raise HarnessSetupError(f"{name}: cannot create temp artifacts: {e}") from e

        self.work_dir = work_dir
        self.config_file = config_file

        self.data_dir = self.work_dir / "data"
        self.stdout_path = self.work_dir / "stdout.log"
        self.stderr_path = self.work_dir / "stderr.log"

        self.client = AlertmanagerClient(self.address, timeout=self.cfg.request_timeout)

        self.process: Optional[subprocess.Popen] = None
        self._outputs: List[IO[bytes]] = []
        self._cleaned = False

        self.config = ""
        self.configure(config)

        logs.info(f"[AM] {self.name} on {self.address}")

    # --------------------------------------------------
    # configuration
    # --------------------------------------------------
    def configure(self, document: str) -> None:
        """
        Rewrite the config file. A running process only sees the change
        after reload().
        """
        self.config = document
        try:
            FileSystem.safe_write(self.config_file, document)
        except OSError as e:
            self.failures.error(e, context=f"AM {self.name} configure")

    update_config = configure

    # --------------------------------------------------
    # process lifecycle
    # --------------------------------------------------
    @property
    def running(self) -> bool:
        return self.process is not None and self.process.poll() is None

    def command(self) -> List[str]:
        return [
            self.cfg.binary,
            f"--config.file={self.config_file}",
            f"--log.level={self.cfg.log_level}",
            f"--web.listen-address={self.address}",
            f"--storage.path={self.data_dir}",
            "--cluster.listen-address=",
            *self.cfg.extra_args,
        ]

    def start(self) -> None:
        if self.running:
            raise HarnessError(f"{self.name}: already started (pid={self.process.pid})")

        cmd = self.command()
        self._close_outputs()

        try:
            FileSystem.ensure_dir(self.data_dir)
            self._outputs.append(open(self.stdout_path, "ab"))
            self._outputs.append(open(self.stderr_path, "ab"))
            stdout, stderr = self._outputs
            self.process = subprocess.Popen(cmd, stdout=stdout, stderr=stderr)
        except OSError as e:
            self._close_outputs()
            raise InstanceStartError(f"Starting {self.name} failed: {e}") from e

        logs.info(f"[AM] {self.name} started pid={self.process.pid} cmd={' '.join(cmd)}")

        # give the process time to bind its listen address
        time.sleep(self.cfg.warmup)

    def terminate(self) -> None:
        """
        SIGTERM; does not wait for the process to exit.
        """
        if self.process is None:
            return
        self._signal(signal.SIGTERM)

    def reload(self) -> None:
        """
        SIGHUP: ask the process to re-read its config file.
        """
        if not self.running:
            raise HarnessError(f"{self.name}: reload on a process that is not running")
        self._signal(signal.SIGHUP)

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """
        Reap the process after terminate(); kill it if it outlives `timeout`.
        """
        if self.process is None:
            return None

        timeout = self.cfg.shutdown_timeout if timeout is None else timeout
        try:
            code = self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logs.warning(f"[AM] {self.name} did not exit in {timeout}s, killing")
            self.process.kill()
            code = self.process.wait()
        finally:
            self._close_outputs()

        logs.debug(f"[AM] {self.name} exited code={code}")
        return code

    def cleanup(self) -> None:
        """
        Remove the config file and work dir. Idempotent, best effort.
        """
        if self._cleaned:
            return
        self._cleaned = True
        self._close_outputs()
        self.client.close()
        FileSystem.remove(self.config_file)
        FileSystem.remove(self.work_dir)

    def stdout_tail(self, n: int = 50) -> str:
        return FileSystem.tail(self.stdout_path, n)

    def stderr_tail(self, n: int = 50) -> str:
        return FileSystem.tail(self.stderr_path, n)

    # --------------------------------------------------
    # scheduled API calls
    # --------------------------------------------------
    def push(self, at: float, *alerts: TestAlert | Alert) -> None:
        """
        Push `alerts` to the ingestion endpoint at relative time `at`.
        """
        payload = [a.to_payload(self.clock) for a in to_batch(alerts)]

        def push_alerts():
            self.client.push_alerts(payload)
            logs.debug(f"[AM] {self.name} pushed {len(payload)} alert(s)")

        self.scheduler.schedule(at, push_alerts)

    def set_silence(self, at: float, sil: TestSilence) -> None:
        """
        Create or update `sil` at `at`; the returned id is stored on `sil`.
        """

        def set_silence():
            sil.id = self.client.set_silence(sil.to_payload(self.clock))
            logs.debug(f"[AM] {self.name} silence set id={sil.id}")

        self.scheduler.schedule(at, set_silence)

    def delete_silence(self, at: float, sil: TestSilence) -> None:
        """
        Delete `sil` at `at`. Must be scheduled no earlier than the
        set_silence() that assigns its id.
        """

        def delete_silence():
            sid = sil.require_id()
            self.client.delete_silence(sid)
            logs.debug(f"[AM] {self.name} silence deleted id={sid}")

        self.scheduler.schedule(at, delete_silence)

    # --------------------------------------------------
    # internal
    # --------------------------------------------------
    def _signal(self, sig: signal.Signals) -> None:
        try:
            os.kill(self.process.pid, sig)
        except ProcessLookupError:
            logs.warning(f"[AM] {self.name} pid={self.process.pid} already gone ({sig.name})")
            return
        logs.debug(f"[AM] {self.name} sent {sig.name}")

    def _close_outputs(self) -> None:
        for f in self._outputs:
            f.close()
        self._outputs = []

    def __repr__(self) -> str:
        return f"ManagedInstance(name={self.name!r}, address={self.address!r})"
