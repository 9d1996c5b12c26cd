"""Transient PostgreSQL instance lifecycle for pgprovisioner."""

import os
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Set

from pgprovisioner.constants import (
    DEFAULT_PORT,
    DEFAULT_STARTUP_TIMEOUT,
    DEFAULT_STOP_TIMEOUT,
    LOOPBACK_ADDRESS,
    POSTMASTER_PID_FILE,
)
from pgprovisioner.errors import ExecutionError, OperationCancelled
from pgprovisioner.models import RunningInstance
from pgprovisioner.services.sql import SqlSession

_ACTIVE_DIRECTORIES: Set[str] = set()
_ACTIVE_LOCK = threading.Lock()


class InstanceService:
    """Starts an instance on loopback only and always stops it again."""

    def __init__(
        self,
        logger,
        console,
        run_cmd: Callable,
        port: int = DEFAULT_PORT,
        startup_timeout: int = DEFAULT_STARTUP_TIMEOUT,
        stop_timeout: int = DEFAULT_STOP_TIMEOUT,
        superuser_password: Optional[str] = None,
        ready_poll_seconds: float = 1.0,
    ):
        self.logger = logger
        self.console = console
        self.run_cmd = run_cmd
        self.port = port
        self.startup_timeout = startup_timeout
        self.stop_timeout = stop_timeout
        self.superuser_password = superuser_password
        self.ready_poll_seconds = ready_poll_seconds

    def build_instance(self, data_directory: str) -> RunningInstance:
        return RunningInstance(
            data_directory=data_directory,
            listen_port=self.port,
            startup_flags=(f"-c listen_addresses='{LOOPBACK_ADDRESS}'", f"-p {self.port}"),
        )

    def with_running_instance(self, data_directory: str, fn: Callable[[SqlSession], None]):
        """Run ``fn`` with a superuser session while the instance is up."""
        with self.running_instance(data_directory) as session:
            return fn(session)

    @contextmanager
    def running_instance(self, data_directory: str) -> Iterator[SqlSession]:
        key = os.path.realpath(data_directory)
        with _ACTIVE_LOCK:
            if key in _ACTIVE_DIRECTORIES:
                raise ExecutionError(f"An instance is already running against {data_directory}")
            _ACTIVE_DIRECTORIES.add(key)

        try:
            if os.path.exists(os.path.join(data_directory, POSTMASTER_PID_FILE)):
                raise ExecutionError(
                    f"{POSTMASTER_PID_FILE} found in {data_directory}: "
                    "another PostgreSQL process may own this data directory"
                )

            instance = self.build_instance(data_directory)
            try:
                self._start(instance)
            except BaseException:
                # Cancellation kills pg_ctl but not the postmaster it forked.
                if os.path.exists(os.path.join(data_directory, POSTMASTER_PID_FILE)):
                    self._stop_after_failure(instance)
                raise

            session = SqlSession(
                run_cmd=self.run_cmd,
                port=instance.listen_port,
                password=self.superuser_password,
            )
            failed = True
            try:
                self._wait_until_ready(instance)
                yield session
                failed = False
            finally:
                session.close()
                if failed:
                    self._stop_after_failure(instance)
                else:
                    self._stop(instance)
        finally:
            with _ACTIVE_LOCK:
                _ACTIVE_DIRECTORIES.discard(key)

    def _start(self, instance: RunningInstance):
        self.console.print("[blue]Starting transient PostgreSQL instance...[/blue]")
        self.logger.info(
            "Starting PostgreSQL on %s:%s for %s",
            LOOPBACK_ADDRESS,
            instance.listen_port,
            instance.data_directory,
        )
        self.run_cmd(
            [
                "pg_ctl",
                "start",
                "-w",
                "-t",
                str(self.startup_timeout),
                "-D",
                instance.data_directory,
                "-o",
                " ".join(instance.startup_flags),
            ],
            check=True,
            merge_output=True,
        )

    def _wait_until_ready(self, instance: RunningInstance):
        cmd = [
            "pg_isready",
            "-h",
            LOOPBACK_ADDRESS,
            "-p",
            str(instance.listen_port),
        ]
        deadline = time.monotonic() + self.startup_timeout

        while True:
            result = self.run_cmd(cmd, check=False, capture_output=True)
            if result.returncode == 0:
                self.logger.debug("PostgreSQL is accepting connections")
                return
            if time.monotonic() >= deadline:
                raise ExecutionError(
                    "PostgreSQL did not accept connections within "
                    f"{self.startup_timeout}s. Check the server log in {instance.data_directory}."
                )
            time.sleep(self.ready_poll_seconds)

    def _stop(self, instance: RunningInstance):
        self.logger.info("Stopping PostgreSQL instance in %s", instance.data_directory)
        try:
            self.run_cmd(
                [
                    "pg_ctl",
                    "stop",
                    "-m",
                    "fast",
                    "-w",
                    "-t",
                    str(self.stop_timeout),
                    "-D",
                    instance.data_directory,
                ],
                check=True,
                merge_output=True,
            )
        except (ExecutionError, OperationCancelled, KeyboardInterrupt) as exc:
            self.logger.warning("Fast shutdown failed, forcing an immediate stop: %s", exc)
            self.run_cmd(
                [
                    "pg_ctl",
                    "stop",
                    "-m",
                    "immediate",
                    "-w",
                    "-D",
                    instance.data_directory,
                ],
                check=True,
                merge_output=True,
            )
            if not isinstance(exc, ExecutionError):
                raise
        self.console.print("[dim]Transient PostgreSQL instance stopped.[/dim]")

    def _stop_after_failure(self, instance: RunningInstance):
        # The original error must win over a failed stop.
        try:
            self._stop(instance)
        except (ExecutionError, OperationCancelled, KeyboardInterrupt) as exc:
            self.logger.error(
                "Could not stop PostgreSQL in %s after a failure: %s",
                instance.data_directory,
                exc,
            )
