"""Bootstrap of a brand new PostgreSQL instance."""

import logging
import subprocess
from typing import Callable, List, Optional

from rich.console import Console

from .constants import (
    DEFAULT_PORT,
    DEFAULT_STARTUP_TIMEOUT,
    DEFAULT_STOP_TIMEOUT,
    MIN_PRIMARY_CONNINFO_VERSION,
)
from .errors import OperationCancelled, ProvisionerError
from .models import BootstrapRequest
from .services.app_environment import AppEnvironmentService
from .services.cancellation import CancellationToken
from .services.command_runner import CommandRunner
from .services.engine_version import EngineVersionService
from .services.filesystem import FileSystemService
from .services.initdb import InitdbService
from .services.instance import InstanceService
from .services.replica import ReplicaService
from .services.sql import SqlSession
from .services.validation import ValidationService

console = Console()
logger = logging.getLogger("pgprovisioner")


class InstanceBootstrapper:
    """Creates, configures and stops a new instance, in that order.

    Nothing is retried and nothing is rolled back: when a stage fails the data
    directory stays where it is so it can be inspected.
    """

    def __init__(
        self,
        request: BootstrapRequest,
        port: int = DEFAULT_PORT,
        startup_timeout: int = DEFAULT_STARTUP_TIMEOUT,
        stop_timeout: int = DEFAULT_STOP_TIMEOUT,
        command_timeout: Optional[float] = None,
        cancellation: Optional[CancellationToken] = None,
    ):
        self.request = request
        self.cancellation = cancellation or CancellationToken()
        self.current_step_name: Optional[str] = None
        self.completed_steps: List[str] = []

        self.command_runner = CommandRunner(logger=logger, default_timeout=command_timeout)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.validation_service = ValidationService(filesystem_service=self.filesystem_service)
        self.initdb_service = InitdbService(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
            run_cmd=self._run_cmd,
        )
        self.engine_version_service = EngineVersionService(logger=logger)
        self.instance_service = InstanceService(
            logger=logger,
            console=console,
            run_cmd=self._run_cmd,
            port=port,
            startup_timeout=startup_timeout,
            stop_timeout=stop_timeout,
        )
        self.app_environment_service = AppEnvironmentService(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
        )
        self.replica_service = ReplicaService(logger=logger)

    def _run_cmd(self, cmd: List[str], **kwargs) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, **kwargs)

    def _run_step(self, name: str, callback: Callable, *args, **kwargs):
        self.cancellation.raise_if_cancelled(name)
        self.current_step_name = name
        logger.debug("Starting stage: %s", name)

        try:
            result = callback(*args, **kwargs)
        except ProvisionerError as exc:
            if exc.stage is None:
                exc.stage = name
            raise

        self.completed_steps.append(name)
        self.current_step_name = None
        return result

    def validate(self):
        self.validation_service.validate_bootstrap(self.request)

    def create_data_directory(self):
        self.initdb_service.create_data_directory(self.request)

    def get_major_version(self) -> int:
        return self.engine_version_service.get_major_version(self.request.data_directory)

    def configure_instance(self, major_version: int):
        self.instance_service.superuser_password = self._read_superuser_password()

        def _configure(session: SqlSession):
            self._run_step(
                "configure_application_environment",
                self.app_environment_service.configure,
                session,
                self.request,
            )
            if major_version >= MIN_PRIMARY_CONNINFO_VERSION:
                self._run_step(
                    "configure_replication",
                    self.replica_service.configure_replication,
                    session,
                    self.request.upstream_host,
                )
            else:
                logger.info(
                    "PostgreSQL %s keeps replication settings in recovery.conf, skipping",
                    major_version,
                )

        self.instance_service.with_running_instance(self.request.data_directory, _configure)

    def _read_superuser_password(self) -> Optional[str]:
        # initdb only uses the first line of the password file.
        try:
            content = self.filesystem_service.read_text(self.request.superuser_password_file)
        except OSError as exc:
            raise ProvisionerError(f"Could not read superuser password file: {exc}") from exc
        lines = content.splitlines()
        return lines[0] if lines else None

    def bootstrap(self):
        """Run every stage, raising the first error unchanged."""
        logger.info("Bootstrapping PostgreSQL instance in %s", self.request.data_directory)
        self._run_step("validate", self.validate)
        self._run_step("create_data_directory", self.create_data_directory)
        major_version = self._run_step("detect_major_version", self.get_major_version)
        self._run_step("run_transient_instance", self.configure_instance, major_version)

    def run(self) -> int:
        try:
            self.bootstrap()
        except (KeyboardInterrupt, OperationCancelled):
            console.print("[bold red]Bootstrap cancelled.[/bold red]")
            logger.info("Bootstrap cancelled during stage '%s'", self.current_step_name or "<none>")
            return 1
        except ProvisionerError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error("Bootstrap failed at stage '%s': %s", exc.stage or "<none>", exc)
            logger.info("The data directory was left in place for inspection.")
            return 1
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            return 1

        console.print("[bold green]Bootstrap complete.[/bold green]")
        logger.info("Bootstrap of %s completed without errors", self.request.data_directory)
        return 0
