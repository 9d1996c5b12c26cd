"""Data directory creation for pgprovisioner."""

import os
from typing import Callable

from pgprovisioner.constants import ARCHIVE_STANZA, CONFIG_FILE, HBA_FILE, SUPERUSER
from pgprovisioner.errors import ExecutionError
from pgprovisioner.models import BootstrapRequest


class InitdbService:
    """Runs initdb and layers HBA rules and configuration on the result."""

    def __init__(self, logger, console, filesystem_service, run_cmd: Callable):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service
        self.run_cmd = run_cmd

    def create_data_directory(self, request: BootstrapRequest):
        self.console.print(f"[blue]Creating new data directory {request.data_directory}...[/blue]")
        self.logger.info("Creating new data directory: %s", request.data_directory)

        cmd = [
            "initdb",
            "--username",
            SUPERUSER,
            "--pwfile",
            request.superuser_password_file,
            "-D",
            request.data_directory,
        ]
        try:
            self.run_cmd(cmd, check=True, merge_output=True)
        except ExecutionError as exc:
            self.logger.info("initdb output: %s", exc.output)
            raise ExecutionError(
                f"Error while creating the PostgreSQL instance: {exc}", output=exc.output
            ) from exc

        if request.access_rules_file:
            self._append(
                os.path.join(request.data_directory, HBA_FILE),
                request.access_rules_file,
            )

        config_path = os.path.join(request.data_directory, CONFIG_FILE)
        if request.extra_config_file:
            self._append(config_path, request.extra_config_file)

        # Every instance archives WAL through the manager from the first checkpoint.
        try:
            self.filesystem_service.append_text(config_path, ARCHIVE_STANZA)
        except OSError as exc:
            raise ExecutionError(f"Appending to {CONFIG_FILE} resulted in an error: {exc}") from exc

        self.console.print("[green]Data directory created.[/green]")

    def _append(self, target: str, source: str):
        try:
            self.filesystem_service.append_file(target, source)
        except OSError as exc:
            raise ExecutionError(
                f"Appending to {os.path.basename(target)} resulted in an error: {exc}"
            ) from exc
