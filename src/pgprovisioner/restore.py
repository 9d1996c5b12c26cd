"""Restore of an instance data directory from a remote backup."""

import logging
import os
from enum import Enum
from typing import Callable, List, Optional

from rich.console import Console

from .constants import WAL_DIR_NAME
from .errors import OperationCancelled, ProvisionerError, RestoreError, RetriableClassification
from .models import RestoreRequest
from .services.cancellation import CancellationToken
from .services.filesystem import FileSystemService
from .services.validation import ValidationService

console = Console()
logger = logging.getLogger("pgprovisioner")


class RestoreState(str, Enum):
    VALIDATING_TARGET = "validating_target"
    RESTORING = "restoring"
    COMPLETED = "completed"
    FAILED = "failed"


def classify(error: BaseException) -> RetriableClassification:
    """Only restore errors tagged by the collaborator are ever retriable."""
    if isinstance(error, RestoreError):
        return error.classification
    return RetriableClassification.UNCLASSIFIED


def cleanup_data_directory_if_needed(
    error: BaseException, data_directory: str, filesystem_service: FileSystemService
) -> bool:
    """Remove ``data_directory`` after a retriable failure.

    Returns True when the directory was removed. Any other failure keeps the
    partial restore on disk for inspection.
    """
    if classify(error) is not RetriableClassification.RETRIABLE:
        return False

    logger.info("Cleaning up data directory %s", data_directory)
    try:
        return filesystem_service.remove_directory(data_directory)
    except OSError as exc:
        logger.error("Error occurred cleaning up data directory %s: %s", data_directory, exc)
        return False


class InstanceRestorer:
    def __init__(
        self,
        request: RestoreRequest,
        remote_restore_service,
        cancellation: Optional[CancellationToken] = None,
    ):
        self.request = request
        self.remote_restore_service = remote_restore_service
        self.cancellation = cancellation or CancellationToken()
        self.state = RestoreState.VALIDATING_TARGET
        self.moved_aside: List[str] = []

        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.validation_service = ValidationService(filesystem_service=self.filesystem_service)

    def _run_step(self, name: str, callback: Callable, *args, **kwargs):
        self.cancellation.raise_if_cancelled(name)
        logger.debug("Starting stage: %s", name)
        try:
            return callback(*args, **kwargs)
        except ProvisionerError as exc:
            if exc.stage is None:
                exc.stage = name
            raise

    def check_target(self):
        self.moved_aside = self.validation_service.check_restore_target(self.request)

    def transfer(self):
        self.remote_restore_service.restore(self.request)

    def relocate_wal(self):
        if not self.request.wal_directory:
            return
        source = os.path.join(self.request.data_directory, WAL_DIR_NAME)
        if os.path.islink(source) or not os.path.isdir(source):
            return
        try:
            self.filesystem_service.relocate_directory(source, self.request.wal_directory)
        except OSError as exc:
            raise ProvisionerError(
                f"Could not move {WAL_DIR_NAME} to {self.request.wal_directory}: {exc}"
            ) from exc

    def restore(self):
        """Restore the backup, removing the target only after a retriable failure."""
        self.state = RestoreState.VALIDATING_TARGET
        self._run_step("check_target", self.check_target)

        self.state = RestoreState.RESTORING
        try:
            self._run_step("restore", self.transfer)
            self._run_step("relocate_wal", self.relocate_wal)
        except ProvisionerError as exc:
            self.state = RestoreState.FAILED
            logger.error("Error while restoring a backup: %s", exc)
            cleanup_data_directory_if_needed(exc, self.request.data_directory, self.filesystem_service)
            raise

        self.state = RestoreState.COMPLETED
        logger.info("restore command execution completed without errors")

    def run(self) -> int:
        try:
            self.restore()
        except (KeyboardInterrupt, OperationCancelled):
            self.state = RestoreState.FAILED
            console.print("[bold red]Restore cancelled.[/bold red]")
            logger.info("Restore cancelled")
            return 1
        except ProvisionerError as exc:
            self.state = RestoreState.FAILED
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(
                "Restore failed at stage '%s' (%s): %s",
                exc.stage or "<none>",
                classify(exc).value,
                exc,
            )
            return 1
        except Exception as exc:
            self.state = RestoreState.FAILED
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            return 1

        console.print("[bold green]Restore complete.[/bold green]")
        return 0
