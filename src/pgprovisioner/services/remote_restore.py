"""Remote backup restore collaborators."""

from typing import Callable, Dict, List, Optional, Protocol

from pgprovisioner.constants import DEFAULT_BACKUP_ID
from pgprovisioner.errors import RestoreError, RetriableClassification
from pgprovisioner.models import RestoreRequest


class RemoteRestoreService(Protocol):
    def restore(self, request: RestoreRequest):
        """Fill ``request.data_directory`` from a backup, or raise."""


class BarmanCloudRestoreService:
    """Restores a base backup from object storage with barman-cloud-restore."""

    # barman-cloud exit statuses: 1 restore failed, 2 cloud connection
    # failed, 3 bad command input.
    EXIT_CODE_CLASSIFICATION: Dict[int, RetriableClassification] = {
        1: RetriableClassification.TERMINAL,
        2: RetriableClassification.RETRIABLE,
        3: RetriableClassification.TERMINAL,
    }

    def __init__(
        self,
        logger,
        console,
        run_cmd: Callable,
        destination_path: str,
        endpoint_url: Optional[str] = None,
        cloud_provider: Optional[str] = None,
        backup_id: str = DEFAULT_BACKUP_ID,
        timeout: Optional[float] = None,
    ):
        self.logger = logger
        self.console = console
        self.run_cmd = run_cmd
        self.destination_path = destination_path
        self.endpoint_url = endpoint_url
        self.cloud_provider = cloud_provider
        self.backup_id = backup_id
        self.timeout = timeout

    def build_command(self, request: RestoreRequest) -> List[str]:
        cmd = ["barman-cloud-restore"]
        if self.endpoint_url:
            cmd += ["--endpoint-url", self.endpoint_url]
        if self.cloud_provider:
            cmd += ["--cloud-provider", self.cloud_provider]
        cmd += [
            self.destination_path,
            request.cluster_name,
            self.backup_id,
            request.data_directory,
        ]
        return cmd

    def restore(self, request: RestoreRequest):
        if not self.destination_path:
            raise RestoreError(
                "No backup destination path configured for the restore.",
                classification=RetriableClassification.TERMINAL,
            )

        self.console.print(
            f"[blue]Restoring backup '{self.backup_id}' of "
            f"{request.namespace}/{request.cluster_name}...[/blue]"
        )
        self.logger.info(
            "Restoring %s from %s into %s",
            self.backup_id,
            self.destination_path,
            request.data_directory,
        )

        result = self.run_cmd(
            self.build_command(request),
            check=False,
            merge_output=True,
            timeout=self.timeout,
        )
        if result.returncode == 0:
            return

        output = (result.stdout or "").strip()
        classification = self.EXIT_CODE_CLASSIFICATION.get(
            result.returncode, RetriableClassification.UNCLASSIFIED
        )
        message = f"barman-cloud-restore exited with code {result.returncode}"
        if output:
            message = f"{message}\n{output}"
        raise RestoreError(message, classification=classification, exit_code=result.returncode)

