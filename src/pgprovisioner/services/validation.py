"""Precondition checks for pgprovisioner requests."""

import os
from typing import List

from pgprovisioner.errors import ValidationError
from pgprovisioner.errors_catalog import actionable_error
from pgprovisioner.models import BootstrapRequest, RestoreRequest


class ValidationService:
    """Validates requests before anything touches the filesystem."""

    def __init__(self, filesystem_service):
        self.filesystem_service = filesystem_service

    def validate_bootstrap(self, request: BootstrapRequest):
        """Raise ValidationError for the first violated rule, in a fixed order.

        This method only reads the filesystem: a request rejected here never
        reaches initdb.
        """
        exists = self.filesystem_service.exists

        if not exists(request.superuser_password_file):
            raise ValidationError(
                actionable_error(
                    "superuser_password_file_missing", path=request.superuser_password_file
                )
            )

        if not exists(request.application_password_file):
            raise ValidationError(
                actionable_error(
                    "app_password_file_missing", path=request.application_password_file
                )
            )

        if exists(request.data_directory):
            raise ValidationError(
                actionable_error("data_directory_exists", path=request.data_directory)
            )

        if request.access_rules_file and not exists(request.access_rules_file):
            raise ValidationError(
                actionable_error("hba_rules_file_missing", path=request.access_rules_file)
            )

        if request.extra_config_file and not exists(request.extra_config_file):
            raise ValidationError(
                actionable_error("config_file_missing", path=request.extra_config_file)
            )

        if not request.application_user:
            raise ValidationError(actionable_error("app_user_empty"))

        if not request.application_database:
            raise ValidationError(actionable_error("app_database_empty"))

    def check_restore_target(self, request: RestoreRequest) -> List[str]:
        """Make the restore targets ready to receive a backup.

        Missing or empty directories are accepted. A directory that already
        holds data is moved aside, never deleted. Returns the paths it moved.
        """
        targets = [request.data_directory]
        if request.wal_directory:
            targets.append(request.wal_directory)

        for target in targets:
            if self.filesystem_service.exists(target) and not os.path.isdir(target):
                raise ValidationError(actionable_error("restore_target_not_directory", path=target))

        moved = []
        for target in targets:
            if not self.filesystem_service.exists(target):
                continue
            if self.filesystem_service.is_empty_dir(target):
                continue
            moved.append(self.filesystem_service.move_aside(target))
        return moved
