"""PostgreSQL major version detection."""

import os

from packaging import version

from pgprovisioner.constants import VERSION_FILE
from pgprovisioner.errors import ExecutionError


class EngineVersionService:
    """Reads the major version an instance was initialized with."""

    def __init__(self, logger):
        self.logger = logger

    def get_major_version(self, data_directory: str) -> int:
        """Return the major version from ``PG_VERSION``.

        Versions before 10 use two components ("9.6") and still report the
        first one as the major. A missing or garbled file is fatal.
        """
        version_file = os.path.join(data_directory, VERSION_FILE)
        try:
            with open(version_file, "r", encoding="utf-8") as file_obj:
                raw = file_obj.read().strip()
        except OSError as exc:
            raise ExecutionError(f"Could not read {version_file}: {exc}") from exc

        try:
            parsed = version.Version(raw)
        except version.InvalidVersion as exc:
            raise ExecutionError(f"Invalid PostgreSQL version '{raw}' in {version_file}") from exc

        self.logger.debug("Detected PostgreSQL version %s in %s", raw, data_directory)
        return parsed.major
