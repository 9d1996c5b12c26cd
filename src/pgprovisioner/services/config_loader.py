"""YAML defaults for the pgprovisioner CLI."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from pgprovisioner.errors import ProvisionerError

_TEXT = (str,)
_INTEGER = (int,)
_NUMBER = (int, float)
_FLAG = (bool,)


class ConfigLoader:
    """Reads a YAML mapping of option defaults and checks each value's type.

    Keys may be written with dashes, like the CLI flags (``pg-data``), or with
    underscores. Relative paths in ``PATH_KEYS`` resolve against the directory
    holding the config file, so a mounted config can refer to its siblings.
    """

    KEY_TYPES = {
        "cluster_name": _TEXT,
        "namespace": _TEXT,
        "pg_data": _TEXT,
        "pg_wal": _TEXT,
        "pw_file": _TEXT,
        "app_db": _TEXT,
        "app_user": _TEXT,
        "app_pw_file": _TEXT,
        "hba_rules_file": _TEXT,
        "postgresql_config_file": _TEXT,
        "parent_node": _TEXT,
        "port": _INTEGER,
        "startup_timeout": _INTEGER,
        "stop_timeout": _INTEGER,
        "command_timeout": _NUMBER,
        "verbose": _FLAG,
        "log_file": _TEXT,
        "barman_destination_path": _TEXT,
        "barman_endpoint_url": _TEXT,
        "barman_cloud_provider": _TEXT,
        "backup_id": _TEXT,
        "kubernetes_api_url": _TEXT,
        "cluster_wait_retries": _INTEGER,
        "cluster_wait_backoff_seconds": _NUMBER,
    }

    PATH_KEYS = {
        "pw_file",
        "app_pw_file",
        "hba_rules_file",
        "postgresql_config_file",
        "log_file",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ProvisionerError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ProvisionerError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ProvisionerError("Config file must contain a YAML mapping at the root.")

        values = {str(key).replace("-", "_"): value for key, value in parsed.items()}

        unknown = sorted(set(values) - set(self.KEY_TYPES))
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ProvisionerError(f"Unknown configuration keys: {unknown_list}")

        for key, value in values.items():
            self._check_type(key, value)

        base_dir = path.resolve().parent
        for key in self.PATH_KEYS & set(values):
            if values[key] and not Path(values[key]).is_absolute():
                values[key] = str(base_dir / values[key])

        return values

    def _check_type(self, key: str, value: Any):
        if value is None:
            return
        expected = self.KEY_TYPES[key]
        # YAML booleans are ints to isinstance; only flags may be true/false.
        if isinstance(value, bool) and bool not in expected:
            raise ProvisionerError(f"Configuration key '{key}' must not be a boolean")
        if not isinstance(value, expected):
            names = " or ".join(kind.__name__ for kind in expected)
            raise ProvisionerError(
                f"Configuration key '{key}' must be of type {names}, got {type(value).__name__}"
            )
