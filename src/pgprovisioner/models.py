"""Shared domain models for pgprovisioner."""

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class BootstrapRequest:
    """Everything needed to create and configure a brand new instance."""

    data_directory: str
    superuser_password_file: str
    application_password_file: str
    application_database: str
    application_user: str
    access_rules_file: Optional[str] = None
    extra_config_file: Optional[str] = None
    upstream_host: str = ""
    cluster_name: str = ""


@dataclass(frozen=True)
class RestoreRequest:
    """Identifies the target paths and the cluster whose backup is restored."""

    data_directory: str
    cluster_name: str
    namespace: str
    wal_directory: Optional[str] = None


@dataclass(frozen=True)
class RunningInstance:
    """A transient instance started by InstanceService."""

    data_directory: str
    listen_port: int
    startup_flags: Tuple[str, ...] = field(default_factory=tuple)
