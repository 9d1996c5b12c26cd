"""Shared constants for pgprovisioner."""

SUPERUSER = "postgres"
SYSTEM_DATABASE = "postgres"

LOOPBACK_ADDRESS = "127.0.0.1"
DEFAULT_PORT = 5432

DEFAULT_STARTUP_TIMEOUT = 60
DEFAULT_STOP_TIMEOUT = 60

HBA_FILE = "pg_hba.conf"
CONFIG_FILE = "postgresql.conf"
VERSION_FILE = "PG_VERSION"
POSTMASTER_PID_FILE = "postmaster.pid"
WAL_DIR_NAME = "pg_wal"

MANAGER_EXECUTABLE = "/controller/manager"
WAL_ARCHIVE_SUBCOMMAND = "wal-archive"
ARCHIVE_STANZA = (
    "archive_mode = on\n"
    f"archive_command = '{MANAGER_EXECUTABLE} {WAL_ARCHIVE_SUBCOMMAND} %p'\n"
)

MIN_PRIMARY_CONNINFO_VERSION = 12

DEFAULT_BACKUP_ID = "latest"
DEFAULT_CONFIG_FILE_NAME = ".pgprovisioner.yml"
