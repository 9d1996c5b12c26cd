"""Actionable error catalog for pgprovisioner."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "superuser_password_file_missing": {
        "what": "Superuser password file doesn't exist: {path}",
        "next": "Mount the superuser secret or pass the right path with `--pw-file`.",
    },
    "app_password_file_missing": {
        "what": "Application user's password file doesn't exist: {path}",
        "next": "Mount the application secret or pass the right path with `--app-pw-file`.",
    },
    "data_directory_exists": {
        "what": "Data directory already exists: {path}",
        "next": "Bootstrap never overwrites an instance. Remove the directory or use `restore`.",
    },
    "hba_rules_file_missing": {
        "what": "HBA rules file doesn't exist: {path}",
        "next": "Check `--hba-rules-file` or leave it empty to keep the default rules.",
    },
    "config_file_missing": {
        "what": "PostgreSQL configuration file doesn't exist: {path}",
        "next": "Check `--postgresql-config-file` or leave it empty to keep the default settings.",
    },
    "app_user_empty": {
        "what": "The name of the application user is empty.",
        "next": "Pass `--app-user` or set APP_USER.",
    },
    "app_database_empty": {
        "what": "The name of the application database is empty.",
        "next": "Pass `--app-db` or set APP_DB.",
    },
    "restore_target_not_directory": {
        "what": "Restore target exists and is not a directory: {path}",
        "next": "Remove the file or point `--pg-data`/`--pg-wal` to a directory.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
