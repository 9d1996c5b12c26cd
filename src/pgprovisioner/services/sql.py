"""Superuser SQL session against a transient instance."""

import os
from typing import Callable, Optional

from pgprovisioner.constants import LOOPBACK_ADDRESS, SUPERUSER, SYSTEM_DATABASE
from pgprovisioner.errors import ConfigurationError, ExecutionError


def quote_identifier(name: str) -> str:
    """Quote ``name`` as a SQL identifier, doubling embedded quotes."""
    end = name.find("\x00")
    if end >= 0:
        name = name[:end]
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Quote ``value`` as a SQL string literal.

    Backslashes switch the literal to the ``E''`` escape syntax so the result
    is correct whatever ``standard_conforming_strings`` is set to.
    """
    escaped = value.replace("'", "''")
    if "\\" in escaped:
        return " E'" + escaped.replace("\\", "\\\\") + "'"
    return "'" + escaped + "'"


class SqlSession:
    """Executes statements as the superuser through psql.

    Each statement is sent in its own psql invocation, so it commits on its
    own; statements like ALTER SYSTEM and CREATE DATABASE cannot run inside a
    transaction block anyway. The session is closed by its owner when the
    transient instance stops, after which ``execute`` refuses to run.
    """

    def __init__(
        self,
        run_cmd: Callable,
        port: int,
        password: Optional[str] = None,
        host: str = LOOPBACK_ADDRESS,
        user: str = SUPERUSER,
        database: str = SYSTEM_DATABASE,
    ):
        self.run_cmd = run_cmd
        self.port = port
        self.password = password
        self.host = host
        self.user = user
        self.database = database
        self.closed = False

    def close(self):
        self.closed = True

    def execute(self, statement: str):
        if self.closed:
            raise ConfigurationError("SQL session used after the transient instance was stopped")

        env = dict(os.environ)
        if self.password is not None:
            env["PGPASSWORD"] = self.password

        cmd = [
            "psql",
            "-X",
            "-q",
            "-v",
            "ON_ERROR_STOP=1",
            "-h",
            self.host,
            "-p",
            str(self.port),
            "-U",
            self.user,
            "-d",
            self.database,
        ]
        try:
            return self.run_cmd(
                cmd, check=True, capture_output=True, env=env, input=statement
            )
        except ExecutionError as exc:
            raise ConfigurationError(
                f"Error executing '{self._first_words(statement)}': {exc.output or exc}"
            ) from exc

    @staticmethod
    def _first_words(statement: str) -> str:
        # Never echo literals: they may carry passwords.
        return " ".join(statement.split()[:3])
