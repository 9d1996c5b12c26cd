import subprocess

import pytest

from pgprovisioner.errors import ConfigurationError, ExecutionError
from pgprovisioner.services.sql import SqlSession, quote_identifier, quote_literal


def test_quote_identifier_doubles_quotes():
    assert quote_identifier("app") == '"app"'
    assert quote_identifier('we"ird') == '"we""ird"'


def test_quote_literal_escapes_quotes_and_backslashes():
    assert quote_literal("latest") == "'latest'"
    assert quote_literal("it's") == "'it''s'"
    assert quote_literal("a\\b") == " E'a\\\\b'"


def test_execute_sends_statement_on_stdin():
    calls = []

    def fake_run_cmd(cmd, **kwargs):
        calls.append((cmd, kwargs))
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    session = SqlSession(run_cmd=fake_run_cmd, port=5432, password="secret")
    session.execute("CREATE USER \"app\"")

    cmd, kwargs = calls[0]
    assert cmd[0] == "psql"
    assert cmd[cmd.index("-h") + 1] == "127.0.0.1"
    assert cmd[cmd.index("-U") + 1] == "postgres"
    assert "ON_ERROR_STOP=1" in cmd
    assert "CREATE USER" not in " ".join(cmd)
    assert kwargs["input"] == "CREATE USER \"app\""
    assert kwargs["env"]["PGPASSWORD"] == "secret"


def test_execute_failure_becomes_configuration_error_without_literals():
    def failing_run_cmd(cmd, **_kwargs):
        raise ExecutionError("Command failed (3): psql", output='ERROR:  role "app" does not exist')

    session = SqlSession(run_cmd=failing_run_cmd, port=5432)

    with pytest.raises(ConfigurationError) as exc_info:
        session.execute("ALTER USER \"app\" PASSWORD 'hunter2'")

    assert "does not exist" in str(exc_info.value)
    assert "hunter2" not in str(exc_info.value)


def test_closed_session_refuses_to_execute():
    session = SqlSession(run_cmd=lambda *_a, **_k: None, port=5432)
    session.close()

    with pytest.raises(ConfigurationError, match="after the transient instance was stopped"):
        session.execute("SELECT 1")
