import sys

import pytest

from pgprovisioner.errors import ExecutionError
from pgprovisioner.services.command_runner import CommandRunner


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


def test_command_runner_raises_with_stderr():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(ExecutionError, match="boom") as exc_info:
        runner.run(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(1)"],
            check=True,
            capture_output=True,
        )

    assert exc_info.value.output == "boom"


def test_command_runner_returns_when_check_disabled():
    runner = CommandRunner(logger=DummyLogger())

    result = runner.run(
        [sys.executable, "-c", "import sys; sys.exit(1)"],
        check=False,
        capture_output=True,
    )

    assert result.returncode == 1


def test_command_runner_merges_output_for_diagnostics():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(ExecutionError) as exc_info:
        runner.run(
            [
                sys.executable,
                "-c",
                "import sys; print('out'); sys.stdout.flush(); sys.stderr.write('err'); sys.exit(2)",
            ],
            merge_output=True,
        )

    assert "out" in exc_info.value.output
    assert "err" in exc_info.value.output


def test_command_runner_passes_input_and_env():
    runner = CommandRunner(logger=DummyLogger())

    result = runner.run(
        [
            sys.executable,
            "-c",
            "import os, sys; print(sys.stdin.read() + os.environ['PGP_TEST'])",
        ],
        capture_output=True,
        input="hello-",
        env={"PGP_TEST": "world"},
    )

    assert result.stdout.strip() == "hello-world"


def test_command_runner_missing_command_raises_execution_error():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(ExecutionError, match="Required command not found"):
        runner.run(["pgprovisioner-command-that-does-not-exist"])


def test_command_runner_timeout_raises_error():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(ExecutionError, match="timed out"):
        runner.run(
            [sys.executable, "-c", "import time; time.sleep(2)"],
            check=True,
            capture_output=True,
            timeout=0.1,
        )
