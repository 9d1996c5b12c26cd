"""Subprocess execution service for pgprovisioner."""

import subprocess
from typing import List, Mapping, Optional

from pgprovisioner.errors import ExecutionError


class CommandRunner:
    """Runs external commands with consistent error handling."""

    def __init__(self, logger, default_timeout: Optional[float] = None):
        self.logger = logger
        self.default_timeout = default_timeout

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        env: Optional[Mapping[str, str]] = None,
        merge_output: bool = False,
        input: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        """Run ``cmd`` and return the completed process.

        ``merge_output`` captures stdout and stderr into a single stream, the
        way diagnostics of programs such as initdb are best read. If the call
        is interrupted (timeout, KeyboardInterrupt or a cancellation raised
        from a signal handler) ``subprocess.run`` kills the child before the
        exception propagates, so nothing is left orphaned.
        """
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout
        options = {"text": True, "timeout": effective_timeout}
        if input is not None:
            options["input"] = input
        if env is not None:
            options["env"] = dict(env)
        if merge_output:
            options["stdout"] = subprocess.PIPE
            options["stderr"] = subprocess.STDOUT
        else:
            options["capture_output"] = capture_output

        try:
            result = subprocess.run(cmd, **options)
        except FileNotFoundError as exc:
            raise ExecutionError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            output = exc.output or ""
            if isinstance(output, bytes):
                output = output.decode(errors="replace")
            raise ExecutionError(
                f"Command timed out after {effective_timeout}s: {cmd_str}", output=output
            ) from exc
        except OSError as exc:
            raise ExecutionError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        captured = capture_output or merge_output
        if captured and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        output = ""
        if merge_output:
            output = (result.stdout or "").strip()
        elif capture_output:
            output = (result.stderr or "").strip()

        message = f"Command failed ({result.returncode}): {cmd_str}"
        if output:
            message = f"{message}\n{output}"

        if check:
            raise ExecutionError(message, output=output)

        self.logger.warning(message)
        return result
