"""External tool execution shared by every build step.

This module handles:
- Composing argument lists from command templates
- Running install, build, compile and minify commands with subprocess
- Capturing combined stdout/stderr as the tool diagnostic
- Enforcing timeouts and terminating tool process groups

A tool that runs and exits non-zero is a normal result (``success=False``).
A tool that cannot be started, or that times out, raises
ToolExecutionError.
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

_active_lock = threading.Lock()
_active_processes: set[subprocess.Popen[str]] = set()


class ToolExecutionError(Exception):
    """Raised when a tool cannot be started or does not finish in time."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "execution_error",
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.code = code
        self.output = output

    @property
    def started(self) -> bool:
        """Whether the tool process was started before failing."""
        return self.code != "execution_error"


@dataclass
class ToolResult:
    """Result of a tool execution.

    Attributes:
        success: Whether the tool exited with status 0.
        exit_code: Process exit code.
        output: Combined stdout and stderr.
        command: The command that was executed, shell-quoted.
        started_at: Start time.
        finished_at: Finish time.
        error_message: Summary if the tool failed.
    """

    success: bool
    exit_code: int
    output: str
    command: str
    started_at: datetime
    finished_at: datetime
    error_message: str | None = None

    @property
    def duration(self) -> float:
        """Wall-clock duration in seconds."""
        return (self.finished_at - self.started_at).total_seconds()


def format_command(template: str, **values: object) -> list[str]:
    """Expand a command template into an argument list.

    Placeholder values are shell-quoted before substitution, so paths with
    spaces survive the split.

    Args:
        template: Command with ``{name}`` placeholders.
        **values: Placeholder values.

    Returns:
        Argument list suitable for subprocess.

    Raises:
        ValueError: If the template references an unknown placeholder.
    """
    quoted = {name: shlex.quote(str(value)) for name, value in values.items()}
    try:
        rendered = template.format(**quoted)
    except (KeyError, IndexError) as e:
        raise ValueError(
            f"Unknown placeholder {e} in command template: {template}"
        ) from None
    return shlex.split(rendered)


def _kill(proc: subprocess.Popen[str]) -> None:
    """Kill a tool and everything it spawned."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        proc.kill()


def terminate_active_tools() -> int:
    """Kill every tool process currently running.

    Returns:
        Number of processes signalled.
    """
    with _active_lock:
        procs = list(_active_processes)
    for proc in procs:
        if proc.poll() is None:
            logger.warning("Terminating tool process %d", proc.pid)
            _kill(proc)
    return len(procs)


def run_tool(
    cmd: list[str] | str,
    cwd: Path,
    timeout: float | None = None,
    env_override: dict[str, str] | None = None,
) -> ToolResult:
    """Run an external tool and wait for it.

    Args:
        cmd: Argument list, or a string to run through the shell.
        cwd: Working directory.
        timeout: Timeout in seconds (None = no timeout).
        env_override: Optional environment variable overrides.

    Returns:
        ToolResult with the exit status and captured output.

    Raises:
        ToolExecutionError: If the tool fails to start or times out.
    """
    shell = isinstance(cmd, str)
    cmd_str = cmd if isinstance(cmd, str) else shlex.join(cmd)
    logger.info("Executing: %s", cmd_str)
    logger.debug("Working directory: %s", cwd)

    env: dict[str, str] | None = None
    if env_override:
        env = dict(os.environ)
        env.update(env_override)

    started_at = datetime.now(timezone.utc)
    try:
        proc = subprocess.Popen(
            cmd,
            cwd=cwd,
            shell=shell,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            start_new_session=True,
        )
    except OSError as e:
        message = f"Failed to execute {cmd_str}: {e}"
        logger.error(message)
        raise ToolExecutionError(message, code="execution_error") from e

    with _active_lock:
        _active_processes.add(proc)
    try:
        try:
            output, _ = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            _kill(proc)
            output, _ = proc.communicate()
            message = f"{cmd_str} timed out after {timeout} seconds"
            logger.error(message)
            raise ToolExecutionError(
                message,
                exit_code=-1,
                code="tool_timeout",
                output=output or "",
            ) from e
        except BaseException:
            _kill(proc)
            proc.wait()
            raise
    finally:
        with _active_lock:
            _active_processes.discard(proc)

    finished_at = datetime.now(timezone.utc)
    exit_code = proc.returncode
    success = exit_code == 0
    error_message: str | None = None
    if not success:
        error_message = f"{cmd_str} failed with exit code {exit_code}"
        logger.error(error_message)
    else:
        logger.debug(
            "Finished in %.1fs: %s", (finished_at - started_at).total_seconds(), cmd_str
        )

    return ToolResult(
        success=success,
        exit_code=exit_code,
        output=output or "",
        command=cmd_str,
        started_at=started_at,
        finished_at=finished_at,
        error_message=error_message,
    )


__all__ = [
    "ToolExecutionError",
    "ToolResult",
    "format_command",
    "run_tool",
    "terminate_active_tools",
]
