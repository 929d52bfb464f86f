"""
Shell command execution.

Runs literal command strings from tool definitions through the host shell,
capturing stdout and stderr separately and keeping any console window hidden
on Windows. Every run is bounded by a timeout; failures come back as a
CommandResult rather than an exception.
"""

from __future__ import annotations

import os
import subprocess
import time
from dataclasses import dataclass
from typing import Any, Mapping

from .common import truncate, vlog
from .environment import Platform


CREATE_NO_WINDOW = 0x08000000

DEFAULT_COMMAND_TIMEOUT = 600


@dataclass(frozen=True)
class CommandResult:
    """
    Result of executing one shell command.

    Attributes:
        command: Command string that was run
        success: Whether the process exited with status 0
        stdout: Standard output from command execution
        stderr: Standard error from command execution
        exit_code: Process exit code (-1 if it never ran or was killed)
        duration_seconds: Time taken to execute the command
        error_message: Human-readable error message if failed
        timed_out: Whether the timeout elapsed before the process exited
    """
    command: str
    success: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: int = -1
    duration_seconds: float = 0.0
    error_message: str | None = None
    timed_out: bool = False

    @property
    def output(self) -> str:
        """stdout, or stderr when stdout is blank."""
        return self.stdout if self.stdout.strip() else self.stderr

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "command": self.command,
            "success": self.success,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "duration_seconds": self.duration_seconds,
            "error_message": self.error_message,
            "timed_out": self.timed_out,
        }


def _is_windows(platform: Platform | None) -> bool:
    if platform is not None:
        return platform.is_windows
    return os.name == "nt"


def build_shell_argv(command: str, platform: Platform | None = None) -> list[str]:
    """
    Wrap a command string for the host shell.

    Args:
        command: Literal command line
        platform: Host platform (None uses the running interpreter's OS)

    Returns:
        argv for subprocess
    """
    if _is_windows(platform):
        return ["cmd", "/C", command]
    return ["sh", "-c", command]


def hidden_window_kwargs() -> dict[str, Any]:
    """subprocess keyword arguments that keep a console window from appearing."""
    if os.name != "nt":
        return {}
    kwargs: dict[str, Any] = {"creationflags": getattr(subprocess, "CREATE_NO_WINDOW", CREATE_NO_WINDOW)}
    if hasattr(subprocess, "STARTUPINFO"):
        startupinfo = subprocess.STARTUPINFO()
        startupinfo.dwFlags |= getattr(subprocess, "STARTF_USESHOWWINDOW", 0)
        startupinfo.wShowWindow = getattr(subprocess, "SW_HIDE", 0)
        kwargs["startupinfo"] = startupinfo
    return kwargs


def _decode(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return value


def run_shell_command(
    command: str,
    timeout: float | None = DEFAULT_COMMAND_TIMEOUT,
    platform: Platform | None = None,
    env: Mapping[str, str] | None = None,
    verbose: bool = False,
) -> CommandResult:
    """
    Execute a command string through the host shell.

    The string is passed through untouched; callers only hand over commands
    taken from trusted tool definitions.

    Args:
        command: Literal command line
        timeout: Wall-clock limit in seconds (None waits forever)
        platform: Host platform (selects cmd vs sh)
        env: Environment for the child (defaults to the current process's)
        verbose: Enable verbose logging

    Returns:
        CommandResult with execution outcome
    """
    start_time = time.time()
    argv = build_shell_argv(command, platform)
    vlog(f"Executing: {command}", verbose)

    try:
        result = subprocess.run(
            argv,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
            env=dict(env) if env is not None else None,
            **hidden_window_kwargs(),
        )

        duration = time.time() - start_time
        success = result.returncode == 0

        error_msg = None
        if not success:
            error_msg = f"Command failed with exit code {result.returncode}"
            detail = truncate(result.stderr or result.stdout)
            if detail:
                error_msg += f": {detail}"

        return CommandResult(
            command=command,
            success=success,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            exit_code=result.returncode,
            duration_seconds=duration,
            error_message=error_msg,
        )

    except subprocess.TimeoutExpired as e:
        duration = time.time() - start_time
        return CommandResult(
            command=command,
            success=False,
            stdout=_decode(e.stdout),
            stderr=_decode(e.stderr),
            exit_code=-1,
            duration_seconds=duration,
            error_message=f"Command timed out after {timeout}s",
            timed_out=True,
        )
    except FileNotFoundError:
        duration = time.time() - start_time
        return CommandResult(
            command=command,
            success=False,
            exit_code=-1,
            duration_seconds=duration,
            error_message=f"Shell not found: {argv[0]}",
        )
    except OSError as e:
        duration = time.time() - start_time
        return CommandResult(
            command=command,
            success=False,
            exit_code=-1,
            duration_seconds=duration,
            error_message=f"Could not start command: {e}",
        )
