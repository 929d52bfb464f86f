"""
Common utilities and shared vocabulary for cli_manager modules.
"""

from __future__ import annotations

import os
import sys
from enum import Enum


class Outcome(str, Enum):
    """Terminal outcome of an orchestration run."""
    SUCCESS = "success"
    ALREADY_SATISFIED = "already_satisfied"
    FAILED = "failed"


class ErrorKind(str, Enum):
    """
    Classification of per-tool errors.

    NOT_INSTALLED and REMOTE_VERSION_UNAVAILABLE are routine conditions and
    travel as values; the others surface as failed results.
    """
    NOT_INSTALLED = "not_installed"
    REMOTE_VERSION_UNAVAILABLE = "remote_version_unavailable"
    NO_INSTALL_METHOD = "no_install_method"
    COMMAND_FAILED = "command_failed"
    VERIFICATION_FAILED = "verification_failed"
    UNKNOWN_VERSION_SOURCE = "unknown_version_source"


def truncate(text: str, limit: int = 500) -> str:
    """
    Trim captured process output for inclusion in error messages.

    Args:
        text: Text to trim
        limit: Maximum number of characters kept

    Returns:
        Stripped text, suffixed with an ellipsis marker when cut
    """
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + " ...[truncated]"


def vlog(msg: str, verbose: bool = False) -> None:
    """
    Log verbose message using structured logging.

    Args:
        msg: Message to log
        verbose: Whether verbose mode is enabled
    """
    if verbose or os.environ.get("CLI_MANAGER_DEBUG", "0") == "1":
        try:
            from .logging_config import get_logger
            logger = get_logger()
            logger.info(msg)
        except Exception:
            # Fallback to stderr if logging fails
            try:
                print(f"[cli_manager] {msg}", file=sys.stderr)
            except Exception:
                pass
