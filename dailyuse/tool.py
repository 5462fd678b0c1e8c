"""
External tool adapter.

Runs ``ccusage daily --json`` with a bounded timeout and hands back its
stdout. The executable is always resolved to an absolute path through the
same lookup the availability check uses, so "available" and "runnable"
cannot disagree.
"""

import logging
import os
import shutil
import stat
import subprocess
from typing import Optional

from dailyuse.errors import (
    ToolNotFoundError,
    ToolExitError,
    ToolTimeoutError,
    truncate_output,
)


logger = logging.getLogger("dailyuse.tool")

TOOL_ARGS = ("daily", "--json")


class UsageTool:
    """
    Handle on the external usage tool.

    Instances are immutable; changing the path means building a new one.
    """

    def __init__(self, path: str, timeout: float = 5.0):
        """
        Args:
            path: Executable name (looked up on PATH) or path
            timeout: Seconds allowed per invocation
        """
        self._path = path
        self._timeout = timeout

    @property
    def path(self) -> str:
        return self._path

    @property
    def timeout(self) -> float:
        return self._timeout

    def resolve(self) -> Optional[str]:
        """Return the absolute path of the executable, or None."""
        if not self._path:
            return None
        found = shutil.which(self._path)
        if found is None:
            return None
        return os.path.abspath(found)

    def is_available(self) -> bool:
        """
        Quick check that the tool can be executed.

        Advisory only: the actual invocation re-verifies it.
        """
        resolved = self.resolve()
        if resolved is None:
            return False

        try:
            info = os.stat(resolved)
        except OSError:
            return False

        if stat.S_ISDIR(info.st_mode):
            return False

        return bool(info.st_mode & 0o111)

    def run(self) -> bytes:
        """
        Invoke the tool and return its stdout.

        Raises:
            ToolNotFoundError: If the executable cannot be resolved or spawned
            ToolExitError: On a non-zero exit status
            ToolTimeoutError: If the command outlives the timeout
        """
        resolved = self.resolve()
        if resolved is None:
            raise ToolNotFoundError(self._path)

        try:
            result = subprocess.run(
                [resolved, *TOOL_ARGS],
                capture_output=True,
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ToolTimeoutError(self._timeout, exc.stdout or b"") from exc
        except OSError as exc:
            raise ToolNotFoundError(self._path) from exc

        if result.returncode != 0:
            raise ToolExitError(result.returncode, result.stdout, result.stderr)

        logger.debug(
            "ccusage command successful",
            extra={"context": {"out_len": len(result.stdout), "path": resolved}},
        )
        return result.stdout

    def describe_failure(self, output: bytes) -> dict:
        """Log context for a failed invocation."""
        return {
            "out_len": len(output or b""),
            "output": truncate_output(output),
            "path": self._path,
        }

    def __repr__(self) -> str:
        return f"UsageTool(path={self._path!r}, timeout={self._timeout!r})"
