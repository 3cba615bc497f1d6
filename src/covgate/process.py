from __future__ import annotations

import logging
import os
import signal
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from .exceptions import ProcessError, ProcessTimeoutError

_logger = logging.getLogger(__name__)

# Upper bound on collecting leftover output once the child has been killed
_DRAIN_TIMEOUT = 5.0


@dataclass(frozen=True)
class ProcessResult:
    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _kill_tree(proc: subprocess.Popen) -> None:
    """Kill the child and everything it started (git, pip workers, ...)."""
    if os.name == "nt":
        proc.kill()
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except OSError as e:
        _logger.debug("killpg(%d) failed, killing the child only: %s", proc.pid, e)
        proc.kill()


def _drain(proc: subprocess.Popen) -> None:
    try:
        proc.communicate(timeout=_DRAIN_TIMEOUT)
    except subprocess.TimeoutExpired:
        _logger.warning("Output pipe of pid %d still open after kill; abandoning it", proc.pid)


def run_process(
    cmd: Sequence[str],
    *,
    cwd: Optional[Union[str, Path]] = None,
    timeout: Optional[float] = None,
    stream: bool = False,
) -> ProcessResult:
    """Run ``cmd`` to completion with stderr folded into stdout.

    With ``stream=True`` the child writes straight to our console and
    ``output`` is empty. The child runs in its own process group; when
    ``timeout`` (seconds) expires, or the wait is interrupted, the whole
    group is killed and reaped before the error propagates.
    """
    cmd = [str(c) for c in cmd]
    _logger.debug("Running: %s", " ".join(cmd))
    try:
        proc = subprocess.Popen(  # noqa: S603
            cmd,
            cwd=str(cwd) if cwd is not None else None,
            stdout=None if stream else subprocess.PIPE,
            stderr=None if stream else subprocess.STDOUT,
            text=True,
            errors="backslashreplace",
            start_new_session=os.name != "nt",
        )
    except OSError as e:
        raise ProcessError(f"Failed to start {cmd[0]}: {e}", cmd) from e

    with proc:
        finished = False
        try:
            out, _ = proc.communicate(timeout=timeout)
            finished = True
        except subprocess.TimeoutExpired:
            raise ProcessTimeoutError(cmd, timeout or 0) from None
        finally:
            if not finished:
                _kill_tree(proc)
                _drain(proc)

    _logger.debug("%s exited with %d", cmd[0], proc.returncode)
    return ProcessResult(proc.returncode, out or "")
