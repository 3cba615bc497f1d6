from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Union


class CovgateError(RuntimeError):
    """Base class for every error covgate raises on purpose."""


class ConfigError(CovgateError):
    """Raised when an option or environment variable has an unusable value."""


class ProvisionError(CovgateError):
    """A terminal failure while preparing the Python runtime.

    Carries the platform key and the filesystem path involved so the cache
    directory can be inspected without re-running with more verbosity.
    """

    def __init__(
        self,
        message: str,
        *,
        platform: Optional[object] = None,
        path: Optional[Union[str, Path]] = None,
    ):
        self.reason = message
        self.platform = platform
        self.path = Path(path) if path is not None else None
        details = []
        if platform is not None:
            details.append(f"platform={platform}")
        if self.path is not None:
            details.append(f"path={self.path}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)


class UnsupportedPlatformError(ProvisionError):
    """Host OS/architecture is not one of the supported platform keys."""

    def __init__(self, os_name: str, os_arch: str):
        self.os_name = os_name
        self.os_arch = os_arch
        super().__init__(
            f"Unsupported platform: {os_name}/{os_arch} "
            "(only Linux x64/ARM64 and macOS x64/ARM64 are supported)",
            platform=f"{os_name}/{os_arch}",
        )


class ArchiveNotFoundError(ProvisionError):
    """No Python archive is available for the requested platform."""


class ExtractionError(ProvisionError):
    """I/O failure while unpacking the Python archive."""


class ExtractionIncompleteError(ProvisionError):
    """Extraction finished but no interpreter executable was found."""


class PermissionDeniedError(ProvisionError):
    """The interpreter could not be made executable."""


class InstallFailedError(ProvisionError):
    """Installing (or verifying) diff-cover in the interpreter failed."""


class ProcessError(CovgateError):
    """A child process could not be started."""

    def __init__(self, message: str, cmd: Sequence[str] = ()):
        self.cmd = list(cmd)
        super().__init__(message)


class ProcessTimeoutError(ProcessError):
    """A child process outlived its deadline and was killed."""

    def __init__(self, cmd: Sequence[str], timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Process timed out after {timeout:g} seconds and was terminated: {' '.join(cmd)}",
            cmd,
        )


class DiffCoverError(CovgateError):
    """diff-cover exited with a code covgate does not treat as success."""

    def __init__(self, message: str, exit_code: int, output: str = ""):
        self.exit_code = exit_code
        self.output = output
        super().__init__(message)


class DiffCoverConfigError(DiffCoverError):
    """diff-cover rejected its arguments (exit code 2)."""


class CoverageBelowThresholdError(DiffCoverError):
    """Coverage on changed lines is below --fail-under (exit code 1)."""

    def __init__(
        self, fail_under: float, report_hint: Optional[Path] = None, output: str = ""
    ):
        self.fail_under = fail_under
        self.report_hint = report_hint
        super().__init__(
            f"diff-cover failed: Coverage is below {fail_under:g}% threshold",
            exit_code=1,
            output=output,
        )
