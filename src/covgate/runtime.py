"""
Provisioning of the Python interpreter that runs diff-cover.

The embedded runtime lives in ``<project>/.diff-cover-plugin/python-<platform>``.
A provisioned tree is reused as long as an interpreter can be found in it;
anything else is deleted and extracted again from scratch.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .archive import extract_tar_gz
from .exceptions import (
    ArchiveNotFoundError,
    ExtractionError,
    ExtractionIncompleteError,
    InstallFailedError,
    PermissionDeniedError,
    ProcessError,
)
from .locator import find_executable, is_executable
from .platforms import PlatformKey
from .process import run_process
from .sources import ArchiveSource, archive_name

_logger = logging.getLogger(__name__)

PYTHON_VERSION = "3.11.6"
DIFF_COVER_VERSION = "7.7.0"
WORK_DIR_NAME = ".diff-cover-plugin"

# (executable) -> exit status of the install
InstallStep = Callable[[Path], int]
# (executable) -> True when diff-cover is already importable
InstallProbe = Callable[[Path], bool]


@dataclass(frozen=True)
class ProvisionedRuntime:
    executable: Path
    platform: Optional[PlatformKey]
    already_installed: bool
    embedded: bool = True


@dataclass
class RuntimeContext:
    """Everything one provisioning run needs; nothing is kept between runs."""

    work_dir: Path
    timeout: float = 600.0
    strict_paths: bool = True
    progress: Optional[bool] = None

    @classmethod
    def for_project(cls, project_dir: Path, **kwargs) -> RuntimeContext:
        return cls(work_dir=Path(project_dir) / WORK_DIR_NAME, **kwargs)


def platform_dir(work_dir: Path, platform: PlatformKey) -> Path:
    return Path(work_dir) / f"python-{platform}"


def diff_cover_installed(executable: Path, timeout: float = 60.0) -> bool:
    """Cheap check: does ``python -m diff_cover --version`` succeed?"""
    try:
        result = run_process([str(executable), "-m", "diff_cover", "--version"], timeout=timeout)
    except ProcessError as e:
        _logger.debug("diff-cover probe failed, will install: %s", e)
        return False
    if result.ok:
        _logger.info("diff-cover already installed in %s: %s", executable, result.output.strip())
    return result.ok


def install_diff_cover(executable: Path, timeout: float = 600.0) -> int:
    """pip-install the pinned diff-cover into ``executable``; returns pip's exit code.

    A failing or hung pip self-upgrade is only logged. ProcessError from the
    install itself propagates.
    """
    _logger.info("Installing diff-cover %s into %s...", DIFF_COVER_VERSION, executable)

    try:
        upgrade = run_process(
            [str(executable), "-m", "pip", "install", "--upgrade", "pip"], timeout=timeout
        )
    except ProcessError as e:
        _logger.warning("pip self-upgrade failed (%s); continuing", e)
    else:
        if not upgrade.ok:
            _logger.warning("pip self-upgrade failed (exit %d); continuing", upgrade.returncode)

    result = run_process(
        [str(executable), "-m", "pip", "install", f"diff-cover=={DIFF_COVER_VERSION}"],
        timeout=timeout,
        stream=True,
    )
    return result.returncode


def _clean(pdir: Path, platform: PlatformKey) -> None:
    _logger.info("Removing stale Python directory %s", pdir)
    try:
        shutil.rmtree(pdir)
    except OSError as e:
        raise ExtractionError(
            f"Could not remove stale Python directory: {e}", platform=platform, path=pdir
        ) from e


def _extract(context: RuntimeContext, platform: PlatformKey, source: ArchiveSource) -> None:
    pdir = platform_dir(context.work_dir, platform)
    pdir.mkdir(parents=True, exist_ok=True)

    stream = source.open(platform)
    if stream is None:
        raise ArchiveNotFoundError(
            f"Python archive {archive_name(platform)} not available "
            f"from {source.describe(platform)}",
            platform=platform,
            path=pdir,
        )

    _logger.info("Extracting embedded Python %s for %s...", PYTHON_VERSION, platform)
    with stream:
        try:
            extract_tar_gz(
                stream,
                pdir,
                strict_paths=context.strict_paths,
                progress=context.progress,
            )
        except ExtractionError as e:
            raise ExtractionError(e.reason, platform=platform, path=e.path or pdir) from e
    _logger.info("Python extracted to: %s", pdir)


def _ensure_executable(exe: Path, platform: PlatformKey) -> None:
    _logger.info("Setting executable permission for %s", exe)
    try:
        mode = exe.stat().st_mode
        os.chmod(exe, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    except OSError as e:
        raise PermissionDeniedError(
            f"Failed to set executable permission: {e}", platform=platform, path=exe
        ) from e
    if not is_executable(exe):
        raise PermissionDeniedError(
            "Interpreter is still not executable after chmod", platform=platform, path=exe
        )


def provision(
    context: RuntimeContext,
    platform: PlatformKey,
    source: ArchiveSource,
    install_step: Optional[InstallStep] = None,
    probe: Optional[InstallProbe] = None,
) -> ProvisionedRuntime:
    """Make an interpreter with diff-cover available for ``platform``.

    Reuses an existing extraction when an interpreter is found in it.
    Otherwise the platform directory is deleted, the archive extracted again,
    the interpreter located (and made executable if the archive lost its
    mode bits) and diff-cover installed unless ``probe`` says it already is.
    Every failure is terminal and raised as a ProvisionError subclass.
    """
    install = install_step or (lambda exe: install_diff_cover(exe, timeout=context.timeout))
    is_installed = probe or (lambda exe: diff_cover_installed(exe, timeout=context.timeout))

    pdir = platform_dir(context.work_dir, platform)
    exe = find_executable(pdir)

    if exe is not None:
        _logger.info("Embedded Python already available: %s", exe)
    else:
        if pdir.exists():
            _clean(pdir, platform)
        _extract(context, platform, source)

        exe = find_executable(pdir)
        if exe is None:
            # archive may have lost its mode bits; accept a name match and chmod it
            exe = find_executable(pdir, require_executable=False)
            if exe is None:
                raise ExtractionIncompleteError(
                    "Python executable not found after extraction", platform=platform, path=pdir
                )
            _ensure_executable(exe, platform)

    exe = exe.absolute()
    if is_installed(exe):
        return ProvisionedRuntime(exe, platform, already_installed=True)

    try:
        code = install(exe)
    except ProcessError as e:
        raise InstallFailedError(
            f"Failed to install diff-cover in embedded Python: {e}",
            platform=platform,
            path=exe,
        ) from e
    if code != 0:
        raise InstallFailedError(
            f"Failed to install diff-cover in embedded Python. Exit code: {code}",
            platform=platform,
            path=exe,
        )
    _logger.info("Embedded Python ready: %s", exe)
    return ProvisionedRuntime(exe, platform, already_installed=False)


def verify_custom_python(executable: str, timeout: float = 60.0) -> str:
    """Check a user-supplied interpreter runs; returns its ``--version`` line."""
    try:
        result = run_process([executable, "--version"], timeout=timeout)
    except ProcessError as e:
        raise InstallFailedError(
            f"Failed to verify custom Python executable: {e}", path=executable
        ) from e
    if not result.ok:
        raise InstallFailedError(
            f"Custom Python executable failed (exit {result.returncode})", path=executable
        )
    version = result.output.strip()
    _logger.info("Custom Python version: %s", version)
    return version
