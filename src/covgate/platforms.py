"""
Host platform detection for the embedded Python runtimes.
"""

from __future__ import annotations

import logging
import platform as _platform
from enum import Enum
from typing import Optional

from .exceptions import UnsupportedPlatformError

_logger = logging.getLogger(__name__)


class PlatformKey(str, Enum):
    """Platforms an embedded Python archive exists for."""

    LINUX_X64 = "linux-x64"
    LINUX_ARM64 = "linux-arm64"
    MACOS_X64 = "macos-x64"
    MACOS_ARM64 = "macos-arm64"

    def __str__(self) -> str:
        return self.value


_KEYS = {
    ("linux", "x64"): PlatformKey.LINUX_X64,
    ("linux", "arm64"): PlatformKey.LINUX_ARM64,
    ("macos", "x64"): PlatformKey.MACOS_X64,
    ("macos", "arm64"): PlatformKey.MACOS_ARM64,
}


def _os_family(os_name: str) -> Optional[str]:
    if "linux" in os_name:
        return "linux"
    if "mac" in os_name or "darwin" in os_name:
        return "macos"
    return None


def _arch_family(os_arch: str) -> Optional[str]:
    if "aarch64" in os_arch or "arm64" in os_arch:
        return "arm64"
    if "x86_64" in os_arch or "amd64" in os_arch:
        return "x64"
    return None


def detect(os_name: str, os_arch: str) -> PlatformKey:
    """Map raw OS-name / architecture strings to a PlatformKey.

    Matching is case-insensitive and substring based ("Mac OS X" and "Darwin"
    are both macOS). Anything outside the four supported combinations raises
    UnsupportedPlatformError; there is no default.
    """
    key = _KEYS.get((_os_family(os_name.lower()), _arch_family(os_arch.lower())))
    if key is None:
        raise UnsupportedPlatformError(os_name, os_arch)
    return key


def detect_host() -> PlatformKey:
    """Detect the PlatformKey of the running interpreter's host."""
    os_name, os_arch = _platform.system(), _platform.machine()
    key = detect(os_name, os_arch)
    _logger.debug("Host %s/%s detected as %s", os_name, os_arch, key)
    return key


def is_windows_like(os_name: Optional[str] = None) -> bool:
    """True when POSIX permission bits should not be applied."""
    name = (os_name if os_name is not None else _platform.system()).lower()
    return "windows" in name or name.startswith(("cygwin", "msys", "mingw"))
