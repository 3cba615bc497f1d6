"""
Where embedded Python archives come from.

An archive source answers one question: give me ``python-<platform>.tar.gz``
as a readable binary stream, or None when it does not have one.
"""

from __future__ import annotations

import logging
import tempfile
from importlib.resources import files
from pathlib import Path
from typing import BinaryIO, Optional, Protocol

import requests

from .exceptions import ArchiveNotFoundError
from .platforms import PlatformKey

_logger = logging.getLogger(__name__)

# Downloads larger than this spill from memory to a temp file
_SPOOL_MAX = 64 * 1024 * 1024


def archive_name(platform: PlatformKey) -> str:
    return f"python-{platform}.tar.gz"


def bundled_archive_dir() -> Path:
    """Directory holding the archives shipped as covgate package data."""
    return Path(str(files("covgate").joinpath("python")))


class ArchiveSource(Protocol):
    def open(self, platform: PlatformKey) -> Optional[BinaryIO]: ...

    def size(self, platform: PlatformKey) -> Optional[int]: ...

    def describe(self, platform: PlatformKey) -> str: ...


class DirectoryArchiveSource:
    """Archives stored as plain files in one directory."""

    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = Path(root) if root is not None else bundled_archive_dir()

    def _path(self, platform: PlatformKey) -> Path:
        return self.root / archive_name(platform)

    def open(self, platform: PlatformKey) -> Optional[BinaryIO]:
        path = self._path(platform)
        if not path.is_file():
            _logger.debug("No archive at %s", path)
            return None
        return open(path, "rb")

    def size(self, platform: PlatformKey) -> Optional[int]:
        path = self._path(platform)
        return path.stat().st_size if path.is_file() else None

    def describe(self, platform: PlatformKey) -> str:
        return str(self._path(platform))


class HttpArchiveSource:
    """Archives downloaded from ``<base_url>/python-<platform>.tar.gz``."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 60.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def url(self, platform: PlatformKey) -> str:
        return f"{self.base_url}/{archive_name(platform)}"

    def open(self, platform: PlatformKey) -> Optional[BinaryIO]:
        url = self.url(platform)
        _logger.info("Downloading %s", url)
        buf = None
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as resp:
                if resp.status_code == 404:
                    _logger.debug("Archive not published at %s", url)
                    return None
                resp.raise_for_status()
                buf = tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX)
                for chunk in resp.iter_content(chunk_size=1024 * 1024):
                    buf.write(chunk)
        except requests.RequestException as e:
            if buf is not None:
                buf.close()
            raise ArchiveNotFoundError(
                f"Failed to download Python archive from {url}: {e}", platform=platform
            ) from e
        buf.seek(0)
        return buf  # type: ignore[return-value]

    def size(self, platform: PlatformKey) -> Optional[int]:
        try:
            resp = self.session.head(self.url(platform), timeout=self.timeout, allow_redirects=True)
        except requests.RequestException:
            return None
        if not resp.ok:
            return None
        length = resp.headers.get("Content-Length")
        return int(length) if length and length.isdigit() else None

    def describe(self, platform: PlatformKey) -> str:
        return self.url(platform)


class FirstAvailableSource:
    """Try several sources in order; the first that has the archive wins."""

    def __init__(self, *sources: ArchiveSource) -> None:
        self.sources = sources

    def open(self, platform: PlatformKey) -> Optional[BinaryIO]:
        for source in self.sources:
            stream = source.open(platform)
            if stream is not None:
                return stream
        return None

    def size(self, platform: PlatformKey) -> Optional[int]:
        for source in self.sources:
            size = source.size(platform)
            if size is not None:
                return size
        return None

    def describe(self, platform: PlatformKey) -> str:
        return " or ".join(s.describe(platform) for s in self.sources)


def display_size(num_bytes: int) -> str:
    """Whole-unit human size, e.g. ``93 MB``."""
    for unit, factor in (("GB", 1 << 30), ("MB", 1 << 20), ("KB", 1 << 10)):
        if num_bytes >= factor:
            return f"{num_bytes // factor} {unit}"
    return f"{num_bytes} bytes"


def describe_archives(source: ArchiveSource) -> str:
    """One-line summary of which platform archives a source can provide."""
    total = 0
    available = []
    for key in PlatformKey:
        size = source.size(key)
        if size is not None:
            total += size
            available.append(key.value)
    if not available:
        return "Embedded Python binaries: none available"
    return (
        f"Embedded Python binaries: {display_size(total)} "
        f"({len(available)} platforms: {', '.join(available)})"
    )
