import io
import os
import tarfile
from pathlib import Path

import pytest

_ENV_PREFIXES = ("DIFF_COVER_", "COVGATE_")


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """
    Every test runs in its own empty cwd with no DIFF_COVER_*/COVGATE_* vars,
    so a developer's .env or shell settings never leak into results.
    """
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return workdir


def build_tar_gz(entries):
    """
    Build an in-memory .tar.gz.

    entries: iterable of (name, payload, mode) where payload is bytes for a
    regular file, None for a directory, or ("symlink", target).
    """
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, payload, mode in entries:
            info = tarfile.TarInfo(name)
            info.mode = mode
            if payload is None:
                info.type = tarfile.DIRTYPE
                tar.addfile(info)
            elif isinstance(payload, tuple):
                info.type = tarfile.SYMTYPE
                info.linkname = payload[1]
                tar.addfile(info)
            else:
                info.size = len(payload)
                tar.addfile(info, io.BytesIO(payload))
    return buf.getvalue()


def fake_python_script(log_file, *, probe_exit=1, pip_exit=0, diff_cover_exit=0):
    """Shell script that behaves enough like python for covgate's calls."""
    return f"""#!/bin/sh
echo "$@" >> "{log_file}"
if [ "$1" = "--version" ]; then echo "Python 3.11.6"; exit 0; fi
if [ "$1" = "-m" ] && [ "$2" = "pip" ]; then exit {pip_exit}; fi
if [ "$1" = "-m" ] && [ "$2" = "diff_cover" ]; then
  if [ "$3" = "--version" ]; then echo "diff-cover 7.7.0"; exit {probe_exit}; fi
  echo "Diff Coverage report"
  exit {diff_cover_exit}
fi
exit 0
"""


@pytest.fixture
def fake_python(tmp_path):
    """Factory writing an executable fake interpreter; returns (path, log_path)."""

    def _make(name="python3", **behaviour):
        bindir = tmp_path / "fakebin"
        bindir.mkdir(exist_ok=True)
        log = bindir / f"{name}.log"
        exe = bindir / name
        exe.write_text(fake_python_script(log, **behaviour))
        exe.chmod(0o755)
        return exe, log

    return _make


class MemorySource:
    """ArchiveSource serving pre-built archives from memory, counting opens."""

    def __init__(self, archives=None):
        self.archives = dict(archives or {})
        self.opened = []

    def open(self, platform):
        self.opened.append(platform)
        data = self.archives.get(platform)
        return io.BytesIO(data) if data is not None else None

    def size(self, platform):
        data = self.archives.get(platform)
        return len(data) if data is not None else None

    def describe(self, platform):
        return f"memory:{platform}"


@pytest.fixture
def python_archive():
    """A standalone-Python-shaped archive with an executable python/install/bin/python3."""

    def _make(script=b"#!/bin/sh\nexit 0\n", mode=0o755):
        return build_tar_gz(
            [
                ("python", None, 0o755),
                ("python/install", None, 0o755),
                ("python/install/bin", None, 0o755),
                ("python/install/bin/python3", script, mode),
                ("python/install/lib/python3.11/os.py", b"# stdlib\n", 0o644),
            ]
        )

    return _make


@pytest.fixture
def jacoco_project(tmp_path):
    """Maven-like project with a root report and one declared module report."""
    root = tmp_path / "project"
    (root / "target" / "site" / "jacoco").mkdir(parents=True)
    (root / "target" / "site" / "jacoco" / "jacoco.xml").write_text("<report/>")
    (root / "core" / "target" / "site" / "jacoco").mkdir(parents=True)
    (root / "core" / "target" / "site" / "jacoco" / "jacoco.xml").write_text("<report/>")
    (root / "pom.xml").write_text(
        '<project xmlns="http://maven.apache.org/POM/4.0.0">'
        "<modules><module>core</module></modules>"
        "</project>"
    )
    return Path(root)
