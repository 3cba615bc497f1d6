"""
Streaming extraction of .tar.gz Python distributions.

Entries are read once, in archive order, straight from the (possibly
non-seekable) input stream, so memory use does not grow with archive size.
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Optional

from tqdm import tqdm

from .exceptions import ExtractionError
from .platforms import is_windows_like

_logger = logging.getLogger(__name__)

# (bit, symbol) in owner/group/other x read/write/execute order
_PERMISSION_BITS = (
    (0o400, "r"),
    (0o200, "w"),
    (0o100, "x"),
    (0o040, "r"),
    (0o020, "w"),
    (0o010, "x"),
    (0o004, "r"),
    (0o002, "w"),
    (0o001, "x"),
)

_CHUNK_SIZE = 1024 * 1024


def permission_string(mode: int) -> str:
    """Render the low nine permission bits of ``mode`` as e.g. ``rwxr-xr-x``."""
    return "".join(sym if mode & bit else "-" for bit, sym in _PERMISSION_BITS)


def permission_bits(perms: str) -> int:
    """Inverse of :func:`permission_string`."""
    if len(perms) != len(_PERMISSION_BITS):
        raise ValueError(f"Invalid permission string: {perms!r}")
    mode = 0
    for ch, (bit, sym) in zip(perms, _PERMISSION_BITS):
        if ch == sym:
            mode |= bit
        elif ch != "-":
            raise ValueError(f"Invalid permission string: {perms!r}")
    return mode


def _member_path(member: tarfile.TarInfo, destination: Path, strict_paths: bool) -> Path:
    rel = PurePosixPath(member.name)
    if strict_paths and (rel.is_absolute() or ".." in rel.parts):
        raise ExtractionError(
            f"Refusing archive entry outside the destination: {member.name!r}",
            path=destination,
        )
    parts = [p for p in rel.parts if p not in ("/", ".")]
    return destination.joinpath(*parts)


def _is_inside(path: str, root: str) -> bool:
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


def _check_inside(path: Path, root: str, name: str) -> None:
    """Raise unless ``path`` still lands under ``root`` once existing symlinks resolve."""
    if not _is_inside(os.path.realpath(path), root):
        raise ExtractionError(
            f"Refusing archive entry outside the destination: {name!r}", path=path
        )


def _link_stays_inside(link_path: Path, target: str, root: str) -> bool:
    if os.path.isabs(target):
        return False
    resolved = os.path.realpath(os.path.join(os.path.realpath(link_path.parent), target))
    return _is_inside(resolved, root)


def _apply_mode(path: Path, mode: int) -> None:
    perms = permission_string(mode)
    try:
        os.chmod(path, permission_bits(perms))
    except OSError as e:
        _logger.debug("Could not set permissions %s for %s: %s", perms, path, e)


def _write_file(tar: tarfile.TarFile, member: tarfile.TarInfo, out_path: Path) -> None:
    src = tar.extractfile(member)
    if src is None:
        raise ExtractionError(f"Archive entry has no payload: {member.name!r}", path=out_path)
    with src, open(out_path, "wb") as out:
        shutil.copyfileobj(src, out, _CHUNK_SIZE)


def extract_tar_gz(
    stream: BinaryIO,
    destination: Path,
    *,
    os_name: Optional[str] = None,
    strict_paths: bool = True,
    progress: Optional[bool] = None,
) -> int:
    """Unpack a gzip-compressed tar stream into ``destination``.

    - Directories are created with parents; files get their parents created and
      their payload written verbatim.
    - Symlinks are recreated; other special entries (devices, fifos) are skipped.
    - Non-zero modes are applied to regular files unless the host is Windows-like.
      Failing to apply a mode is logged and does not stop extraction.
    - With ``strict_paths`` (default), absolute entries and entries containing
      ``..`` are rejected with ExtractionError, as is any entry or symlink
      target that would land outside ``destination`` once symlinks already
      extracted are followed.

    ``progress=None`` shows a counter only when stderr is a terminal.

    Returns the number of entries written.
    """
    destination = Path(destination)
    apply_modes = not is_windows_like(os_name)
    count = 0

    try:
        destination.mkdir(parents=True, exist_ok=True)
        root = os.path.realpath(destination)
        with tarfile.open(fileobj=stream, mode="r|gz") as tar:
            entries = tqdm(
                tar,
                desc=f"Extracting {destination.name}",
                unit=" entries",
                disable=None if progress is None else not progress,
                leave=False,
            )
            for member in entries:
                out_path = _member_path(member, destination, strict_paths)
                if strict_paths:
                    _check_inside(out_path.parent, root, member.name)

                if member.isdir():
                    if strict_paths:
                        _check_inside(out_path, root, member.name)
                    out_path.mkdir(parents=True, exist_ok=True)
                elif member.isfile():
                    out_path.parent.mkdir(parents=True, exist_ok=True)
                    # never write through a link left by an earlier entry
                    if out_path.is_symlink():
                        out_path.unlink()
                    _write_file(tar, member, out_path)
                    if apply_modes and member.mode:
                        _apply_mode(out_path, member.mode)
                elif member.issym():
                    if strict_paths and not _link_stays_inside(out_path, member.linkname, root):
                        raise ExtractionError(
                            f"Refusing symlink {member.name!r} -> {member.linkname!r}",
                            path=destination,
                        )
                    out_path.parent.mkdir(parents=True, exist_ok=True)
                    if out_path.is_symlink() or out_path.exists():
                        out_path.unlink()
                    os.symlink(member.linkname, out_path)
                elif member.islnk():
                    # Hard link targets were written earlier in the stream.
                    target = _member_path(
                        tarfile.TarInfo(member.linkname), destination, strict_paths
                    )
                    if strict_paths:
                        _check_inside(target, root, member.linkname)
                    out_path.parent.mkdir(parents=True, exist_ok=True)
                    if out_path.is_symlink():
                        out_path.unlink()
                    shutil.copy2(target, out_path)
                else:
                    _logger.debug("Skipping special archive entry %s", member.name)
                    continue
                count += 1
    except ExtractionError:
        raise
    except (OSError, EOFError, tarfile.TarError) as e:
        raise ExtractionError(f"Failed to extract archive: {e}", path=destination) from e

    _logger.debug("Extracted %d entries into %s", count, destination)
    return count
