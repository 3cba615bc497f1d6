"""``python -m covgate`` and the ``covgate`` console script."""

from __future__ import annotations

import sys
from typing import Optional, Sequence

from .cli import cli


def _utf8_console() -> None:
    # ✅/❌ markers and diff-cover's report must not crash a cp1252 or ascii console
    for stream in (sys.stdout, sys.stderr):
        reconfigure = getattr(stream, "reconfigure", None)
        if reconfigure is None:
            continue
        try:
            reconfigure(encoding="utf-8", errors="backslashreplace")
        except ValueError:
            continue


def main(argv: Optional[Sequence[str]] = None) -> None:
    _utf8_console()
    cli.main(args=list(argv) if argv is not None else None, prog_name="covgate")


if __name__ == "__main__":
    main()
