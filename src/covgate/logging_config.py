from __future__ import annotations

import logging
from typing import Optional

# -v shows progress of the gate; -vv adds the logger name so runtime,
# archive and process messages can be told apart
_INFO_FMT = "%(asctime)s %(levelname)s %(message)s"
_DEBUG_FMT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%H:%M:%S"

# Third-party loggers that stay at WARNING even under -vv
_QUIET_LOGGERS = ("urllib3.connectionpool", "urllib3.util.retry")


def configure_logging(level: Optional[int]) -> None:
    """Set up root logging for the CLI; calling it again only changes the level."""
    lvl = level if level is not None else logging.WARNING
    root = logging.getLogger()

    if root.handlers:
        root.setLevel(lvl)
    else:
        logging.basicConfig(
            level=lvl,
            format=_DEBUG_FMT if lvl <= logging.DEBUG else _INFO_FMT,
            datefmt=_DATEFMT,
        )

    for name in _QUIET_LOGGERS:
        quiet = logging.getLogger(name)
        if quiet.level == logging.NOTSET or quiet.level < logging.WARNING:
            quiet.setLevel(logging.WARNING)
