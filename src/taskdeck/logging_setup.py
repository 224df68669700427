from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _ThirdPartyNoiseFilter(logging.Filter):
    """Keep taskdeck logs; let other libraries through at WARNING and above."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == "taskdeck" or record.name.startswith("taskdeck."):
            return True
        return record.levelno >= logging.WARNING


# PUBLIC_INTERFACE
def setup_logging(level: str = "INFO") -> None:
    """
    Install a single stderr handler on the root logger.

    Safe to call more than once; handlers installed by a previous call are
    replaced.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for h in list(root.handlers):
        if getattr(h, "_taskdeck", False):
            root.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
    handler.addFilter(_ThirdPartyNoiseFilter())
    handler._taskdeck = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    logging.captureWarnings(True)
