"""
Logging setup: one stream handler on the root logger, stdout only
(container platforms capture it). Modules log through
`logging.getLogger(__name__)`.
"""
import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())
    if any(getattr(h, "_offtime", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._offtime = True  # type: ignore[attr-defined]
    root.addHandler(handler)
