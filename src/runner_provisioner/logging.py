"""
Logging setup for the runner provisioner.

INFO and WARNING go to stdout, ERROR and above go to stderr.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y/%m/%d %H:%M:%S"


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self.max_level


def setup_logging(level: str = "INFO") -> None:
    """
    Configure root logging.

    Safe to call more than once; previous handlers installed here are replaced.
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    stdout_handler.addFilter(_MaxLevelFilter(logging.WARNING))

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    stderr_handler.setLevel(logging.ERROR)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_runner_provisioner", False):
            root.removeHandler(handler)

    for handler in (stdout_handler, stderr_handler):
        handler._runner_provisioner = True
        root.addHandler(handler)

    root.setLevel(level.upper())

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
