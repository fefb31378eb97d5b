"""Structured file logging for hooks (stdout belongs to the host)."""

import logging
import os
from pathlib import Path

LOG_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
    '"module": "%(hook_name)s", "message": "%(message)s"}'
)


class _HookNameFilter(logging.Filter):
    def __init__(self, hook_name: str):
        super().__init__()
        self.hook_name = hook_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.hook_name = self.hook_name
        return True


def setup_logging(hook_name: str, log_dir: Path, level: str = "INFO") -> Path | None:
    """
    Attach a JSON-line file handler for ``hook_name`` to the root logger.

    Returns the log file path, or None when the log directory is not
    writable (the hook keeps running without a file log).
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    log_file = Path(log_dir) / f"{hook_name}.log"
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(log_file):
            return log_file

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file)
    except OSError:
        return None

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(_HookNameFilter(hook_name))
    root.addHandler(handler)
    return log_file
