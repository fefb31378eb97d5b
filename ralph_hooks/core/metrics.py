"""Ralph iteration event log (JSONL) and Sentry breadcrumbs."""

import fcntl
import json
import logging
from datetime import datetime
from pathlib import Path

import sentry_sdk

logger = logging.getLogger(__name__)

RALPH_LOG_NAME = "ralph_iterations.jsonl"


def emit_sentry_breadcrumb(data: dict):
    """Add Sentry breadcrumb for debugging context."""
    try:
        sentry_sdk.add_breadcrumb(
            category="ralph",
            message=f"Ralph {data.get('type', 'event')}: iteration={data.get('iteration', 0)}",
            level="info",
            data=data,
        )
    except Exception as e:
        logger.warning(f"Sentry breadcrumb failed: {e}")


def log_iteration(data: dict, metrics_dir: Path) -> Path | None:
    """Append a Ralph event to the metrics log and leave a Sentry breadcrumb."""
    entry = {
        "timestamp": datetime.now().isoformat(),
        **data,
    }
    log_path = Path(metrics_dir) / RALPH_LOG_NAME

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.write(json.dumps(entry) + "\n")
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    except OSError as e:
        logger.error(f"Failed to write iteration log: {e}")
        log_path = None

    emit_sentry_breadcrumb(data)
    return log_path
