#!/usr/bin/env python3
"""
Safe Hook Wrapper - Ensures hooks never crash with unhandled exceptions.

Usage in hook:
    from ralph_hooks.core.safe_hook_wrapper import safe_main

    def main() -> int:
        # your hook logic
        return 0

    if __name__ == "__main__":
        safe_main(main, "my-hook")

A crashing stop hook must never keep the user from leaving a session, so
every failure ends in exit status 0 with nothing on stdout.
"""

import os
import sys
import traceback
from datetime import datetime
from pathlib import Path


def error_log_path() -> Path:
    metrics_dir = os.environ.get("RALPH_METRICS_DIR") or "~/.claude/metrics"
    return Path(os.path.expanduser(metrics_dir)) / "hook_errors.log"


def log_hook_error(hook_name: str, error: BaseException):
    """Append error and traceback to the hook error log."""
    try:
        log_file = error_log_path()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        with open(log_file, "a") as f:
            f.write(f"\n[{datetime.now().isoformat()}] {hook_name}\n")
            f.write(f"Error: {error}\n")
            f.write("".join(traceback.format_exception(type(error), error, error.__traceback__)))
            f.write("-" * 50 + "\n")
    except OSError:
        pass  # Even logging failed, just continue


def safe_main(hook_func, hook_name: str = "unknown"):
    """
    Wrap a hook's main function with comprehensive error handling.

    The hook's integer return value becomes the exit status; any exception
    is logged to hook_errors.log and turned into a clean exit.
    """
    try:
        code = hook_func()
    except Exception as e:
        log_hook_error(hook_name, e)
        print(f"⚠️  {hook_name}: internal error ({e}), allowing exit", file=sys.stderr)
        sys.exit(0)
    sys.exit(code or 0)
