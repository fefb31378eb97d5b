"""
Ralph loop state record.

The record is a markdown file with a ``---`` delimited header followed by
the prompt that is replayed on every iteration:

    ---
    active: true
    iteration: 1
    max_iterations: 20
    completion_promise: "DONE"
    started_at: "2026-01-13T..."
    ---

    The actual prompt text

Its existence on disk is what makes a loop active.
"""

import contextlib
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DELIMITER = "---"
NUMERIC_FIELDS = ("iteration", "max_iterations")
DIGITS = re.compile(r"[0-9]+")
LINE_BREAK = re.compile(r"(?<=\n)")
LEADING_BLANK_LINES = re.compile(r"\A(?:[ \t]*\r?\n)+")


class StateCorruption(Exception):
    """State record exists but cannot be used."""

    def __init__(self, field: str, raw_value: str = "", problem: str = ""):
        self.field = field
        self.raw_value = raw_value
        self.problem = problem or f"'{field}' field is not a valid number (got: '{raw_value}')"
        super().__init__(self.problem)


@dataclass
class LoopState:
    iteration: int
    max_iterations: int
    completion_promise: str | None
    prompt_text: str
    path: Path | None = None

    @property
    def unbounded(self) -> bool:
        return self.max_iterations == 0

    @property
    def cap_reached(self) -> bool:
        return not self.unbounded and self.iteration >= self.max_iterations


def _split_lines(raw: str) -> list[str]:
    return [line for line in LINE_BREAK.split(raw) if line]


def _is_delimiter(line: str) -> bool:
    return line.rstrip("\r\n") == DELIMITER


def _delimiter_indexes(lines: list[str]) -> tuple[int, int]:
    marks = [i for i, line in enumerate(lines) if _is_delimiter(line)]
    if len(marks) < 2:
        raise StateCorruption("header", problem="No closing '---' line found for the state header")
    return marks[0], marks[1]


def strip_quotes(value: str) -> str:
    """Remove exactly one layer of matching surrounding quotes."""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def header_value(header_lines: list[str], name: str) -> str | None:
    prefix = f"{name}:"
    for line in header_lines:
        line = line.rstrip("\r\n")
        if line.startswith(prefix):
            return line[len(prefix):].lstrip(" ")
    return None


def parse_fields(raw: str) -> dict:
    """
    Parse iteration, max_iterations and completion_promise from the header.

    Numeric fields must be plain ASCII digits; anything else (including a
    missing field) raises StateCorruption naming the field and raw value.
    """
    lines = _split_lines(raw)
    start, end = _delimiter_indexes(lines)
    header = lines[start + 1:end]

    fields = {}
    for name in NUMERIC_FIELDS:
        value = header_value(header, name)
        if value is None or not DIGITS.fullmatch(value):
            raise StateCorruption(name, value or "")
        fields[name] = int(value)

    promise = header_value(header, "completion_promise")
    if promise is not None:
        promise = strip_quotes(promise)
    if not promise or promise == "null":
        promise = None
    fields["completion_promise"] = promise
    return fields


def extract_body(raw: str) -> str:
    """Prompt text after the second delimiter line, minus surrounding blank lines."""
    lines = _split_lines(raw)
    _, end = _delimiter_indexes(lines)
    body = LEADING_BLANK_LINES.sub("", "".join(lines[end + 1:])).rstrip()
    if not body:
        raise StateCorruption("prompt", problem="No prompt text found")
    return body


def parse_state(raw: str, path: Path | None = None) -> LoopState:
    fields = parse_fields(raw)
    return LoopState(prompt_text=extract_body(raw), path=path, **fields)


def replace_iteration(raw: str, iteration: int) -> str:
    """Rewrite only the header's iteration line, byte-for-byte elsewhere."""
    lines = _split_lines(raw)
    start, end = _delimiter_indexes(lines)
    for i in range(start + 1, end):
        if lines[i].startswith("iteration:"):
            line = lines[i]
            ending = line[len(line.rstrip("\r\n")):]
            lines[i] = f"iteration: {iteration}{ending}"
            return "".join(lines)
    raise StateCorruption("iteration")


class LoopStateStore:
    """Load, update and delete the loop state record at an injected path."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def read_raw(self) -> str:
        try:
            with open(self.path, encoding="utf-8", newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise StateCorruption("file", problem=f"State file could not be read: {e}") from e

    def load(self) -> LoopState | None:
        """Current loop state, or None when no loop is active."""
        if not self.exists():
            return None
        state = parse_state(self.read_raw(), path=self.path)
        logger.info(
            f"Loaded loop state: iteration={state.iteration} max_iterations={state.max_iterations}"
        )
        return state

    def update(self, iteration: int):
        """Persist a new iteration count atomically (temp file + rename)."""
        content = replace_iteration(self.read_raw(), iteration)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                os.fchmod(f.fileno(), self.path.stat().st_mode & 0o777)
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise
        logger.info(f"State updated: iteration={iteration}")

    def delete(self) -> bool:
        """Remove the record; returns False only when removal failed."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to remove state file {self.path}: {e}")
            return False
        logger.info(f"State file removed: {self.path}")
        return True

