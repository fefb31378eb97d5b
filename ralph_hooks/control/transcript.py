"""
Read the agent's most recent turn from a JSONL transcript.

Each line is one record. Host transcripts usually wrap the message
(``{"type": "assistant", "message": {"role": "assistant", "content": [...]}}``)
but bare ``{"role": ..., "content": ...}`` records are accepted too.
"""

import json
import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

ASSISTANT_ROLE = re.compile(r'"role"\s*:\s*"assistant"')
TEXT_FIELD = re.compile(r'"text"\s*:\s*"((?:[^"\\]|\\.)*)"')


class TranscriptUnavailable(Exception):
    """The agent's last turn cannot be inspected."""

    def __init__(self, path, message: str):
        self.path = str(path)
        super().__init__(message)


class TranscriptNotFound(TranscriptUnavailable):
    def __init__(self, path, reason: str = "not found"):
        self.reason = reason
        super().__init__(path, f"Transcript {reason}: {path}")


class NoAssistantTurn(TranscriptUnavailable):
    def __init__(self, path):
        super().__init__(path, f"No assistant messages found in transcript: {path}")


class EmptyAssistantText(TranscriptUnavailable):
    def __init__(self, path):
        super().__init__(path, f"Assistant message contained no text content: {path}")


def _message(record: dict) -> dict:
    nested = record.get("message")
    if isinstance(nested, dict) and "role" in nested:
        return nested
    return record


def is_assistant_record(record) -> bool:
    return isinstance(record, dict) and _message(record).get("role") == "assistant"


def unescape_json_string(value: str) -> str:
    try:
        return json.loads(f'"{value}"', strict=False)
    except ValueError:
        return value.replace('\\"', '"').replace("\\n", "\n")


def content_text(record: dict) -> str:
    """Visible text of a record: its text blocks joined by newlines."""
    content = _message(record).get("content")
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    parts = [
        block["text"]
        for block in content
        if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
    ]
    return "\n".join(parts)


def loose_text(line: str) -> str:
    """Every ``"text": "..."`` value in a raw line, unescaped and joined."""
    return "\n".join(unescape_json_string(value) for value in TEXT_FIELD.findall(line))


def find_last_assistant_line(lines) -> tuple[str, dict | None] | None:
    """
    Most recent assistant line and its parsed record.

    Lines that are not valid JSON but still carry an assistant role marker
    are returned with a None record; only loose extraction can read them.
    """
    for line in reversed(lines):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            if ASSISTANT_ROLE.search(line):
                return line, None
            continue
        if is_assistant_record(record):
            return line, record
    return None


def last_assistant_text(path) -> str:
    """Text of the last assistant turn in the transcript at ``path``."""
    path = Path(path)
    if not path.is_file():
        raise TranscriptNotFound(path)

    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            lines = f.readlines()
    except OSError as e:
        raise TranscriptNotFound(path, reason=f"could not be read ({e})") from e

    found = find_last_assistant_line(lines)
    if found is None:
        raise NoAssistantTurn(path)

    line, record = found
    text = content_text(record) if record is not None else ""
    if not text:
        text = loose_text(line)
        if text:
            logger.info("Assistant text recovered by loose extraction")
    if not text:
        raise EmptyAssistantText(path)
    return text
