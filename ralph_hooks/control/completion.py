"""Completion promise detection: ``<promise>TEXT</promise>`` in the agent's last turn."""

import re

DEFAULT_TAG = "promise"


def promise_pattern(tag: str = DEFAULT_TAG) -> re.Pattern:
    tag = re.escape(tag)
    return re.compile(f"<{tag}>(.*?)</{tag}>", re.DOTALL)


def format_promise(promise: str, tag: str = DEFAULT_TAG) -> str:
    return f"<{tag}>{promise}</{tag}>"


def normalize(text: str) -> str:
    """Drop every whitespace character."""
    return "".join(text.split())


def extract_promise(text: str, tag: str = DEFAULT_TAG) -> str | None:
    """Payload of the first marker pair, newlines flattened to spaces."""
    match = promise_pattern(tag).search(text.replace("\n", " "))
    if match is None:
        return None
    return match.group(1)


def promise_matches(text: str, promise: str | None, tag: str = DEFAULT_TAG) -> bool:
    """True when the first marker's payload equals ``promise``, ignoring whitespace."""
    if not promise:
        return False
    payload = extract_promise(text, tag)
    if payload is None:
        return False
    payload = normalize(payload)
    return bool(payload) and payload == normalize(promise)
