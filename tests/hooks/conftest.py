"""Shared fixtures for Ralph loop hook tests."""

import logging

import pytest

from tests.hooks.helpers import render_state


@pytest.fixture
def state_file(tmp_path):
    """Write a state record under tmp_path/.claude and return its path."""
    path = tmp_path / ".claude" / "ralph-loop.local.md"

    def _write(**kwargs):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_state(**kwargs))
        return path

    return _write


@pytest.fixture
def transcript_file(tmp_path):
    """Write JSONL transcript lines and return the file path."""
    path = tmp_path / "transcript.jsonl"

    def _write(*lines: str):
        path.write_text("\n".join(lines) + "\n")
        return path

    return _write


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep logs, metrics and config lookups inside tmp_path."""
    monkeypatch.setenv("RALPH_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("RALPH_METRICS_DIR", str(tmp_path / "metrics"))
    monkeypatch.setenv("CLAUDE_PROJECT_DIR", str(tmp_path))
    monkeypatch.delenv("RALPH_STATE_FILE", raising=False)
    monkeypatch.delenv("RALPH_PROMISE_TAG", raising=False)
    monkeypatch.delenv("RALPH_LOG_LEVEL", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Drop file handlers the hook attaches to the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
