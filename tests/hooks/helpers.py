"""Builders for Ralph loop state records and JSONL transcripts."""

import json


def render_state(
    iteration="0",
    max_iterations="0",
    completion_promise='"ready"',
    body="Fix the bug",
) -> str:
    lines = ["---", "active: true"]
    if iteration is not None:
        lines.append(f"iteration: {iteration}")
    if max_iterations is not None:
        lines.append(f"max_iterations: {max_iterations}")
    if completion_promise is not None:
        lines.append(f"completion_promise: {completion_promise}")
    lines.append('started_at: "2026-01-13T10:00:00Z"')
    lines.append("---")
    lines.append("")
    return "\n".join(lines) + "\n" + body + "\n"


def user_line(text: str) -> str:
    return json.dumps({"type": "user", "message": {"role": "user", "content": text}})


def assistant_line(*texts: str, nested: bool = True, extra_blocks=()) -> str:
    content = [{"type": "text", "text": t} for t in texts] + list(extra_blocks)
    message = {"role": "assistant", "content": content}
    if nested:
        return json.dumps({"type": "assistant", "message": message})
    return json.dumps(message)
