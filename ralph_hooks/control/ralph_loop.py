#!/usr/bin/env python3
"""
Stop Hook: Ralph Loop Controller

Implements the Ralph Wiggum pattern for continuous autonomous development.
When the agent attempts to stop and a Ralph loop is active, this hook:
1. Validates the loop state record
2. Ends the loop when the iteration cap is hit or the agent emitted the
   completion promise in its last turn
3. Otherwise bumps the iteration and re-injects the SAME prompt

Based on: https://ghuntley.com/ralph/

Every terminal outcome deletes the state record and exits 0 without
output; only a continuation prints a decision. A broken loop must never
keep the user from leaving a session.
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ralph_hooks.control.completion import DEFAULT_TAG, format_promise, promise_matches
from ralph_hooks.control.loop_state import LoopState, LoopStateStore, StateCorruption
from ralph_hooks.control.transcript import (
    EmptyAssistantText,
    NoAssistantTurn,
    TranscriptNotFound,
    last_assistant_text,
)
from ralph_hooks.core.config import expand_dir, load_config, resolve_state_path, ssot_candidates
from ralph_hooks.core.logging_setup import setup_logging
from ralph_hooks.core.metrics import log_iteration
from ralph_hooks.core.safe_hook_wrapper import safe_main

HOOK_NAME = "ralph-loop"

logger = logging.getLogger(__name__)


# =============================================================================
# Decision Model
# =============================================================================


class Outcome(str, Enum):
    NO_LOOP = "no_loop"
    CORRUPT_STATE = "corrupt_state"
    CAP_REACHED = "cap_reached"
    MISSING_TRANSCRIPT_PATH = "missing_transcript_path"
    TRANSCRIPT_UNAVAILABLE = "transcript_unavailable"
    NO_ASSISTANT_TURN = "no_assistant_turn"
    NO_ASSISTANT_TEXT = "no_assistant_text"
    COMPLETION_DETECTED = "completion_detected"
    CONTINUE = "continue"

    @property
    def is_terminal(self) -> bool:
        return self is not Outcome.CONTINUE


@dataclass
class Decision:
    """Stop hook output that blocks the exit and replays ``reason`` as the next turn."""

    reason: str
    system_message: str
    decision: str = "block"

    def to_dict(self) -> dict:
        return {
            "decision": self.decision,
            "reason": self.reason,
            "systemMessage": self.system_message,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class StopResult:
    outcome: Outcome
    decision: Decision | None = None
    diagnostic: str = ""
    iteration: int | None = None
    max_iterations: int | None = None
    details: dict = field(default_factory=dict)

    def metrics_event(self) -> dict:
        event = {
            "type": "iteration" if self.outcome is Outcome.CONTINUE else "ralph_exit",
            "outcome": self.outcome.value,
        }
        if self.iteration is not None:
            event["iteration"] = self.iteration
        if self.max_iterations is not None:
            event["max_iterations"] = self.max_iterations
        event.update(self.details)
        return event


# =============================================================================
# Messages
# =============================================================================

RESTART_HINT = "   Ralph loop is stopping. Run /ralph-loop again to start fresh."


def corruption_message(path: Path, error: StateCorruption) -> str:
    if error.field in ("prompt", "header"):
        return "\n".join(
            [
                "⚠️  Ralph loop: State file corrupted or incomplete",
                f"   File: {path}",
                f"   Problem: {error.problem}",
                "",
                "   This usually means:",
                "     • State file was manually edited",
                "     • File was corrupted during writing",
                "",
                RESTART_HINT,
            ]
        )
    return "\n".join(
        [
            "⚠️  Ralph loop: State file corrupted",
            f"   File: {path}",
            f"   Problem: {error.problem}",
            "",
            "   This usually means the state file was manually edited or corrupted.",
            RESTART_HINT,
        ]
    )


def system_message(iteration: int, promise: str | None, tag: str = DEFAULT_TAG) -> str:
    if promise:
        return (
            f"🔄 Ralph iteration {iteration} | To stop: output {format_promise(promise, tag)} "
            "(ONLY when statement is TRUE - do not lie to exit!)"
        )
    return f"🔄 Ralph iteration {iteration} | No completion promise set - loop runs infinitely"


# =============================================================================
# Controller
# =============================================================================


def parse_hook_input(raw: str) -> dict:
    """Hook payload from stdin; anything that is not a JSON object counts as empty."""
    if not raw or not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Hook input is not valid JSON: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Hook input is not a JSON object: {type(data).__name__}")
        return {}
    return data


def _terminate(
    store: LoopStateStore,
    outcome: Outcome,
    diagnostic: str,
    state: LoopState | None = None,
    **details,
) -> StopResult:
    store.delete()
    logger.info(f"Ralph loop ended: {outcome.value}")
    return StopResult(
        outcome=outcome,
        diagnostic=diagnostic,
        iteration=state.iteration if state else None,
        max_iterations=state.max_iterations if state else None,
        details=details,
    )


def evaluate_stop(store: LoopStateStore, hook_input: dict, promise_tag: str = DEFAULT_TAG) -> StopResult:
    """Decide whether the session may stop; exactly one outcome per call."""
    try:
        state = store.load()
    except StateCorruption as e:
        logger.error(f"State file corrupted: field={e.field} raw={e.raw_value!r}")
        return _terminate(
            store, Outcome.CORRUPT_STATE, corruption_message(store.path, e), field=e.field
        )

    if state is None:
        return StopResult(outcome=Outcome.NO_LOOP)

    if state.cap_reached:
        return _terminate(
            store,
            Outcome.CAP_REACHED,
            f"🛑 Ralph loop: Max iterations ({state.max_iterations}) reached.",
            state,
        )

    transcript_path = hook_input.get("transcript_path")
    if not isinstance(transcript_path, str) or not transcript_path:
        return _terminate(
            store,
            Outcome.MISSING_TRANSCRIPT_PATH,
            "\n".join(
                [
                    "⚠️  Ralph loop: No transcript path provided",
                    "   This is unusual and may indicate an agent host internal issue.",
                    "   Ralph loop is stopping.",
                ]
            ),
            state,
        )

    try:
        last_output = last_assistant_text(transcript_path)
    except TranscriptNotFound as e:
        return _terminate(
            store,
            Outcome.TRANSCRIPT_UNAVAILABLE,
            "\n".join(
                [
                    f"⚠️  Ralph loop: Transcript file {e.reason}",
                    f"   Expected: {transcript_path}",
                    "   This is unusual and may indicate an agent host internal issue.",
                    "   Ralph loop is stopping.",
                ]
            ),
            state,
            transcript_path=transcript_path,
        )
    except NoAssistantTurn:
        return _terminate(
            store,
            Outcome.NO_ASSISTANT_TURN,
            "\n".join(
                [
                    "⚠️  Ralph loop: No assistant messages found in transcript",
                    f"   Transcript: {transcript_path}",
                    "   This is unusual and may indicate a transcript format issue",
                    "   Ralph loop is stopping.",
                ]
            ),
            state,
            transcript_path=transcript_path,
        )
    except EmptyAssistantText:
        return _terminate(
            store,
            Outcome.NO_ASSISTANT_TEXT,
            "⚠️  Ralph loop: Assistant message contained no text content\n   Ralph loop is stopping.",
            state,
            transcript_path=transcript_path,
        )

    if promise_matches(last_output, state.completion_promise, promise_tag):
        return _terminate(
            store,
            Outcome.COMPLETION_DETECTED,
            f"✅ Ralph loop: Detected {format_promise(state.completion_promise, promise_tag)}",
            state,
        )

    # Not complete - continue loop with SAME PROMPT
    next_iteration = state.iteration + 1
    try:
        store.update(next_iteration)
    except (OSError, StateCorruption) as e:
        logger.error(f"Failed to persist iteration {next_iteration}: {e}")
        return _terminate(
            store,
            Outcome.CORRUPT_STATE,
            "\n".join(
                [
                    "⚠️  Ralph loop: Failed to update state file",
                    f"   File: {store.path}",
                    f"   Problem: {e}",
                    "",
                    RESTART_HINT,
                ]
            ),
            state,
        )

    return StopResult(
        outcome=Outcome.CONTINUE,
        decision=Decision(
            reason=state.prompt_text,
            system_message=system_message(next_iteration, state.completion_promise, promise_tag),
        ),
        iteration=next_iteration,
        max_iterations=state.max_iterations,
    )


# =============================================================================
# Main Hook
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=HOOK_NAME,
        description="Stop hook that keeps a Ralph loop running until it is done.",
    )
    parser.add_argument("--state-file", type=Path, help="Loop state record (overrides config)")
    parser.add_argument("--project-dir", type=Path, help="Project root for config and state lookup")
    return parser


def main(argv=None, stdin=None, stdout=None, stderr=None) -> int:
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr

    args = build_parser().parse_args(argv)

    config = load_config(ssot_candidates(args.project_dir) if args.project_dir else None)
    setup_logging(HOOK_NAME, expand_dir(config["log_dir"]), config["log_level"])

    hook_input = parse_hook_input(stdin.read())
    state_path = args.state_file or resolve_state_path(config, args.project_dir)
    store = LoopStateStore(state_path)

    result = evaluate_stop(store, hook_input, promise_tag=config["promise_tag"])
    if result.outcome is Outcome.NO_LOOP:
        return 0

    log_iteration(result.metrics_event(), expand_dir(config["metrics_dir"]))

    if result.decision is not None:
        print(result.decision.to_json(), file=stdout)
    else:
        print(result.diagnostic, file=stderr)
    return 0


def run():
    safe_main(main, HOOK_NAME)


if __name__ == "__main__":
    run()
