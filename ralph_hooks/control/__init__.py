"""Loop control for the Ralph stop hook.

Modules:
- ralph_loop.py: Stop hook - decides between ending the session and replaying the prompt
- loop_state.py: state record load/update/delete (.claude/ralph-loop.local.md)
- transcript.py: last assistant turn from the JSONL transcript
- completion.py: <promise>...</promise> detection
"""

__all__ = [
    "ralph_loop",
    "loop_state",
    "transcript",
    "completion",
]
