"""
Ralph loop configuration (SSOT).

Defaults are merged with the ``ralph_loop`` section of config/canonical.yaml
when one is found, then environment overrides are applied on top.
"""

import logging
import os
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

# =============================================================================
# Defaults
# =============================================================================

DEFAULT_CONFIG = {
    "state_path": ".claude/ralph-loop.local.md",
    "promise_tag": "promise",
    "log_dir": "~/.claude/logs",
    "metrics_dir": "~/.claude/metrics",
    "log_level": "INFO",
}

ENV_OVERRIDES = {
    "state_path": "RALPH_STATE_FILE",
    "promise_tag": "RALPH_PROMISE_TAG",
    "log_dir": "RALPH_LOG_DIR",
    "metrics_dir": "RALPH_METRICS_DIR",
    "log_level": "RALPH_LOG_LEVEL",
}

SSOT_SECTION = "ralph_loop"


def get_project_dir() -> Path:
    """Project root as given by the host, falling back to the working directory."""
    return Path(os.environ.get("CLAUDE_PROJECT_DIR") or Path.cwd())


def ssot_candidates(project_dir: Path | None = None) -> list[Path]:
    """Possible canonical.yaml locations, most specific first."""
    project_dir = project_dir or get_project_dir()
    candidates = [project_dir / "config" / "canonical.yaml"]
    cwd_candidate = Path.cwd() / "config" / "canonical.yaml"
    if cwd_candidate not in candidates:
        candidates.append(cwd_candidate)
    return candidates


def load_ssot_config(search_paths: list[Path] | None = None) -> dict:
    """Load Ralph loop config from canonical.yaml (SSOT)."""
    if search_paths is None:
        search_paths = ssot_candidates()

    for config_path in search_paths:
        if not config_path.exists():
            continue
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load SSOT config {config_path}: {e}")
            continue

        section = data.get(SSOT_SECTION) if isinstance(data, dict) else None
        if isinstance(section, dict) and section:
            logger.info(f"Loaded config from SSOT: {config_path}")
            return {**DEFAULT_CONFIG, **{k: v for k, v in section.items() if v is not None}}

    logger.info("Using default config (canonical.yaml not found)")
    return dict(DEFAULT_CONFIG)


def apply_env_overrides(config: dict, environ=None) -> dict:
    """Environment variables win over yaml and defaults."""
    environ = os.environ if environ is None else environ
    merged = dict(config)
    for key, var in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            merged[key] = value
    return merged


def validate_config(config: dict) -> dict:
    """Replace unusable values (non-strings, blanks) with their defaults."""
    validated = dict(config)
    for key, default in DEFAULT_CONFIG.items():
        value = validated.get(key)
        if not isinstance(value, str) or not value.strip():
            if key in validated:
                logger.warning(f"Invalid config value {key}={value!r}, using default {default!r}")
            validated[key] = default
    return validated


def load_config(search_paths: list[Path] | None = None) -> dict:
    return validate_config(apply_env_overrides(load_ssot_config(search_paths)))


def expand_dir(value: str | Path) -> Path:
    return Path(os.path.expanduser(str(value)))


def resolve_state_path(config: dict, project_dir: Path | None = None) -> Path:
    """
    Absolute location of the loop state record.

    Relative paths are anchored at the project directory so the hook does
    not depend on whatever directory the host happens to launch it from.
    """
    path = expand_dir(config["state_path"])
    if path.is_absolute():
        return path
    return (project_dir or get_project_dir()) / path
