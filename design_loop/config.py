#!/usr/bin/env python3
"""
Config Loader for the design loop.

Provides:
- validate_config() / validate_config_dict(): Schema validation with readable errors
- deep_merge(): Recursive dict merge
- load_global_config(): ~/.design_loop/config.json
- load_project_config(): .design_loop/config.json found upward from a directory
- load_config(): defaults <- global <- project
- options_from_config() and friends: Typed objects from a merged config
- create_feedback_loop(): A FeedbackLoop wired from a merged config

Usage:
    from design_loop.config import create_feedback_loop, load_config

    config = load_config()
    loop = create_feedback_loop(config, provider=provider, renderer=renderer)
    result = await loop.run(intent, options_from_config(config))
"""

import json
import logging
import sys
from pathlib import Path

from jsonschema import Draft202012Validator

from .feedback_loop import FeedbackLoop
from .generators.strategy_manager import DEFAULT_STRATEGY_WEIGHTS, StrategyManager
from .log import configure_logging
from .models import (
    DEFAULT_ADAPTIVE_CONFIG,
    DEFAULT_TEMPERATURE_SCHEDULE,
    QUALITY_COMPONENT_WEIGHTS,
    AdaptiveConfig,
    FeedbackLoopOptions,
    GenerationStrategy,
    TemperatureSchedule,
    VerificationConfig,
)
from .providers import AIProvider
from .rendering import Renderer
from .terminal_reporter import TerminalReporter
from .verification.tiered import DEFAULT_ACCEPTANCE_THRESHOLD, TieredVerifier

logger = logging.getLogger(__name__)


# =============================================================================
# Schema and Config Paths
# =============================================================================

SCHEMA_PATH = Path(__file__).parent / "config.schema.json"
GLOBAL_CONFIG_PATH = Path.home() / ".design_loop" / "config.json"
PROJECT_CONFIG_NAMES = (".design_loop/config.json", "design_loop.json")

_loop_defaults = FeedbackLoopOptions().to_dict()

DEFAULT_CONFIG = {
    "loop": {
        k: v for k, v in _loop_defaults.items() if k not in ("verification", "quality_weights")
    },
    "verification": {
        "tier": "standard",
        "primary_model": None,
        "acceptance_threshold": DEFAULT_ACCEPTANCE_THRESHOLD,
        "advanced_config": None,
    },
    "quality_weights": dict(QUALITY_COMPONENT_WEIGHTS),
    "adaptive": {
        "temperature": DEFAULT_ADAPTIVE_CONFIG.temperature,
        "exploration_rate": DEFAULT_ADAPTIVE_CONFIG.exploration_rate,
        "min_diversity": DEFAULT_ADAPTIVE_CONFIG.min_diversity,
    },
    "temperature_schedule": {
        "initial": DEFAULT_TEMPERATURE_SCHEDULE.initial,
        "min": DEFAULT_TEMPERATURE_SCHEDULE.min,
        "decay_rate": DEFAULT_TEMPERATURE_SCHEDULE.decay_rate,
    },
    "strategy_weights": {s.value: w for s, w in DEFAULT_STRATEGY_WEIGHTS.items()},
    "logging": {"level": "INFO", "file": None},
}


# =============================================================================
# Validation
# =============================================================================


def _load_schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text())


def validate_config_dict(config: dict) -> list[str]:
    """
    Validate config dict against schema.

    Returns:
        List of error messages. Empty list = valid config.
    """
    validator = Draft202012Validator(_load_schema())
    errors = []
    for error in validator.iter_errors(config):
        path = " -> ".join(str(p) for p in error.absolute_path) or "root"
        errors.append(f"[{path}] {error.message}")

    weights = config.get("quality_weights")
    if isinstance(weights, dict) and not errors:
        merged = {**QUALITY_COMPONENT_WEIGHTS, **weights}
        if abs(sum(merged.values()) - 1.0) > 1e-6:
            errors.append(f"[quality_weights] must sum to 1, got {sum(merged.values()):.3f}")
    return errors


def validate_config(config_path: Path) -> list[str]:
    """
    Validate config file against schema.

    Returns:
        List of error messages. Empty list = valid config.
    """
    if not config_path.exists():
        return [f"Config file not found: {config_path}"]
    try:
        config = json.loads(config_path.read_text())
    except json.JSONDecodeError as e:
        return [f"Invalid JSON in config: {e}"]
    return validate_config_dict(config)


# =============================================================================
# Merge and Loading
# =============================================================================


def deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge override into base.

    - Dicts are recursively merged
    - Lists and scalars from override replace base
    - Keys in override take precedence
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def find_project_config(start_dir: Path | None = None) -> Path | None:
    """Find a project config by searching upward from start_dir."""
    current = (start_dir or Path.cwd()).resolve()
    while True:
        for rel_path in PROJECT_CONFIG_NAMES:
            candidate = current / rel_path
            if candidate.is_file():
                return candidate
        if current == current.parent:
            return None
        current = current.parent


def _read_json(path: Path, label: str) -> dict:
    try:
        config = json.loads(path.read_text())
        logger.debug(f"Loaded {label} config from {path}")
        return config
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid JSON in {label} config {path}: {e}")
        return {}
    except OSError as e:
        logger.warning(f"Error reading {label} config {path}: {e}")
        return {}


def load_global_config() -> dict:
    """
    Load global config from ~/.design_loop/config.json.

    Returns:
        Global config dict if it exists and parses, empty dict otherwise.
    """
    if not GLOBAL_CONFIG_PATH.exists():
        logger.debug(f"Global config not found at {GLOBAL_CONFIG_PATH}")
        return {}
    return _read_json(GLOBAL_CONFIG_PATH, "global")


def load_project_config(path: Path | None = None) -> tuple[dict, Path | None]:
    """
    Load project config.

    Args:
        path: Config file, or directory to search upward from (cwd if None).

    Returns:
        (config, path it was loaded from). ({}, None) when nothing is found.
    """
    if path is not None and path.is_file():
        config_path = path
    elif path is None or path.is_dir():
        config_path = find_project_config(path)
    else:
        logger.debug(f"Project config path does not exist: {path}")
        return {}, None

    if config_path is None:
        logger.debug("No project config found")
        return {}, None
    return _read_json(config_path, "project"), config_path


def load_config(project_path: Path | None = None) -> dict:
    """
    Load config with the full inheritance chain.

    Composition order (later overrides earlier):
    1. DEFAULT_CONFIG
    2. Global config (~/.design_loop/config.json)
    3. Project config (.design_loop/config.json or design_loop.json)

    Returns:
        Merged config with a _config_source entry describing what was loaded.

    Raises:
        ValueError: If the merged user config fails schema validation.
    """
    global_config = load_global_config()
    project_config, found = load_project_config(project_path)

    user_config = deep_merge(global_config, project_config)
    errors = validate_config_dict(user_config)
    if errors:
        raise ValueError("Invalid config:\n" + "\n".join(f"  - {e}" for e in errors))

    config = deep_merge(DEFAULT_CONFIG, user_config)
    config["_config_source"] = {
        "global": bool(global_config),
        "project": bool(project_config),
        "global_path": str(GLOBAL_CONFIG_PATH) if global_config else None,
        "project_path": str(found) if found and project_config else None,
    }
    logger.info(
        f"Config loaded: global={bool(global_config)}, project={bool(project_config)}"
    )
    return config


# =============================================================================
# Typed Views
# =============================================================================


def options_from_config(config: dict) -> FeedbackLoopOptions:
    merged = deep_merge(DEFAULT_CONFIG, config)
    verification = {
        k: v for k, v in merged["verification"].items() if k != "acceptance_threshold"
    }
    return FeedbackLoopOptions.from_dict(
        {
            **merged["loop"],
            "verification": VerificationConfig.from_dict(verification),
            "quality_weights": dict(merged["quality_weights"]),
        }
    )


def adaptive_from_config(config: dict) -> AdaptiveConfig:
    return AdaptiveConfig(**deep_merge(DEFAULT_CONFIG["adaptive"], config.get("adaptive", {})))


def schedule_from_config(config: dict) -> TemperatureSchedule:
    return TemperatureSchedule(
        **deep_merge(DEFAULT_CONFIG["temperature_schedule"], config.get("temperature_schedule", {}))
    )


def strategy_weights_from_config(config: dict) -> dict[GenerationStrategy, float]:
    weights = deep_merge(DEFAULT_CONFIG["strategy_weights"], config.get("strategy_weights", {}))
    return {GenerationStrategy(name): float(w) for name, w in weights.items()}


def create_feedback_loop(
    config: dict,
    provider: AIProvider | None = None,
    renderer: Renderer | None = None,
    reporter: TerminalReporter | None = None,
) -> FeedbackLoop:
    """Build a FeedbackLoop (and configure logging) from a merged config."""
    log_config = deep_merge(DEFAULT_CONFIG["logging"], config.get("logging", {}))
    configure_logging(log_config["level"], log_config["file"])

    verification = deep_merge(DEFAULT_CONFIG["verification"], config.get("verification", {}))
    loop = FeedbackLoop(
        provider,
        renderer,
        tiered_verifier=TieredVerifier(acceptance_threshold=verification["acceptance_threshold"]),
        strategy_manager=StrategyManager(weights=strategy_weights_from_config(config)),
        reporter=reporter,
    )
    loop.configure(
        adaptive_config=adaptive_from_config(config),
        temperature_schedule=schedule_from_config(config),
    )
    return loop


# =============================================================================
# CLI
# =============================================================================


def main():
    """CLI for config validation and inspection."""
    import argparse

    parser = argparse.ArgumentParser(description="Design loop config loader")
    parser.add_argument("config", nargs="?", help="Path to config file")
    parser.add_argument("--validate", action="store_true", help="Validate config")
    parser.add_argument("--show-defaults", action="store_true", help="Show default config")
    parser.add_argument(
        "--show-merged", action="store_true", help="Show config with defaults applied"
    )
    parser.add_argument("--find", action="store_true", help="Find config in current directory tree")
    args = parser.parse_args()

    if args.show_defaults:
        print(json.dumps(DEFAULT_CONFIG, indent=2))
        return

    if args.find:
        config_path = find_project_config()
        if config_path:
            print(f"Found: {config_path}")
        else:
            print("No design loop config found")
            sys.exit(1)
        return

    if args.show_merged:
        try:
            config = load_config(Path(args.config) if args.config else None)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(json.dumps(config, indent=2))
        return

    if not args.config:
        parser.print_help()
        sys.exit(1)

    if args.validate:
        errors = validate_config(Path(args.config))
        if errors:
            print("Validation FAILED:")
            for e in errors:
                print(f"  - {e}")
            sys.exit(1)
        print("Validation OK")
        return

    parser.print_help()
    sys.exit(1)


__all__ = [
    "DEFAULT_CONFIG",
    "SCHEMA_PATH",
    "GLOBAL_CONFIG_PATH",
    "validate_config",
    "validate_config_dict",
    "deep_merge",
    "find_project_config",
    "load_global_config",
    "load_project_config",
    "load_config",
    "options_from_config",
    "adaptive_from_config",
    "schedule_from_config",
    "strategy_weights_from_config",
    "create_feedback_loop",
    "main",
]


if __name__ == "__main__":
    main()
