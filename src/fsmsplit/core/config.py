"""Configuration utilities for fsmsplit.

Provides XDG-compliant config path handling and configuration loading.
All configuration is stored in ~/.config/fsmsplit/ by default, respecting
the XDG_CONFIG_HOME environment variable when set.
"""

import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from fsmsplit.core.constants import (
    BASE_LAYER_NAME,
    CARRY_LAYER_NAME,
    DANGLING_DROP,
    DANGLING_POLICIES,
    DEFAULT_ENTER_PARAMETER,
    DEFAULT_NAME_TEMPLATE,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_TEAM_PREFIX,
    REWRITE_DURATION,
    REWRITE_EXIT_TIME,
    REWRITE_OFFSET,
)
from fsmsplit.core.exceptions import ConfigError

__all__ = [
    "FsmSplitConfig",
    "RuleConfig",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_TOML",
    "ConfigError",
    "get_xdg_config_home",
    "get_config_path",
    "ensure_config_directory",
    "load_config",
    "write_default_config",
]

# Keys of a [[rules]] table that select the predicate; exactly one is required
RULE_MATCH_KEYS: tuple[str, ...] = ("prefix", "name", "any_state_parameter")

_FLOAT_KEYS: frozenset[str] = frozenset({"rewrite_exit_time", "rewrite_duration", "rewrite_offset"})


def get_xdg_config_home() -> Path:
    """Get XDG config home directory for fsmsplit.

    Returns ~/.config/fsmsplit/ by default.
    Respects XDG_CONFIG_HOME environment variable when set.

    Returns:
        Path to fsmsplit's config directory.
    """
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        base = Path(xdg_config_home)
    else:
        base = Path.home() / ".config"
    return base / "fsmsplit"


def get_config_path() -> Path:
    """Get path to config file.

    Returns:
        Path to config.toml file within fsmsplit's config directory.
    """
    return get_xdg_config_home() / "config.toml"


def ensure_config_directory() -> Path:
    """Ensure config directory exists with correct permissions.

    Creates the directory with mkdir -p behavior if it doesn't exist.
    Sets permissions to 700 (owner only).

    Returns:
        Path to the created/existing config directory.
    """
    config_dir = get_xdg_config_home()
    config_dir.parent.mkdir(parents=True, exist_ok=True)

    if not config_dir.exists():
        old_umask = os.umask(0o077)  # Block group/other access
        try:
            config_dir.mkdir(mode=0o700, exist_ok=True)
        finally:
            os.umask(old_umask)

    config_dir.chmod(0o700)
    return config_dir


@dataclass(frozen=True)
class RuleConfig:
    """One root classification rule as written in the config file.

    Exactly one of ``prefix``, ``name`` and ``any_state_parameter`` is set.
    """

    label: str
    prefix: str | None = None
    name: str | None = None
    any_state_parameter: str | None = None


DEFAULT_RULES: tuple[RuleConfig, ...] = (
    RuleConfig(label="enter-state", any_state_parameter=DEFAULT_ENTER_PARAMETER),
    RuleConfig(label="team", prefix=DEFAULT_TEAM_PREFIX),
)


@dataclass(frozen=True)
class FsmSplitConfig:
    """fsmsplit configuration settings.

    All fields have sensible defaults. Config file can be partial.
    """

    # Layers
    base_layer: str = BASE_LAYER_NAME
    carry_layer: str = CARRY_LAYER_NAME  # Empty string disables the carry copy

    # Split settings
    output_dir: str = DEFAULT_OUTPUT_DIR
    name_template: str = DEFAULT_NAME_TEMPLATE
    dangling_policy: str = DANGLING_DROP
    prune_source: bool = True
    rules: tuple[RuleConfig, ...] = DEFAULT_RULES

    # Batch timing rewrite
    rewrite_exit_time: float = REWRITE_EXIT_TIME
    rewrite_duration: float = REWRITE_DURATION
    rewrite_offset: float = REWRITE_OFFSET


DEFAULT_CONFIG = FsmSplitConfig()


# Default config TOML template with documentation comments
DEFAULT_CONFIG_TOML = f"""\
# fsmsplit Configuration
# Location: ~/.config/fsmsplit/config.toml

# Layer partitioned into new controllers
base_layer = "{BASE_LAYER_NAME}"
# Layer copied whole into every new controller ("" to disable)
carry_layer = "{CARRY_LAYER_NAME}"

# Where new controllers are written, relative to the working directory
output_dir = "{DEFAULT_OUTPUT_DIR}"
# Name of each new controller: {{controller}}, {{index}} and {{label}} are replaced
name_template = "{DEFAULT_NAME_TEMPLATE}"

# Transitions leaving an extracted group: "drop" (warn and skip) or "fail"
dangling_policy = "{DANGLING_DROP}"
# Remove extracted states from the source controller
prune_source = true

# Values written by `fsmsplit rewrite`
rewrite_exit_time = {REWRITE_EXIT_TIME}
rewrite_duration = {REWRITE_DURATION}
rewrite_offset = {REWRITE_OFFSET}

# Root rules, in priority order. Each rule uses one of:
#   prefix = "..."               state name starts with
#   name = "..."                 state name equals
#   any_state_parameter = "..."  any-state entry has a condition on the parameter
[[rules]]
label = "enter-state"
any_state_parameter = "{DEFAULT_ENTER_PARAMETER}"

[[rules]]
label = "team"
prefix = "{DEFAULT_TEAM_PREFIX}"
"""


def _parse_rules(items: Any) -> tuple[RuleConfig, ...]:
    if not isinstance(items, list):
        raise ConfigError("Invalid rules: expected an array of [[rules]] tables")

    rules = []
    for position, item in enumerate(items, 1):
        if not isinstance(item, dict):
            raise ConfigError(f"Invalid rule #{position}: expected a table")
        label = item.get("label")
        if not isinstance(label, str) or not label:
            raise ConfigError(f"Invalid rule #{position}: missing label")
        if any(rule.label == label for rule in rules):
            raise ConfigError(f"Invalid rule #{position}: duplicate label '{label}'")
        selected = [k for k in RULE_MATCH_KEYS if k in item]
        if len(selected) != 1:
            raise ConfigError(
                f"Invalid rule '{label}': set exactly one of {', '.join(RULE_MATCH_KEYS)}"
            )
        value = item[selected[0]]
        if not isinstance(value, str) or not value:
            raise ConfigError(f"Invalid rule '{label}': {selected[0]} must be a non-empty string")
        rules.append(RuleConfig(label=label, **{selected[0]: value}))
    return tuple(rules)


def _validate_config_values(data: dict[str, Any]) -> None:
    """Validate config values.

    Args:
        data: Raw config data from TOML file.

    Raises:
        ConfigError: If any value is not allowed.
    """
    if "dangling_policy" in data:
        value = data["dangling_policy"]
        if value not in DANGLING_POLICIES:
            raise ConfigError(
                f"Invalid dangling_policy '{value}'. "
                f"Must be one of: {', '.join(sorted(DANGLING_POLICIES))}"
            )

    if "name_template" in data:
        value = data["name_template"]
        try:
            value.format(controller="c", index=0, label="l")
        except (AttributeError, KeyError, IndexError, ValueError) as e:
            raise ConfigError(f"Invalid name_template '{value}': {e}") from e

    if "prune_source" in data and not isinstance(data["prune_source"], bool):
        raise ConfigError("Invalid prune_source: expected true or false")

    for key in _FLOAT_KEYS & data.keys():
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise ConfigError(f"Invalid {key} '{value}': expected a number")


def load_config(config_path: Path | None = None) -> FsmSplitConfig:
    """Load configuration from TOML file.

    Args:
        config_path: Optional path override. Defaults to XDG config path.

    Returns:
        FsmSplitConfig with loaded values merged with defaults.

    Raises:
        ConfigError: If TOML parsing or validation fails.
    """
    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        return DEFAULT_CONFIG

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Configuration file is invalid: {e}") from e

    _validate_config_values(data)

    # Merge with defaults - only use keys that are valid FsmSplitConfig fields
    valid_fields = {f.name for f in fields(FsmSplitConfig)}
    filtered_data = {k: v for k, v in data.items() if k in valid_fields}
    if "rules" in filtered_data:
        filtered_data["rules"] = _parse_rules(filtered_data["rules"])
    for key in _FLOAT_KEYS & filtered_data.keys():
        filtered_data[key] = float(filtered_data[key])

    return FsmSplitConfig(**{**DEFAULT_CONFIG.__dict__, **filtered_data})


def write_default_config(config_path: Path | None = None) -> Path:
    """Write default configuration file with documented settings.

    Uses atomic write pattern (temp file + rename). Sets file permissions
    to 600 (owner read/write only).

    Args:
        config_path: Optional path override. Defaults to XDG config path.

    Returns:
        The path written.
    """
    if config_path is None:
        config_path = get_config_path()
        ensure_config_directory()
    else:
        config_path.parent.mkdir(parents=True, exist_ok=True)

    temp_path = config_path.with_suffix(".tmp")
    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(DEFAULT_CONFIG_TOML)

        temp_path.chmod(0o600)
        temp_path.replace(config_path)
    finally:
        # Clean up temp file if it still exists
        try:
            if temp_path.exists():
                temp_path.unlink()
        except OSError:
            pass

    return config_path
