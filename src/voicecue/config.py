# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Configuration management for Voicecue.
Handles loading and saving settings from a YAML config file and turning them
into the option objects the pipeline components take.
"""

import copy
from pathlib import Path
from typing import Any, TypedDict

import yaml

from .matcher import MatcherOptions
from .motion import MotionOptions
from .position_tracker import TrackerOptions
from .session import SessionOptions

CONFIG_FILENAME: str = ".voicecue.yaml"


class ServerSettings(TypedDict):
    """Type definition for web server settings."""
    host: str
    port: int


class MatcherSettings(TypedDict):
    """Type definition for candidate matcher settings."""
    radius: int
    min_consecutive: int
    window_size: int
    distance_weight: float
    threshold: float


class TrackerSettings(TypedDict):
    """Type definition for position tracker settings."""
    confidence_threshold: float
    nearby_threshold: int
    small_skip_consecutive: int
    large_skip_consecutive: int
    large_skip_threshold: int
    consecutive_gap: int


class MotionSettings(TypedDict):
    """Type definition for scroll motion settings."""
    caret_percent: float
    hold_timeout: float
    correction_gain: float
    max_correction_speed: float
    sync_deadband: float
    correction_smoothing: float
    min_pace: float
    max_pace: float
    catch_up_multiplier: float


class SessionSettings(TypedDict):
    """Type definition for transcript handling settings."""
    interim_interval: float


class Config(TypedDict):
    """Type definition for the complete configuration."""
    server: ServerSettings
    matcher: MatcherSettings
    tracker: TrackerSettings
    motion: MotionSettings
    session: SessionSettings


# Default configuration values
DEFAULT_CONFIG: Config = {
    "server": {
        "host": "127.0.0.1",
        "port": 8000,
    },

    "matcher": {
        # Words searched either side of the current position
        "radius": 50,
        "min_consecutive": 2,
        "window_size": 3,
        "distance_weight": 0.3,
        # Maximum fuzzy distance per word (0 = exact)
        "threshold": 0.3,
    },

    "tracker": {
        "confidence_threshold": 0.7,
        "nearby_threshold": 10,
        "small_skip_consecutive": 4,
        "large_skip_consecutive": 5,
        "large_skip_threshold": 50,
        "consecutive_gap": 2,
    },

    "motion": {
        # Reading point, % of screen height from the top
        "caret_percent": 33,
        "hold_timeout": 5.0,
        "correction_gain": 1.5,
        "max_correction_speed": 200,
        "sync_deadband": 3,
        "correction_smoothing": 3,
        "min_pace": 0.5,
        "max_pace": 10,
        "catch_up_multiplier": 3,
    },

    "session": {
        # Minimum seconds between processed interim transcripts
        "interim_interval": 0.15,
    },
}


def get_config_path() -> Path:
    """Get the path to the config file in the current working directory."""
    return Path.cwd() / CONFIG_FILENAME


def _deep_merge(base, override):
    """
    Deep merge two dictionaries, with override taking precedence.
    Returns a new dictionary without modifying the originals.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, merged with defaults.

    Args:
        config_path: Optional path to config file. If None, uses default location.

    Returns:
        Configuration dictionary with all values (defaults + overrides from file).
    """
    if config_path is None:
        config_path = get_config_path()

    config: dict[str, Any] = copy.deepcopy(dict(DEFAULT_CONFIG))

    if config_path.exists():
        try:
            with open(config_path, encoding='utf-8') as f:
                file_config: dict[str, Any] | None = yaml.safe_load(f)
                if isinstance(file_config, dict):
                    config = _deep_merge(config, file_config)
        except (OSError, yaml.YAMLError) as e:
            print(f"Warning: Could not load config from {config_path}: {e}")

    return config  # type: ignore[return-value]


def save_config(config: Config, config_path: Path | None = None) -> bool:
    """
    Save configuration to file.

    Returns:
        True if save was successful, False otherwise.
    """
    if config_path is None:
        config_path = get_config_path()

    try:
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(dict(config), f, default_flow_style=False, sort_keys=False)
        return True
    except (OSError, yaml.YAMLError) as e:
        print(f"Error saving config to {config_path}: {e}")
        return False


def _section(config: Config, name: str) -> dict[str, Any]:
    section = config.get(name)
    if not isinstance(section, dict):
        section = DEFAULT_CONFIG[name]  # type: ignore[literal-required]
    return dict(section)


def get_server_settings(config: Config) -> ServerSettings:
    """Extract web server settings from config."""
    return _section(config, "server")  # type: ignore[return-value]


def get_matcher_settings(config: Config) -> MatcherSettings:
    """Extract candidate matcher settings from config."""
    return _section(config, "matcher")  # type: ignore[return-value]


def get_tracker_settings(config: Config) -> TrackerSettings:
    """Extract position tracker settings from config."""
    return _section(config, "tracker")  # type: ignore[return-value]


def get_motion_settings(config: Config) -> MotionSettings:
    """Extract scroll motion settings from config."""
    return _section(config, "motion")  # type: ignore[return-value]


def get_session_settings(config: Config) -> SessionSettings:
    """Extract transcript handling settings from config."""
    return _section(config, "session")  # type: ignore[return-value]


def _known_fields(options_cls: type, settings: dict[str, Any]) -> dict[str, Any]:
    """Keep only keys the options dataclass accepts, ignoring stale config keys."""
    fields: set[str] = set(options_cls.__dataclass_fields__)
    return {key: value for key, value in settings.items() if key in fields}


def matcher_options_from_config(config: Config) -> MatcherOptions:
    return MatcherOptions(**_known_fields(MatcherOptions, get_matcher_settings(config)))


def tracker_options_from_config(config: Config) -> TrackerOptions:
    return TrackerOptions(**_known_fields(TrackerOptions, get_tracker_settings(config)))


def motion_options_from_config(config: Config) -> MotionOptions:
    return MotionOptions(**_known_fields(MotionOptions, get_motion_settings(config)))


def session_options_from_config(config: Config) -> SessionOptions:
    """Build the full option set for a PromptSession."""
    session: SessionSettings = get_session_settings(config)
    return SessionOptions(
        matcher=matcher_options_from_config(config),
        tracker=tracker_options_from_config(config),
        motion=motion_options_from_config(config),
        interim_interval=float(session.get("interim_interval", 0.15))
    )


def update_config_section(config: Config, section: str, values: dict[str, Any]) -> Config:
    """
    Update one section of the config with new settings.
    Returns a new config dict.

    Args:
        config: Current configuration.
        section: Section name, e.g. "motion".
        values: New settings to merge in.

    Returns:
        New configuration with the section updated.
    """
    new_config: dict[str, Any] = copy.deepcopy(dict(config))
    new_config[section] = _deep_merge(new_config.get(section, {}), values)
    return new_config  # type: ignore[return-value]
