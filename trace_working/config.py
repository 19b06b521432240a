#!/usr/bin/env python3

import os
import json
import tomllib
from pathlib import Path

import logging
import sys

import yaml

from .exit_codes import ConfigError

logger = logging.getLogger("trace_working")

ENV_PREFIX = "TRACE_WORKING_"


def configure_logging(level=None, verbose=False, config=None):
    """
    Configure the root logger once per process.

    Args:
        level: Explicit level name; overrides config
        verbose: Force DEBUG
        config: Loaded configuration (defaults if None)
    """
    logging_config = (config or get_default_config()).get("logging", {})
    if verbose:
        level = "DEBUG"
    level = (level or logging_config.get("level") or "INFO").upper()

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=logging_config.get("format", "%(levelname)s: %(message)s"),
        handlers=[
            logging.StreamHandler(sys.stderr)  # stdout carries results
        ],
        force=True
    )


def get_config_path():
    """Get the path to the configuration file.

    Checks in order:
    1. TRACE_WORKING_CONFIG environment variable
    2. ~/.trace-working/config.{json,toml,yaml,yml}
    """
    if 'TRACE_WORKING_CONFIG' in os.environ:
        return Path(os.environ['TRACE_WORKING_CONFIG']).expanduser()

    config_dir = Path.home() / '.trace-working'
    for filename in ['config.json', 'config.toml', 'config.yaml', 'config.yml']:
        path = config_dir / filename
        if path.exists():
            return path

    # If no file exists, return the default location
    return config_dir / 'config.json'


def load_config(path=None):
    """
    Load configuration: defaults, then file, then environment.

    Args:
        path: Explicit config file (default: get_config_path())

    Raises:
        ConfigError: If the file exists but cannot be parsed
    """
    config_path = Path(path) if path else get_config_path()
    config = get_default_config()

    if config_path.exists():
        try:
            if config_path.suffix.lower() == '.toml':
                with open(config_path, 'rb') as f:
                    file_config = tomllib.load(f)
            elif config_path.suffix.lower() in ['.yaml', '.yml']:
                with open(config_path, 'r') as f:
                    file_config = yaml.safe_load(f) or {}
            else:
                with open(config_path, 'r') as f:
                    file_config = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            # tomllib and json errors are both ValueErrors
            raise ConfigError(f"Error loading config from {config_path}: {e}")

        if not isinstance(file_config, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")
        logger.debug(f"Loaded config from {config_path}")
        config = merge_configs(config, file_config)

    return apply_env_overrides(config)


def get_default_config():
    """Get default configuration."""
    return {
        "trace": {
            "restore": True,
            "shell": False,
            "stash": False,
            "max_commits": 0,        # 0 = walk the whole history
            "timeout_seconds": 0,    # 0 = wait for the command indefinitely
        },
        "git": {
            "executable": "git",
            "timeout_seconds": 60,
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s"
        },
    }


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def _coerce(value):
    if value.lower() in ('true', '1', 'yes', 'on'):
        return True
    if value.lower() in ('false', '0', 'no', 'off'):
        return False
    if value.isdigit():
        return int(value)
    return value


def apply_env_overrides(config, environ=None):
    """
    Apply environment variable overrides to configuration.

    Variables follow TRACE_WORKING_<SECTION>_<KEY>, where KEY may itself
    contain underscores, e.g. TRACE_WORKING_TRACE_MAX_COMMITS=200.
    Unknown sections or keys are ignored.
    """
    environ = os.environ if environ is None else environ

    for env_key, value in environ.items():
        if not env_key.startswith(ENV_PREFIX) or env_key == 'TRACE_WORKING_CONFIG':
            continue

        remainder = env_key[len(ENV_PREFIX):].lower()
        for section, values in config.items():
            if not isinstance(values, dict) or not remainder.startswith(section + '_'):
                continue
            key = remainder[len(section) + 1:]
            if key in values:
                typed_value = _coerce(value)
                # "1"/"0" coerce to booleans; keep them numeric for int settings
                if isinstance(values[key], int) and not isinstance(values[key], bool) \
                        and isinstance(typed_value, bool):
                    typed_value = int(value)
                values[key] = typed_value
                logger.debug(f"Config override from {env_key}")
            break

    return config
