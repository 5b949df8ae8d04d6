"""Provides functions for loading and accessing configuration settings.

Supports loading from a YAML file (``~/.promptaudit/config.yaml``), a .env
file and ``PROMPTAUDIT_*`` environment variables, plus in-memory overrides
for tests. Also reads the per-project rules configuration.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from promptaudit.domain.models.analysis import PatternSeverity, RuleConfig, RulesConfig

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".promptaudit"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
DEFAULT_RULES_FILE_NAME = ".promptaudit.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "PROMPTAUDIT_"
DEFAULT_CACHE_TTL_SECONDS = 7 * 24 * 60 * 60

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}  # For testing purposes
_loaded = False


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from the YAML file and the .env file.

    Priority order (highest to lowest):
    1. Test overrides (``set_config_for_testing``)
    2. Environment variables (``PROMPTAUDIT_<KEY>``)
    3. .env file (never overrides variables already set)
    4. YAML configuration file

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. YAML file (lowest priority)
    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(yaml_config)
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. .env file; override=False lets real environment variables win
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug(".env file not found at or above current directory.")

    # 3. Environment variables are read on demand by get_config
    _loaded = True


def _coerce_env_value(value: str) -> Any:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def _env_key(key: str) -> str:
    return f"{ENV_PREFIX}{key.upper().replace('.', '_')}"


def get_config(key: str, default: Any = None) -> Any:
    """Gets a configuration value by key (e.g. ``cache.ttl_seconds``).

    Dotted keys are looked up as nested mappings in the YAML config.
    """
    if key in _test_config:
        return _test_config[key]

    env_key = _env_key(key)
    if env_key in os.environ:
        return _coerce_env_value(os.environ[env_key])

    if key in _config:
        return _config[key]

    node: Any = _config
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            logger.debug(f"Config key '{key}' not found. Returning default: {default}")
            return default
        node = node[part]
    return node


def set_config(key: str, value: Any) -> None:
    """Sets a configuration value for the running process."""
    logger.debug(f"Setting config: {key} = {value}")
    _config[key] = value
    os.environ[_env_key(key)] = str(value)


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    try:
        cwd = Path.cwd()
    except OSError as e:
        logger.warning(f"Error searching for .env file: {e}")
        return None
    for path in [cwd, *cwd.parents]:
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


# --- Convenience Functions ---

def get_data_dir() -> Path:
    """Root directory for everything promptaudit writes."""
    return Path(get_config("data_dir", DEFAULT_CONFIG_DIR)).expanduser()


def get_results_dir() -> Path:
    """Directory of the per-prompt result store."""
    value = get_config("results_dir")
    return Path(value).expanduser() if value else get_data_dir() / "results"


def get_cache_dir() -> Path:
    """Directory of the batch-level analysis cache."""
    value = get_config("cache_dir")
    return Path(value).expanduser() if value else get_data_dir() / "cache"


def get_cache_ttl_seconds() -> int:
    """Lifetime of batch cache entries, in seconds."""
    value = get_config("cache.ttl_seconds", DEFAULT_CACHE_TTL_SECONDS)
    try:
        ttl = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid cache TTL '{value}'. Using default of {DEFAULT_CACHE_TTL_SECONDS}s.")
        return DEFAULT_CACHE_TTL_SECONDS
    return ttl if ttl > 0 else DEFAULT_CACHE_TTL_SECONDS


def load_rules_config(path: Optional[Union[str, Path]] = None) -> RulesConfig:
    """Reads the ``rules:`` mapping from a project YAML file.

    Example::

        rules:
          imperative:
            enabled: false
          vague:
            severity: medium

    A missing file gives an empty config. Invalid entries are skipped
    with a warning.

    Raises:
        ValueError: If the file exists but is not valid YAML.
    """
    rules_path = Path(path) if path else Path.cwd() / DEFAULT_RULES_FILE_NAME
    if not rules_path.exists():
        logger.debug(f"Rules config not found: {rules_path}")
        return {}

    try:
        with open(rules_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid rules config {rules_path}: {e}") from e

    raw_rules = data.get("rules") if isinstance(data, dict) else None
    if not isinstance(raw_rules, dict):
        return {}

    rules: RulesConfig = {}
    for rule_id, raw in raw_rules.items():
        if not isinstance(raw, dict):
            logger.warning(f'Ignoring rule "{rule_id}": expected a mapping')
            continue
        enabled = raw.get("enabled")
        if enabled is not None and not isinstance(enabled, bool):
            logger.warning(f'Ignoring "enabled" for rule "{rule_id}": expected true or false')
            enabled = None
        severity = None
        if raw.get("severity") is not None:
            try:
                severity = PatternSeverity(str(raw["severity"]).lower())
            except ValueError:
                logger.warning(f'Ignoring invalid severity "{raw["severity"]}" for rule "{rule_id}"')
        rules[str(rule_id)] = RuleConfig(enabled=enabled, severity=severity)

    logger.debug(f"Loaded {len(rules)} rule(s) from {rules_path}")
    return rules


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Sets configuration values that override every other source."""
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clears all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")


# Load configuration when the module is imported
load_configuration()
