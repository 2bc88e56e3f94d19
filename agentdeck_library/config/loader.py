"""Configuration loading for agentdeck.

This module handles loading configuration from YAML files
and environment variables.

Contract:
- Inputs: Config file paths, environment variables
- Outputs: AgentDeckSettings objects
- Side Effects: Creates default config file if missing
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from ..storage.paths import get_config_dir
from .settings import AgentDeckSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = """# agentdeck configuration

# Command used to launch the agent; extra items are passed before the flags
agent_command: ["claude"]

# Launch through the shell with a single quoted command line
use_shell: false

# Defaults applied when a request does not specify them
# default_permission_mode: "acceptEdits"
# default_model: "sonnet"

# Daemon settings
host: "127.0.0.1"
port: 8430
log_level: "info"
"""


def get_config_path() -> Path:
    """Get path to config file.

    Returns:
        Path to agentdeck.yaml in config directory
    """
    return get_config_dir() / "agentdeck.yaml"


def create_default_config() -> None:
    """Create default config file if it doesn't exist."""
    config_path = get_config_path()

    if config_path.exists():
        logger.debug(f"Config file already exists: {config_path}")
        return

    config_path.write_text(DEFAULT_CONFIG, encoding="utf-8")
    logger.info(f"Created default config: {config_path}")


def _read_yaml(config_path: Path) -> dict[str, Any]:
    """Read a YAML mapping, falling back to {} when unreadable."""
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load config from {config_path}: {e}")
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring {config_path}: expected a mapping, got {type(data).__name__}")
        return {}
    logger.debug(f"Loaded config from {config_path}")
    return data


def load_config(config_path: Path | None = None) -> AgentDeckSettings:
    """Load configuration from YAML and environment.

    Environment variables take precedence over YAML settings.
    Variables should be prefixed with AGENTDECK_ (e.g., AGENTDECK_PORT).

    Args:
        config_path: Optional config file path (default: agentdeck.yaml in config dir)

    Returns:
        Validated settings

    Example:
        >>> settings = load_config()
        >>> assert isinstance(settings, AgentDeckSettings)
    """
    if config_path is None:
        config_path = get_config_path()
        create_default_config()

    yaml_settings = _read_yaml(config_path) if config_path.exists() else {}

    # env wins: drop YAML keys that have an environment override
    prefix = AgentDeckSettings.model_config.get("env_prefix", "")
    overrides = {key for key in yaml_settings if f"{prefix}{key}".upper() in os.environ}
    settings = AgentDeckSettings(**{k: v for k, v in yaml_settings.items() if k not in overrides})

    logger.info(f"Configuration loaded: agent_command={settings.agent_command}, use_shell={settings.use_shell}")
    return settings
