"""Path resolution for agentdeck storage locations.

This module provides path resolution based on AGENTDECK_HOME environment variable,
following XDG-like directory structure within that root.

Contract:
- Inputs: Environment variables (AGENTDECK_HOME)
- Outputs: Resolved Path objects
- Side Effects: Creates directories if they don't exist
"""

import os
from pathlib import Path


def get_home_dir() -> Path:
    """Get AGENTDECK_HOME from environment.

    Returns:
        Path to root directory (default: ~/.agentdeck)
    """
    root = os.environ.get("AGENTDECK_HOME", "~/.agentdeck")
    return Path(root).expanduser().resolve()


def get_config_dir() -> Path:
    """Get configuration directory.

    Returns:
        Path to config directory ($AGENTDECK_HOME/config)
    """
    config_dir: Path = get_home_dir() / "config"

    env_override: str | None = os.environ.get("AGENTDECK_CONFIG_DIR")
    if env_override is not None:
        config_dir = Path(env_override).resolve()

    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_log_dir() -> Path:
    """Get log directory.

    Returns:
        Path to log directory ($AGENTDECK_HOME/logs)

    Environment Variables:
        AGENTDECK_LOG_DIR: Override log directory location
        (falls back to $AGENTDECK_HOME/logs if not set)

    Example:
        >>> log_dir = get_log_dir()
        >>> assert log_dir.name == "logs" or "AGENTDECK_LOG_DIR" in os.environ
    """
    log_dir: Path = get_home_dir() / "logs"

    env_override: str | None = os.environ.get("AGENTDECK_LOG_DIR")
    if env_override is not None:
        log_dir = Path(env_override).resolve()

    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir
