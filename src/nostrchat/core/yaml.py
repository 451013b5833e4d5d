"""YAML configuration loading for nostrchat.

Uses ``yaml.safe_load`` so a configuration file can never instantiate
arbitrary Python objects. Consumed by
[ClientConfig.from_yaml()][nostrchat.engine.config.ClientConfig.from_yaml].

Examples:
    ```python
    from nostrchat.core.yaml import load_yaml

    data = load_yaml("config/client.yaml")
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Load and parse a YAML configuration file.

    Args:
        config_path: Path to the YAML file (absolute or relative).

    Returns:
        Parsed configuration as a nested dictionary. Returns an empty dict
        if the file exists but contains no data.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the YAML is malformed or the top-level document
            is not a mapping.

    Warning:
        The structure of the returned dictionary is not validated here. Pass
        it to [ClientConfig][nostrchat.engine.config.ClientConfig].
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"{config_path}: invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path}: top-level YAML must be a mapping")
    return data
