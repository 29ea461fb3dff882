# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Loader for the relay's JSON configuration file.

The configuration is read once at startup and never mutated afterwards.

Example:
    Configuration file format (config.json)::

        {
            "base_url": "https://api.mailjet.com",
            "max_events_count": 100,
            "default": {
                "FromEmail": "noreply@example.com",
                "Subject": "Hello"
            }
        }

    Loading it::

        config = load_config("./config.json")
        config.max_events_count  # 100
"""

from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError

from .errors import ConfigError
from .logger import get_logger
from .models import RelayConfig

DEFAULT_CONFIG_PATH = "./config.json"

logger = get_logger("ConfigLoader")


def load_config(config_path: str | Path = DEFAULT_CONFIG_PATH) -> RelayConfig:
    """Read and validate the configuration file.

    Unknown keys are ignored; missing keys take their defaults.

    Args:
        config_path: Path to the JSON configuration file.

    Returns:
        The immutable ``RelayConfig``.

    Raises:
        ConfigError: If the file is missing, unreadable, not valid JSON or
            holds values of the wrong type.
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        content = path.read_bytes()
    except OSError as exc:
        raise ConfigError(f"Unable to read the config file ({path}): {exc}") from exc

    try:
        config = RelayConfig.model_validate_json(content)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config file ({path}): {exc}") from exc

    logger.info(
        "Read config %s: base_url=%s max_events_count=%d defaults=%s",
        path,
        config.base_url,
        config.max_events_count,
        sorted(config.default),
    )
    return config
