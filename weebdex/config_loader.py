"""Config Loader - Loads client configuration from YAML.

The file has two optional sections, ``api`` (ApiConfig) and ``auth``
(AuthConfig). Any string value may reference environment variables as
${ENV_VAR}, which keeps secrets out of the file itself.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from weebdex.models import RuntimeConfig


class ConfigError(Exception):
    """Raised when configuration loading fails."""


_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def load_runtime_config(config_path: Path | str) -> RuntimeConfig:
    """Load client configuration from a YAML file.

    An empty file yields the defaults.

    Raises:
        ConfigError: If the file is missing, is not a YAML mapping, references
            an unset environment variable, or fails validation.
    """
    config_path = Path(config_path)
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {config_path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {config_path} must be a YAML mapping")

    try:
        return RuntimeConfig.model_validate(_expand(raw))
    except ValidationError as e:
        raise ConfigError(f"Invalid config structure in {config_path}: {e}") from e


def _expand(value: Any) -> Any:
    """Replace ${ENV_VAR} references in every string of a parsed document."""
    if isinstance(value, str):
        return _ENV_VAR_PATTERN.sub(_lookup, value)
    if isinstance(value, dict):
        return {k: _expand(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand(item) for item in value]
    return value


def _lookup(match: re.Match) -> str:
    name = match.group(1)
    value = os.environ.get(name)
    if value is None:
        raise ConfigError(f"Environment variable '{name}' is not set")
    return value
