"""
Connection configuration files.

A connections file lists named connection strings, with optional
constructor options. Values may reference environment variables as
``${VAR}`` or ``${VAR:-default}``.

Example:
    ```yaml
    connections:
      events: clickhouse://default:${CH_PASSWORD:-}@localhost:8123/?database=web
      bulk:
        dsn: click://default@localhost:9004/web?min=2&max=8&wait=5
        options:
          chunk_size: 50000
    ```
"""
import os
import re
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ckload.utility.exceptions import ConfigError

_ENV_PATTERN = re.compile(r"\$\{([^:}]+)(?::-([^}]*))?\}")


class ConnectionEntry(BaseModel):
    """One named connection."""

    dsn: str = Field(..., description="Connection string")
    options: Dict[str, Any] = Field(
        default_factory=dict, description="Extra connection constructor options"
    )

    @field_validator("dsn")
    @classmethod
    def validate_dsn(cls, v):
        if not v or not v.strip():
            raise ValueError("dsn is required")
        return v.strip()


class ConnectionsConfig(BaseModel):
    """Every named connection of a project."""

    connections: Dict[str, ConnectionEntry] = Field(default_factory=dict)

    @field_validator("connections", mode="before")
    @classmethod
    def expand_shorthand(cls, v):
        """Allow ``name: <dsn>`` as shorthand for ``name: {dsn: <dsn>}``."""
        if not isinstance(v, dict):
            return v
        return {
            name: {"dsn": entry} if isinstance(entry, str) else entry
            for name, entry in v.items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionsConfig":
        try:
            return cls(**expand_env_vars(data or {}))
        except ValidationError as e:
            raise ConfigError(f"Invalid connections config: {str(e)}") from e


def expand_env_vars(data: Any) -> Any:
    """
    Recursively expand ``${VAR}`` and ``${VAR:-default}`` in strings.

    Raises:
        ConfigError: If a variable is unset and has no default
    """
    if isinstance(data, str):

        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2)

            env_value = os.getenv(var_name)
            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value
            raise ConfigError(
                f"Environment variable '{var_name}' is not set and no default"
            )

        return _ENV_PATTERN.sub(replace_env_var, data)

    if isinstance(data, dict):
        return {key: expand_env_vars(value) for key, value in data.items()}

    if isinstance(data, list):
        return [expand_env_vars(item) for item in data]

    return data


def load_connections_config(path: Union[str, Path]) -> ConnectionsConfig:
    """
    Read a connections YAML file.

    Raises:
        ConfigError: If the file is missing, not YAML, or invalid
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read connections file {path}: {str(e)}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Connections file {path} is not valid YAML: {str(e)}") from e

    if raw is not None and not isinstance(raw, dict):
        raise ConfigError(f"Connections file {path} must contain a mapping")
    return ConnectionsConfig.from_dict(raw or {})
