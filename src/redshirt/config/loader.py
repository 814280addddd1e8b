"""Configuration loading from TOML files, environment variables and flags."""

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from redshirt.config.models import ConfigError, WrapperConfig

ENV_PREFIX = "REDSHIRT_"

# Settings that may come from REDSHIRT_<NAME> environment variables.
ENV_SETTINGS = (
    "addr",
    "cert",
    "ca",
    "namespace",
    "description",
    "usage",
    "users",
    "groups",
    "debug",
)


def _read_file(path: Path) -> dict[str, Any]:
    config_path = Path(path).expanduser()
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        with config_path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid config file {config_path}: {e}") from e


def _from_env(environ: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key in ENV_SETTINGS:
        value = environ.get(f"{ENV_PREFIX}{key.upper()}")
        if value:
            values[key] = value
    return values


def _format_errors(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        loc = ".".join(str(part) for part in item["loc"])
        msg = item["msg"].removeprefix("Value error, ")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(messages)


def load_config(
    path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> WrapperConfig:
    """Build the configuration.

    Sources, lowest precedence first: the TOML file at ``path`` (optional),
    ``REDSHIRT_*`` environment variables, then ``overrides`` (command-line
    flags). Override values of None or empty lists count as unset.

    Raises:
        ConfigError: If the file is missing or invalid, or validation fails.
    """
    raw: dict[str, Any] = _read_file(path) if path is not None else {}
    raw.update(_from_env(os.environ if environ is None else environ))
    for key, value in (overrides or {}).items():
        if value is None or value == []:
            continue
        raw[key] = value

    try:
        return WrapperConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(_format_errors(e)) from e
