"""Configuration parsing from ``.covertool.yml`` and command-line overrides."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".covertool.yml"

DEFAULT_COVER_FILE = "all.coverdata"
DEFAULT_OUTPUT = "coverage.xml"
DEFAULT_SOURCE_ROOT = "src/"
DEFAULT_APP_NAME = "Application"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

# YAML key -> CovertoolConfig field
_KEYS = {
    "cover": "cover_files",
    "output": "output",
    "src": "source_root",
    "appname": "app_name",
}


class ConfigError(Exception):
    """Exception raised when a configuration file cannot be loaded."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


@dataclass(frozen=True)
class CovertoolConfig:
    """Settings for one conversion run."""

    cover_files: tuple[Path, ...] = field(default_factory=lambda: (Path(DEFAULT_COVER_FILE),))
    """Cover data files to import; counts are summed across files."""

    output: Path = Path(DEFAULT_OUTPUT)
    """Destination of the Cobertura XML report."""

    source_root: Path = Path(DEFAULT_SOURCE_ROOT)
    """Directory searched for module source files."""

    app_name: str = DEFAULT_APP_NAME
    """Name of the single package in the report."""

    def with_overrides(self, **overrides: Any) -> CovertoolConfig:
        """Return a copy with every non-``None`` override applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        if "cover_files" in values:
            values["cover_files"] = tuple(Path(p) for p in values["cover_files"])
            if not values["cover_files"]:
                del values["cover_files"]
        for key in ("output", "source_root"):
            if key in values:
                values[key] = Path(values[key])
        return replace(self, **values)


def _parse_cover(value: Any) -> tuple[Path, ...]:
    if isinstance(value, str):
        return (Path(_resolve_env_vars(value)),)
    if isinstance(value, list):
        return tuple(Path(_resolve_env_vars(str(item))) for item in value)
    raise ConfigError([f"cover must be a path or a list of paths (got: {value!r})"])


def load_config(path: str | Path | None = None) -> CovertoolConfig:
    """Load configuration defaults from a YAML file.

    When *path* is ``None`` the ``.covertool.yml`` of the working directory
    is used if it exists; otherwise the built-in defaults apply.

    Raises:
        ConfigError: If the file is unreadable, is not a mapping, or
            contains unknown keys.
    """
    if path is None:
        config_file = Path(CONFIG_FILENAME)
        if not config_file.is_file():
            return CovertoolConfig()
    else:
        config_file = Path(path)

    try:
        parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError([f"Cannot load {config_file}: {e}"]) from e

    if parsed is None:
        return CovertoolConfig()
    if not isinstance(parsed, dict):
        raise ConfigError([f"{config_file} must contain a mapping"])

    unknown = sorted(str(key) for key in parsed if key not in _KEYS)
    if unknown:
        raise ConfigError([f"Unknown configuration key: {key}" for key in unknown])

    values: dict[str, Any] = {}
    if "cover" in parsed:
        values["cover_files"] = _parse_cover(parsed["cover"])
    for key in ("output", "src", "appname"):
        if key in parsed and parsed[key] is not None:
            values[_KEYS[key]] = _resolve_env_vars(str(parsed[key]))

    logger.debug("Loaded configuration from %s", config_file)
    return CovertoolConfig().with_overrides(**values)


def validate_config(config: CovertoolConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    if not config.cover_files:
        errors.append("At least one cover data file is required")

    if any(path == Path() for path in config.cover_files):
        errors.append("Cover data paths must not be empty")

    if config.output == Path():
        errors.append("output must be a file path")

    if not config.app_name.strip():
        errors.append("appname must not be empty")

    return errors
