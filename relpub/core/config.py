"""Typed loading of ``publish.toml``.

Example:

    version = "2.1.0-beta"
    organization = "org"
    directories = ["lib", "app"]

    [validation]
    poll_interval = 2.0

Relative paths (``root``, ``state_file``) are resolved against the directory
holding the config file.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    as_str_list,
    get_bool,
    get_float,
    get_int,
    get_str,
    get_table,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "ConfigError",
    "PublishConfig",
    "ValidationConfig",
    "load_publish_config",
]

CONFIG_FILE_NAME = "publish.toml"

DEFAULT_BRANCH = "main"
DEFAULT_ROOT = ".."
DEFAULT_STATE_FILE = ".relpub/publish.state.json"

DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_START_ATTEMPTS = 10
DEFAULT_MAX_ATTEMPTS = 30


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when the config cannot be loaded or is structurally invalid."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class ValidationConfig:
    """Polling budget for workflow-run validation."""

    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    start_attempts: int = DEFAULT_START_ATTEMPTS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS


@dataclass(frozen=True, slots=True)
class PublishConfig:
    version: str
    organization: str
    directories: tuple[str, ...]
    root: Path
    state_file: Path
    ignore_uncommitted: bool = False
    branch: str = DEFAULT_BRANCH
    draft: bool = False
    validation: ValidationConfig = field(default_factory=ValidationConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, base_dir: Path) -> Result[PublishConfig, str]:
        version = get_str(data, "version")
        if version is None:
            return Err("missing required key: version")

        organization = get_str(data, "organization")
        if organization is None:
            return Err("missing required key: organization")
        organization = organization.removeprefix("@")

        directories = as_str_list(data.get("directories"))
        if not directories:
            return Err("directories must be a non-empty list of strings")
        if len(set(directories)) != len(directories):
            return Err("directories must not contain duplicates")

        validation: StrDict = get_table(data, "validation") or {}
        poll_interval = get_float(validation, "poll_interval")
        if poll_interval is None:
            poll_interval = DEFAULT_POLL_INTERVAL_SECONDS
        start_attempts = get_int(validation, "start_attempts")
        max_attempts = get_int(validation, "max_attempts")
        if poll_interval < 0:
            return Err("validation.poll_interval must be >= 0")
        if start_attempts is not None and start_attempts < 1:
            return Err("validation.start_attempts must be >= 1")
        if max_attempts is not None and max_attempts < 1:
            return Err("validation.max_attempts must be >= 1")

        root = base_dir / (get_str(data, "root") or DEFAULT_ROOT)
        state_file = base_dir / (get_str(data, "state_file") or DEFAULT_STATE_FILE)

        return Ok(
            cls(
                version=version,
                organization=organization,
                directories=tuple(directories),
                root=root.resolve(),
                state_file=state_file.resolve(),
                ignore_uncommitted=get_bool(data, "ignore_uncommitted") or False,
                branch=get_str(data, "branch") or DEFAULT_BRANCH,
                draft=get_bool(data, "draft") or False,
                validation=ValidationConfig(
                    poll_interval=poll_interval,
                    start_attempts=start_attempts or DEFAULT_START_ATTEMPTS,
                    max_attempts=max_attempts or DEFAULT_MAX_ATTEMPTS,
                ),
            )
        )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_publish_config(path: Path) -> Result[PublishConfig, ConfigError]:
    """Load and validate ``publish.toml``.

    Args:
        path: Path to the config file.

    Returns:
        Ok(PublishConfig) on success, Err(ConfigError) on failure.
    """
    parsed = _parse_toml(path)
    if isinstance(parsed, Err):
        return parsed

    built = PublishConfig.from_dict(parsed.value, base_dir=path.parent.resolve())
    if isinstance(built, Err):
        return Err(ConfigError(f"Invalid config: {built.error}", path=path))
    return Ok(built.value)
