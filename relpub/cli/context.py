from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from relpub.core.config import CONFIG_FILE_NAME, PublishConfig, load_publish_config
from relpub.core.errors import ErrorCode
from relpub.core.result import Err
from relpub.output.console import ConsoleProtocol, RichConsole

CONFIG_ENV_VAR = "RELPUB_CONFIG"


@dataclass(frozen=True, slots=True)
class CLIContext:
    config_path: Path
    config: PublishConfig
    console: ConsoleProtocol


def find_config(start: Path) -> Path | None:
    """Search ``start`` and its parents for the publish config.

    Both ``publish.toml`` and ``config/publish.toml`` are recognized.
    """
    for parent in (start, *start.parents):
        for candidate in (parent / CONFIG_FILE_NAME, parent / "config" / CONFIG_FILE_NAME):
            if candidate.is_file():
                return candidate
    return None


def resolve_config_path(explicit: Path | None) -> Path | None:
    if explicit is not None:
        return explicit.expanduser().resolve()
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser().resolve()
    return find_config(Path.cwd().resolve())


def build_context(config_path: Path | None) -> CLIContext:
    path = resolve_config_path(config_path)
    if path is None:
        typer.echo(
            f"error: {CONFIG_FILE_NAME} not found (use --config or {CONFIG_ENV_VAR})",
            err=True,
        )
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    loaded = load_publish_config(path)
    if isinstance(loaded, Err):
        typer.echo(f"error: {loaded.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(config_path=path, config=loaded.value, console=RichConsole())
