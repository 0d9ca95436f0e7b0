"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

import typer

from relpub.core.result import Err, Result
from relpub.output.errors import print_publish_error, publish_error_exit_code
from relpub.services.publish.errors import PublishError

if TYPE_CHECKING:
    from relpub.cli.context import CLIContext


T = TypeVar("T")


def unwrap_or_exit(result: Result[T, PublishError], ctx: CLIContext) -> T:
    """Return the Ok value, or report the error and exit with its code.

    Replaces the pattern:
        match result:
            case Err(e):
                print_publish_error(e, ctx.console)
                raise typer.Exit(code=publish_error_exit_code(e))
            case Ok(value):
                ...
    """
    if isinstance(result, Err):
        print_publish_error(result.error, ctx.console)
        raise typer.Exit(code=publish_error_exit_code(result.error))
    return result.value
