"""Error presentation for publish failures.

Centralized formatting and exit code mapping so every command reports a
fatal condition the same way: where it happened, what failed, how to go on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from relpub.core.errors import ErrorCode
from relpub.output.console import Style

if TYPE_CHECKING:
    from relpub.output.console import ConsoleProtocol
    from relpub.services.publish.errors import PublishError

__all__ = ["print_publish_error", "publish_error_exit_code"]


def print_publish_error(error: PublishError, console: ConsoleProtocol) -> None:
    if error.repo is not None:
        where = error.repo if error.step is None else f"{error.repo} / {error.step}"
        console.error(f"{where}: {error.message}")
    else:
        console.error(error.message)
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)
    if error.step is not None:
        console.print("progress kept; fix the cause and re-run to resume", Style.DIM)


def publish_error_exit_code(error: PublishError) -> int:
    match error.kind:
        case (
            "invalid_input"
            | "config_invalid"
            | "wrong_branch"
            | "uncommitted_changes"
            | "remote_unknown"
            | "progress_inconsistent"
            | "tag_exists"
            | "invalid_workflow"
        ):
            return int(ErrorCode.USER_ERROR)
        case "gh_missing" | "state_read_failed":
            return int(ErrorCode.ENV_ERROR)
        case "state_write_failed" | "manifest_failed":
            return int(ErrorCode.IO_ERROR)
        case "gh_request_failed":
            return int(ErrorCode.NETWORK_ERROR)
        case (
            "command_failed"
            | "workflow_anomaly"
            | "workflow_not_started"
            | "workflow_timeout"
            | "workflow_failed"
            | "release_failed"
        ):
            return int(ErrorCode.PUBLISH_ERROR)
    # Fallback for exhaustiveness
    return int(ErrorCode.PUBLISH_ERROR)
