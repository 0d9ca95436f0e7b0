from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal

PublishErrorKind = Literal[
    "invalid_input",
    "config_invalid",
    "gh_missing",
    "gh_request_failed",
    "wrong_branch",
    "uncommitted_changes",
    "remote_unknown",
    "progress_inconsistent",
    "state_read_failed",
    "state_write_failed",
    "manifest_failed",
    "command_failed",
    "tag_exists",
    "invalid_workflow",
    "workflow_anomaly",
    "workflow_not_started",
    "workflow_timeout",
    "workflow_failed",
    "release_failed",
]


@dataclass(frozen=True, slots=True)
class PublishError:
    """Fatal condition of a publish run.

    ``repo`` and ``step`` are filled in by the sequencer so the operator knows
    where to look before re-running.
    """

    kind: PublishErrorKind
    message: str
    hint: str | None = None
    repo: str | None = None
    step: str | None = None

    def with_context(self, *, repo: str, step: str | None = None) -> PublishError:
        return replace(
            self,
            repo=self.repo or repo,
            step=self.step or step,
        )

    def pretty(self) -> str:
        where = ""
        if self.repo is not None and self.step is not None:
            where = f"[{self.repo} / {self.step}] "
        elif self.repo is not None:
            where = f"[{self.repo}] "
        if self.hint:
            return f"{where}{self.message} (hint: {self.hint})"
        return f"{where}{self.message}"
