from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Final, Literal


StepName = Literal[
    "package",
    "npm install",
    "git commit",
    "git tag",
    "git push",
    "validate push workflow",
    "release",
    "validate release workflow",
]

# Persisted cursor order. Names are written verbatim to the progress file, so
# renaming one breaks resumption of runs started by an older version.
STEP_ORDER: Final[tuple[StepName, ...]] = (
    "package",
    "npm install",
    "git commit",
    "git tag",
    "git push",
    "validate push workflow",
    "release",
    "validate release workflow",
)

# Progress marker of a repository whose whole sequence succeeded in a run that
# has not finished yet.
COMPLETE_MARKER: Final = "complete"

TriggerKind = Literal["push", "release"]
ValidationOutcome = Literal["success", "failure", "timeout", "anomaly"]


@dataclass(frozen=True, slots=True)
class PublishPlan:
    """Immutable input of a publish run."""

    version: str
    organization: str
    repositories: tuple[str, ...]
    root: Path
    ignore_uncommitted: bool = False
    branch: str = "main"
    draft: bool = False

    @property
    def tag(self) -> str:
        return f"v{self.version}"

    @property
    def scope_prefix(self) -> str:
        return f"@{self.organization}/"

    def repo_path(self, repo_id: str) -> Path:
        return self.root / repo_id


@dataclass(frozen=True, slots=True)
class WorkflowRun:
    """A GitHub Actions run as reported by the runs API."""

    id: int
    name: str | None
    status: str
    conclusion: str | None
    head_sha: str
    head_branch: str | None
    event: str

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    def describe(self) -> str:
        label = self.name or "workflow"
        if self.is_completed:
            return f"{label} #{self.id} ({self.event}): completed/{self.conclusion}"
        return f"{label} #{self.id} ({self.event}): {self.status}"


@dataclass(slots=True)
class ValidationSession:
    """Ephemeral state of one workflow validation."""

    repo_slug: str
    commit_sha: str
    trigger: TriggerKind
    locked_run_id: int | None = None
    attempts: int = 0
    outcome: ValidationOutcome | None = None


@dataclass(frozen=True, slots=True)
class ReleaseInfo:
    id: int
    tag: str
    name: str | None
    prerelease: bool
    draft: bool
    url: str | None = None


@dataclass(frozen=True, slots=True)
class RepoTarget:
    """One publish target checkout resolved against its GitHub remote."""

    id: str
    path: Path
    slug: str


def is_prerelease(version: str) -> bool:
    _, sep, label = version.partition("-")
    return bool(sep and label)


def release_title(version: str) -> str:
    """Human-readable release title.

    ``2.1.0`` -> ``Release 2.1.0``; ``2.1.0-beta`` -> ``Beta release 2.1.0``.
    """
    base, sep, label = version.partition("-")
    if not sep or not label:
        return f"Release {base}"
    return f"{label[:1].upper()}{label[1:]} release {base}"
