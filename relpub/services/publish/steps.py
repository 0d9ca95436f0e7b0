"""The publish steps of one repository.

Each step is safe to run again after a crash. Where the underlying tool would
reject a repeat, the step detects the already-done state first:

- git commit: no tracked changes means the bump commit exists; no-op.
  Untracked files are ignored, since `commit --all` never records them.
- git tag: the tag already on the commit being released is a no-op; a tag on
  any other commit is fatal.
- git push: pushing refs the remote already has is a git no-op.
- release: an existing release for the tag is a no-op.
"""

from __future__ import annotations

from relpub.core.config import ValidationConfig
from relpub.core.result import Err, Ok, Result
from relpub.git.repository import GitError, Repository
from relpub.output.console import ConsoleProtocol, Style
from relpub.platform.process import run_silent
from relpub.services.publish.errors import PublishError
from relpub.services.publish.gh import create_release, get_release_by_tag
from relpub.services.publish.manifest import update_manifest
from relpub.services.publish.model import (
    STEP_ORDER,
    PublishPlan,
    RepoTarget,
    StepName,
    TriggerKind,
    is_prerelease,
    release_title,
)
from relpub.services.publish.sequencer import Step, StepCallback
from relpub.services.publish.triggers import read_ci_triggers
from relpub.services.publish.validator import validate_workflow

REMOTE = "origin"


def _git_failed(e: GitError) -> PublishError:
    return PublishError(
        kind="command_failed",
        message=f"git {e.command} failed (exit {e.returncode})",
        hint=e.message or None,
    )


def commit_message(version: str) -> str:
    return f"Updated to version {version}"


class RepoPublisher:
    """Binds the publish steps to one plan and one target checkout."""

    def __init__(
        self,
        *,
        plan: PublishPlan,
        target: RepoTarget,
        validation: ValidationConfig,
        console: ConsoleProtocol,
    ) -> None:
        self.plan = plan
        self.target = target
        self.validation = validation
        self.console = console
        self.repo = Repository(target.path)

    def steps(self) -> list[Step]:
        actions: dict[StepName, StepCallback] = {
            "package": self.update_package,
            "npm install": self.install_dependencies,
            "git commit": self.commit,
            "git tag": self.tag,
            "git push": self.push,
            "validate push workflow": self.validate_push,
            "release": self.create_release,
            "validate release workflow": self.validate_release,
        }
        return [Step(name, actions[name]) for name in STEP_ORDER]

    def update_package(self) -> Result[None, PublishError]:
        return update_manifest(
            repo_root=self.target.path,
            version=self.plan.version,
            scope_prefix=self.plan.scope_prefix,
        )

    def install_dependencies(self) -> Result[None, PublishError]:
        result = run_silent(["npm", "install"], cwd=self.target.path)
        if isinstance(result, Err):
            return Err(
                PublishError(
                    kind="command_failed",
                    message=str(result.error),
                    hint=result.error.stderr.strip() or None,
                )
            )
        return Ok(None)

    def commit(self) -> Result[None, PublishError]:
        status = self.repo.status()
        if isinstance(status, Err):
            return Err(_git_failed(status.error))
        if not status.value.has_tracked_changes:
            self.console.print("nothing to commit; version commit already recorded", Style.DIM)
            return Ok(None)

        committed = self.repo.commit_all(commit_message(self.plan.version))
        if isinstance(committed, Err):
            return Err(_git_failed(committed.error))
        return Ok(None)

    def tag(self) -> Result[None, PublishError]:
        head = self.repo.head_sha()
        if isinstance(head, Err):
            return Err(_git_failed(head.error))

        existing = self.repo.tag_target(self.plan.tag)
        if isinstance(existing, Err):
            return Err(_git_failed(existing.error))

        if existing.value is None:
            created = self.repo.create_tag(self.plan.tag)
            if isinstance(created, Err):
                return Err(_git_failed(created.error))
            return Ok(None)

        if existing.value == head.value:
            self.console.print(f"tag {self.plan.tag} already on HEAD", Style.DIM)
            return Ok(None)

        return Err(
            PublishError(
                kind="tag_exists",
                message=f"tag {self.plan.tag} already exists on {existing.value[:8]}",
                hint=f"HEAD is {head.value[:8]}; delete the stale tag or bump the version.",
            )
        )

    def push(self) -> Result[None, PublishError]:
        pushed = self.repo.push_atomic(remote=REMOTE, refs=[self.plan.branch, self.plan.tag])
        if isinstance(pushed, Err):
            return Err(_git_failed(pushed.error))
        return Ok(None)

    def validate_push(self) -> Result[None, PublishError]:
        return self._validate("push")

    def create_release(self) -> Result[None, PublishError]:
        existing = get_release_by_tag(
            cwd=self.target.path, repo=self.target.slug, tag=self.plan.tag
        )
        if isinstance(existing, Err):
            return existing
        if existing.value is not None:
            self.console.print(f"release {self.plan.tag} already exists", Style.DIM)
            return Ok(None)

        created = create_release(
            cwd=self.target.path,
            repo=self.target.slug,
            tag=self.plan.tag,
            name=release_title(self.plan.version),
            prerelease=is_prerelease(self.plan.version),
            draft=self.plan.draft,
        )
        if isinstance(created, Err):
            return created
        if created.value.url:
            self.console.print(created.value.url, Style.DIM)
        return Ok(None)

    def validate_release(self) -> Result[None, PublishError]:
        if self.plan.draft:
            self.console.warning("draft release: release workflow is not triggered; skipped")
            return Ok(None)
        return self._validate("release")

    def _validate(self, trigger: TriggerKind) -> Result[None, PublishError]:
        triggers = read_ci_triggers(repo_root=self.target.path, branch=self.plan.branch)
        if isinstance(triggers, Err):
            return triggers

        declared = (
            triggers.value.push_on_branch
            if trigger == "push"
            else triggers.value.release_published
        )
        if not declared:
            self.console.print(f"no {trigger} workflow declared; skipped", Style.DIM)
            return Ok(None)

        sha = self.repo.tag_target(self.plan.tag)
        if isinstance(sha, Err):
            return Err(_git_failed(sha.error))
        if sha.value is None:
            return Err(
                PublishError(
                    kind="invalid_input",
                    message=f"tag {self.plan.tag} is missing locally",
                )
            )

        return validate_workflow(
            cwd=self.target.path,
            repo=self.target.slug,
            commit_sha=sha.value,
            trigger=trigger,
            console=self.console,
            branch=self.plan.branch,
            poll_interval=self.validation.poll_interval,
            max_attempts=self.validation.max_attempts,
            start_attempts=self.validation.start_attempts,
        )
