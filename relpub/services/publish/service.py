from __future__ import annotations

from relpub.core.config import PublishConfig, ValidationConfig
from relpub.core.result import Err, Ok, Result
from relpub.git.repository import Repository, parse_remote_slug
from relpub.output.console import ConsoleProtocol, Style
from relpub.services.publish.errors import PublishError
from relpub.services.publish.model import COMPLETE_MARKER, PublishPlan, RepoTarget
from relpub.services.publish.progress import ProgressStore
from relpub.services.publish.sequencer import run_sequence
from relpub.services.publish.steps import RepoPublisher


def plan_from_config(config: PublishConfig) -> PublishPlan:
    return PublishPlan(
        version=config.version,
        organization=config.organization,
        repositories=config.directories,
        root=config.root,
        ignore_uncommitted=config.ignore_uncommitted,
        branch=config.branch,
        draft=config.draft,
    )


def resolve_target(*, plan: PublishPlan, repo_id: str) -> Result[RepoTarget, PublishError]:
    path = plan.repo_path(repo_id)
    repo = Repository(path)
    if not path.is_dir() or not repo.exists():
        return Err(
            PublishError(
                kind="invalid_input",
                message=f"not a git checkout: {path}",
                repo=repo_id,
            )
        )

    url = repo.remote_url()
    if isinstance(url, Err):
        return Err(
            PublishError(
                kind="remote_unknown",
                message="failed to read remote.origin.url",
                hint=url.error.message,
                repo=repo_id,
            )
        )

    slug = parse_remote_slug(url.value)
    if slug is None:
        return Err(
            PublishError(
                kind="remote_unknown",
                message=f"cannot derive owner/name from remote: {url.value}",
                repo=repo_id,
            )
        )

    return Ok(RepoTarget(id=repo_id, path=path, slug=slug))


def check_preconditions(
    *, plan: PublishPlan, target: RepoTarget, resuming: bool
) -> Result[None, PublishError]:
    """Fail before any step runs if the checkout is not publishable.

    Uncommitted changes are expected when resuming (the manifest was already
    rewritten), so the clean-tree check only applies to a fresh start.
    """
    repo = Repository(target.path)

    branch = repo.current_branch()
    if isinstance(branch, Err):
        return Err(
            PublishError(
                kind="command_failed",
                message="failed to read current branch",
                hint=branch.error.message,
                repo=target.id,
            )
        )
    if branch.value != plan.branch:
        return Err(
            PublishError(
                kind="wrong_branch",
                message=f"repository is on {branch.value or 'a detached HEAD'}, not {plan.branch}",
                hint=f"git -C {target.path} checkout {plan.branch}",
                repo=target.id,
            )
        )

    if resuming or plan.ignore_uncommitted:
        return Ok(None)

    status = repo.status()
    if isinstance(status, Err):
        return Err(
            PublishError(
                kind="command_failed",
                message="failed to read git status",
                hint=status.error.message,
                repo=target.id,
            )
        )
    if not status.value.is_clean:
        paths = ", ".join(e.path for e in status.value.entries[:5])
        return Err(
            PublishError(
                kind="uncommitted_changes",
                message=f"repository has uncommitted changes: {paths}",
                hint="Commit or stash them, or set ignore_uncommitted = true.",
                repo=target.id,
            )
        )

    return Ok(None)


def _check_known_repositories(
    *, plan: PublishPlan, store: ProgressStore
) -> Result[None, PublishError]:
    unknown = sorted(set(store.entries) - set(plan.repositories))
    if unknown:
        return Err(
            PublishError(
                kind="progress_inconsistent",
                message=f"progress recorded for repositories not in the plan: {', '.join(unknown)}",
                hint=f"Restore the directories list or reset {store.path}.",
            )
        )
    return Ok(None)


def publish(
    *,
    plan: PublishPlan,
    store: ProgressStore,
    validation: ValidationConfig,
    console: ConsoleProtocol,
) -> Result[None, PublishError]:
    """Publish every repository of ``plan`` in order, resuming from ``store``.

    The first error aborts the run; the store keeps the step to resume from.
    """
    known = _check_known_repositories(plan=plan, store=store)
    if isinstance(known, Err):
        return known

    for repo_id in plan.repositories:
        console.header(f"{repo_id} -> {plan.tag}")

        marker = store.get(repo_id)
        if marker == COMPLETE_MARKER:
            console.print("already published in this run; skipped", Style.DIM)
            continue
        if marker is not None:
            console.info(f"resuming at: {marker}")

        target = resolve_target(plan=plan, repo_id=repo_id)
        if isinstance(target, Err):
            return target

        ready = check_preconditions(plan=plan, target=target.value, resuming=marker is not None)
        if isinstance(ready, Err):
            return ready

        publisher = RepoPublisher(
            plan=plan,
            target=target.value,
            validation=validation,
            console=console,
        )
        sequenced = run_sequence(
            repo_id=repo_id,
            steps=publisher.steps(),
            store=store,
            console=console,
        )
        if isinstance(sequenced, Err):
            return sequenced

        done = store.mark(repo_id, COMPLETE_MARKER)
        if isinstance(done, Err):
            return done.map_err(lambda e: e.with_context(repo=repo_id))
        console.success(f"{repo_id} published {plan.tag}")

    return store.reset()
