"""Workflow-run validation after a push or a release.

Polls the GitHub Actions runs of one commit until the single run triggered by
the event completes. The session locks onto the first pending run it sees; a
second pending run for the same commit and event is an anomaly, because there
is no way to tell which one is authoritative.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from time import sleep

from relpub.core.config import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_START_ATTEMPTS,
)
from relpub.core.result import Err, Ok, Result
from relpub.output.console import ConsoleProtocol, Style
from relpub.services.publish.errors import PublishError
from relpub.services.publish.gh import list_workflow_runs
from relpub.services.publish.model import TriggerKind, ValidationSession, WorkflowRun


def _anomaly(session: ValidationSession, runs: Sequence[WorkflowRun]) -> PublishError:
    session.outcome = "anomaly"
    ids = ", ".join(f"#{r.id}" for r in runs)
    return PublishError(
        kind="workflow_anomaly",
        message=(
            f"parallel {session.trigger} workflow runs for {session.commit_sha[:8]}: {ids}"
        ),
        hint=f"Check Actions in {session.repo_slug}; only one run per commit is expected.",
    )


def _resolve(session: ValidationSession, run: WorkflowRun) -> Result[bool, PublishError]:
    if run.conclusion == "success":
        session.outcome = "success"
        return Ok(True)

    session.outcome = "failure"
    return Err(
        PublishError(
            kind="workflow_failed",
            message=f"{run.name or 'workflow'} #{run.id} concluded: {run.conclusion}",
            hint=f"https://github.com/{session.repo_slug}/actions/runs/{run.id}",
        )
    )


def observe_runs(
    session: ValidationSession, runs: Sequence[WorkflowRun]
) -> Result[bool, PublishError]:
    """Fold one poll response into the session.

    Returns Ok(True) once the locked run succeeded, Ok(False) to keep polling,
    Err on failure or anomaly.
    """
    pending = {r.id: r for r in runs if not r.is_completed}

    if session.locked_run_id is None:
        if len(pending) > 1:
            return Err(_anomaly(session, list(pending.values())))
        if len(pending) == 1:
            session.locked_run_id = next(iter(pending))
            return Ok(False)

        # The run may have finished between two polls.
        completed = {r.id: r for r in runs if r.is_completed}
        if len(completed) > 1:
            return Err(_anomaly(session, list(completed.values())))
        if len(completed) == 1:
            run = next(iter(completed.values()))
            session.locked_run_id = run.id
            return _resolve(session, run)
        return Ok(False)

    others = [r for run_id, r in pending.items() if run_id != session.locked_run_id]
    if others:
        locked = [r for r in runs if r.id == session.locked_run_id]
        return Err(_anomaly(session, [*locked, *others]))

    for run in runs:
        if run.id == session.locked_run_id and run.is_completed:
            return _resolve(session, run)
    return Ok(False)


def validate_workflow(
    *,
    cwd: Path,
    repo: str,
    commit_sha: str,
    trigger: TriggerKind,
    console: ConsoleProtocol,
    branch: str | None = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    start_attempts: int = DEFAULT_START_ATTEMPTS,
) -> Result[None, PublishError]:
    """Wait for the ``trigger`` workflow run of ``commit_sha`` to succeed.

    Args:
        cwd: Working directory for gh.
        repo: ``owner/name`` slug.
        commit_sha: Full SHA the run must be attached to.
        trigger: Event that started the run ("push" or "release").
        console: Progress output.
        branch: For push runs, the branch the run must be attached to. The tag
            pushed alongside it starts a separate run that is not ours.
        poll_interval: Seconds slept before every query but the first.
        max_attempts: Total query budget.
        start_attempts: Queries allowed before a run must have appeared.
    """
    session = ValidationSession(repo_slug=repo, commit_sha=commit_sha, trigger=trigger)
    start_budget = min(start_attempts, max_attempts)

    for attempt in range(max_attempts):
        if attempt > 0:
            sleep(poll_interval)
        session.attempts = attempt + 1

        listed = list_workflow_runs(cwd=cwd, repo=repo, head_sha=commit_sha)
        if isinstance(listed, Err):
            return listed
        runs = [
            r
            for r in listed.value
            if r.event == trigger
            and (trigger != "push" or branch is None or r.head_branch == branch)
        ]

        observed = observe_runs(session, runs)
        if isinstance(observed, Err):
            return observed
        if observed.value:
            console.success(f"{trigger} workflow #{session.locked_run_id} succeeded")
            return Ok(None)

        locked = next((r for r in runs if r.id == session.locked_run_id), None)
        if locked is not None:
            console.print(
                f"{locked.describe()} [{session.attempts}/{max_attempts}]", Style.DIM
            )
        elif session.locked_run_id is None:
            if session.attempts >= start_budget:
                break
            console.print(
                f"waiting for {trigger} workflow to start [{session.attempts}/{start_budget}]",
                Style.DIM,
            )

    session.outcome = "timeout"
    if session.locked_run_id is None:
        return Err(
            PublishError(
                kind="workflow_not_started",
                message=(
                    f"no {trigger} workflow run appeared for {commit_sha[:8]} "
                    f"after {session.attempts} attempt(s)"
                ),
                hint="Check the workflow trigger configuration and the Actions tab.",
            )
        )
    return Err(
        PublishError(
            kind="workflow_timeout",
            message=(
                f"{trigger} workflow #{session.locked_run_id} did not complete "
                f"after {session.attempts} attempt(s)"
            ),
            hint=f"https://github.com/{repo}/actions/runs/{session.locked_run_id}",
        )
    )
