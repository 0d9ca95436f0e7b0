"""Resumable step sequencer.

Runs a fixed, ordered list of named steps for one repository. The progress
store is the cursor: before a step runs its name is persisted, after it
succeeds the marker is removed again. A process killed at any point therefore
resumes at the step that was in flight, and never re-runs a step that was
already recorded as done.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from relpub.core.result import Err, Ok, Result
from relpub.output.console import ConsoleProtocol, Style
from relpub.services.publish.errors import PublishError
from relpub.services.publish.model import COMPLETE_MARKER
from relpub.services.publish.progress import ProgressStore

StepCallback = Callable[[], Result[None, PublishError]]


@dataclass(frozen=True, slots=True)
class Step:
    """A named, idempotent unit of work bound to one repository."""

    name: str
    run: StepCallback


def resume_index(
    *, repo_id: str, steps: Sequence[Step], marker: str | None
) -> Result[int, PublishError]:
    """Index of the first step to execute for ``marker``.

    No marker starts at 0; the complete sentinel resumes past the last step.
    """
    if marker is None:
        return Ok(0)
    if marker == COMPLETE_MARKER:
        return Ok(len(steps))

    for index, step in enumerate(steps):
        if step.name == marker:
            return Ok(index)

    return Err(
        PublishError(
            kind="progress_inconsistent",
            message=f"recorded step '{marker}' is not part of the publish sequence",
            hint="Inspect or reset the progress file before re-running.",
            repo=repo_id,
        )
    )


def _check_unique(steps: Sequence[Step]) -> Result[None, PublishError]:
    seen: set[str] = set()
    for step in steps:
        if step.name in seen:
            return Err(
                PublishError(kind="invalid_input", message=f"duplicate step name: {step.name}")
            )
        seen.add(step.name)
    return Ok(None)


def run_sequence(
    *,
    repo_id: str,
    steps: Sequence[Step],
    store: ProgressStore,
    console: ConsoleProtocol,
) -> Result[None, PublishError]:
    """Run ``steps`` for ``repo_id``, resuming from the persisted marker.

    Returns the first step error, with repository and step attached. The
    marker of the failed step stays in the store so a re-run retries it.
    """
    unique = _check_unique(steps)
    if isinstance(unique, Err):
        return unique

    start = resume_index(repo_id=repo_id, steps=steps, marker=store.get(repo_id))
    if isinstance(start, Err):
        return start

    for step in steps[: start.value]:
        console.print(f"Skipped {step.name}", Style.DIM)

    for step in steps[start.value :]:
        marked = store.mark(repo_id, step.name)
        if isinstance(marked, Err):
            return marked.map_err(lambda e: e.with_context(repo=repo_id, step=step.name))

        console.print(f"Starting {step.name}", Style.INFO)
        outcome = step.run()

        if isinstance(outcome, Err):
            console.print(f"Failed {step.name}", Style.ERROR)
            # Marker stays; write it once more as the recorded failure point.
            saved = store.persist()
            if isinstance(saved, Err):
                console.warning(saved.error.pretty())
            return outcome.map_err(lambda e: e.with_context(repo=repo_id, step=step.name))

        cleared = store.clear(repo_id)
        if isinstance(cleared, Err):
            return cleared.map_err(lambda e: e.with_context(repo=repo_id, step=step.name))
        console.print(f"Completed {step.name}", Style.SUCCESS)

    return Ok(None)
