from __future__ import annotations

import json
import shutil
from pathlib import Path
from time import sleep

from relpub.core.result import Err, Ok, Result
from relpub.core.structured import as_str_dict, get_int, get_list, get_str
from relpub.platform.process import ProcessError
from relpub.platform.process import run as run_process
from relpub.services.publish.errors import PublishError, PublishErrorKind
from relpub.services.publish.model import ReleaseInfo, WorkflowRun
from relpub.services.publish.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
)

_RUNS_PER_PAGE = 100


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "tls handshake timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    return any(marker in text for marker in markers)


def _is_not_found(error: ProcessError) -> bool:
    return "http 404" in f"{error.stderr}\n{error.stdout}".lower()


def _gh_read_raw(
    *,
    cwd: Path,
    cmd: list[str],
    retry_attempts: int = GH_READ_RETRY_ATTEMPTS,
) -> Result[str, ProcessError]:
    attempts = max(1, retry_attempts)
    result = run_process(cmd, cwd=cwd, timeout=GH_TIMEOUT_SECONDS)
    for attempt in range(1, attempts):
        if isinstance(result, Ok) or not _is_transient_gh_error(result.error):
            break
        sleep(GH_READ_RETRY_DELAY_SECONDS * attempt)
        result = run_process(cmd, cwd=cwd, timeout=GH_TIMEOUT_SECONDS)
    return result


def run_gh_read(
    *,
    cwd: Path,
    cmd: list[str],
    kind: PublishErrorKind,
    message: str,
    hint: str | None = None,
) -> Result[str, PublishError]:
    """Run an idempotent gh read, retrying transient network failures."""
    result = _gh_read_raw(cwd=cwd, cmd=cmd)
    if isinstance(result, Err):
        return Err(
            PublishError(
                kind=kind,
                message=message,
                hint=result.error.stderr.strip() or hint,
            )
        )
    return result


def _parse_json(text: str, *, endpoint: str) -> Result[object, PublishError]:
    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(
            PublishError(
                kind="invalid_input",
                message=f"gh api returned invalid JSON: {e}",
                hint=endpoint,
            )
        )
    return Ok(obj)


def ensure_gh_available() -> Result[None, PublishError]:
    if shutil.which("gh") is None:
        return Err(
            PublishError(
                kind="gh_missing",
                message="gh: missing",
                hint="Install GitHub CLI (https://cli.github.com/) and run: gh auth login",
            )
        )
    return Ok(None)


def gh_api_json(*, cwd: Path, endpoint: str) -> Result[object, PublishError]:
    result = run_gh_read(
        cwd=cwd,
        cmd=["gh", "api", endpoint],
        kind="gh_request_failed",
        message=f"gh api failed: {endpoint}",
        hint=endpoint,
    )
    if isinstance(result, Err):
        return result
    return _parse_json(result.value, endpoint=endpoint)


def parse_workflow_run(obj: object) -> WorkflowRun | None:
    d = as_str_dict(obj)
    if d is None:
        return None

    run_id = get_int(d, "id")
    status = get_str(d, "status")
    head_sha = get_str(d, "head_sha")
    event = get_str(d, "event")
    if run_id is None or status is None or head_sha is None or event is None:
        return None

    return WorkflowRun(
        id=run_id,
        name=get_str(d, "name"),
        status=status,
        conclusion=get_str(d, "conclusion"),
        head_sha=head_sha,
        head_branch=get_str(d, "head_branch"),
        event=event,
    )


def list_workflow_runs(
    *, cwd: Path, repo: str, head_sha: str
) -> Result[list[WorkflowRun], PublishError]:
    """Workflow runs of ``repo`` created for commit ``head_sha``."""
    endpoint = f"repos/{repo}/actions/runs?head_sha={head_sha}&per_page={_RUNS_PER_PAGE}"
    obj = gh_api_json(cwd=cwd, endpoint=endpoint)
    if isinstance(obj, Err):
        return obj

    data = as_str_dict(obj.value)
    runs_obj = get_list(data, "workflow_runs") if data is not None else None
    if runs_obj is None:
        return Err(
            PublishError(
                kind="invalid_input",
                message=f"unexpected workflow runs payload: {repo}",
                hint=endpoint,
            )
        )

    runs: list[WorkflowRun] = []
    for item in runs_obj:
        run = parse_workflow_run(item)
        # Older API versions ignore the head_sha filter.
        if run is None or run.head_sha != head_sha:
            continue
        runs.append(run)
    return Ok(runs)


def _parse_release(obj: object) -> ReleaseInfo | None:
    d = as_str_dict(obj)
    if d is None:
        return None

    release_id = get_int(d, "id")
    tag = get_str(d, "tag_name")
    prerelease = d.get("prerelease")
    draft = d.get("draft")
    if release_id is None or tag is None:
        return None
    if not isinstance(prerelease, bool) or not isinstance(draft, bool):
        return None

    return ReleaseInfo(
        id=release_id,
        tag=tag,
        name=get_str(d, "name"),
        prerelease=prerelease,
        draft=draft,
        url=get_str(d, "html_url"),
    )


def get_release_by_tag(
    *, cwd: Path, repo: str, tag: str
) -> Result[ReleaseInfo | None, PublishError]:
    """The release published for ``tag``, or None if there is none."""
    endpoint = f"repos/{repo}/releases/tags/{tag}"
    result = _gh_read_raw(cwd=cwd, cmd=["gh", "api", endpoint])
    if isinstance(result, Err):
        if _is_not_found(result.error):
            return Ok(None)
        return Err(
            PublishError(
                kind="release_failed",
                message=f"failed to query release {tag}: {repo}",
                hint=result.error.stderr.strip() or endpoint,
            )
        )

    obj = _parse_json(result.value, endpoint=endpoint)
    if isinstance(obj, Err):
        return obj

    release = _parse_release(obj.value)
    if release is None:
        return Err(
            PublishError(
                kind="invalid_input",
                message=f"unexpected release payload: {repo}@{tag}",
                hint=endpoint,
            )
        )
    return Ok(release)


def create_release(
    *,
    cwd: Path,
    repo: str,
    tag: str,
    name: str,
    prerelease: bool,
    draft: bool,
) -> Result[ReleaseInfo, PublishError]:
    # Writes are never retried.
    endpoint = f"repos/{repo}/releases"
    cmd = [
        "gh",
        "api",
        "--method",
        "POST",
        endpoint,
        "-f",
        f"tag_name={tag}",
        "-f",
        f"name={name}",
        "-F",
        f"prerelease={'true' if prerelease else 'false'}",
        "-F",
        f"draft={'true' if draft else 'false'}",
    ]
    result = run_process(cmd, cwd=cwd, timeout=GH_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            PublishError(
                kind="release_failed",
                message=f"failed to create release {tag}: {repo}",
                hint=result.error.stderr.strip() or None,
            )
        )

    obj = _parse_json(result.value, endpoint=endpoint)
    if isinstance(obj, Err):
        return obj

    release = _parse_release(obj.value)
    if release is None:
        return Err(
            PublishError(
                kind="invalid_input",
                message=f"unexpected release payload: {repo}@{tag}",
                hint=endpoint,
            )
        )
    return Ok(release)
