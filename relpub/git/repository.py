"""Git repository abstraction.

Wraps the git commands the publish steps need for one checkout. Every
operation returns a Result; nothing here decides whether a failure is fatal.

Usage:
    repo = Repository(Path("../lib"))

    match repo.status():
        case Ok(status) if not status.is_clean:
            print(f"{len(status.entries)} uncommitted change(s)")
        case Err(e):
            print(f"git failed: {e.message}")
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from relpub.core.result import Err, Ok, Result
from relpub.platform.process import ProcessError
from relpub.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

_SLUG_RE = re.compile(r"[:/](?P<owner>[^/:]+)/(?P<name>[^/]+?)(?:\.git)?/?$")

__all__ = [
    "GitError",
    "GitStatus",
    "Repository",
    "StatusEntry",
    "parse_remote_slug",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git subcommand that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class StatusEntry:
    """A single entry in ``git status --porcelain``.

    Attributes:
        xy: Two-character status code (e.g., "M ", " M", "??")
        path: File path
    """

    xy: str
    path: str

    @property
    def is_untracked(self) -> bool:
        return self.xy == "??"


@dataclass(frozen=True, slots=True)
class GitStatus:
    """Parsed ``git status --porcelain=v1 -b``.

    Attributes:
        branch: Current branch name
        upstream: Upstream branch (e.g., "origin/main"), None if not set
        entries: All status entries (staged, unstaged, untracked)
    """

    branch: str
    upstream: str | None = None
    entries: tuple[StatusEntry, ...] = field(default_factory=tuple)

    @property
    def is_clean(self) -> bool:
        """True if working tree has no changes."""
        return len(self.entries) == 0

    @property
    def has_tracked_changes(self) -> bool:
        """True if ``git commit --all`` has something to record."""
        return any(not e.is_untracked for e in self.entries)


def parse_remote_slug(url: str) -> str | None:
    """Extract ``owner/name`` from a GitHub remote URL.

    Handles ``https://github.com/owner/name.git``, ``git@github.com:owner/name.git``
    and ``ssh://git@github.com/owner/name``.
    """
    m = _SLUG_RE.search(url.strip())
    if m is None:
        return None
    return f"{m.group('owner')}/{m.group('name')}"


class Repository:
    """Git operations on a single checkout.

    Attributes:
        path: Path to the repository root
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        """Check if this is a git checkout (``.git`` dir or worktree file)."""
        return (self.path / ".git").exists()

    def status(self) -> Result[GitStatus, GitError]:
        result = self._run(["status", "--porcelain=v1", "-b"])
        match result:
            case Err(e):
                return Err(self._error("status", e))
            case Ok(stdout):
                return Ok(self._parse_status(stdout))

    def current_branch(self) -> Result[str | None, GitError]:
        """Current branch name; None on a detached HEAD."""
        result = self._run(["branch", "--show-current"])
        match result:
            case Err(e):
                return Err(self._error("branch --show-current", e))
            case Ok(stdout):
                return Ok(stdout.strip() or None)

    def head_sha(self) -> Result[str, GitError]:
        result = self._run(["rev-parse", "HEAD"])
        match result:
            case Err(e):
                return Err(self._error("rev-parse HEAD", e))
            case Ok(stdout):
                return Ok(stdout.strip())

    def remote_url(self, remote: str = "origin") -> Result[str, GitError]:
        result = self._run(["config", "--get", f"remote.{remote}.url"])
        match result:
            case Err(e):
                return Err(self._error("config --get", e, fallback=f"remote '{remote}' not set"))
            case Ok(stdout):
                return Ok(stdout.strip())

    def commit_all(self, message: str) -> Result[None, GitError]:
        result = self._run(["commit", "--all", f"--message={message}"])
        match result:
            case Err(e):
                return Err(self._error("commit", e))
            case Ok(_):
                return Ok(None)

    def tag_target(self, tag: str) -> Result[str | None, GitError]:
        """Commit SHA the tag points at, or None if the tag does not exist."""
        result = self._run(["rev-parse", "--quiet", "--verify", f"refs/tags/{tag}^{{commit}}"])
        match result:
            case Err(e) if e.returncode == 1 and not e.stderr.strip():
                return Ok(None)
            case Err(e):
                return Err(self._error("rev-parse --verify", e))
            case Ok(stdout):
                return Ok(stdout.strip())

    def create_tag(self, tag: str) -> Result[None, GitError]:
        result = self._run(["tag", tag])
        match result:
            case Err(e):
                return Err(self._error("tag", e))
            case Ok(_):
                return Ok(None)

    def push_atomic(self, *, remote: str, refs: list[str]) -> Result[None, GitError]:
        """Push all refs in one atomic transaction (all or none are updated)."""
        result = self._run(["push", "--atomic", remote, *refs])
        match result:
            case Err(e):
                return Err(self._error("push --atomic", e))
            case Ok(_):
                return Ok(None)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS
            if command in {"fetch", "pull", "push"}
            else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)

    @staticmethod
    def _error(command: str, e: ProcessError, *, fallback: str | None = None) -> GitError:
        message = e.stderr.strip() or e.stdout.strip() or fallback or f"git {command} failed"
        return GitError(command=command, message=message, returncode=e.returncode)

    def _parse_status(self, output: str) -> GitStatus:
        lines = [ln for ln in output.splitlines() if ln.strip()]
        if not lines:
            return GitStatus(branch="")

        branch, upstream = "", None
        if lines[0].startswith("##"):
            branch, upstream = self._parse_branch_line(lines.pop(0))

        entries: list[StatusEntry] = []
        for line in lines:
            if len(line) < 4:
                continue
            entries.append(StatusEntry(xy=line[:2], path=line[3:]))

        return GitStatus(branch=branch, upstream=upstream, entries=tuple(entries))

    def _parse_branch_line(self, line: str) -> tuple[str, str | None]:
        """Parse branch line: ## branch...upstream [info]"""
        s = line[2:].strip()
        s = s.split(" [", 1)[0].strip()
        if "..." in s:
            left, right = s.split("...", 1)
            return (left.strip(), right.strip())
        return (s, None)
