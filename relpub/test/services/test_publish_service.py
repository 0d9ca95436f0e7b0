from __future__ import annotations

import json
from pathlib import Path

import pytest

from relpub.core.config import ValidationConfig
from relpub.core.result import Err, Ok, Result
from relpub.git import repository as repository_mod
from relpub.output.console import ConsoleProtocol, MockConsole
from relpub.platform.process import ProcessError
from relpub.services.publish import service as service_mod
from relpub.services.publish.errors import PublishError
from relpub.services.publish.model import STEP_ORDER, PublishPlan, RepoTarget
from relpub.services.publish.progress import ProgressStore
from relpub.services.publish.sequencer import Step
from relpub.services.publish.service import check_preconditions, publish, resolve_target


class FakeGit:
    """Answers the read-only git queries the orchestrator makes."""

    def __init__(self, *, branch: str = "main", status: str = "## main\n") -> None:
        self.branch = branch
        self.status = status

    def __call__(
        self, cmd: list[str], *, cwd: Path, timeout: float | None = None
    ) -> Result[str, ProcessError]:
        del timeout
        args = tuple(cmd[3:])
        if args == ("branch", "--show-current"):
            return Ok(f"{self.branch}\n")
        if args == ("status", "--porcelain=v1", "-b"):
            return Ok(self.status)
        if args == ("config", "--get", "remote.origin.url"):
            return Ok(f"git@github.com:acme/{cwd.name}.git\n")
        raise AssertionError(f"unexpected command: {cmd}")


class StepLog:
    """Replaces RepoPublisher: records each step run, optionally failing one."""

    def __init__(self, fail_at: tuple[str, str] | None = None) -> None:
        self.fail_at = fail_at
        self.ran: list[tuple[str, str]] = []

    def __call__(
        self,
        *,
        plan: PublishPlan,
        target: RepoTarget,
        validation: ValidationConfig,
        console: ConsoleProtocol,
    ) -> StepLog:
        del plan, validation, console
        self._target = target
        return self

    def steps(self) -> list[Step]:
        return [self._step(self._target.id, name) for name in STEP_ORDER]

    def _step(self, repo_id: str, name: str) -> Step:
        def _run() -> Result[None, PublishError]:
            self.ran.append((repo_id, name))
            if self.fail_at == (repo_id, name):
                return Err(PublishError(kind="workflow_failed", message="CI #1 concluded: failure"))
            return Ok(None)

        return Step(name=name, run=_run)


def _plan(root: Path, *repos: str) -> PublishPlan:
    for repo_id in repos:
        (root / repo_id / ".git").mkdir(parents=True, exist_ok=True)
    return PublishPlan(version="2.1.0", organization="acme", repositories=repos, root=root)


def _state(path: Path) -> dict[str, str]:
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def git(monkeypatch: pytest.MonkeyPatch) -> FakeGit:
    fake = FakeGit()
    monkeypatch.setattr(repository_mod, "run_process", fake)
    return fake


def test_full_run_resets_store(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, git: FakeGit
) -> None:
    log = StepLog()
    monkeypatch.setattr(service_mod, "RepoPublisher", log)
    state = tmp_path / "state.json"
    store = ProgressStore(state)

    result = publish(
        plan=_plan(tmp_path, "lib", "app"),
        store=store,
        validation=ValidationConfig(),
        console=MockConsole(),
    )

    assert isinstance(result, Ok)
    assert [r for r, _ in log.ran] == ["lib"] * 8 + ["app"] * 8
    assert _state(state) == {}
    assert store.is_empty


def test_failure_aborts_and_records_position(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, git: FakeGit
) -> None:
    log = StepLog(fail_at=("app", "validate push workflow"))
    monkeypatch.setattr(service_mod, "RepoPublisher", log)
    state = tmp_path / "state.json"

    result = publish(
        plan=_plan(tmp_path, "lib", "app", "docs"),
        store=ProgressStore(state),
        validation=ValidationConfig(),
        console=MockConsole(),
    )

    assert isinstance(result, Err)
    assert result.error.kind == "workflow_failed"
    assert result.error.repo == "app"
    assert result.error.step == "validate push workflow"
    assert ("docs", "package") not in log.ran
    assert _state(state) == {"lib": "complete", "app": "validate push workflow"}


def test_resume_skips_completed_repositories(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, git: FakeGit
) -> None:
    # A resumed repository has the rewritten manifest uncommitted.
    git.status = "## main\n M package.json\n"
    log = StepLog()
    monkeypatch.setattr(service_mod, "RepoPublisher", log)
    state = tmp_path / "state.json"
    store = ProgressStore(state, {"lib": "complete", "app": "git tag"})
    console = MockConsole()

    result = publish(
        plan=_plan(tmp_path, "lib", "app"),
        store=store,
        validation=ValidationConfig(),
        console=console,
    )

    assert isinstance(result, Ok)
    assert all(repo_id == "app" for repo_id, _ in log.ran)
    assert [name for _, name in log.ran] == list(STEP_ORDER[3:])
    assert console.find("resuming at: git tag")
    assert _state(state) == {}


def test_progress_for_unknown_repository_is_fatal(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, git: FakeGit
) -> None:
    log = StepLog()
    monkeypatch.setattr(service_mod, "RepoPublisher", log)
    store = ProgressStore(tmp_path / "state.json", {"old": "git push"})

    result = publish(
        plan=_plan(tmp_path, "lib"),
        store=store,
        validation=ValidationConfig(),
        console=MockConsole(),
    )

    assert isinstance(result, Err)
    assert result.error.kind == "progress_inconsistent"
    assert "old" in result.error.message
    assert log.ran == []
    assert store.get("old") == "git push"


def test_missing_checkout(tmp_path: Path, git: FakeGit) -> None:
    plan = PublishPlan(
        version="2.1.0", organization="acme", repositories=("lib",), root=tmp_path
    )

    result = resolve_target(plan=plan, repo_id="lib")

    assert isinstance(result, Err)
    assert result.error.kind == "invalid_input"
    assert result.error.repo == "lib"


def test_resolve_target_slug(tmp_path: Path, git: FakeGit) -> None:
    plan = _plan(tmp_path, "lib")

    result = resolve_target(plan=plan, repo_id="lib")

    assert result == Ok(RepoTarget(id="lib", path=tmp_path / "lib", slug="acme/lib"))


class TestPreconditions:
    def _target(self, tmp_path: Path) -> RepoTarget:
        return RepoTarget(id="lib", path=tmp_path / "lib", slug="acme/lib")

    def test_wrong_branch(self, tmp_path: Path, git: FakeGit) -> None:
        git.branch = "develop"
        plan = _plan(tmp_path, "lib")

        result = check_preconditions(plan=plan, target=self._target(tmp_path), resuming=True)

        assert isinstance(result, Err)
        assert result.error.kind == "wrong_branch"
        assert "develop" in result.error.message

    def test_dirty_tree_on_fresh_start(self, tmp_path: Path, git: FakeGit) -> None:
        git.status = "## main\n M src/index.ts\n"
        plan = _plan(tmp_path, "lib")

        result = check_preconditions(plan=plan, target=self._target(tmp_path), resuming=False)

        assert isinstance(result, Err)
        assert result.error.kind == "uncommitted_changes"
        assert "src/index.ts" in result.error.message

    def test_dirty_tree_allowed_when_ignored(self, tmp_path: Path, git: FakeGit) -> None:
        git.status = "## main\n M src/index.ts\n"
        plan = PublishPlan(
            version="2.1.0",
            organization="acme",
            repositories=("lib",),
            root=tmp_path,
            ignore_uncommitted=True,
        )

        assert check_preconditions(
            plan=plan, target=self._target(tmp_path), resuming=False
        ) == Ok(None)

    def test_fresh_start_on_dirty_tree_aborts_publish(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, git: FakeGit
    ) -> None:
        git.status = "## main\n?? scratch.txt\n"
        log = StepLog()
        monkeypatch.setattr(service_mod, "RepoPublisher", log)
        state = tmp_path / "state.json"

        result = publish(
            plan=_plan(tmp_path, "lib"),
            store=ProgressStore(state),
            validation=ValidationConfig(),
            console=MockConsole(),
        )

        assert isinstance(result, Err)
        assert result.error.kind == "uncommitted_changes"
        assert log.ran == []
        assert not state.exists()
