from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from relpub import __version__
from relpub.cli.app import app
from relpub.cli.commands import publish_cmd
from relpub.core.result import Err, Ok, Result
from relpub.output.console import ConsoleProtocol
from relpub.services.publish.errors import PublishError
from relpub.services.publish.model import PublishPlan
from relpub.services.publish.progress import ProgressStore

runner = CliRunner()


@pytest.fixture
def config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.delenv("RELPUB_CONFIG", raising=False)
    path = tmp_path / "publish.toml"
    path.write_text(
        'version = "2.1.0"\norganization = "@acme"\ndirectories = ["lib", "app"]\n',
        encoding="utf-8",
    )
    return path


def _write_state(config: Path, entries: dict[str, str]) -> Path:
    state = config.parent / ".relpub" / "publish.state.json"
    state.parent.mkdir(parents=True, exist_ok=True)
    state.write_text(json.dumps(entries), encoding="utf-8")
    return state


def test_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert result.output.strip() == __version__


def test_missing_config_is_user_error(tmp_path: Path) -> None:
    result = runner.invoke(app, ["status", "--config", str(tmp_path / "nope.toml")])

    assert result.exit_code == 1
    assert "not found" in result.output


class TestStatus:
    def test_nothing_in_progress(self, config: Path) -> None:
        result = runner.invoke(app, ["status", "-c", str(config)])

        assert result.exit_code == 0
        assert "no publish in progress" in result.output

    def test_lists_each_repository(self, config: Path) -> None:
        _write_state(config, {"lib": "complete", "app": "git push"})

        result = runner.invoke(app, ["status", "-c", str(config)])

        assert result.exit_code == 0
        assert "lib: done" in result.output
        assert "app: at git push" in result.output

    def test_config_found_from_env(self, config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RELPUB_CONFIG", str(config))

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0

    def test_corrupt_state_file(self, config: Path) -> None:
        state = _write_state(config, {})
        state.write_text("{", encoding="utf-8")

        result = runner.invoke(app, ["status", "-c", str(config)])

        assert result.exit_code == 2
        assert "failed to load publish progress" in result.output


class TestReset:
    def test_reset_with_yes(self, config: Path) -> None:
        state = _write_state(config, {"app": "release"})

        result = runner.invoke(app, ["reset", "-c", str(config), "--yes"])

        assert result.exit_code == 0
        assert "progress cleared" in result.output
        assert state.read_text(encoding="utf-8") == "{}\n"

    def test_reset_declined(self, config: Path) -> None:
        state = _write_state(config, {"app": "release"})

        result = runner.invoke(app, ["reset", "-c", str(config)], input="n\n")

        assert result.exit_code == 0
        assert json.loads(state.read_text(encoding="utf-8")) == {"app": "release"}


class TestPublish:
    def test_gh_missing(self, config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def missing() -> Result[None, PublishError]:
            return Err(PublishError(kind="gh_missing", message="gh: missing", hint="install gh"))

        monkeypatch.setattr(publish_cmd, "ensure_gh_available", missing)

        result = runner.invoke(app, ["publish", "-c", str(config)])

        assert result.exit_code == 2
        assert "gh: missing" in result.output

    def test_publish_passes_plan(self, config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        seen: list[PublishPlan] = []

        def fake_publish(
            *,
            plan: PublishPlan,
            store: ProgressStore,
            validation: object,
            console: ConsoleProtocol,
        ) -> Result[None, PublishError]:
            del store, validation, console
            seen.append(plan)
            return Ok(None)

        monkeypatch.setattr(publish_cmd, "ensure_gh_available", lambda: Ok(None))
        monkeypatch.setattr(publish_cmd, "run_publish", fake_publish)

        result = runner.invoke(app, ["publish", "-c", str(config), "--ignore-uncommitted"])

        assert result.exit_code == 0, result.output
        assert "published v2.1.0 to 2 repositories" in result.output
        assert seen[0].organization == "acme"
        assert seen[0].repositories == ("lib", "app")
        assert seen[0].ignore_uncommitted

    def test_step_failure_exit_code(self, config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def failing(**kwargs: object) -> Result[None, PublishError]:
            del kwargs
            return Err(
                PublishError(
                    kind="workflow_timeout",
                    message="push workflow #5 did not complete after 30 attempt(s)",
                    repo="lib",
                    step="validate push workflow",
                )
            )

        monkeypatch.setattr(publish_cmd, "ensure_gh_available", lambda: Ok(None))
        monkeypatch.setattr(publish_cmd, "run_publish", failing)

        result = runner.invoke(app, ["publish", "-c", str(config)])

        assert result.exit_code == 3
        assert "lib / validate push workflow" in result.output
