"""Tests for relpub.platform.process module."""

from __future__ import annotations

import signal
import sys
from pathlib import Path

from relpub.core.result import Err, Ok
from relpub.platform.process import ProcessError, run, run_silent


class TestProcessError:
    def test_str_short_command(self) -> None:
        error = ProcessError(
            command=("git", "tag", "v1.0.0"),
            returncode=128,
            stdout="",
            stderr="fatal: tag 'v1.0.0' already exists",
        )
        assert str(error) == "git tag v1.0.0 failed (exit 128)"

    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(
            command=("git", "push", "--atomic", "origin", "main", "v1.0.0"),
            returncode=1,
            stdout="",
            stderr="",
        )
        assert str(error) == "git push --atomic ... failed (exit 1)"

    def test_signal_termination(self) -> None:
        error = ProcessError(
            command=("npm", "install"),
            returncode=-int(signal.SIGKILL),
            stdout="",
            stderr="",
        )
        assert error.signal_name == "SIGKILL"
        assert str(error) == "npm install terminated by signal SIGKILL"

    def test_no_signal_for_plain_failure(self) -> None:
        assert ProcessError(("x",), 1, "", "").signal_name is None
        assert ProcessError(("x",), -1, "", "").signal_name is None


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert result.value.strip() == "hello"

    def test_failure_returns_error(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import sys; sys.stderr.write('bad'); sys.exit(3)"],
            cwd=tmp_path,
        )

        assert isinstance(result, Err)
        assert result.error.returncode == 3
        assert result.error.stderr == "bad"

    def test_missing_executable(self, tmp_path: Path) -> None:
        result = run(["relpub-definitely-missing-binary"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == -1

    def test_timeout(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import time; time.sleep(5)"],
            cwd=tmp_path,
            timeout=0.2,
        )

        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert "timed out" in result.error.stderr


class TestRunSilent:
    def test_success(self, tmp_path: Path) -> None:
        assert isinstance(run_silent([sys.executable, "-c", "pass"], cwd=tmp_path), Ok)

    def test_failure(self, tmp_path: Path) -> None:
        result = run_silent([sys.executable, "-c", "raise SystemExit(2)"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == 2
