from __future__ import annotations

import os
from pathlib import Path

import pytest

from relpub.platform.files import atomic_write_text


def test_atomic_write_text_creates_parent_dirs(tmp_path: Path) -> None:
    path = tmp_path / ".relpub" / "publish.state.json"
    atomic_write_text(path, '{\n  "lib": "git tag"\n}\n')

    assert path.read_text(encoding="utf-8") == '{\n  "lib": "git tag"\n}\n'


def test_atomic_write_text_replaces_existing_content(tmp_path: Path) -> None:
    path = tmp_path / "publish.state.json"
    path.write_text("old", encoding="utf-8")

    atomic_write_text(path, "{}\n", encoding="utf-8")

    assert path.read_text(encoding="utf-8") == "{}\n"
    assert [p.name for p in tmp_path.iterdir()] == ["publish.state.json"]


def test_atomic_write_text_cleans_temp_file_on_replace_failure(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    path = tmp_path / "publish.state.json"

    def fail_replace(_src: Path, _dst: Path) -> None:
        raise OSError("replace failed")

    monkeypatch.setattr(os, "replace", fail_replace)

    with pytest.raises(OSError, match="replace failed"):
        atomic_write_text(path, "{}\n", encoding="utf-8")

    assert list(tmp_path.iterdir()) == []
