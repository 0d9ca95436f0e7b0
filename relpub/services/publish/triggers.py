"""CI trigger discovery from GitHub Actions workflow files.

Only two questions matter to the publish sequence: does a push to the main
branch start a workflow, and does publishing a release start one.
"""

from __future__ import annotations

from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import cast

import yaml

from relpub.core.result import Err, Ok, Result
from relpub.core.structured import as_obj_list, as_str_dict, as_str_list
from relpub.services.publish.errors import PublishError

WORKFLOWS_DIR = Path(".github") / "workflows"


@dataclass(frozen=True, slots=True)
class CiTriggers:
    push_on_branch: bool = False
    release_published: bool = False

    def merge(self, other: CiTriggers) -> CiTriggers:
        return CiTriggers(
            push_on_branch=self.push_on_branch or other.push_on_branch,
            release_published=self.release_published or other.release_published,
        )


def _str_items(obj: object) -> list[str] | None:
    if isinstance(obj, str):
        return [obj]
    return as_str_list(obj)


def _push_matches(spec: object, branch: str) -> bool:
    if spec is None:
        return True
    table = as_str_dict(spec)
    if table is None:
        return False

    branches = _str_items(table.get("branches"))
    if branches is not None:
        return any(fnmatchcase(branch, pattern) for pattern in branches)

    ignored = _str_items(table.get("branches-ignore"))
    if ignored is not None:
        return not any(fnmatchcase(branch, pattern) for pattern in ignored)

    # A tags-only filter never fires for a branch push.
    return "tags" not in table


def _release_matches(spec: object) -> bool:
    if spec is None:
        return True
    table = as_str_dict(spec)
    if table is None:
        return False
    types = _str_items(table.get("types"))
    if types is None:
        return "types" not in table
    return "published" in types


def triggers_from_document(document: object, *, branch: str) -> CiTriggers:
    """Evaluate the ``on`` section of one parsed workflow document."""
    if not isinstance(document, dict):
        return CiTriggers()
    data = cast(dict[object, object], document)

    # YAML 1.1 reads a bare `on` key as boolean true.
    on: object = data["on"] if "on" in data else data.get(True)

    if isinstance(on, str):
        return CiTriggers(push_on_branch=on == "push", release_published=on == "release")

    events = as_obj_list(on)
    if events is not None:
        return CiTriggers(
            push_on_branch="push" in events,
            release_published="release" in events,
        )

    table = as_str_dict(on)
    if table is None:
        return CiTriggers()

    return CiTriggers(
        push_on_branch="push" in table and _push_matches(table["push"], branch),
        release_published="release" in table and _release_matches(table["release"]),
    )


def _workflow_files(repo_root: Path) -> list[Path]:
    directory = repo_root / WORKFLOWS_DIR
    if not directory.is_dir():
        return []
    return sorted(
        p for p in directory.iterdir() if p.is_file() and p.suffix in {".yml", ".yaml"}
    )


def read_ci_triggers(*, repo_root: Path, branch: str) -> Result[CiTriggers, PublishError]:
    """Combine the triggers declared by every workflow of the repository."""
    found = CiTriggers()
    for path in _workflow_files(repo_root):
        try:
            document: object = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            return Err(
                PublishError(
                    kind="invalid_workflow",
                    message=f"failed to parse workflow {path.name}: {e}",
                    hint=str(path),
                )
            )
        found = found.merge(triggers_from_document(document, branch=branch))
    return Ok(found)
