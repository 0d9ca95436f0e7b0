from __future__ import annotations

import json
from pathlib import Path

from relpub.core.result import Err, Ok, Result
from relpub.core.structured import StrDict, as_str_dict
from relpub.platform.files import atomic_write_text
from relpub.services.publish.errors import PublishError

MANIFEST_FILE = "package.json"

_DEPENDENCY_SECTIONS = ("dependencies", "devDependencies")


def rewrite_manifest(data: StrDict, *, version: str, scope_prefix: str) -> StrDict:
    """Return a copy of ``data`` bumped to ``version``.

    Dependencies named ``<scope_prefix>*`` are pinned to ``^<version>``; every
    other key and entry keeps its value and position.
    """
    out: StrDict = dict(data)
    out["version"] = version

    for section in _DEPENDENCY_SECTIONS:
        deps = as_str_dict(data.get(section))
        if deps is None:
            continue
        out[section] = {
            name: (f"^{version}" if name.startswith(scope_prefix) else constraint)
            for name, constraint in deps.items()
        }

    return out


def update_manifest(
    *, repo_root: Path, version: str, scope_prefix: str
) -> Result[None, PublishError]:
    path = repo_root / MANIFEST_FILE
    try:
        obj: object = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        return Err(
            PublishError(
                kind="manifest_failed",
                message=f"failed to read {MANIFEST_FILE}: {e}",
                hint=str(path),
            )
        )

    data = as_str_dict(obj)
    if data is None:
        return Err(
            PublishError(
                kind="manifest_failed",
                message=f"{MANIFEST_FILE} must be a JSON object",
                hint=str(path),
            )
        )

    updated = rewrite_manifest(data, version=version, scope_prefix=scope_prefix)
    try:
        atomic_write_text(
            path,
            json.dumps(updated, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
    except OSError as e:
        return Err(
            PublishError(
                kind="manifest_failed",
                message=f"failed to write {MANIFEST_FILE}: {e}",
                hint=str(path),
            )
        )

    return Ok(None)
