"""Persisted publish progress.

The progress file maps a repository id to the step it was last recorded at:

    {
      "lib": "git push"
    }

Every mutation is written to disk before the method returns, so the file
always names the most recently attempted step and a killed process resumes
there.
"""

from __future__ import annotations

import json
from pathlib import Path

from relpub.core.result import Err, Ok, Result
from relpub.core.structured import as_str_dict
from relpub.platform.files import atomic_write_text
from relpub.services.publish.errors import PublishError


def _serialize(entries: dict[str, str]) -> str:
    return json.dumps(entries, indent=2) + "\n"


class ProgressStore:
    """Repository id -> step marker, durably persisted on every transition.

    Attributes:
        path: Location of the progress file.
    """

    def __init__(self, path: Path, entries: dict[str, str] | None = None) -> None:
        self.path = path
        self._entries: dict[str, str] = dict(entries or {})

    @classmethod
    def load(cls, path: Path) -> Result[ProgressStore, PublishError]:
        """Read the progress file; a missing file is an empty store."""
        if not path.exists():
            return Ok(cls(path))

        try:
            obj: object = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            return Err(
                PublishError(
                    kind="state_read_failed",
                    message=f"failed to load publish progress: {e}",
                    hint=str(path),
                )
            )

        data = as_str_dict(obj)
        if data is None:
            return Err(
                PublishError(
                    kind="state_read_failed",
                    message="publish progress must be a JSON object",
                    hint=str(path),
                )
            )

        entries: dict[str, str] = {}
        for repo_id, marker in data.items():
            # A null value is a removed key in older files.
            if marker is None:
                continue
            if not isinstance(marker, str):
                return Err(
                    PublishError(
                        kind="state_read_failed",
                        message=f"invalid progress marker for {repo_id}: {marker!r}",
                        hint=str(path),
                    )
                )
            entries[repo_id] = marker

        return Ok(cls(path, entries))

    def get(self, repo_id: str) -> str | None:
        return self._entries.get(repo_id)

    @property
    def entries(self) -> dict[str, str]:
        return dict(self._entries)

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def mark(self, repo_id: str, marker: str) -> Result[None, PublishError]:
        """Record ``marker`` for the repository and persist."""
        self._entries[repo_id] = marker
        return self.persist()

    def clear(self, repo_id: str) -> Result[None, PublishError]:
        """Remove the repository's marker and persist."""
        self._entries.pop(repo_id, None)
        return self.persist()

    def reset(self) -> Result[None, PublishError]:
        """Forget every repository and persist an empty store."""
        self._entries = {}
        return self.persist()

    def persist(self) -> Result[None, PublishError]:
        try:
            atomic_write_text(self.path, _serialize(self._entries), encoding="utf-8")
        except OSError as e:
            return Err(
                PublishError(
                    kind="state_write_failed",
                    message=f"failed to write publish progress: {e}",
                    hint=str(self.path),
                )
            )
        return Ok(None)
