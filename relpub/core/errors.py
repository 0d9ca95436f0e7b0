"""Process exit codes.

The numeric values are part of the CLI contract and must remain stable:
- 0: Success
- 1: User error (bad configuration, wrong branch, uncommitted changes)
- 2: Environment error (gh missing, unreadable progress file)
- 3: Publish error (a step command failed, CI did not succeed)
- 4: Network error (GitHub API unreachable)
- 5: I/O error (progress file or manifest could not be written)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    PUBLISH_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
