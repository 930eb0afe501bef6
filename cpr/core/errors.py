"""Process exit codes for the release CLI.

Every fatal release condition maps to one of these codes; the numeric values
are part of the command-line contract and should remain stable.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    - 0: Success
    - 1: User error (bad version, declined confirmation)
    - 2: Environment error (missing token, git, gh or release-please)
    - 3: CI error (release workflow failed or timed out)
    - 4: Network error (gh / remote operation failed)
    - 5: I/O error (descriptor missing or unwritable)
    - 6: Conflict (stash could not be reapplied)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    CI_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    CONFLICT = 6
