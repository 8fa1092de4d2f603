"""Process exit codes.

The values are part of the CLI contract used by CI jobs and must stay
stable:
- 0: every track succeeded, or there was nothing to do
- 1: at least one track ended in an error state (or the tag push failed)
- 2: configuration is missing or invalid
- 4: the catalog or availability endpoint could not be reached
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for `mpr` commands."""

    OK = 0
    TRACK_ERROR = 1
    CONFIG_ERROR = 2
    NETWORK_ERROR = 4

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
