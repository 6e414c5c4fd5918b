"""Utility types for consistent CLI error handling."""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Monitoring-plugin exit codes returned by the membercheck CLI."""

    OK = 0
    WARNING = 1
    CRITICAL = 2
    UNKNOWN = 3


class MemberCheckError(Exception):
    """Base for predictable CLI errors that surface to users."""

    exit_code: ExitCode = ExitCode.UNKNOWN
    label = "Error"

    def __init__(
        self, message: str, *, exit_code: ExitCode | int | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        if exit_code is None:
            exit_code = type(self).exit_code
        self.exit_code = ExitCode(exit_code)

    def __str__(self) -> str:
        return self.message

    @property
    def heading(self) -> str:
        """Return a short label describing the error class."""

        return type(self).label


class MemberCheckConfigError(MemberCheckError):
    """Raised when role filters, profiles or flags are missing or invalid."""

    exit_code = ExitCode.UNKNOWN
    label = "Configuration error"
