"""Fatal error types with explicit exit codes."""

from __future__ import annotations


class BacktestError(Exception):
    """Base error that aborts the program before or instead of a sweep."""

    exit_code = 1

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ConfigurationError(BacktestError):
    """Raised when run parameters are malformed or missing."""

    exit_code = 2


class DataLoadError(BacktestError):
    """Raised when a historical series cannot be read or is malformed."""

    exit_code = 3
