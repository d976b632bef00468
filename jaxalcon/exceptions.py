"""Exception hierarchy for the augmented Lagrangian constraint set.

Every exception carries an ErrorCode so callers can branch on the failure
category without parsing messages.
"""

from __future__ import annotations

from .types import ErrorCode


class AugLagException(Exception):
    """Base exception class for augmented Lagrangian constraint errors."""

    def __init__(self, message: str, error_code: ErrorCode) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message

    def __str__(self) -> str:
        return f"AL Error {self.error_code.value}: {self.message}"


class DimensionError(AugLagException):
    """Exception for storage whose shape disagrees with the constraint dimensions."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.DIMENSION_MISMATCH) -> None:
        super().__init__(message, error_code)


class ConfigurationError(AugLagException):
    """Exception for constraints or parameters the set cannot work with."""

    def __init__(
        self, message: str, error_code: ErrorCode = ErrorCode.UNSUPPORTED_CONSTRAINT_KIND
    ) -> None:
        super().__init__(message, error_code)


class ConsistencyError(AugLagException):
    """Exception for cached values that disagree with freshly computed ones."""

    def __init__(
        self, message: str, error_code: ErrorCode = ErrorCode.STALE_VIOLATION_CACHE
    ) -> None:
        super().__init__(message, error_code)
