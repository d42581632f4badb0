"""
tzdata-update Exception Hierarchy

Structured errors for bundle installation. Rejected bundles are reported
through install outcome codes; these exceptions cover the cases where a
caller needs a distinct failure signal.
"""

from typing import Optional, Dict, Any


class TzUpdateError(Exception):
    """
    Base exception for all tzdata-update errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context as key-value pairs
        cause: Original exception that caused this error
        recoverable: Whether the error is recoverable
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.recoverable = recoverable

    def __str__(self):
        s = f"[{self.code}] {self.message}"
        if self.details:
            s += f" (details: {self.details})"
        if self.cause:
            s += f" caused by: {self.cause}"
        return s

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Bundle errors
# =============================================================================

class BundleException(TzUpdateError):
    """Bundle structure or version record is missing or malformed."""
    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(
            message,
            code="BAD_BUNDLE",
            cause=cause,
            recoverable=False,
        )


class BundleExtractError(TzUpdateError, OSError):
    """Bundle archive could not be unpacked."""
    def __init__(self, target: str, reason: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Unable to extract bundle to {target}: {reason}",
            code="BUNDLE_EXTRACT_FAILED",
            details={"target": target, "reason": reason},
            cause=cause,
        )


# =============================================================================
# Time zone data errors
# =============================================================================

class TzDataError(TzUpdateError):
    """Time zone data file could not be loaded or failed validation."""
    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Invalid tzdata file {path}: {reason}",
            code="TZDATA_INVALID",
            details={"path": path, "reason": reason},
            recoverable=False,
        )
        self.reason = reason
