"""
tzdata-update Common Utilities

Shared exceptions, logging and decorators.
"""

from .exceptions import (
    TzUpdateError, BundleException, BundleExtractError, TzDataError,
)
from .decorators import handle_errors, timed
from .logging_config import setup_logging, LogContext

__all__ = [
    # Exceptions
    "TzUpdateError", "BundleException", "BundleExtractError", "TzDataError",
    # Decorators
    "handle_errors", "timed",
    # Logging
    "setup_logging", "LogContext",
]
