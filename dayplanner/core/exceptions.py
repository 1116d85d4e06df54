"""
Custom exception classes for Day Planner.
Provides specific exceptions for different error scenarios.
"""

import functools
from typing import Any, Dict, Optional


class DayPlannerException(Exception):
    """Base exception class for all Day Planner errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================

class NotFoundError(DayPlannerException):
    """Base class for missing trip/plan/segment lookups."""
    pass


class TripNotFoundError(NotFoundError):
    """Raised when a trip does not exist."""
    pass


class PlanNotFoundError(NotFoundError):
    """Raised when a daily plan does not exist."""
    pass


class SegmentNotFoundError(NotFoundError):
    """Raised when a trip segment does not exist."""
    pass


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class ValidationError(DayPlannerException):
    """Base class for data validation errors."""
    pass


class InvalidPlanStatusError(ValidationError):
    """Raised when a plan status is not one of active/completed/cancelled."""
    pass


class InvalidSegmentDatesError(ValidationError):
    """Raised when a segment ends before it starts."""
    pass


# =============================================================================
# OPTIMIZER ERRORS
# =============================================================================

class ExternalOptimizerError(DayPlannerException):
    """Base class for text-completion optimizer failures."""
    pass


class GeminiAPIError(ExternalOptimizerError):
    """Raised when Google Gemini API calls fail."""
    pass


class OptimizerResponseError(ExternalOptimizerError):
    """Raised when the optimizer answers with unusable content."""
    pass


# =============================================================================
# DATABASE ERRORS
# =============================================================================

class DatabaseError(DayPlannerException):
    """Base class for database errors."""
    pass


class ConnectionError(DatabaseError):
    """Raised when database connection fails."""
    pass


# =============================================================================
# EXCEPTION UTILITIES
# =============================================================================

def create_error_response(
    exception: DayPlannerException,
    include_details: bool = None
) -> Dict[str, Any]:
    """
    Create a standardized error response for API endpoints.

    Args:
        exception: The exception to convert
        include_details: Whether to include error details (auto-detected from environment)

    Returns:
        Dictionary suitable for API error response
    """
    from .config import settings

    if include_details is None:
        include_details = settings.is_development

    response = {
        "success": False,
        "error": {
            "type": exception.__class__.__name__,
            "message": exception.message,
            "code": exception.error_code
        }
    }

    if include_details and exception.details:
        response["error"]["details"] = exception.details

    return response


def handle_async_exceptions(
    default_exception_class: type = DayPlannerException,
    context: Optional[str] = None
):
    """
    Decorator to automatically handle exceptions in async functions.

    Args:
        default_exception_class: Exception class to use for unhandled exceptions
        context: Context string to add to error details
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except DayPlannerException:
                # Re-raise our custom exceptions as-is
                raise
            except Exception as e:
                raise default_exception_class(
                    message=f"Error in async {func.__name__}: {str(e)}",
                    error_code=e.__class__.__name__,
                    details={"context": context, "function": func.__name__}
                ) from e

        return wrapper
    return decorator
