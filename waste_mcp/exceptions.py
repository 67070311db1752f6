"""Custom Exception Classes for the Waste Management MCP Server.

This module defines the exception hierarchy used across the server. Domain
errors abort a tool call; sampling errors are caught where a tool uses a
sampling helper and turned into a fallback note.

Exception Hierarchy
------------------
WasteMCPException (base)
├── ConfigurationError
├── DomainError
│   ├── DomainNotFoundError
│   └── DomainValidationError
├── StorageError
└── SamplingError
    ├── SamplingUnavailableError
    ├── SamplingTimeoutError
    └── SamplingParseError

Functions
---------
format_exception
    Format exception for user-friendly display
create_error_response
    Create standardized error response

Notes
-----
All custom exceptions carry an error code for programmatic handling, a
user-facing message, a details dictionary and an optional cause.

Examples
--------
    >>> from waste_mcp.exceptions import DomainNotFoundError
    >>> raise DomainNotFoundError("Facility not found", details={"facility_id": "f-1"})
"""

from typing import Any, Dict, Optional


class WasteMCPException(Exception):
    """Base exception class for all application errors.

    Attributes
    ----------
    error_code : str
        Unique error code for programmatic handling
    message : str
        User-friendly error message
    details : Dict[str, Any]
        Additional error details and context
    cause : Optional[Exception]
        Original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        """Return string representation of the exception."""
        result = f"[{self.error_code}] {self.message}"
        if self.details:
            result += f" | Details: {self.details}"
        if self.cause:
            result += f" | Caused by: {self.cause}"
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "cause": str(self.cause) if self.cause else None,
            "type": self.__class__.__name__,
        }


class ConfigurationError(WasteMCPException):
    """Raised when configuration is invalid or cannot be applied."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="CONFIG_ERROR", **kwargs)


# Domain Errors
class DomainError(WasteMCPException):
    """Base class for errors about the waste-management records themselves."""

    def __init__(self, message: str, error_code: str = "DOMAIN_ERROR", **kwargs):
        super().__init__(message, error_code=error_code, **kwargs)


class DomainNotFoundError(DomainError):
    """Raised when a referenced facility or shipment does not exist."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="NOT_FOUND", **kwargs)


class DomainValidationError(DomainError):
    """Raised when tool arguments fail validation."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="VALIDATION_ERROR", **kwargs)


class StorageError(WasteMCPException):
    """Raised when the record store cannot be read."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="STORAGE_ERROR", **kwargs)


# Sampling Errors
class SamplingError(WasteMCPException):
    """Base class for sampling failures. Never fatal to a tool call."""

    def __init__(self, message: str, error_code: str = "SAMPLING_ERROR", **kwargs):
        super().__init__(message, error_code=error_code, **kwargs)


class SamplingUnavailableError(SamplingError):
    """Raised when no responder is registered with the broker."""

    def __init__(self, message: str = "Sampling is not available - no responder registered", **kwargs):
        super().__init__(message, error_code="SAMPLING_UNAVAILABLE", **kwargs)


class SamplingTimeoutError(SamplingError):
    """Raised when a responder did not reply within the timeout window."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="SAMPLING_TIMEOUT", **kwargs)


class SamplingParseError(SamplingError):
    """Raised or reported when a reply could not be interpreted."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="SAMPLING_PARSE_ERROR", **kwargs)


# Utility Functions
def format_exception(exception: Exception) -> str:
    """Format exception for user-friendly display.

    Examples
    --------
        >>> format_exception(DomainNotFoundError("Facility not found"))
        '[NOT_FOUND] Facility not found'
        >>> format_exception(ValueError("bad"))
        'ValueError: bad'
    """
    if isinstance(exception, WasteMCPException):
        return str(exception)

    return f"{exception.__class__.__name__}: {str(exception)}"


def create_error_response(exception: Exception, include_technical_details: bool = False) -> Dict[str, Any]:
    """Create standardized error response dictionary.

    Parameters
    ----------
    exception : Exception
        The exception to convert to response
    include_technical_details : bool, optional
        Whether to include technical details (default: False)

    Returns
    -------
    Dict[str, Any]
        ``{"error": ..., "error_code": ..., "details": ...}``; unknown
        exceptions are reported as ``INTERNAL_ERROR`` with their message.
    """
    if isinstance(exception, WasteMCPException):
        response = {
            "error": exception.message,
            "error_code": exception.error_code,
            "details": exception.details,
        }
    else:
        response = {
            "error": str(exception) or exception.__class__.__name__,
            "error_code": "INTERNAL_ERROR",
            "details": {},
        }

    if include_technical_details:
        response["technical_details"] = {
            "exception_type": exception.__class__.__name__,
            "full_message": format_exception(exception),
        }

    return response
