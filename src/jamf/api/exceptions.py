#!/usr/bin/env python3
"""Exception Hierarchy for the Jamf Pro API client and prestage scope engine.

This module provides a structured exception hierarchy for handling errors
across the Jamf client, including authentication, API, network and
prestage scope assignment errors.

Design Principles:
    - All exceptions inherit from JamfError base class
    - Exceptions preserve context (original error, timestamps, details)
    - Exceptions are categorized by recoverability
    - Each exception includes actionable information

Exception Hierarchy:
    JamfError (base)
    ├── ConfigurationError (unrecoverable - fix config)
    ├── AuthenticationError (may be recoverable - refresh token)
    │   ├── TokenFetchError
    │   ├── TokenExpiredError
    │   └── InvalidCredentialsError
    ├── APIError (may be recoverable - retry)
    │   ├── RateLimitError
    │   ├── NotFoundError
    │   ├── ValidationError
    │   ├── ConflictError
    │   └── ServerError
    ├── NetworkError (recoverable - retry)
    │   ├── ConnectionError
    │   └── TimeoutError
    ├── CircuitOpenError
    └── ScopeError (prestage scope assignment)
        ├── NoSuchItemError
        ├── AssignmentPreconditionError
        └── VersionLockError
"""
from datetime import datetime, timezone
from typing import Any, Optional

# ============================================
# Base Exception
# ============================================

class JamfError(Exception):
    """Base exception for all Jamf-related errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "VERSION_LOCK_CONFLICT")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
        recoverable: Whether this error might be recoverable with retry
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.insert(0, f"[{self.code}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Configuration Errors (Unrecoverable)
# ============================================

class ConfigurationError(JamfError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list[str]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )
        self.missing_keys = missing_keys or []


# ============================================
# Authentication Errors
# ============================================

class AuthenticationError(JamfError):
    """Base class for authentication-related errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class TokenFetchError(AuthenticationError):
    """Raised when token cannot be fetched from the OAuth endpoint."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        attempts: int = 1,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if status_code:
            details["status_code"] = status_code
        details["attempts"] = attempts
        super().__init__(
            message,
            code="TOKEN_FETCH_ERROR",
            details=details,
            **kwargs,
        )


class TokenExpiredError(AuthenticationError):
    """Raised when token has expired and refresh failed."""

    def __init__(self, message: str = "Access token has expired", **kwargs):
        super().__init__(message, code="TOKEN_EXPIRED", **kwargs)


class InvalidCredentialsError(AuthenticationError):
    """Raised when the API client credentials are rejected."""

    def __init__(
        self,
        message: str = "Invalid client credentials",
        **kwargs,
    ):
        super().__init__(
            message,
            code="INVALID_CREDENTIALS",
            recoverable=False,
            **kwargs,
        )


# ============================================
# API Errors
# ============================================

class APIError(JamfError):
    """Base class for API response errors.

    Attributes:
        status_code: HTTP status code
        endpoint: API endpoint that was called
        response_body: Raw response body (may be truncated)
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        endpoint: Optional[str] = None,
        response_body: Optional[str] = None,
        method: str = "GET",
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["status_code"] = status_code
        if endpoint:
            details["endpoint"] = endpoint
        if method:
            details["method"] = method
        if response_body:
            details["response_body"] = response_body[:500] if len(response_body) > 500 else response_body

        kwargs.setdefault("recoverable", status_code in (429, 500, 502, 503, 504))
        kwargs.setdefault("code", f"API_ERROR_{status_code}")

        super().__init__(
            message,
            details=details,
            **kwargs,
        )
        self.status_code = status_code
        self.endpoint = endpoint
        self.response_body = response_body
        self.method = method


class RateLimitError(APIError):
    """Raised when API rate limit is exceeded (HTTP 429).

    Attributes:
        retry_after: Seconds to wait before retrying (from Retry-After header)
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("status_code", 429)
        details = kwargs.pop("details", {})
        if retry_after:
            details["retry_after_seconds"] = retry_after
        super().__init__(
            message,
            code="RATE_LIMIT_EXCEEDED",
            details=details,
            **kwargs,
        )
        self.retry_after = retry_after or 60


class NotFoundError(APIError):
    """Raised when requested resource is not found (HTTP 404)."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        **kwargs,
    ):
        message = f"{resource_type} not found"
        if resource_id:
            message = f"{resource_type} '{resource_id}' not found"

        kwargs.setdefault("status_code", 404)
        details = kwargs.pop("details", {})
        details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(
            message,
            code="NOT_FOUND",
            details=details,
            recoverable=False,
            **kwargs,
        )


class ValidationError(APIError):
    """Raised when request validation fails (HTTP 400/422, or client-side)."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("status_code", 400)
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field

        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


class ConflictError(APIError):
    """Raised when the server rejects a write with HTTP 409.

    Jamf Pro answers 409 when the supplied versionLock no longer matches
    the stored record. Never retried by the client.
    """

    def __init__(
        self,
        message: str = "Resource version conflict",
        **kwargs,
    ):
        kwargs.setdefault("status_code", 409)
        super().__init__(
            message,
            code="CONFLICT",
            recoverable=False,
            **kwargs,
        )


class ServerError(APIError):
    """Raised when server returns 5xx error."""

    def __init__(
        self,
        message: str = "Server error",
        **kwargs,
    ):
        kwargs.setdefault("status_code", 500)
        super().__init__(
            message,
            code="SERVER_ERROR",
            recoverable=True,
            **kwargs,
        )


# ============================================
# Network Errors (Usually Recoverable)
# ============================================

class NetworkError(JamfError):
    """Base class for network-related errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class ConnectionError(NetworkError):
    """Raised when connection to server fails."""

    def __init__(
        self,
        message: str = "Failed to connect to server",
        host: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if host:
            details["host"] = host
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            details=details,
            **kwargs,
        )


class TimeoutError(NetworkError):
    """Raised when request times out."""

    def __init__(
        self,
        message: str = "Request timed out",
        timeout_seconds: Optional[float] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if timeout_seconds:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(
            message,
            code="TIMEOUT_ERROR",
            details=details,
            **kwargs,
        )


class CircuitOpenError(JamfError):
    """Raised when circuit breaker is open and requests are being rejected.

    Attributes:
        reset_at: When the circuit breaker will attempt to close
    """

    def __init__(
        self,
        message: str = "Circuit breaker is open, requests rejected",
        reset_at: Optional[datetime] = None,
        failure_count: int = 0,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if reset_at:
            details["reset_at"] = reset_at.isoformat()
        details["failure_count"] = failure_count

        super().__init__(
            message,
            code="CIRCUIT_OPEN",
            details=details,
            recoverable=True,
            **kwargs,
        )
        self.reset_at = reset_at
        self.failure_count = failure_count


# ============================================
# Prestage Scope Errors
# ============================================

class ScopeError(JamfError):
    """Base class for prestage scope assignment errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", False)
        super().__init__(message, **kwargs)


class NoSuchItemError(ScopeError):
    """Raised when an id or name does not resolve to an existing prestage."""

    def __init__(
        self,
        collection: str,
        identifier: Any,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["collection"] = collection
        details["identifier"] = str(identifier)
        super().__init__(
            f"No {collection} matching '{identifier}'",
            code="NO_SUCH_ITEM",
            details=details,
            **kwargs,
        )
        self.collection = collection
        self.identifier = identifier


class AssignmentPreconditionError(ScopeError):
    """Raised when serial numbers cannot be assigned as requested.

    Attributes:
        serial_numbers: The offending serial numbers
        reason: "not_in_device_enrollment" or "already_assigned"
    """

    NOT_IN_DEVICE_ENROLLMENT = "not_in_device_enrollment"
    ALREADY_ASSIGNED = "already_assigned"

    def __init__(
        self,
        message: str,
        serial_numbers: list[str],
        reason: str,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["reason"] = reason
        details["serial_numbers"] = list(serial_numbers)
        super().__init__(
            message,
            code="ASSIGNMENT_PRECONDITION_FAILED",
            details=details,
            **kwargs,
        )
        self.serial_numbers = list(serial_numbers)
        self.reason = reason


class VersionLockError(ScopeError):
    """Raised when a prestage or its scope changed under us.

    The caller must refetch and retry; the library never retries, since
    the requested change was computed against state that is now stale.
    """

    def __init__(
        self,
        message: str,
        prestage_id: Optional[str] = None,
        prestage_name: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if prestage_id is not None:
            details["prestage_id"] = prestage_id
        if prestage_name:
            details["prestage_name"] = prestage_name
        super().__init__(
            message,
            code="VERSION_LOCK_CONFLICT",
            details=details,
            **kwargs,
        )
        self.prestage_id = prestage_id
        self.prestage_name = prestage_name


__all__ = [
    # Base
    "JamfError",
    # Configuration
    "ConfigurationError",
    # Authentication
    "AuthenticationError",
    "TokenFetchError",
    "TokenExpiredError",
    "InvalidCredentialsError",
    # API
    "APIError",
    "RateLimitError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ServerError",
    # Network
    "NetworkError",
    "ConnectionError",
    "TimeoutError",
    "CircuitOpenError",
    # Prestage scope
    "ScopeError",
    "NoSuchItemError",
    "AssignmentPreconditionError",
    "VersionLockError",
]
