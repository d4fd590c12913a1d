"""Jamf Pro API modules.

This package provides the HTTP layer shared by everything that talks to
a Jamf Pro server.

Classes:
    JamfClient: Generic HTTP client with pagination, retry, and circuit breaker
    TokenManager: OAuth2 client credentials token management with caching
    PaginationConfig: Page size, sort and throttling for list endpoints

Exceptions:
    JamfError: Base exception for all Jamf errors
    ConfigurationError: Missing or invalid configuration
    AuthenticationError: Authentication failures
    APIError: API request failures
    ConflictError: Stale versionLock (HTTP 409)
    NetworkError: Network connectivity issues
    ScopeError: Prestage scope assignment failures

Resilience:
    CircuitBreaker: Prevent cascading failures
"""
from .auth import CachedToken, TokenManager
from .client import (
    ENROLLMENT_DEVICES_PAGINATION,
    PRESTAGES_PAGINATION,
    JamfClient,
    PaginationConfig,
)
from .exceptions import (
    APIError,
    AssignmentPreconditionError,
    AuthenticationError,
    CircuitOpenError,
    ConfigurationError,
    ConflictError,
    ConnectionError,
    InvalidCredentialsError,
    JamfError,
    NetworkError,
    NoSuchItemError,
    NotFoundError,
    RateLimitError,
    ScopeError,
    ServerError,
    TimeoutError,
    TokenExpiredError,
    TokenFetchError,
    ValidationError,
    VersionLockError,
)
from .resilience import CircuitBreaker, CircuitState

__all__ = [
    # Client
    "JamfClient",
    "PaginationConfig",
    "PRESTAGES_PAGINATION",
    "ENROLLMENT_DEVICES_PAGINATION",
    # Auth
    "TokenManager",
    "CachedToken",
    # Exceptions
    "JamfError",
    "ConfigurationError",
    "AuthenticationError",
    "TokenFetchError",
    "TokenExpiredError",
    "InvalidCredentialsError",
    "APIError",
    "RateLimitError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ServerError",
    "NetworkError",
    "ConnectionError",
    "TimeoutError",
    "CircuitOpenError",
    "ScopeError",
    "NoSuchItemError",
    "AssignmentPreconditionError",
    "VersionLockError",
    # Resilience
    "CircuitBreaker",
    "CircuitState",
]
