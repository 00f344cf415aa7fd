"""Domain-level exception hierarchy for service and repository layers."""

from __future__ import annotations


class DomainError(Exception):
    """Base class for domain-specific failures."""


class NotFoundError(DomainError):
    """Raised when a requested entity does not exist."""


class ConflictError(DomainError):
    """Raised when a state conflict occurs (e.g. duplicate entries)."""


class ValidationError(DomainError):
    """Raised when input validation fails at the domain/service layer."""


class AuthenticationError(DomainError):
    """Raised when a bearer token is missing or rejected by the identity provider."""


class PermissionDeniedError(DomainError):
    """Raised when an authenticated user may not act on a resource."""


class InfrastructureError(DomainError):
    """Raised when infrastructure (DB or external service) is unavailable."""


class UpstreamError(InfrastructureError):
    """Raised by provider clients when a third-party HTTP call fails."""

    def __init__(self, message: str, *, endpoint: str | None = None, status: int | None = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status = status


class CacheBackendError(InfrastructureError):
    """Raised by cache backends when the underlying store cannot be reached."""
