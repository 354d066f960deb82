"""Unified exception hierarchy for the access control engine.

All errors inherit from AccessControlError. This module provides:
- Base exception hierarchy with stable error codes
- ErrorRegistry for mapping codes back to classes (CLI exit codes, reports)

Resolution failures (name -> descriptor, name -> bit) are always raised.
Remote write failures are returned as ``WriteResult`` objects and only become
``RemoteRejectionError`` when the caller asks for it.

Usage:
    from adoaccess.exceptions import (
        AccessControlError,
        GroupNotFoundError,
        RemoteRejectionError,
    )
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "AccessControlError",
    "ConfigurationError",
    "NotFoundError",
    "NamespaceNotFoundError",
    "ActionNotFoundError",
    "GroupNotFoundError",
    "UserNotFoundError",
    "AclNotFoundError",
    "CatalogError",
    "MalformedDescriptorError",
    "RemoteRejectionError",
    "TransportError",
    "MembershipCycleError",
    "TemplateError",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
]


# ---- Exception Hierarchy ----------------------------------------------------


class AccessControlError(Exception):
    """Base exception for the access control engine.

    Attributes:
        code: Stable error code string (e.g. "GROUP_NOT_FOUND").
        message: Human-readable error description.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(AccessControlError):
    """Invalid or missing configuration."""

    code: str = "CONFIGURATION_ERROR"


class NotFoundError(AccessControlError):
    """A definitionally absent entity. Never retried."""

    code: str = "NOT_FOUND"


class NamespaceNotFoundError(NotFoundError):
    """Security namespace is not part of the organisation catalog."""

    code: str = "NAMESPACE_NOT_FOUND"


class ActionNotFoundError(NotFoundError):
    """Action name is not defined in the security namespace."""

    code: str = "ACTION_NOT_FOUND"


class GroupNotFoundError(NotFoundError):
    """No group with the exact display name (or descriptor) exists in scope."""

    code: str = "GROUP_NOT_FOUND"


class UserNotFoundError(NotFoundError):
    """No user entitlement matches the principal name."""

    code: str = "USER_NOT_FOUND"


class AclNotFoundError(NotFoundError):
    """ACL for a token did not become visible in the store."""

    code: str = "ACL_NOT_FOUND"


class CatalogError(AccessControlError):
    """The namespace catalog returned by the store is inconsistent."""

    code: str = "CATALOG_ERROR"


class MalformedDescriptorError(AccessControlError):
    """Descriptor cannot be split or decoded into a security identifier."""

    code: str = "MALFORMED_DESCRIPTOR"


class RemoteRejectionError(AccessControlError):
    """The store answered a write with an unexpected status code."""

    code: str = "REMOTE_REJECTION"

    def __init__(self, message: str | None = None, status_code: int | None = None, **kwargs: Any) -> None:
        self.status_code = status_code
        super().__init__(message, status_code=status_code, **kwargs)


class TransportError(AccessControlError):
    """The HTTP transport failed (connection, timeout, unexpected read status)."""

    code: str = "TRANSPORT_ERROR"


class MembershipCycleError(AccessControlError):
    """Native group graph contains a cycle on the traversed path."""

    code: str = "MEMBERSHIP_CYCLE"

    def __init__(self, cycle: list[str], message: str | None = None) -> None:
        self.cycle = list(cycle)
        super().__init__(
            message or "Group membership cycle detected: " + " -> ".join(self.cycle),
            cycle=self.cycle,
        )


class TemplateError(AccessControlError):
    """A permission template is invalid or cannot be applied."""

    code: str = "TEMPLATE_ERROR"


# ---- Error Registry ---------------------------------------------------------

_E = TypeVar("_E", bound=type[AccessControlError])


class ErrorRegistry:
    """Registry for mapping stable error codes to exception classes."""

    def __init__(self) -> None:
        self._errors: dict[str, type[AccessControlError]] = {}

    def register(self, code: str, error_cls: type[AccessControlError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[AccessControlError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[AccessControlError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("POLICY_CONFLICT")
        class PolicyConflictError(AccessControlError):
            code = "POLICY_CONFLICT"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


# Register base errors
for _cls in (
    AccessControlError,
    ConfigurationError,
    NotFoundError,
    NamespaceNotFoundError,
    ActionNotFoundError,
    GroupNotFoundError,
    UserNotFoundError,
    AclNotFoundError,
    CatalogError,
    MalformedDescriptorError,
    RemoteRejectionError,
    TransportError,
    MembershipCycleError,
    TemplateError,
):
    error_registry.register(_cls.code, _cls)
del _cls
