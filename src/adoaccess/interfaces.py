"""Collaborator contracts consumed by the engine.

The engine never talks HTTP directly. It depends on three small APIs:

- SecurityApi: namespace catalog and ACL read/write/delete
- GraphApi: native directory (groups, memberships, entitlements)
- DirectoryApi: external directory direct-membership check

``adoaccess.clients`` provides httpx implementations; tests use in-memory
fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from .models import GraphGroup, GraphMembership, UserIdentity


@dataclass(frozen=True)
class ApiResponse:
    """Status and decoded body of a remote write."""

    status_code: int
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)


class SecurityApi(ABC):
    """Security namespaces and access control lists of one organisation."""

    @abstractmethod
    async def list_security_namespaces(self) -> list[dict[str, Any]]:
        """Return the raw namespace catalog (one-shot organisation read)."""
        raise NotImplementedError

    @abstractmethod
    async def get_access_control_lists(self, namespace_id: str, token: str) -> list[dict[str, Any]]:
        """Return the ACLs stored for ``token`` (empty list when none yet)."""
        raise NotImplementedError

    @abstractmethod
    async def set_access_control_lists(self, namespace_id: str, acls: list[dict[str, Any]]) -> ApiResponse:
        raise NotImplementedError

    @abstractmethod
    async def set_access_control_entries(self, namespace_id: str, body: dict[str, Any]) -> ApiResponse:
        """Body: ``{token, merge, accessControlEntries: [...]}``."""
        raise NotImplementedError

    @abstractmethod
    async def delete_access_control_entries(
        self, namespace_id: str, token: str, identity_descriptors: list[str]
    ) -> ApiResponse:
        raise NotImplementedError

    @abstractmethod
    async def delete_access_control_lists(self, namespace_id: str, token: str, recurse: bool = False) -> ApiResponse:
        raise NotImplementedError


class GraphApi(ABC):
    """Native directory: groups, memberships and user entitlements."""

    @abstractmethod
    async def get_scope_descriptor(self, project_id: str) -> str:
        raise NotImplementedError

    @abstractmethod
    async def list_groups(self, scope_descriptor: Optional[str] = None) -> list[GraphGroup]:
        """Groups visible in the scope, or organisation-wide when None."""
        raise NotImplementedError

    @abstractmethod
    async def list_memberships(self, descriptor: str, direction: str = "down") -> list[GraphMembership]:
        raise NotImplementedError

    @abstractmethod
    async def get_user_origin_id(self, descriptor: str) -> str:
        raise NotImplementedError

    @abstractmethod
    async def find_user_entitlements(self, principal_name: str) -> list[UserIdentity]:
        raise NotImplementedError


class DirectoryApi(ABC):
    """External directory (Microsoft Entra ID)."""

    @abstractmethod
    async def is_direct_member(self, group_origin_id: str, member_origin_id: str) -> bool:
        """True when ``member_origin_id`` is a direct (non-nested) member."""
        raise NotImplementedError


__all__ = ["ApiResponse", "DirectoryApi", "GraphApi", "SecurityApi"]
