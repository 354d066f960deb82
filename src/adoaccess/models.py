"""Wire and domain models for security namespaces, ACLs and identities.

These are Pydantic models. Field aliases match the camelCase JSON the
platform returns, so payloads can be validated directly::

    namespace = SecurityNamespace.model_validate(payload)
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class SecurityAction(_WireModel):
    """One named permission of a namespace and the bit it occupies."""

    bit: int = Field(ge=0)
    name: str
    display_name: str = Field(default="", alias="displayName")
    namespace_id: str = Field(default="", alias="namespaceId")


class SecurityNamespace(_WireModel):
    """A protectable resource category with its action -> bit mapping."""

    namespace_id: str = Field(alias="namespaceId")
    name: str = ""
    display_name: str = Field(default="", alias="displayName")
    dataspace_category: str = Field(default="", alias="dataspaceCategory")
    separator_value: str = Field(default="/", alias="separatorValue")
    actions: tuple[SecurityAction, ...] = ()

    def find_action(self, action_name: str) -> SecurityAction | None:
        for action in self.actions:
            if action.name == action_name:
                return action
        return None


class AccessControlEntry(_WireModel):
    """One principal's allow/deny bits on a token."""

    descriptor: str
    allow: int = 0
    deny: int = 0
    extended_info: dict[str, Any] = Field(default_factory=dict, alias="extendedInfo")

    def to_wire(self) -> dict[str, Any]:
        return {
            "descriptor": self.descriptor,
            "allow": self.allow,
            "deny": self.deny,
            "extendedInfo": dict(self.extended_info),
        }


class AccessControlList(BaseModel):
    """All ACEs of one token plus its inheritance flag."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    token: str
    inherit_permissions: bool = Field(default=True, alias="inheritPermissions")
    entries: dict[str, AccessControlEntry] = Field(default_factory=dict, alias="acesDictionary")

    def to_wire(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "inheritPermissions": self.inherit_permissions,
            "acesDictionary": {key: ace.to_wire() for key, ace in self.entries.items()},
        }


class GraphGroup(_WireModel):
    """A group as listed by the native directory."""

    display_name: str = Field(alias="displayName")
    descriptor: str
    origin_id: str = Field(default="", alias="originId")
    origin: str = ""
    principal_name: str = Field(default="", alias="principalName")


class GraphMembership(_WireModel):
    """A direct membership edge in the native directory."""

    container_descriptor: str = Field(default="", alias="containerDescriptor")
    member_descriptor: str = Field(alias="memberDescriptor")


class UserIdentity(_WireModel):
    """A user resolved through its organisation entitlement."""

    id: str
    descriptor: str
    origin_id: str = Field(alias="originId")
    principal_name: str = Field(default="", alias="principalName")


class ProjectScope(_WireModel):
    """Scope context for group lookups: the project whose groups are visible."""

    project_id: str
    project_name: str = ""


__all__ = [
    "AccessControlEntry",
    "AccessControlList",
    "GraphGroup",
    "GraphMembership",
    "ProjectScope",
    "SecurityAction",
    "SecurityNamespace",
    "UserIdentity",
]
