"""In-memory collaborators shared by the test suite."""

from __future__ import annotations

from typing import Any, Optional

import pytest

from adoaccess.config import ConsistencyConfig
from adoaccess.identity.descriptors import EXTERNAL_GROUP_TAG, NATIVE_GROUP_TAG, encode_descriptor
from adoaccess.identity.resolver import DescriptorResolver
from adoaccess.interfaces import ApiResponse, DirectoryApi, GraphApi, SecurityApi
from adoaccess.models import GraphGroup, GraphMembership, ProjectScope, UserIdentity
from adoaccess.security.namespaces import NamespaceRegistry
from adoaccess.security.writer import AceWriter

GIT = "Git"
LIBRARY = "b7e84409-6553-448a-bbb2-af228e07cbeb"

NAMESPACES_PAYLOAD: list[dict[str, Any]] = [
    {
        "namespaceId": GIT,
        "name": "Git Repositories",
        "displayName": "Git Repositories",
        "dataspaceCategory": "Git",
        "separatorValue": "/",
        "actions": [
            {"bit": 1, "name": "Read", "displayName": "Read", "namespaceId": GIT},
            {"bit": 2, "name": "Write", "displayName": "Contribute", "namespaceId": GIT},
            {"bit": 8, "name": "Administer", "displayName": "Administer", "namespaceId": GIT},
            {"bit": 1 << 31, "name": "Bypass", "displayName": "Bypass policies", "namespaceId": GIT},
        ],
    },
    {
        "namespaceId": LIBRARY,
        "name": "Library",
        "displayName": "Library",
        "dataspaceCategory": "Library",
        "separatorValue": "/",
        "actions": [
            {"bit": 1, "name": "View", "namespaceId": LIBRARY},
            {"bit": 2, "name": "Administer", "namespaceId": LIBRARY},
            {"bit": 16, "name": "Use", "namespaceId": LIBRARY},
        ],
    },
]


def native(sid: str) -> str:
    return encode_descriptor(sid, NATIVE_GROUP_TAG)


def external(sid: str) -> str:
    return encode_descriptor(sid, EXTERNAL_GROUP_TAG)


def user(sid: str) -> str:
    return encode_descriptor(sid, "aad")


class FakeSecurityApi(SecurityApi):
    """ACL store: merge ORs bits into an existing entry, replace overwrites it.

    ``reject`` maps a token to the status code every write on it answers with.
    ``visible_after`` hides a token's ACL from the first N reads.
    """

    def __init__(self, namespaces: Optional[list[dict[str, Any]]] = None) -> None:
        self.namespaces = NAMESPACES_PAYLOAD if namespaces is None else namespaces
        self.acls: dict[tuple[str, str], dict[str, Any]] = {}
        self.reject: dict[str, int] = {}
        self.visible_after: dict[str, int] = {}
        self.reads: dict[str, int] = {}
        self.namespace_fetches = 0
        self.calls: list[tuple[str, str, str]] = []

    def _acl(self, namespace_id: str, token: str) -> dict[str, Any]:
        return self.acls.setdefault(
            (namespace_id, token),
            {"token": token, "inheritPermissions": True, "acesDictionary": {}},
        )

    def entry(self, namespace_id: str, token: str, identity: str) -> Optional[dict[str, Any]]:
        acl = self.acls.get((namespace_id, token))
        return None if acl is None else acl["acesDictionary"].get(identity)

    async def list_security_namespaces(self) -> list[dict[str, Any]]:
        self.namespace_fetches += 1
        return self.namespaces

    async def get_access_control_lists(self, namespace_id: str, token: str) -> list[dict[str, Any]]:
        self.reads[token] = self.reads.get(token, 0) + 1
        if self.reads[token] <= self.visible_after.get(token, 0):
            return []
        acl = self.acls.get((namespace_id, token))
        return [] if acl is None else [acl]

    async def set_access_control_lists(self, namespace_id: str, acls: list[dict[str, Any]]) -> ApiResponse:
        self.calls.append(("set_acl", namespace_id, acls[0]["token"]))
        if acls[0]["token"] in self.reject:
            return ApiResponse(self.reject[acls[0]["token"]], {"message": "rejected"})
        for acl in acls:
            self.acls[(namespace_id, acl["token"])] = acl
        return ApiResponse(204)

    async def set_access_control_entries(self, namespace_id: str, body: dict[str, Any]) -> ApiResponse:
        token = body["token"]
        self.calls.append(("set_aces", namespace_id, token))
        if token in self.reject:
            return ApiResponse(self.reject[token], {"message": "rejected"})
        aces = self._acl(namespace_id, token)["acesDictionary"]
        for ace in body["accessControlEntries"]:
            current = aces.get(ace["descriptor"])
            if body["merge"] and current is not None:
                aces[ace["descriptor"]] = {
                    **current,
                    "allow": current["allow"] | ace["allow"],
                    "deny": current["deny"] | ace["deny"],
                }
            else:
                aces[ace["descriptor"]] = dict(ace)
        return ApiResponse(200, {"count": len(body["accessControlEntries"])})

    async def delete_access_control_entries(
        self, namespace_id: str, token: str, identity_descriptors: list[str]
    ) -> ApiResponse:
        self.calls.append(("delete_aces", namespace_id, token))
        if token in self.reject:
            return ApiResponse(self.reject[token])
        aces = self._acl(namespace_id, token)["acesDictionary"]
        for identity in identity_descriptors:
            aces.pop(identity, None)
        return ApiResponse(200)

    async def delete_access_control_lists(self, namespace_id: str, token: str, recurse: bool = False) -> ApiResponse:
        self.calls.append(("delete_acl", namespace_id, token))
        if token in self.reject:
            return ApiResponse(self.reject[token])
        for key in list(self.acls):
            ns, acl_token = key
            if ns == namespace_id and (acl_token == token or (recurse and acl_token.startswith(token + "/"))):
                del self.acls[key]
        return ApiResponse(204)


class FakeGraphApi(GraphApi):
    """Native directory with project-scoped and organisation-wide groups."""

    def __init__(self) -> None:
        self.scopes: dict[str, str] = {}
        self.project_groups: dict[str, list[GraphGroup]] = {}
        self.org_groups: list[GraphGroup] = []
        self.memberships: dict[str, list[str]] = {}
        self.user_origin_ids: dict[str, str] = {}
        self.entitlements: dict[str, list[UserIdentity]] = {}
        self.membership_calls: list[str] = []
        self.scope_calls = 0

    def add_project(self, project_id: str) -> ProjectScope:
        self.scopes[project_id] = f"scp.{project_id}"
        self.project_groups.setdefault(f"scp.{project_id}", [])
        return ProjectScope(project_id=project_id, project_name=project_id.upper())

    def add_group(
        self,
        scope: Optional[ProjectScope],
        name: str,
        descriptor: str,
        origin_id: str = "",
    ) -> GraphGroup:
        group = GraphGroup(display_name=name, descriptor=descriptor, origin_id=origin_id or name)
        if scope is None:
            self.org_groups.append(group)
        else:
            self.project_groups[self.scopes[scope.project_id]].append(group)
        return group

    async def get_scope_descriptor(self, project_id: str) -> str:
        self.scope_calls += 1
        return self.scopes[project_id]

    async def list_groups(self, scope_descriptor: Optional[str] = None) -> list[GraphGroup]:
        if scope_descriptor is None:
            return list(self.org_groups) + [g for groups in self.project_groups.values() for g in groups]
        return list(self.project_groups.get(scope_descriptor, []))

    async def list_memberships(self, descriptor: str, direction: str = "down") -> list[GraphMembership]:
        self.membership_calls.append(descriptor)
        return [
            GraphMembership(container_descriptor=descriptor, member_descriptor=member)
            for member in self.memberships.get(descriptor, [])
        ]

    async def get_user_origin_id(self, descriptor: str) -> str:
        return self.user_origin_ids[descriptor]

    async def find_user_entitlements(self, principal_name: str) -> list[UserIdentity]:
        return list(self.entitlements.get(principal_name, []))


class FakeDirectoryApi(DirectoryApi):
    """External directory: direct members per group object id."""

    def __init__(self) -> None:
        self.members: dict[str, set[str]] = {}
        self.calls: list[tuple[str, str]] = []

    async def is_direct_member(self, group_origin_id: str, member_origin_id: str) -> bool:
        self.calls.append((group_origin_id, member_origin_id))
        return member_origin_id in self.members.get(group_origin_id, set())


class RecordingSleep:
    """Stands in for asyncio.sleep and records the requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def security_api() -> FakeSecurityApi:
    return FakeSecurityApi()


@pytest.fixture
def graph_api() -> FakeGraphApi:
    return FakeGraphApi()


@pytest.fixture
def directory_api() -> FakeDirectoryApi:
    return FakeDirectoryApi()


@pytest.fixture
def registry(security_api: FakeSecurityApi) -> NamespaceRegistry:
    return NamespaceRegistry(security_api)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def writer(security_api: FakeSecurityApi, registry: NamespaceRegistry, sleep: RecordingSleep) -> AceWriter:
    consistency = ConsistencyConfig(attempts=4, initial_delay_s=0.5, multiplier=2.0, max_delay_s=1.5)
    return AceWriter(security_api, registry, consistency=consistency, sleep=sleep)


@pytest.fixture
def resolver(graph_api: FakeGraphApi) -> DescriptorResolver:
    return DescriptorResolver(graph_api)


@pytest.fixture
def scope(graph_api: FakeGraphApi) -> ProjectScope:
    return graph_api.add_project("p1")
