"""Tests for well-known namespaces, tokens and policy application."""

from __future__ import annotations

import json
import re

import pytest

from adoaccess.config import GroupPrefixConfig
from adoaccess.exceptions import GroupNotFoundError, RemoteRejectionError, TemplateError
from adoaccess.identity.descriptors import identity_descriptor
from adoaccess.identity.resolver import DescriptorResolver
from adoaccess.models import ProjectScope
from adoaccess.permissions import (
    EMPTY_TEAM_ID,
    FailurePolicy,
    GroupScope,
    NamespacePermission,
    Namespaces,
    ObjectPermission,
    PolicyApplier,
    ProjectPermission,
    SimpleObjectPermission,
    Tokens,
    load_simple_rights,
)
from adoaccess.security.namespaces import NamespaceRegistry
from adoaccess.security.writer import AceWriter, WriteOperation

from conftest import GIT, LIBRARY, FakeGraphApi, FakeSecurityApi, native

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")


class TestNamespaces:
    """Tests for Namespaces constants."""

    def test_ids_are_uuids(self) -> None:
        for attr in dir(Namespaces):
            if attr.startswith("_") or attr == "ALL":
                continue
            value = getattr(Namespaces, attr)
            assert UUID_RE.match(value), f"{attr}={value} is not a namespace id"
            assert value in Namespaces.ALL, f"{attr} missing from ALL"

    def test_unique_ids(self) -> None:
        values = [getattr(Namespaces, a) for a in dir(Namespaces) if not a.startswith("_") and a != "ALL"]
        assert len(values) == len(set(values)), "Duplicate namespace ids found"


class TestTokens:
    """Tests for Tokens builders."""

    def test_builders(self) -> None:
        assert Tokens.git_project("p1") == "repoV2/p1"
        assert Tokens.git_repository("p1", "r1") == "repoV2/p1/r1"
        assert Tokens.build_definition("p1", "/Team A/") == "p1/Team A"
        assert Tokens.release_definition("p1", "Team A") == "p1/Team A"
        assert Tokens.service_endpoint("p1", "e1") == "endpoints/p1/e1"
        assert Tokens.library("p1", 7) == "Library/p1/VariableGroup/7"
        assert Tokens.environment("p1", 3) == "Environments/p1/3"
        assert Tokens.agent_queue("p1", 12) == "AgentQueues/p1/12"
        assert Tokens.deployment_group("p1", 4) == "MachineGroups/p1/4"

    def test_dashboard(self) -> None:
        assert Tokens.dashboard("p1", "t1") == "$/p1/t1"
        assert Tokens.dashboard("p1", dashboard_id="d1") == f"$/p1/{EMPTY_TEAM_ID}/d1"

    def test_ancestors(self) -> None:
        """Test that the inheritance chain is listed outermost first."""
        assert Tokens.ancestors("repoV2/p1/r1") == ["repoV2", "repoV2/p1"]
        assert Tokens.ancestors("repoV2") == []
        assert Tokens.ancestors("a.b.c", separator=".") == ["a", "a.b"]

    def test_is_descendant(self) -> None:
        assert Tokens.is_descendant("repoV2/p1/r1", "repoV2/p1")
        assert not Tokens.is_descendant("repoV2/p10", "repoV2/p1")
        assert not Tokens.is_descendant("repoV2/p1", "repoV2/p1")


@pytest.fixture
def applier(registry: NamespaceRegistry, resolver: DescriptorResolver, writer: AceWriter) -> PolicyApplier:
    return PolicyApplier(registry, resolver, writer, prefixes=GroupPrefixConfig(security="SEC-", team="TM-"))


@pytest.fixture
def groups(graph_api: FakeGraphApi, scope: ProjectScope) -> dict[str, str]:
    names = {
        "Contributors": native("S-contrib"),
        "TM-Alpha": native("S-alpha"),
        "TM-Alpha Admins": native("S-alpha-admins"),
        "SEC-Readers": native("S-readers"),
    }
    for name, descriptor in names.items():
        graph_api.add_group(scope, name, descriptor)
    graph_api.add_group(None, "Project Collection Valid Users", native("S-pcvu"))
    return names


def _entry(api: FakeSecurityApi, namespace_id: str, token: str, descriptor: str) -> dict:
    return api.entry(namespace_id, token, identity_descriptor(descriptor))


class TestObjectGroupName:
    """Tests for how object roles name their group."""

    def test_scopes(self) -> None:
        project = ObjectPermission(group="Contributors", group_scope=GroupScope.PROJECT_GROUP)
        team_role = ObjectPermission(group=" Admins", group_scope=GroupScope.TEAM_ROLE)
        group = ObjectPermission(group_scope=GroupScope.GROUP)
        assert PolicyApplier.object_group_name(project, None) == "Contributors"
        assert PolicyApplier.object_group_name(team_role, "TM-Alpha") == "TM-Alpha Admins"
        assert PolicyApplier.object_group_name(group, "TM-Alpha") == "TM-Alpha"

    @pytest.mark.parametrize(
        "role",
        [
            ObjectPermission(group="X", group_scope=GroupScope.TEAM_ROLE),
            ObjectPermission(group_scope=GroupScope.GROUP),
            ObjectPermission(group="X", group_scope=GroupScope.ORGANISATION_GROUP),
        ],
    )
    def test_unresolvable(self, role: ObjectPermission) -> None:
        with pytest.raises(TemplateError, match="Error getting descriptor"):
            PolicyApplier.object_group_name(role, None)


class TestApplyObjectPermissions:
    """Tests for apply_object_permissions."""

    @pytest.mark.asyncio
    async def test_applies_each_role(
        self,
        applier: PolicyApplier,
        security_api: FakeSecurityApi,
        scope: ProjectScope,
        groups: dict[str, str],
    ) -> None:
        token = Tokens.git_repository("p1", "r1")
        roles = [
            ObjectPermission(group="Contributors", group_scope=GroupScope.PROJECT_GROUP, allow=["Read"]),
            ObjectPermission(group=" Admins", group_scope=GroupScope.TEAM_ROLE, allow=["Read", "Write"], deny=["Bypass"]),
            ObjectPermission(group_scope=GroupScope.GROUP, allow=["Administer"]),
        ]

        report = await applier.apply_object_permissions(scope, GIT, token, roles, permission_group="TM-Alpha")

        assert report.ok
        assert len(report.results) == 3
        assert _entry(security_api, GIT, token, groups["Contributors"])["allow"] == 1
        admins = _entry(security_api, GIT, token, groups["TM-Alpha Admins"])
        assert (admins["allow"], admins["deny"]) == (3, 1 << 31)
        assert _entry(security_api, GIT, token, groups["TM-Alpha"])["allow"] == 8

    @pytest.mark.asyncio
    async def test_role_merge_flag(
        self,
        applier: PolicyApplier,
        security_api: FakeSecurityApi,
        scope: ProjectScope,
        groups: dict[str, str],
    ) -> None:
        """Test that Merge=false replaces what an earlier role wrote."""
        token = Tokens.git_project("p1")
        roles = [
            ObjectPermission(group="Contributors", group_scope=GroupScope.PROJECT_GROUP, allow=["Read", "Write"]),
            ObjectPermission(group="Contributors", group_scope=GroupScope.PROJECT_GROUP, merge=False, allow=["Read"]),
        ]
        await applier.apply_object_permissions(scope, GIT, token, roles)
        assert _entry(security_api, GIT, token, groups["Contributors"])["allow"] == 1

    @pytest.mark.asyncio
    async def test_missing_group_raises(
        self, applier: PolicyApplier, scope: ProjectScope, groups: dict[str, str]
    ) -> None:
        roles = [ObjectPermission(group="Nobody", group_scope=GroupScope.PROJECT_GROUP, allow=["Read"])]
        with pytest.raises(GroupNotFoundError):
            await applier.apply_object_permissions(scope, GIT, "repoV2/p1", roles)


class TestApplyProjectPermissions:
    """Tests for apply_project_permissions."""

    @pytest.mark.asyncio
    async def test_project_and_organisation_groups(
        self,
        applier: PolicyApplier,
        security_api: FakeSecurityApi,
        scope: ProjectScope,
        groups: dict[str, str],
    ) -> None:
        roles = [
            ProjectPermission(
                group="Readers",
                group_scope=GroupScope.PROJECT_GROUP,
                namespaces=[
                    NamespacePermission(namespace_id=GIT, token_prefix="repoV2/", allow=["Read"]),
                    NamespacePermission(namespace_id=LIBRARY, token_prefix="Library/", allow=["View"]),
                ],
            ),
            ProjectPermission(
                group="Project Collection Valid Users",
                group_scope=GroupScope.ORGANISATION_GROUP,
                namespaces=[NamespacePermission(namespace_id=GIT, token_prefix="repoV2/", deny=["Administer"])],
            ),
        ]

        report = await applier.apply_project_permissions(scope, roles)

        assert report.ok
        assert len(report.results) == 3
        assert _entry(security_api, GIT, "repoV2/p1", groups["SEC-Readers"])["allow"] == 1
        assert _entry(security_api, LIBRARY, "Library/p1", groups["SEC-Readers"])["allow"] == 1
        assert _entry(security_api, GIT, "repoV2/p1", native("S-pcvu"))["deny"] == 8

    @pytest.mark.asyncio
    async def test_always_merges(
        self,
        applier: PolicyApplier,
        security_api: FakeSecurityApi,
        scope: ProjectScope,
        groups: dict[str, str],
    ) -> None:
        role = ProjectPermission(
            group="Readers",
            group_scope=GroupScope.PROJECT_GROUP,
            namespaces=[NamespacePermission(namespace_id=GIT, token_prefix="repoV2/", allow=["Read"])],
        )
        await applier.apply_project_permissions(scope, [role])
        role2 = role.model_copy(
            update={"namespaces": [NamespacePermission(namespace_id=GIT, token_prefix="repoV2/", allow=["Write"])]}
        )
        await applier.apply_project_permissions(scope, [role2])
        assert _entry(security_api, GIT, "repoV2/p1", groups["SEC-Readers"])["allow"] == 3


class TestApplySimpleEntity:
    """Tests for apply_simple_entity_permission."""

    @pytest.mark.asyncio
    async def test_allow_only_with_inheritance(
        self,
        applier: PolicyApplier,
        security_api: FakeSecurityApi,
        scope: ProjectScope,
        groups: dict[str, str],
    ) -> None:
        token = Tokens.library("p1", 7)
        report = await applier.apply_simple_entity_permission(scope, LIBRARY, token, "TM-Alpha", ["View", "Use"])
        assert [r.operation for r in report.results] == [WriteOperation.UPSERT_ENTRY]
        entry = _entry(security_api, LIBRARY, token, groups["TM-Alpha"])
        assert (entry["allow"], entry["deny"]) == (17, 0)

    @pytest.mark.asyncio
    async def test_disable_inheritance_first(
        self,
        applier: PolicyApplier,
        security_api: FakeSecurityApi,
        scope: ProjectScope,
        groups: dict[str, str],
    ) -> None:
        token = Tokens.library("p1", 7)
        await applier.apply_simple_entity_permission(scope, LIBRARY, token, "Contributors", ["View"])

        report = await applier.apply_simple_entity_permission(
            scope, LIBRARY, token, "TM-Alpha", ["Administer"], inherit_permissions=False
        )

        assert [r.operation for r in report.results] == [
            WriteOperation.DISABLE_INHERITANCE,
            WriteOperation.UPSERT_ENTRY,
        ]
        assert security_api.acls[(LIBRARY, token)]["inheritPermissions"] is False
        assert _entry(security_api, LIBRARY, token, groups["TM-Alpha"])["allow"] == 2

class TestApplySimpleRights:
    """Tests for apply_simple_rights (owner and contributor bundles)."""

    RIGHTS = SimpleObjectPermission(owner_rights=["View", "Use", "Administer"], contributor_rights=["View"])

    @pytest.mark.asyncio
    async def test_owner_then_contributors(
        self,
        applier: PolicyApplier,
        security_api: FakeSecurityApi,
        scope: ProjectScope,
        groups: dict[str, str],
    ) -> None:
        token = Tokens.library("p1", 7)
        report = await applier.apply_simple_rights(scope, LIBRARY, token, self.RIGHTS, owner_group="TM-Alpha")

        assert report.ok
        assert [r.operation for r in report.results] == [WriteOperation.UPSERT_ENTRY, WriteOperation.UPSERT_ENTRY]
        assert _entry(security_api, LIBRARY, token, groups["TM-Alpha"])["allow"] == 19
        assert _entry(security_api, LIBRARY, token, groups["Contributors"])["allow"] == 1

    @pytest.mark.asyncio
    async def test_rights_loaded_from_template(
        self,
        applier: PolicyApplier,
        security_api: FakeSecurityApi,
        scope: ProjectScope,
        groups: dict[str, str],
        tmp_path,
    ) -> None:
        path = tmp_path / "simple.json"
        path.write_text(
            json.dumps({"Library": {"OwnerRights": ["Administer"], "ContributorRights": ["Use"]}}),
            encoding="utf-8",
        )
        rights = load_simple_rights(path)
        token = Tokens.library("p1", 9)

        await applier.apply_simple_rights(scope, LIBRARY, token, rights.library, owner_group="TM-Alpha")

        assert _entry(security_api, LIBRARY, token, groups["TM-Alpha"])["allow"] == 2
        assert _entry(security_api, LIBRARY, token, groups["Contributors"])["allow"] == 16

    @pytest.mark.asyncio
    async def test_inheritance_disabled_once(
        self,
        applier: PolicyApplier,
        security_api: FakeSecurityApi,
        scope: ProjectScope,
        groups: dict[str, str],
    ) -> None:
        token = Tokens.library("p1", 7)
        await applier.apply_simple_entity_permission(scope, LIBRARY, token, "Contributors", ["View"])

        report = await applier.apply_simple_rights(
            scope, LIBRARY, token, self.RIGHTS, owner_group="TM-Alpha", inherit_permissions=False
        )

        assert [r.operation for r in report.results] == [
            WriteOperation.DISABLE_INHERITANCE,
            WriteOperation.UPSERT_ENTRY,
            WriteOperation.UPSERT_ENTRY,
        ]
        assert security_api.acls[(LIBRARY, token)]["inheritPermissions"] is False

    @pytest.mark.asyncio
    async def test_continue_collects_both_rejections(
        self,
        registry: NamespaceRegistry,
        resolver: DescriptorResolver,
        writer: AceWriter,
        security_api: FakeSecurityApi,
        scope: ProjectScope,
        groups: dict[str, str],
    ) -> None:
        token = Tokens.library("p1", 7)
        security_api.reject[token] = 403
        applier = PolicyApplier(registry, resolver, writer, failure_policy=FailurePolicy.CONTINUE)

        report = await applier.apply_simple_rights(scope, LIBRARY, token, self.RIGHTS, owner_group="TM-Alpha")

        assert len(report.failures) == 2
        assert not report.ok



class TestFailurePolicy:
    """Tests for ABORT / CONTINUE handling of rejected writes."""

    def _roles(self) -> list[ObjectPermission]:
        return [
            ObjectPermission(group="Contributors", group_scope=GroupScope.PROJECT_GROUP, allow=["Read"]),
            ObjectPermission(group="TM-Alpha", group_scope=GroupScope.PROJECT_GROUP, allow=["Write"]),
        ]

    @pytest.mark.asyncio
    async def test_abort_raises_on_first_rejection(
        self,
        applier: PolicyApplier,
        security_api: FakeSecurityApi,
        scope: ProjectScope,
        groups: dict[str, str],
    ) -> None:
        security_api.reject["repoV2/p1"] = 400
        with pytest.raises(RemoteRejectionError):
            await applier.apply_object_permissions(scope, GIT, "repoV2/p1", self._roles())
        assert [call[0] for call in security_api.calls] == ["set_aces"]

    @pytest.mark.asyncio
    async def test_continue_records_and_goes_on(
        self,
        registry: NamespaceRegistry,
        resolver: DescriptorResolver,
        writer: AceWriter,
        security_api: FakeSecurityApi,
        scope: ProjectScope,
        groups: dict[str, str],
    ) -> None:
        applier = PolicyApplier(registry, resolver, writer, failure_policy=FailurePolicy.CONTINUE)
        security_api.reject["repoV2/p1"] = 400

        report = await applier.apply_object_permissions(scope, GIT, "repoV2/p1", self._roles())

        assert report.ok is False
        assert len(report.results) == 2
        assert len(report.failures) == 2
        with pytest.raises(RemoteRejectionError):
            report.raise_for_status()
