"""Apply permission templates to secured objects.

Resolves each role to a group descriptor, turns its action names into bits
and upserts the ACE. Roles are processed one at a time, in template order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from ..config import GroupPrefixConfig
from ..exceptions import TemplateError
from ..identity.resolver import DescriptorResolver
from ..models import ProjectScope
from ..security.bits import PermissionBits, compute_allow_bits, compute_bits
from ..security.namespaces import NamespaceRegistry
from ..security.writer import AceWriter, WriteResult
from .policy import GroupScope, ObjectPermission, ProjectPermission, SimpleObjectPermission

logger = logging.getLogger(__name__)


class FailurePolicy(str, Enum):
    """What a multi-write operation does when the store rejects a write."""

    ABORT = "abort"  # raise on the first rejection
    CONTINUE = "continue"  # record it and go on


@dataclass
class ApplyReport:
    """Write results of one template application, in write order."""

    results: list[WriteResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results)

    @property
    def failures(self) -> list[WriteResult]:
        return [result for result in self.results if not result.ok]

    def raise_for_status(self) -> "ApplyReport":
        """Raise ``RemoteRejectionError`` for the first rejected write, if any."""
        for result in self.results:
            result.raise_for_status()
        return self


class PolicyApplier:
    """Writes template roles as ACEs.

    Args:
        registry: Namespace registry for action -> bit translation.
        resolver: Group descriptor lookups.
        writer: ACE writer.
        prefixes: Group naming prefixes (the security prefix applies to
            project-level ``ProjectGroup`` roles).
        failure_policy: ABORT raises on the first rejected write; CONTINUE
            records it and keeps going.
    """

    def __init__(
        self,
        registry: NamespaceRegistry,
        resolver: DescriptorResolver,
        writer: AceWriter,
        prefixes: Optional[GroupPrefixConfig] = None,
        failure_policy: FailurePolicy = FailurePolicy.ABORT,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._writer = writer
        self._prefixes = prefixes or GroupPrefixConfig()
        self._failure_policy = failure_policy

    def _record(self, report: ApplyReport, result: WriteResult) -> None:
        report.results.append(result)
        if result.ok:
            return
        if self._failure_policy == FailurePolicy.ABORT:
            result.raise_for_status()
        logger.warning(
            "Continuing after rejected %s on '%s' (HTTP %s).",
            result.operation,
            result.token,
            result.status_code,
        )

    @staticmethod
    def object_group_name(role: ObjectPermission, permission_group: Optional[str]) -> str:
        """Group name an object role refers to.

        Raises:
            TemplateError: the scope needs a ``permission_group`` that was not
                given, or is not valid for object roles.
        """
        if role.group_scope == GroupScope.PROJECT_GROUP and role.group:
            return role.group
        if role.group_scope == GroupScope.TEAM_ROLE and permission_group:
            return permission_group + (role.group or "")
        if role.group_scope == GroupScope.GROUP and permission_group:
            return permission_group
        raise TemplateError(
            f"Error getting descriptor: {role.group_scope.value}",
            group=role.group,
            group_scope=role.group_scope.value,
        )

    async def apply_object_permissions(
        self,
        scope: ProjectScope,
        namespace_id: str,
        token: str,
        roles: Iterable[ObjectPermission],
        permission_group: Optional[str] = None,
    ) -> ApplyReport:
        """Upsert one ACE per role on ``token``, honouring each role's merge flag."""
        report = ApplyReport()
        for role in roles:
            group_name = self.object_group_name(role, permission_group)
            descriptor = await self._resolver.resolve_group_descriptor(scope, group_name)
            bits = await compute_bits(self._registry, namespace_id, role.allow, role.deny)
            result = await self._writer.upsert_bits(namespace_id, token, descriptor, bits, merge=role.merge)
            self._record(report, result)
        return report

    async def apply_project_permissions(
        self, scope: ProjectScope, roles: Iterable[ProjectPermission]
    ) -> ApplyReport:
        """Apply project-level roles; the token is ``token_prefix + project_id``."""
        report = ApplyReport()
        for role in roles:
            if not role.group:
                raise TemplateError("Project role has no group", group_scope=role.group_scope.value)
            project_only = True
            group_name = role.group
            if role.group_scope == GroupScope.ORGANISATION_GROUP:
                project_only = False
            elif role.group_scope == GroupScope.PROJECT_GROUP:
                group_name = self._prefixes.security + role.group

            for namespace in role.namespaces:
                bits = await compute_bits(self._registry, namespace.namespace_id, namespace.allow, namespace.deny)
                descriptor = await self._resolver.resolve_group_descriptor(scope, group_name, project_only)
                token = namespace.token_prefix + scope.project_id
                result = await self._writer.upsert_bits(namespace.namespace_id, token, descriptor, bits, merge=True)
                self._record(report, result)
        logger.info("Applied project security for '%s'", scope.project_name or scope.project_id)
        return report

    async def apply_simple_entity_permission(
        self,
        scope: ProjectScope,
        namespace_id: str,
        token: str,
        group: str,
        allow_names: Iterable[str],
        inherit_permissions: bool = True,
    ) -> ApplyReport:
        """Grant ``group`` the allow-only actions on one entity.

        With ``inherit_permissions=False`` inheritance is switched off first;
        under ABORT a failed switch stops before the grant is written.
        """
        report = ApplyReport()
        descriptor = await self._resolver.resolve_group_descriptor(scope, group)
        allow = await compute_allow_bits(self._registry, namespace_id, allow_names)

        if not inherit_permissions:
            self._record(report, await self._writer.disable_inheritance(namespace_id, token))
        result = await self._writer.upsert_bits(namespace_id, token, descriptor, PermissionBits(allow=allow))
        self._record(report, result)
        return report

    async def apply_simple_rights(
        self,
        scope: ProjectScope,
        namespace_id: str,
        token: str,
        rights: SimpleObjectPermission,
        owner_group: str,
        contributor_group: str = "Contributors",
        inherit_permissions: bool = True,
    ) -> ApplyReport:
        """Grant an entity kind's rights bundle on one entity.

        ``owner_rights`` go to ``owner_group``, then ``contributor_rights`` to
        ``contributor_group``. Inheritance is switched off at most once,
        before the owner grant.
        """
        report = ApplyReport()
        owner = await self.apply_simple_entity_permission(
            scope, namespace_id, token, owner_group, rights.owner_rights, inherit_permissions
        )
        report.results.extend(owner.results)
        contributor = await self.apply_simple_entity_permission(
            scope, namespace_id, token, contributor_group, rights.contributor_rights
        )
        report.results.extend(contributor.results)
        return report


__all__ = [
    "ApplyReport",
    "FailurePolicy",
    "PolicyApplier",
]
