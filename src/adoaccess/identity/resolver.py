"""Descriptor resolver: human names -> directory descriptors and origin ids."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from ..config import GroupPrefixConfig
from ..exceptions import GroupNotFoundError, UserNotFoundError
from ..interfaces import GraphApi
from ..models import GraphGroup, ProjectScope, UserIdentity

logger = logging.getLogger(__name__)


class GroupType(str, Enum):
    """Kinds of generated groups; TEAM and PRODUCT carry a naming prefix."""

    TEAM = "team"
    PRODUCT = "product"
    PROJECT = "project"
    ORGANISATION = "organisation"


def qualify_group_name(name: str, group_type: GroupType, prefixes: GroupPrefixConfig) -> str:
    """Apply the configured naming prefix for ``group_type``."""
    if group_type == GroupType.TEAM:
        return prefixes.team + name
    if group_type == GroupType.PRODUCT:
        return prefixes.product + name
    return name


class DescriptorResolver:
    """Looks up groups and users in the native directory.

    Group names are matched exactly; callers must apply any team, product or
    security prefix first (see :func:`qualify_group_name`). Only
    :meth:`group_exists` qualifies the name itself.
    """

    def __init__(self, graph: GraphApi, prefixes: Optional[GroupPrefixConfig] = None) -> None:
        self._graph = graph
        self._prefixes = prefixes or GroupPrefixConfig()
        self._scope_descriptors: dict[str, str] = {}

    async def scope_descriptor(self, scope: ProjectScope) -> str:
        descriptor = self._scope_descriptors.get(scope.project_id)
        if descriptor is None:
            descriptor = await self._graph.get_scope_descriptor(scope.project_id)
            self._scope_descriptors[scope.project_id] = descriptor
        return descriptor

    async def _groups(self, scope: ProjectScope, project_only: bool) -> list[GraphGroup]:
        scope_descriptor = await self.scope_descriptor(scope) if project_only else None
        return await self._graph.list_groups(scope_descriptor)

    async def resolve_group(self, scope: ProjectScope, name: str, project_only: bool = True) -> GraphGroup:
        """Return the group whose display name equals ``name``.

        Raises:
            GroupNotFoundError: no exact match in the scope.
        """
        for group in await self._groups(scope, project_only):
            if group.display_name == name:
                return group
        raise GroupNotFoundError(
            f"Group '{name}' does not exist.",
            group=name,
            project_id=scope.project_id,
            project_only=project_only,
        )

    async def resolve_group_descriptor(self, scope: ProjectScope, name: str, project_only: bool = True) -> str:
        group = await self.resolve_group(scope, name, project_only)
        return group.descriptor

    async def group_exists(
        self,
        scope: ProjectScope,
        name: str,
        group_type: GroupType = GroupType.PROJECT,
        project_only: bool = True,
    ) -> bool:
        """True when the group, named with its ``group_type`` prefix, is visible."""
        name = qualify_group_name(name, group_type, self._prefixes)
        try:
            await self.resolve_group(scope, name, project_only)
        except GroupNotFoundError:
            return False
        return True

    async def resolve_group_origin_id(self, scope: ProjectScope, descriptor: str) -> str:
        """Origin id of the project-visible group with ``descriptor``.

        This is the native -> external mapping: for an external directory
        group the origin id is its object id in that directory.
        """
        for group in await self._groups(scope, project_only=True):
            if group.descriptor == descriptor:
                return group.origin_id
        raise GroupNotFoundError(
            f"Could not get originId from group '{descriptor}'.",
            descriptor=descriptor,
            project_id=scope.project_id,
        )

    async def resolve_user_origin_id(self, principal_name: str) -> UserIdentity:
        """Resolve a user principal through its organisation entitlement.

        The first entitlement wins; duplicates are logged, not disambiguated.
        """
        matches = await self._graph.find_user_entitlements(principal_name)
        if not matches:
            raise UserNotFoundError(
                f"User '{principal_name}' has no entitlement in the organisation.",
                principal_name=principal_name,
            )
        if len(matches) > 1:
            logger.warning(
                "%d entitlements match '%s'; using the first (%s).",
                len(matches),
                principal_name,
                matches[0].id,
            )
        identity = matches[0]
        if not identity.principal_name:
            identity = identity.model_copy(update={"principal_name": principal_name})
        logger.info("Retrieved properties for user '%s'", principal_name)
        return identity


__all__ = ["DescriptorResolver", "GroupType", "qualify_group_name"]
