"""Transitive group membership across the native and external directories.

Membership is walked "down" from a native group. Each direct member becomes a
:data:`MembershipEdge`:

- :class:`NativeEdge` — a nested native group, walked recursively
- :class:`ExternalEdge` — an external directory group, checked for a
  *direct* member with the target origin id (nested external groups are not
  walked)
- :class:`LeafEdge` — a user or service principal

The walk is sequential (one request in flight) and short-circuits on the first
hit. A ``path`` of descriptors on the current branch detects cycles; an
``explored`` set skips groups already walked through another branch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from ..config import CyclePolicy, GroupPrefixConfig
from ..exceptions import MalformedDescriptorError, MembershipCycleError
from ..interfaces import DirectoryApi, GraphApi
from ..models import ProjectScope
from .descriptors import SubjectKind, subject_kind
from .resolver import DescriptorResolver, GroupType, qualify_group_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NativeEdge:
    descriptor: str


@dataclass(frozen=True)
class ExternalEdge:
    descriptor: str


@dataclass(frozen=True)
class LeafEdge:
    descriptor: str


MembershipEdge = Union[NativeEdge, ExternalEdge, LeafEdge]


def classify_edge(member_descriptor: str) -> MembershipEdge:
    try:
        kind = subject_kind(member_descriptor)
    except MalformedDescriptorError:
        # Untagged members are never groups
        logger.debug("Member descriptor '%s' has no tag; treating it as a leaf.", member_descriptor)
        return LeafEdge(member_descriptor)
    if kind == SubjectKind.NATIVE_GROUP:
        return NativeEdge(member_descriptor)
    if kind == SubjectKind.EXTERNAL_GROUP:
        return ExternalEdge(member_descriptor)
    return LeafEdge(member_descriptor)


@dataclass
class _Walk:
    """Mutable state of one is_member() call."""

    target_origin_id: str
    path: list[str] = field(default_factory=list)
    explored: set[str] = field(default_factory=set)


class MembershipResolver:
    """Answers "is principal X a (transitive) member of group G".

    Args:
        graph: Native directory.
        directory: External directory.
        resolver: Descriptor resolver (native -> external origin id mapping).
        cycle_policy: Behaviour when a native group contains itself.
        match_direct_users: Also compare the origin id of plain user members
            of native groups. Off by default: the walk only follows group
            hierarchies.
    """

    def __init__(
        self,
        graph: GraphApi,
        directory: DirectoryApi,
        resolver: DescriptorResolver,
        cycle_policy: CyclePolicy = CyclePolicy.RAISE,
        match_direct_users: bool = False,
        prefixes: Optional[GroupPrefixConfig] = None,
    ) -> None:
        self._graph = graph
        self._directory = directory
        self._resolver = resolver
        self._cycle_policy = cycle_policy
        self._match_direct_users = match_direct_users
        self._prefixes = prefixes or GroupPrefixConfig()

    async def direct_members(self, group_descriptor: str) -> list[MembershipEdge]:
        memberships = await self._graph.list_memberships(group_descriptor, direction="down")
        return [classify_edge(m.member_descriptor) for m in memberships]

    async def is_member(self, scope: ProjectScope, group_descriptor: str, target_origin_id: str) -> bool:
        """True when ``target_origin_id`` is reachable below ``group_descriptor``.

        Raises:
            MembershipCycleError: the native group graph loops and the cycle
                policy is RAISE.
        """
        walk = _Walk(target_origin_id=target_origin_id)
        return await self._walk(scope, group_descriptor, walk)

    async def _walk(self, scope: ProjectScope, group_descriptor: str, walk: _Walk) -> bool:
        walk.path.append(group_descriptor)
        try:
            for edge in await self.direct_members(group_descriptor):
                if await self._visit(scope, edge, walk):
                    return True
            return False
        finally:
            walk.path.pop()
            walk.explored.add(group_descriptor)

    async def _visit(self, scope: ProjectScope, edge: MembershipEdge, walk: _Walk) -> bool:
        if isinstance(edge, ExternalEdge):
            group_origin_id = await self._resolver.resolve_group_origin_id(scope, edge.descriptor)
            return await self._directory.is_direct_member(group_origin_id, walk.target_origin_id)

        if isinstance(edge, NativeEdge):
            if edge.descriptor in walk.path:
                cycle = walk.path[walk.path.index(edge.descriptor):] + [edge.descriptor]
                if self._cycle_policy == CyclePolicy.RAISE:
                    raise MembershipCycleError(cycle)
                logger.warning("Skipping membership cycle: %s", " -> ".join(cycle))
                return False
            if edge.descriptor in walk.explored:
                return False
            return await self._walk(scope, edge.descriptor, walk)

        if self._match_direct_users:
            return await self._graph.get_user_origin_id(edge.descriptor) == walk.target_origin_id
        return False

    async def is_user_member_of_group(
        self,
        scope: ProjectScope,
        principal_name: str,
        group_name: str,
        group_type: GroupType,
    ) -> bool:
        """Resolve user and (prefixed) group by name, then walk the membership."""
        user = await self._resolver.resolve_user_origin_id(principal_name)
        group_name = qualify_group_name(group_name, group_type, self._prefixes)
        group_descriptor = await self._resolver.resolve_group_descriptor(scope, group_name)

        is_member = await self.is_member(scope, group_descriptor, user.origin_id)
        logger.debug("'%s' member of '%s' is %s", principal_name, group_name, is_member)
        return is_member

    async def count_direct_members(self, scope: ProjectScope, group_name: str, group_type: GroupType) -> int:
        group_name = qualify_group_name(group_name, group_type, self._prefixes)
        group_descriptor = await self._resolver.resolve_group_descriptor(scope, group_name)
        return len(await self._graph.list_memberships(group_descriptor, direction="down"))


__all__ = [
    "ExternalEdge",
    "LeafEdge",
    "MembershipEdge",
    "MembershipResolver",
    "NativeEdge",
    "classify_edge",
]
