"""Engine facade: one explicitly constructed context per organisation.

Example::

    config = load_access_config_from_env()
    async with AccessEngine.from_config(config) as engine:
        bits = await engine.compute_bits(Namespaces.GIT_REPOSITORIES, ["GenericRead"])
        result = await engine.writer.upsert_bits(
            Namespaces.GIT_REPOSITORIES, Tokens.git_project(project_id), descriptor, bits
        )
        result.raise_for_status()
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .clients import AzureDevOpsClient, MicrosoftGraphClient
from .config import AccessConfig
from .interfaces import DirectoryApi, GraphApi, SecurityApi
from .identity.membership import MembershipResolver
from .identity.resolver import DescriptorResolver
from .permissions.access import FailurePolicy, PolicyApplier
from .security.bits import PermissionBits, compute_bits
from .security.namespaces import NamespaceRegistry
from .security.writer import AceWriter

logger = logging.getLogger(__name__)


class AccessEngine:
    """Holds the configuration, collaborators and components.

    Components share one namespace registry and one descriptor resolver, so
    their caches live exactly as long as the engine.

    Args:
        config: Access configuration.
        security: ACL store collaborator.
        graph: Native directory collaborator.
        directory: External directory collaborator.
        failure_policy: How the policy applier treats rejected writes.
        match_direct_users: Passed to the membership resolver.
    """

    def __init__(
        self,
        config: AccessConfig,
        security: SecurityApi,
        graph: GraphApi,
        directory: DirectoryApi,
        failure_policy: FailurePolicy = FailurePolicy.ABORT,
        match_direct_users: bool = False,
    ) -> None:
        self.config = config
        self.security = security
        self.graph = graph
        self.directory = directory

        self.registry = NamespaceRegistry(security)
        self.resolver = DescriptorResolver(graph, prefixes=config.prefixes)
        self.writer = AceWriter(security, self.registry, consistency=config.consistency)
        self.membership = MembershipResolver(
            graph,
            directory,
            self.resolver,
            cycle_policy=config.cycle_policy,
            match_direct_users=match_direct_users,
            prefixes=config.prefixes,
        )
        self.policy = PolicyApplier(
            self.registry,
            self.resolver,
            self.writer,
            prefixes=config.prefixes,
            failure_policy=failure_policy,
        )

    @classmethod
    def from_config(
        cls,
        config: AccessConfig,
        failure_policy: FailurePolicy = FailurePolicy.ABORT,
        match_direct_users: bool = False,
    ) -> "AccessEngine":
        """Build the engine with the httpx clients."""
        devops = AzureDevOpsClient(config)
        directory = MicrosoftGraphClient(config.graph, timeout_s=config.timeout_s)
        logger.debug("Created access engine for organisation '%s'", config.organisation)
        return cls(
            config,
            security=devops,
            graph=devops,
            directory=directory,
            failure_policy=failure_policy,
            match_direct_users=match_direct_users,
        )

    async def compute_bits(
        self,
        namespace_id: str,
        allow: Optional[Iterable[str]] = None,
        deny: Optional[Iterable[str]] = None,
    ) -> PermissionBits:
        return await compute_bits(self.registry, namespace_id, allow, deny)

    async def aclose(self) -> None:
        """Close collaborators that own network resources (each once)."""
        closed: set[int] = set()
        for collaborator in (self.security, self.graph, self.directory):
            close = getattr(collaborator, "aclose", None)
            if close is None or id(collaborator) in closed:
                continue
            closed.add(id(collaborator))
            await close()

    async def __aenter__(self) -> "AccessEngine":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = ["AccessEngine"]
