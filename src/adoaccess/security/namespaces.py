"""Namespace registry: the action -> bit catalog of an organisation.

The catalog is fetched once per registry and never invalidated. A registry is
owned by the engine context that built it, so separate organisations (or
tests) never share cached state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Optional

from ..exceptions import (
    ActionNotFoundError,
    CatalogError,
    ConfigurationError,
    NamespaceNotFoundError,
)
from ..interfaces import SecurityApi
from ..models import SecurityAction, SecurityNamespace

logger = logging.getLogger(__name__)


class NamespaceCatalog:
    """Immutable set of security namespaces.

    Lookups are linear scans; catalogs hold a few dozen namespaces.
    """

    __slots__ = ("_namespaces",)

    def __init__(self, namespaces: Iterable[SecurityNamespace]) -> None:
        namespaces = tuple(namespaces)
        for namespace in namespaces:
            seen: dict[int, str] = {}
            for action in namespace.actions:
                if action.bit in seen:
                    raise CatalogError(
                        f"Namespace '{namespace.name}' maps '{seen[action.bit]}' and "
                        f"'{action.name}' to the same bit {action.bit}.",
                        namespace_id=namespace.namespace_id,
                    )
                seen[action.bit] = action.name
        self._namespaces = namespaces

    @classmethod
    def from_payload(cls, payload: Iterable[dict[str, Any]]) -> "NamespaceCatalog":
        return cls(SecurityNamespace.model_validate(item) for item in payload)

    @property
    def namespaces(self) -> tuple[SecurityNamespace, ...]:
        return self._namespaces

    def __len__(self) -> int:
        return len(self._namespaces)

    def get(self, namespace_id: str) -> SecurityNamespace:
        for namespace in self._namespaces:
            if namespace.namespace_id == namespace_id:
                return namespace
        raise NamespaceNotFoundError(
            f"Namespace '{namespace_id}' cannot be found.",
            namespace_id=namespace_id,
        )

    def by_category(self, category_key: str) -> SecurityNamespace:
        for namespace in self._namespaces:
            if namespace.dataspace_category == category_key:
                return namespace
        raise NamespaceNotFoundError(
            f"No namespace with category '{category_key}'.",
            category=category_key,
        )

    def get_action(self, namespace_id: str, action_name: str) -> SecurityAction:
        action = self.get(namespace_id).find_action(action_name)
        if action is None:
            raise ActionNotFoundError(
                f"Action '{action_name}' cannot be found for namespace '{namespace_id}'.",
                namespace_id=namespace_id,
                action=action_name,
            )
        return action


class NamespaceRegistry:
    """Lazily loads the catalog through a SecurityApi and answers lookups.

    Example::

        registry = NamespaceRegistry(security_api)
        action = await registry.get_action(Namespaces.GIT_REPOSITORIES, "GenericRead")
        action.bit  # 2
    """

    def __init__(self, api: Optional[SecurityApi] = None, catalog: Optional[NamespaceCatalog] = None) -> None:
        if api is None and catalog is None:
            raise ConfigurationError("NamespaceRegistry needs a SecurityApi or a prebuilt catalog")
        self._api = api
        self._catalog = catalog
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._catalog is not None

    @property
    def catalog(self) -> NamespaceCatalog:
        if self._catalog is None:
            raise ConfigurationError("Security namespaces have not been loaded yet")
        return self._catalog

    async def load_namespaces(self) -> NamespaceCatalog:
        """Fetch the catalog on first use. Fetch errors propagate unchanged."""
        if self._catalog is not None:
            return self._catalog
        async with self._lock:
            if self._catalog is None and self._api is not None:
                payload = await self._api.list_security_namespaces()
                self._catalog = NamespaceCatalog.from_payload(payload)
                logger.debug("Loaded %d security namespaces.", len(self._catalog))
        return self._catalog

    async def get_action(self, namespace_id: str, action_name: str) -> SecurityAction:
        catalog = await self.load_namespaces()
        return catalog.get_action(namespace_id, action_name)

    async def get_namespace(self, namespace_id: str) -> SecurityNamespace:
        catalog = await self.load_namespaces()
        return catalog.get(namespace_id)

    async def get_namespace_id(self, category_key: str) -> str:
        """Namespace id for a ``dataspaceCategory`` key (e.g. ``"Git"``)."""
        catalog = await self.load_namespaces()
        return catalog.by_category(category_key).namespace_id

    async def get_namespace_name(self, namespace_id: str) -> str:
        catalog = await self.load_namespaces()
        return catalog.get(namespace_id).name


__all__ = ["NamespaceCatalog", "NamespaceRegistry"]
