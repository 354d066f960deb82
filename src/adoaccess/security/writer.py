"""ACE writer: create, merge, replace and delete access control entries.

Every write is blind (the current ACL is never read back and diffed) and
returns a :class:`WriteResult`. Rejected writes are reported, never raised
here; the caller decides whether a rejection aborts its operation::

    result = await writer.upsert_entry(ns, token, descriptor, allow=3, deny=0)
    result.raise_for_status()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..config import ConsistencyConfig
from ..exceptions import AccessControlError, AclNotFoundError, RemoteRejectionError
from ..identity.descriptors import identity_descriptor
from ..interfaces import ApiResponse, SecurityApi
from ..logging import get_access_logger
from ..models import AccessControlEntry, AccessControlList
from .bits import PermissionBits
from .namespaces import NamespaceRegistry

logger = logging.getLogger(__name__)


class WriteOperation:
    """Names of the remote write operations."""

    UPSERT_ENTRY = "upsert_entry"
    DELETE_ENTRY = "delete_entry"
    DELETE_ACL = "delete_acl"
    DISABLE_INHERITANCE = "disable_inheritance"


# Status codes the store answers with on success
_EXPECTED_STATUS: dict[str, frozenset[int]] = {
    WriteOperation.UPSERT_ENTRY: frozenset({200}),
    WriteOperation.DELETE_ENTRY: frozenset({200}),
    WriteOperation.DELETE_ACL: frozenset({200, 204}),
    WriteOperation.DISABLE_INHERITANCE: frozenset({200, 204}),
}


@dataclass(frozen=True)
class WriteResult:
    """Outcome of one remote write."""

    operation: str
    namespace_id: str
    token: str
    status_code: int
    ok: bool
    detail: str = ""

    @classmethod
    def from_response(
        cls, operation: str, namespace_id: str, token: str, response: ApiResponse, detail: str = ""
    ) -> "WriteResult":
        return cls(
            operation=operation,
            namespace_id=namespace_id,
            token=token,
            status_code=response.status_code,
            ok=response.status_code in _EXPECTED_STATUS[operation],
            detail=detail,
        )

    def raise_for_status(self) -> "WriteResult":
        if not self.ok:
            raise RemoteRejectionError(
                f"{self.operation} on '{self.token}' was rejected with HTTP {self.status_code}"
                + (f": {self.detail}" if self.detail else ""),
                status_code=self.status_code,
                operation=self.operation,
                namespace_id=self.namespace_id,
                token=self.token,
            )
        return self


class AceWriter:
    """Writes ACEs and ACLs through a SecurityApi.

    Args:
        api: The ACL store.
        registry: Namespace registry, used for display names in logs.
        consistency: Backoff used while waiting for a fresh ACL to appear.
        sleep: Awaitable sleep (injectable for tests).
    """

    def __init__(
        self,
        api: SecurityApi,
        registry: NamespaceRegistry,
        consistency: Optional[ConsistencyConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._api = api
        self._registry = registry
        self._consistency = consistency or ConsistencyConfig()
        self._sleep = sleep
        self._namespace_names: dict[str, str] = {}
        self._token_locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._token_lock_users: dict[tuple[str, str], int] = {}

    async def _namespace_name(self, namespace_id: str) -> str:
        name = self._namespace_names.get(namespace_id)
        if name is None:
            try:
                name = await self._registry.get_namespace_name(namespace_id)
            except AccessControlError as e:
                # Display only; a failed catalog lookup must not mask the write
                logger.debug("Namespace name for '%s' unavailable: %s", namespace_id, e)
                return namespace_id
            self._namespace_names[namespace_id] = name
        return name

    def _log_result(self, result: WriteResult, message: str, *args: object) -> WriteResult:
        log = get_access_logger(__name__, namespace_id=result.namespace_id, token=result.token)
        if result.ok:
            log.debug(message, *args)
        else:
            log.warning(
                "%s rejected with HTTP %s: %s",
                result.operation,
                result.status_code,
                result.detail or "no detail",
            )
        return result

    async def upsert_entry(
        self,
        namespace_id: str,
        token: str,
        descriptor: str,
        allow: int,
        deny: int,
        merge: bool = True,
    ) -> WriteResult:
        """Create or update one descriptor's ACE on ``token``.

        With ``merge=True`` the store ORs the bits into an existing entry;
        with ``merge=False`` the entry is replaced outright.
        """
        bits = PermissionBits(allow=allow, deny=deny)
        entry = AccessControlEntry(
            descriptor=identity_descriptor(descriptor),
            allow=bits.allow,
            deny=bits.deny,
        )
        body = {
            "token": token,
            "merge": merge,
            "accessControlEntries": [entry.to_wire()],
        }
        response = await self._api.set_access_control_entries(namespace_id, body)
        result = WriteResult.from_response(
            WriteOperation.UPSERT_ENTRY, namespace_id, token, response, detail=_detail(response)
        )
        return self._log_result(
            result,
            "Set permission for namespace: '%s' (allow=%d, deny=%d, merge=%s).",
            await self._namespace_name(namespace_id),
            bits.allow,
            bits.deny,
            merge,
        )

    async def upsert_bits(
        self, namespace_id: str, token: str, descriptor: str, bits: PermissionBits, merge: bool = True
    ) -> WriteResult:
        return await self.upsert_entry(namespace_id, token, descriptor, bits.allow, bits.deny, merge)

    async def delete_entry(self, namespace_id: str, token: str, descriptor: str) -> WriteResult:
        """Remove exactly one descriptor's ACE from the token's ACL."""
        response = await self._api.delete_access_control_entries(
            namespace_id, token, [identity_descriptor(descriptor)]
        )
        result = WriteResult.from_response(
            WriteOperation.DELETE_ENTRY, namespace_id, token, response, detail=_detail(response)
        )
        return self._log_result(result, "Deleted permission for descriptor: '%s'.", descriptor)

    async def delete_acl(self, namespace_id: str, token: str, recurse: bool = False) -> WriteResult:
        """Remove the whole ACL of ``token`` (and of its descendants when ``recurse``)."""
        response = await self._api.delete_access_control_lists(namespace_id, token, recurse)
        result = WriteResult.from_response(
            WriteOperation.DELETE_ACL, namespace_id, token, response, detail=_detail(response)
        )
        return self._log_result(result, "Deleted ACL (recurse=%s).", recurse)

    async def read_acl(self, namespace_id: str, token: str) -> AccessControlList:
        """Read the ACL of ``token``, waiting with backoff until it is visible.

        Raises:
            AclNotFoundError: the ACL is still absent after the last attempt.
        """
        delays = [0.0] + self._consistency.delays()
        for attempt, delay in enumerate(delays, start=1):
            if delay:
                await self._sleep(delay)
            acls = await self._api.get_access_control_lists(namespace_id, token)
            for payload in acls:
                acl = AccessControlList.model_validate(payload)
                if acl.token == token:
                    return acl
            logger.debug("ACL for '%s' not visible yet (attempt %d/%d).", token, attempt, len(delays))
        raise AclNotFoundError(
            f"ACL for token '{token}' did not appear after {len(delays)} attempts.",
            namespace_id=namespace_id,
            token=token,
        )

    async def disable_inheritance(self, namespace_id: str, token: str) -> WriteResult:
        """Turn off permission inheritance for ``token``.

        Read-modify-write; calls for the same token are serialised.
        """
        key = (namespace_id, token)
        lock = self._token_locks.setdefault(key, asyncio.Lock())
        self._token_lock_users[key] = self._token_lock_users.get(key, 0) + 1
        try:
            async with lock:
                acl = await self.read_acl(namespace_id, token)
                updated = acl.model_copy(update={"inherit_permissions": False})
                response = await self._api.set_access_control_lists(namespace_id, [updated.to_wire()])
        finally:
            # Forget the lock once nobody holds or waits on it
            self._token_lock_users[key] -= 1
            if not self._token_lock_users[key]:
                del self._token_lock_users[key]
                del self._token_locks[key]
        result = WriteResult.from_response(
            WriteOperation.DISABLE_INHERITANCE, namespace_id, token, response, detail=_detail(response)
        )
        return self._log_result(result, "Disabled Inherit Permissions.")


def _detail(response: ApiResponse) -> str:
    body = response.body
    if isinstance(body, dict):
        return str(body.get("message") or "")
    return ""


__all__ = ["AceWriter", "WriteOperation", "WriteResult"]
