"""httpx client for the Azure DevOps security, graph and entitlement APIs.

One ``httpx.AsyncClient`` per instance, authenticated with a personal access
token (basic auth, empty user name). Reads raise on failure; writes return an
:class:`ApiResponse` so the ACE writer can report rejections itself.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import httpx

from ..config import AccessConfig
from ..exceptions import (
    GroupNotFoundError,
    NamespaceNotFoundError,
    NotFoundError,
    TransportError,
    UserNotFoundError,
)
from ..interfaces import ApiResponse, GraphApi, SecurityApi
from ..logging import safe_preview
from ..models import GraphGroup, GraphMembership, UserIdentity

logger = logging.getLogger(__name__)

CONTINUATION_HEADER = "x-ms-continuationtoken"


class AzureDevOpsClient(SecurityApi, GraphApi):
    """SecurityApi and GraphApi over REST.

    Args:
        config: Organisation URLs, PAT and API versions.
        transport: Optional httpx transport (``httpx.MockTransport`` in tests).
    """

    def __init__(self, config: AccessConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            auth=httpx.BasicAuth("", config.personal_access_token),
            timeout=config.timeout_s,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Transport ────────────────────────────────────────

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}", method=method, url=url) from e

    async def _get(
        self,
        url: str,
        params: dict[str, Any],
        not_found: Optional[Callable[[], NotFoundError]] = None,
    ) -> httpx.Response:
        response = await self._request("GET", url, params=params)
        if response.status_code == 404 and not_found is not None:
            raise not_found()
        if response.is_error:
            raise TransportError(
                f"GET {url} returned HTTP {response.status_code}: {safe_preview(response.text)}",
                status_code=response.status_code,
                url=url,
            )
        return response

    async def _get_values(
        self,
        url: str,
        params: dict[str, Any],
        not_found: Optional[Callable[[], NotFoundError]] = None,
    ) -> list[dict[str, Any]]:
        """GET a ``{count, value}`` collection, following continuation tokens."""
        values: list[dict[str, Any]] = []
        params = dict(params)
        while True:
            response = await self._get(url, params, not_found)
            values.extend(response.json().get("value") or [])
            continuation = response.headers.get(CONTINUATION_HEADER)
            if not continuation:
                return values
            params["continuationToken"] = continuation

    async def _write(self, method: str, url: str, **kwargs: Any) -> ApiResponse:
        response = await self._request(method, url, **kwargs)
        body: Any = None
        if response.content:
            try:
                body = response.json()
            except ValueError:
                body = response.text
        return ApiResponse(status_code=response.status_code, body=body, headers=dict(response.headers))

    def _security_params(self, **params: Any) -> dict[str, Any]:
        return {**params, "api-version": self._config.api_version}

    def _graph_params(self, **params: Any) -> dict[str, Any]:
        return {**params, "api-version": self._config.graph_api_version}

    # ── SecurityApi ──────────────────────────────────────

    async def list_security_namespaces(self) -> list[dict[str, Any]]:
        url = f"{self._config.organisation_api_url}/_apis/securitynamespaces"
        return await self._get_values(url, self._security_params())

    async def get_access_control_lists(self, namespace_id: str, token: str) -> list[dict[str, Any]]:
        url = f"{self._config.organisation_api_url}/_apis/accesscontrollists/{namespace_id}"
        return await self._get_values(
            url,
            self._security_params(token=token),
            not_found=lambda: NamespaceNotFoundError(
                f"Namespace '{namespace_id}' cannot be found.", namespace_id=namespace_id
            ),
        )

    async def set_access_control_lists(self, namespace_id: str, acls: list[dict[str, Any]]) -> ApiResponse:
        url = f"{self._config.organisation_api_url}/_apis/accesscontrollists/{namespace_id}"
        return await self._write(
            "POST", url, params=self._security_params(), json={"count": len(acls), "value": acls}
        )

    async def set_access_control_entries(self, namespace_id: str, body: dict[str, Any]) -> ApiResponse:
        url = f"{self._config.organisation_api_url}/_apis/accesscontrolentries/{namespace_id}"
        return await self._write("POST", url, params=self._security_params(), json=body)

    async def delete_access_control_entries(
        self, namespace_id: str, token: str, identity_descriptors: list[str]
    ) -> ApiResponse:
        url = f"{self._config.organisation_api_url}/_apis/accesscontrolentries/{namespace_id}"
        params = self._security_params(token=token, descriptors=",".join(identity_descriptors))
        return await self._write("DELETE", url, params=params)

    async def delete_access_control_lists(self, namespace_id: str, token: str, recurse: bool = False) -> ApiResponse:
        url = f"{self._config.organisation_api_url}/_apis/accesscontrollists/{namespace_id}"
        params = self._security_params(token=token, recurse=str(recurse).lower())
        return await self._write("DELETE", url, params=params)

    # ── GraphApi ─────────────────────────────────────────

    async def get_scope_descriptor(self, project_id: str) -> str:
        url = f"{self._config.vssps_api_url}/_apis/graph/descriptors/{project_id}"
        response = await self._get(
            url,
            self._graph_params(),
            not_found=lambda: NotFoundError(
                f"Project '{project_id}' has no scope descriptor.", project_id=project_id
            ),
        )
        return response.json()["value"]

    async def list_groups(self, scope_descriptor: Optional[str] = None) -> list[GraphGroup]:
        url = f"{self._config.vssps_api_url}/_apis/graph/groups"
        params = self._graph_params(scopeDescriptor=scope_descriptor) if scope_descriptor else self._graph_params()
        return [GraphGroup.model_validate(item) for item in await self._get_values(url, params)]

    async def list_memberships(self, descriptor: str, direction: str = "down") -> list[GraphMembership]:
        url = f"{self._config.vssps_api_url}/_apis/graph/Memberships/{descriptor}"
        values = await self._get_values(
            url,
            self._graph_params(direction=direction),
            not_found=lambda: GroupNotFoundError(
                f"Subject '{descriptor}' does not exist.", descriptor=descriptor
            ),
        )
        return [GraphMembership.model_validate(item) for item in values]

    async def get_user_origin_id(self, descriptor: str) -> str:
        url = f"{self._config.vssps_api_url}/_apis/graph/users/{descriptor}"
        response = await self._get(
            url,
            self._graph_params(),
            not_found=lambda: UserNotFoundError(f"User '{descriptor}' does not exist.", descriptor=descriptor),
        )
        return response.json().get("originId", "")

    async def find_user_entitlements(self, principal_name: str) -> list[UserIdentity]:
        url = f"{self._config.vsaex_api_url}/_apis/userentitlements"
        # OData string literals escape a quote by doubling it
        quoted = principal_name.replace("'", "''")
        params = self._graph_params(**{"$filter": f"(name eq '{quoted}')"})
        response = await self._get(url, params)
        identities = []
        for member in response.json().get("members") or []:
            user = member.get("user") or {}
            identities.append(
                UserIdentity(
                    id=member["id"],
                    descriptor=user.get("descriptor", ""),
                    origin_id=user.get("originId", ""),
                    principal_name=user.get("principalName", ""),
                )
            )
        logger.debug("%d entitlement(s) match '%s'", len(identities), principal_name)
        return identities


__all__ = ["AzureDevOpsClient"]
