"""Configuration contract for the access control engine.

Pydantic-validated models for everything the engine reads at runtime:
organisation endpoints, credentials, group naming prefixes, the external
directory (Microsoft Graph) application, and the eventual-consistency backoff
used before read-modify-write operations on ACLs.

Direct os.environ/os.getenv usage is only allowed in
``load_access_config_from_env()``; all other code receives an AccessConfig.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CyclePolicy(str, Enum):
    """What the membership resolver does when the native group graph loops.

    - RAISE: abort the check with MembershipCycleError
    - SKIP: log the cycle and ignore the offending edge
    """

    RAISE = "raise"
    SKIP = "skip"


class ConsistencyConfig(BaseModel):
    """Bounded backoff used while waiting for the ACL store to catch up.

    The delay before attempt ``n`` (0-based, n > 0) is
    ``min(initial_delay_s * multiplier ** (n - 1), max_delay_s)``.
    """

    model_config = {"extra": "forbid"}

    attempts: int = Field(default=6, ge=1, description="Maximum number of reads")
    initial_delay_s: float = Field(default=0.5, ge=0.0)
    multiplier: float = Field(default=2.0, ge=1.0)
    max_delay_s: float = Field(default=8.0, ge=0.0)

    def delays(self) -> list[float]:
        """Sleep durations between consecutive read attempts."""
        return [
            min(self.initial_delay_s * self.multiplier**n, self.max_delay_s)
            for n in range(self.attempts - 1)
        ]


class GroupPrefixConfig(BaseModel):
    """Naming prefix policy for generated groups.

    Callers must qualify names with these prefixes before resolving them.
    """

    model_config = {"extra": "forbid"}

    team: str = Field(default="", description="Prefix of team groups")
    product: str = Field(default="", description="Prefix of product groups")
    security: str = Field(default="", description="Prefix of project security groups")


class GraphConfig(BaseModel):
    """Microsoft Graph application used for external directory lookups.

    Environment variables:
        MS_GRAPH_DIRECTORY_ID   — tenant (directory) id
        MS_GRAPH_APP_ID         — application (client) id
        MS_GRAPH_APP_SECRET     — client secret
        MS_GRAPH_SCOPE          — token scope
    """

    model_config = {"extra": "forbid"}

    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = Field(default="", repr=False)
    scope: str = "https://graph.microsoft.com/.default"
    authority_url: str = "https://login.microsoftonline.com"
    base_url: str = "https://graph.microsoft.com/v1.0"

    @property
    def token_endpoint(self) -> str:
        return f"{self.authority_url.rstrip('/')}/{self.tenant_id}/oauth2/v2.0/token"

    @property
    def configured(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)


class AccessConfig(BaseModel):
    """Configuration for one Azure DevOps organisation.

    The three base URLs are combined with ``organisation`` the same way the
    platform addresses its services:

        https://dev.azure.com/{organisation}          (ACLs, namespaces)
        https://vssps.dev.azure.com/{organisation}    (graph: groups, memberships)
        https://vsaex.dev.azure.com/{organisation}    (user entitlements)
    """

    organisation: str = Field(default="", description="Azure DevOps organisation name")
    organisation_url: str = "https://dev.azure.com"
    vssps_url: str = "https://vssps.dev.azure.com"
    vsaex_url: str = "https://vsaex.dev.azure.com"

    personal_access_token: str = Field(default="", repr=False)
    api_version: str = "5.0"
    graph_api_version: str = "5.1-preview.1"
    timeout_s: float = Field(default=30.0, gt=0)

    log_level: LogLevel = LogLevel.INFO
    log_json: bool = False

    prefixes: GroupPrefixConfig = Field(default_factory=GroupPrefixConfig)
    graph: GraphConfig = Field(default_factory=GraphConfig)
    consistency: ConsistencyConfig = Field(default_factory=ConsistencyConfig)
    cycle_policy: CyclePolicy = CyclePolicy.RAISE

    @field_validator("organisation_url", "vssps_url", "vsaex_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require http(s) URLs and drop trailing slashes."""
        if not v.startswith(("https://", "http://")):
            raise ValueError("URL must start with https:// or http://")
        return v.rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    @property
    def organisation_api_url(self) -> str:
        return f"{self.organisation_url}/{self.organisation}"

    @property
    def vssps_api_url(self) -> str:
        return f"{self.vssps_url}/{self.organisation}"

    @property
    def vsaex_api_url(self) -> str:
        return f"{self.vsaex_url}/{self.organisation}"

    model_config = {
        "extra": "forbid",
    }


def _env_flag(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


def load_access_config_from_env() -> AccessConfig:
    """Load the engine configuration from environment variables.

    This is the ONLY place where os.getenv is allowed.

    Environment variables:
    - ADO_ORGANISATION: Organisation name
    - ADO_ORGANISATION_URL / ADO_VSSPS_URL / ADO_VSAEX_URL: Base URLs
    - ADO_PAT: Personal access token
    - ADO_API_VERSION / ADO_GRAPH_API_VERSION: REST api versions
    - ADO_TIMEOUT_SECONDS: HTTP timeout
    - ADO_TEAM_GROUP_PREFIX / ADO_PRODUCT_GROUP_PREFIX / ADO_SECURITY_GROUP_PREFIX
    - MS_GRAPH_DIRECTORY_ID / MS_GRAPH_APP_ID / MS_GRAPH_APP_SECRET / MS_GRAPH_SCOPE
    - ACL_CONSISTENCY_ATTEMPTS / ACL_CONSISTENCY_INITIAL_DELAY / ACL_CONSISTENCY_MAX_DELAY
    - MEMBERSHIP_CYCLE_POLICY: raise | skip
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)

    Returns:
        AccessConfig instance with values from environment or defaults.
    """
    import os

    defaults = AccessConfig()
    consistency_defaults = ConsistencyConfig()

    prefixes = GroupPrefixConfig(
        team=os.getenv("ADO_TEAM_GROUP_PREFIX", ""),
        product=os.getenv("ADO_PRODUCT_GROUP_PREFIX", ""),
        security=os.getenv("ADO_SECURITY_GROUP_PREFIX", ""),
    )

    graph = GraphConfig(
        tenant_id=os.getenv("MS_GRAPH_DIRECTORY_ID", ""),
        client_id=os.getenv("MS_GRAPH_APP_ID", ""),
        client_secret=os.getenv("MS_GRAPH_APP_SECRET", ""),
        scope=os.getenv("MS_GRAPH_SCOPE", GraphConfig().scope),
    )

    consistency = ConsistencyConfig(
        attempts=int(os.getenv("ACL_CONSISTENCY_ATTEMPTS", str(consistency_defaults.attempts))),
        initial_delay_s=float(os.getenv("ACL_CONSISTENCY_INITIAL_DELAY", str(consistency_defaults.initial_delay_s))),
        max_delay_s=float(os.getenv("ACL_CONSISTENCY_MAX_DELAY", str(consistency_defaults.max_delay_s))),
    )

    return AccessConfig(
        organisation=os.getenv("ADO_ORGANISATION", ""),
        organisation_url=os.getenv("ADO_ORGANISATION_URL", defaults.organisation_url),
        vssps_url=os.getenv("ADO_VSSPS_URL", defaults.vssps_url),
        vsaex_url=os.getenv("ADO_VSAEX_URL", defaults.vsaex_url),
        personal_access_token=os.getenv("ADO_PAT", ""),
        api_version=os.getenv("ADO_API_VERSION", defaults.api_version),
        graph_api_version=os.getenv("ADO_GRAPH_API_VERSION", defaults.graph_api_version),
        timeout_s=float(os.getenv("ADO_TIMEOUT_SECONDS", str(defaults.timeout_s))),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_env_flag(os.getenv("LOG_JSON", "false")),
        prefixes=prefixes,
        graph=graph,
        consistency=consistency,
        cycle_policy=CyclePolicy(os.getenv("MEMBERSHIP_CYCLE_POLICY", CyclePolicy.RAISE.value).lower()),
    )


__all__ = [
    "AccessConfig",
    "ConsistencyConfig",
    "CyclePolicy",
    "GraphConfig",
    "GroupPrefixConfig",
    "LogLevel",
    "load_access_config_from_env",
]
