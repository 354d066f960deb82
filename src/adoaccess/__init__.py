from .config import (
    AccessConfig,
    ConsistencyConfig,
    CyclePolicy,
    GraphConfig,
    GroupPrefixConfig,
    LogLevel,
    load_access_config_from_env,
)
from .engine import AccessEngine
from .exceptions import (
    AccessControlError,
    AclNotFoundError,
    ActionNotFoundError,
    CatalogError,
    ConfigurationError,
    GroupNotFoundError,
    MalformedDescriptorError,
    MembershipCycleError,
    NamespaceNotFoundError,
    NotFoundError,
    RemoteRejectionError,
    TemplateError,
    TransportError,
    UserNotFoundError,
)
from .identity import (
    DescriptorResolver,
    GroupType,
    MembershipResolver,
    decode_descriptor,
    identity_descriptor,
)
from .interfaces import ApiResponse, DirectoryApi, GraphApi, SecurityApi
from .logging import (
    AccessLogFormatter,
    AccessLoggerAdapter,
    get_access_logger,
    redact_secrets,
    safe_log_value,
    safe_preview,
    setup_logging,
)
from .models import ProjectScope
from .permissions import FailurePolicy, Namespaces, PolicyApplier, Tokens
from .security import AceWriter, NamespaceRegistry, PermissionBits, WriteResult, compute_bits

__all__ = [
    'AccessConfig',
    'ConsistencyConfig',
    'CyclePolicy',
    'GraphConfig',
    'GroupPrefixConfig',
    'LogLevel',
    'load_access_config_from_env',
    'AccessEngine',
    'AccessControlError',
    'AclNotFoundError',
    'ActionNotFoundError',
    'CatalogError',
    'ConfigurationError',
    'GroupNotFoundError',
    'MalformedDescriptorError',
    'MembershipCycleError',
    'NamespaceNotFoundError',
    'NotFoundError',
    'RemoteRejectionError',
    'TemplateError',
    'TransportError',
    'UserNotFoundError',
    'DescriptorResolver',
    'GroupType',
    'MembershipResolver',
    'decode_descriptor',
    'identity_descriptor',
    'ApiResponse',
    'DirectoryApi',
    'GraphApi',
    'SecurityApi',
    'AccessLogFormatter',
    'AccessLoggerAdapter',
    'get_access_logger',
    'redact_secrets',
    'safe_log_value',
    'safe_preview',
    'setup_logging',
    'ProjectScope',
    'FailurePolicy',
    'Namespaces',
    'PolicyApplier',
    'Tokens',
    'AceWriter',
    'NamespaceRegistry',
    'PermissionBits',
    'WriteResult',
    'compute_bits',
]
