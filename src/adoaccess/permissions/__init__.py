"""Permission templates and their application.

Defines:
- Namespaces / Tokens: well-known namespace ids and token builders
- GroupScope and the template models (object, project, simple rights)
- PolicyApplier: writes template roles as ACEs
- ApplyReport / FailurePolicy: outcome and failure handling of a run
"""

from .access import ApplyReport, FailurePolicy, PolicyApplier
from .constants import EMPTY_TEAM_ID, Namespaces, Tokens
from .policy import (
    GroupScope,
    NamespacePermission,
    ObjectPermission,
    ProjectPermission,
    SimpleObjectPermission,
    SimpleRights,
    load_object_permissions,
    load_project_permissions,
    load_simple_rights,
)

__all__ = [
    "EMPTY_TEAM_ID",
    "ApplyReport",
    "FailurePolicy",
    "GroupScope",
    "NamespacePermission",
    "Namespaces",
    "ObjectPermission",
    "PolicyApplier",
    "ProjectPermission",
    "SimpleObjectPermission",
    "SimpleRights",
    "Tokens",
    "load_object_permissions",
    "load_project_permissions",
    "load_simple_rights",
]
