"""Permission templates: who gets which actions on which objects.

Provides:
- ``GroupScope`` — how a template role names its group.
- ``ObjectPermission`` — one role on a secured object (repo, folder, ...).
- ``ProjectPermission`` — one role across several project-level namespaces.
- ``SimpleRights`` — owner/contributor action lists per simple entity kind.
- ``load_*`` helpers that parse the JSON template files.

Templates use the PascalCase keys of the settings files::

    [
      {"Group": "Contributors", "GroupScope": "ProjectGroup",
       "Merge": true, "Allow": ["GenericRead"], "Deny": []}
    ]
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..exceptions import TemplateError


class GroupScope(str, Enum):
    """How a role's ``Group`` is turned into a directory group name.

    - ``ProjectGroup`` — a group of the project, named as written
    - ``OrganisationGroup`` — an organisation-wide group
    - ``TeamRole`` — ``permission_group + Group`` (a role group of a team)
    - ``Group`` — the ``permission_group`` itself
    """

    PROJECT_GROUP = "ProjectGroup"
    ORGANISATION_GROUP = "OrganisationGroup"
    TEAM_ROLE = "TeamRole"
    GROUP = "Group"


class _Template(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class ObjectPermission(_Template):
    group: Optional[str] = Field(default=None, alias="Group")
    group_scope: GroupScope = Field(alias="GroupScope")
    extra_notes: Optional[str] = Field(default=None, alias="ExtraNotes")
    merge: bool = Field(default=True, alias="Merge")
    allow: list[str] = Field(default_factory=list, alias="Allow")
    deny: list[str] = Field(default_factory=list, alias="Deny")


class NamespacePermission(_Template):
    namespace_id: str = Field(alias="NamespaceId")
    namespace_description: Optional[str] = Field(default=None, alias="NamespaceDescription")
    token_prefix: str = Field(default="", alias="TokenPrefix")
    allow: list[str] = Field(default_factory=list, alias="Allow")
    deny: list[str] = Field(default_factory=list, alias="Deny")


class ProjectPermission(_Template):
    group: Optional[str] = Field(default=None, alias="Group")
    group_scope: GroupScope = Field(alias="GroupScope")
    namespaces: list[NamespacePermission] = Field(default_factory=list, alias="Namespaces")


class SimpleObjectPermission(_Template):
    owner_rights: list[str] = Field(default_factory=list, alias="OwnerRights")
    contributor_rights: list[str] = Field(default_factory=list, alias="ContributorRights")


class SimpleRights(_Template):
    library: Optional[SimpleObjectPermission] = Field(default=None, alias="Library")
    dashboard: Optional[SimpleObjectPermission] = Field(default=None, alias="Dashboard")
    environment: Optional[SimpleObjectPermission] = Field(default=None, alias="Environment")
    service_connection: Optional[SimpleObjectPermission] = Field(default=None, alias="ServiceConnection")
    deployment_group: Optional[SimpleObjectPermission] = Field(default=None, alias="DeploymentGroup")


# ── Loaders ──────────────────────────────────────────────

_OBJECT_PERMISSIONS = TypeAdapter(list[ObjectPermission])
_PROJECT_PERMISSIONS = TypeAdapter(list[ProjectPermission])


def _read_json(path: Union[str, Path]) -> object:
    path = Path(path)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise TemplateError(f"Cannot read template '{path}': {e}", path=str(path)) from e
    except json.JSONDecodeError as e:
        raise TemplateError(f"Template '{path}' is not valid JSON: {e}", path=str(path)) from e


def _validate(adapter_or_model, data: object, path: Union[str, Path]):
    try:
        if isinstance(adapter_or_model, TypeAdapter):
            return adapter_or_model.validate_python(data)
        return adapter_or_model.model_validate(data)
    except ValidationError as e:
        raise TemplateError(
            f"Template '{path}' is invalid: {e.error_count()} error(s)",
            path=str(path),
            errors=e.errors(include_url=False),
        ) from e


def load_object_permissions(path: Union[str, Path]) -> list[ObjectPermission]:
    """Parse a JSON list of object roles."""
    return _validate(_OBJECT_PERMISSIONS, _read_json(path), path)


def load_project_permissions(path: Union[str, Path]) -> list[ProjectPermission]:
    return _validate(_PROJECT_PERMISSIONS, _read_json(path), path)


def load_simple_rights(path: Union[str, Path]) -> SimpleRights:
    return _validate(SimpleRights, _read_json(path), path)


__all__ = [
    "GroupScope",
    "NamespacePermission",
    "ObjectPermission",
    "ProjectPermission",
    "SimpleObjectPermission",
    "SimpleRights",
    "load_object_permissions",
    "load_project_permissions",
    "load_simple_rights",
]
