"""Well-known security namespaces and token builders.

Provides:
- ``Namespaces`` — ids of the namespaces the policy layer writes to.
- ``Tokens`` — builders for the hierarchical tokens of secured objects.
"""

from __future__ import annotations


class Namespaces:
    """Ids of well-known Azure DevOps security namespaces.

    These ids are stable across organisations. Anything not listed here can be
    resolved by category through ``NamespaceRegistry.get_namespace_id()``.
    """

    GIT_REPOSITORIES = "2e9eb7ed-3c0a-47d4-87c1-0ffdd275fd87"
    BUILD = "33344d9c-fc72-4d6f-aba5-fa317101a7e9"
    RELEASE_MANAGEMENT = "c788c23e-1b46-4162-8f5e-d7585343b5de"
    SERVICE_ENDPOINTS = "49b48001-ca20-4adc-8111-5b60c903a50c"
    LIBRARY = "b7e84409-6553-448a-bbb2-af228e07cbeb"
    ENVIRONMENT = "83d4c2e6-e57d-4d6e-892b-b87222b7ad20"
    DASHBOARDS = "8adf73b7-389a-4276-b638-fe1653f7efc7"
    DISTRIBUTED_TASK = "101eae8c-1709-47f9-b228-0e476c35b3ba"  # agent queues, deployment groups
    PROJECT = "52d39943-cb85-4d7f-8fa8-c6baac873819"

    ALL = frozenset({
        GIT_REPOSITORIES,
        BUILD,
        RELEASE_MANAGEMENT,
        SERVICE_ENDPOINTS,
        LIBRARY,
        ENVIRONMENT,
        DASHBOARDS,
        DISTRIBUTED_TASK,
        PROJECT,
    })


# Dashboards owned by the project rather than a team live under the empty team id
EMPTY_TEAM_ID = "00000000-0000-0000-0000-000000000000"


class Tokens:
    """Builders for security tokens.

    A token names a secured object and its ancestors; a token that is a prefix
    of another (at a separator boundary) is its parent and passes inherited
    permissions down::

        Tokens.git_project("p1")              # "repoV2/p1"
        Tokens.git_repository("p1", "r1")     # "repoV2/p1/r1"
        Tokens.ancestors("repoV2/p1/r1")      # ["repoV2", "repoV2/p1"]
    """

    @staticmethod
    def git_project(project_id: str) -> str:
        return f"repoV2/{project_id}"

    @staticmethod
    def git_repository(project_id: str, repository_id: str) -> str:
        return f"repoV2/{project_id}/{repository_id}"

    @staticmethod
    def build_definition(project_id: str, path: str) -> str:
        """Build folder or definition below the project (``{project}/{path}``)."""
        return f"{project_id}/{path.strip('/')}"

    @staticmethod
    def release_definition(project_id: str, path: str) -> str:
        return f"{project_id}/{path.strip('/')}"

    @staticmethod
    def service_endpoint(project_id: str, endpoint_id: str) -> str:
        return f"endpoints/{project_id}/{endpoint_id}"

    @staticmethod
    def library(project_id: str, variable_group_id: int | str) -> str:
        return f"Library/{project_id}/VariableGroup/{variable_group_id}"

    @staticmethod
    def environment(project_id: str, environment_id: int | str) -> str:
        return f"Environments/{project_id}/{environment_id}"

    @staticmethod
    def dashboard(project_id: str, team_id: str | None = None, dashboard_id: str | None = None) -> str:
        """Dashboards of a team, or one dashboard (project dashboards use the empty team)."""
        token = f"$/{project_id}/{team_id or EMPTY_TEAM_ID}"
        if dashboard_id:
            token += f"/{dashboard_id}"
        return token

    @staticmethod
    def agent_queue(project_id: str, queue_id: int | str) -> str:
        return f"AgentQueues/{project_id}/{queue_id}"

    @staticmethod
    def deployment_group(project_id: str, group_id: int | str) -> str:
        return f"MachineGroups/{project_id}/{group_id}"

    @staticmethod
    def project(project_id: str) -> str:
        return f"$PROJECT:vstfs:///Classification/TeamProject/{project_id}"

    @staticmethod
    def ancestors(token: str, separator: str = "/") -> list[str]:
        """Parent tokens of ``token``, outermost first.

        Example::

            Tokens.ancestors("Library/p1/VariableGroup/7")
            # ["Library", "Library/p1", "Library/p1/VariableGroup"]
        """
        parts = token.split(separator)
        return [separator.join(parts[:i]) for i in range(1, len(parts)) if parts[i - 1]]

    @staticmethod
    def is_descendant(token: str, ancestor: str, separator: str = "/") -> bool:
        """True when ``ancestor`` is a strict parent of ``token``."""
        return token.startswith(ancestor + separator)


__all__ = [
    "EMPTY_TEAM_ID",
    "Namespaces",
    "Tokens",
]
