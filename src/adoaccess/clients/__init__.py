"""HTTP implementations of the collaborator APIs."""

from .azure_devops import AzureDevOpsClient
from .microsoft_graph import MicrosoftGraphClient

__all__ = ["AzureDevOpsClient", "MicrosoftGraphClient"]
