"""Azure DevOps REST access."""

from ado_link.azure_devops.client import (
    AzureDevOpsClient,
    Repository,
    Project,
    RepoDefinition,
    WorkItem,
    WorkItemDefinition,
    branch_artifact_url,
)

__all__ = [
    "AzureDevOpsClient",
    "Repository",
    "Project",
    "RepoDefinition",
    "WorkItem",
    "WorkItemDefinition",
    "branch_artifact_url",
]
