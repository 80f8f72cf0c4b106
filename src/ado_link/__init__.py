"""ado-link.

Links a local git branch to an Azure DevOps work item:
- organization URL and PAT persisted in a small JSON file
- project/repository inferred from the matching git remote
- branch attached to the work item as an artifact link
"""

__version__ = "0.1.0"

from ado_link.link_service import LinkRequest, LinkResult, LinkService

__all__ = ["__version__", "LinkRequest", "LinkResult", "LinkService"]
