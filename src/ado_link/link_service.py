"""Link a local branch to an Azure DevOps work item.

The sequence is:
- resolve the working copy (branch, matching remote, project/repository names)
- fetch the work item
- find the project and repository by name
- optionally create the branch to link
- attach the branch as an artifact link (skipped when already linked)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ado_link.azure_devops.client import (
    AzureDevOpsClient,
    Project,
    RepoDefinition,
    Repository,
    WorkItemDefinition,
    branch_artifact_url,
)
from ado_link.errors import ProjectNotFound, RepositoryNotFound
from ado_link.git import remote as git_remote

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LinkRequest:
    """Parameters of one `link` invocation.

    `branch_name` asks for a new branch; without it the current branch is
    linked. `clean` starts the new branch from the remote default branch
    instead of the current HEAD.
    """

    work_item_id: int
    branch_name: str | None = None
    clean: bool = True

    def __post_init__(self) -> None:
        if self.work_item_id <= 0:
            raise ValueError("work_item_id must be a positive integer")
        if self.branch_name is not None and not self.branch_name.strip():
            raise ValueError("branch_name must not be blank")


@dataclass(frozen=True, slots=True)
class LinkResult:
    repo: RepoDefinition
    work_item: WorkItemDefinition
    work_item_title: str
    artifact_url: str
    already_linked: bool = False
    branch_created: bool = False


def find_project(projects: Iterable[Project], name: str) -> Project:
    for project in projects:
        if project.name == name:
            return project
    raise ProjectNotFound(name)


def find_repository(repositories: Iterable[Repository], name: str) -> Repository:
    for repository in repositories:
        if repository.name == name:
            return repository
    raise RepositoryNotFound(name)


class LinkService:
    """Runs the link sequence against injected git and Azure DevOps collaborators."""

    def __init__(
        self,
        *,
        client: AzureDevOpsClient,
        git: git_remote.GitRepository,
        organization: str,
    ) -> None:
        self._client = client
        self._git = git
        self._organization = organization

    def link(self, request: LinkRequest) -> LinkResult:
        local = git_remote.resolve_local_repository(self._git, self._organization)

        work_item = self._client.get_work_item(request.work_item_id)
        logger.info(
            "Found work item",
            extra={"work_item_id": work_item.id, "title": work_item.title},
        )

        project = find_project(self._client.list_projects(), local.project_name)
        logger.info("Found project", extra={"project": project.name, "project_id": project.id})

        repository = find_repository(
            self._client.list_repositories(project.id), local.repository_name
        )
        logger.info(
            "Found repository",
            extra={"repository": repository.name, "repository_id": repository.id},
        )

        branch = local.branch_name
        created = False
        if request.branch_name is not None:
            branch = request.branch_name.strip()
            created = self._ensure_branch(branch, remote=local.remote_name, clean=request.clean)

        repo = RepoDefinition(
            project_id=project.id,
            repository_id=repository.id,
            branch_name=branch,
        )
        definition = WorkItemDefinition(
            work_item_id=work_item.id, project_name=work_item.project_name
        )
        url = branch_artifact_url(repo.project_id, repo.repository_id, repo.branch_name)

        if url in work_item.relation_urls:
            logger.info("Branch already linked", extra={"work_item_id": work_item.id, "url": url})
            return LinkResult(
                repo=repo,
                work_item=definition,
                work_item_title=work_item.title,
                artifact_url=url,
                already_linked=True,
                branch_created=created,
            )

        self._client.add_branch_link(work_item.id, repo)
        return LinkResult(
            repo=repo,
            work_item=definition,
            work_item_title=work_item.title,
            artifact_url=url,
            branch_created=created,
        )

    def _ensure_branch(self, name: str, *, remote: str, clean: bool) -> bool:
        """Create `name` unless it already exists locally. Returns True when created."""

        if self._git.ref_exists(f"refs/heads/{name}"):
            logger.info("Branch already exists; linking it as is", extra={"branch": name})
            return False

        start_point: str | None = None
        if clean:
            self._git.fetch(remote)
            start_point = self._git.remote_default_branch(remote)

        self._git.create_branch(name, start_point)
        return True
