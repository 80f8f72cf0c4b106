"""Azure DevOps REST client wrapper.

Wraps the handful of REST calls ado-link needs behind typed results, keeping
HTTP details out of the CLI and making tests easy (inject a session).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

from ado_link.errors import AuthenticationFailed, AzureDevOpsError, WorkItemNotFound

logger = logging.getLogger(__name__)

ARTIFACT_LINK_REL = "ArtifactLink"
BRANCH_LINK_NAME = "Branch"
DEFAULT_LINK_COMMENT = "Linked via ado-link"
CONTINUATION_HEADER = "x-ms-continuationtoken"


@dataclass(frozen=True, slots=True)
class Project:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class Repository:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class WorkItem:
    """The parts of a work item needed to link it."""

    id: int
    title: str
    project_name: str
    relation_urls: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RepoDefinition:
    """Identity of a branch in an Azure DevOps git repository."""

    project_id: str
    repository_id: str
    branch_name: str


@dataclass(frozen=True, slots=True)
class WorkItemDefinition:
    work_item_id: int
    project_name: str


def branch_artifact_url(project_id: str, repository_id: str, branch_name: str) -> str:
    """Artifact URL Azure DevOps uses for a git branch ("GB" + branch name)."""

    return f"vstfs:///Git/Ref/{project_id}/{repository_id}/GB{branch_name}"


class AzureDevOpsClient:
    """Small wrapper around the Azure DevOps REST API for one organization."""

    def __init__(
        self,
        *,
        org_url: str,
        pat: str,
        api_version: str = "7.0",
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if not org_url:
            raise ValueError("Organization URL is required")
        if not pat:
            raise ValueError("Personal access token is required")

        self._org_url = org_url.strip().rstrip("/")
        self._api_version = api_version
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.auth = ("", pat)
        self._session.headers.update(
            {
                "Accept": "application/json",
                "User-Agent": "ado-link",
            }
        )

    def _url(self, path: str, *, project: str | None = None) -> str:
        path = path.lstrip("/")
        if project:
            return f"{self._org_url}/{project}/_apis/{path}"
        return f"{self._org_url}/_apis/{path}"

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        query = {"api-version": self._api_version, **(params or {})}
        logger.debug("Azure DevOps request", extra={"method": method, "url": url})
        try:
            return self._session.request(
                method,
                url,
                params=query,
                json=json_body,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise AzureDevOpsError(f"Request to Azure DevOps failed: {e}") from e

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            message = payload.get("message")
            if isinstance(message, str) and message.strip():
                return message.strip()
        return resp.reason or f"HTTP {resp.status_code}"

    def _json(self, resp: requests.Response) -> Any:
        status = resp.status_code
        # Azure DevOps answers a bad PAT with a 203 and an HTML sign-in page.
        if status in (203, 401):
            raise AuthenticationFailed(
                "Authentication with Azure DevOps failed; check your PAT.", status_code=status
            )
        if status >= 400:
            raise AzureDevOpsError(
                f"Azure DevOps returned {status}: {self._error_message(resp)}", status_code=status
            )
        try:
            return resp.json()
        except ValueError as e:
            raise AuthenticationFailed(
                "Azure DevOps returned a non-JSON response; check your organization URL and PAT.",
                status_code=status,
            ) from e

    def list_projects(self) -> list[Project]:
        """List every project of the organization, following continuation tokens."""

        url = self._url("projects")
        projects: list[Project] = []
        token: str | None = None
        while True:
            params = {"continuationToken": token} if token else None
            resp = self._request("GET", url, params=params)
            payload = self._json(resp)
            for item in _values(payload):
                project = _parse_named(item)
                if project is not None:
                    projects.append(Project(id=project[0], name=project[1]))

            token = resp.headers.get(CONTINUATION_HEADER)
            if not token:
                break

        logger.debug("Listed projects", extra={"count": len(projects)})
        return projects

    def list_repositories(self, project: str) -> list[Repository]:
        """List git repositories of `project` (id or name)."""

        resp = self._request("GET", self._url("git/repositories", project=project))
        repositories: list[Repository] = []
        for item in _values(self._json(resp)):
            named = _parse_named(item)
            if named is not None:
                repositories.append(Repository(id=named[0], name=named[1]))

        logger.debug("Listed repositories", extra={"project": project, "count": len(repositories)})
        return repositories

    def get_work_item(self, work_item_id: int) -> WorkItem:
        """Fetch a work item with its relations.

        Raises:
            WorkItemNotFound: the id does not exist (or is not visible to the PAT).
        """

        if work_item_id <= 0:
            raise ValueError("work_item_id must be a positive integer")

        resp = self._request(
            "GET", self._url(f"wit/workitems/{work_item_id}"), params={"$expand": "relations"}
        )
        if resp.status_code == 404:
            raise WorkItemNotFound(work_item_id)
        data = self._json(resp)
        if not isinstance(data, dict):
            raise AzureDevOpsError("Unexpected work item response: not an object")

        fields = data.get("fields")
        if not isinstance(fields, dict):
            raise AzureDevOpsError("Unexpected work item response: missing fields")

        relations = data.get("relations")
        relation_urls: list[str] = []
        if isinstance(relations, list):
            for rel in relations:
                if isinstance(rel, dict) and isinstance(rel.get("url"), str):
                    relation_urls.append(rel["url"])

        return WorkItem(
            id=int(data.get("id", work_item_id)),
            title=str(fields.get("System.Title", "")),
            project_name=str(fields.get("System.TeamProject", "")),
            relation_urls=tuple(relation_urls),
        )

    def add_branch_link(
        self,
        work_item_id: int,
        repo: RepoDefinition,
        *,
        comment: str = DEFAULT_LINK_COMMENT,
    ) -> None:
        """Attach `repo`'s branch to the work item as an artifact link."""

        document = [
            {
                "op": "add",
                "path": "/relations/-",
                "value": {
                    "rel": ARTIFACT_LINK_REL,
                    "url": branch_artifact_url(
                        repo.project_id, repo.repository_id, repo.branch_name
                    ),
                    "attributes": {"name": BRANCH_LINK_NAME, "comment": comment},
                },
            }
        ]
        resp = self._request(
            "PATCH",
            self._url(f"wit/workitems/{work_item_id}"),
            json_body=document,
            headers={"Content-Type": "application/json-patch+json"},
        )
        self._json(resp)
        logger.info(
            "Linked branch to work item",
            extra={"work_item_id": work_item_id, "branch": repo.branch_name},
        )

    def close(self) -> None:
        self._session.close()


def _values(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    values = payload.get("value")
    if not isinstance(values, list):
        return []
    return [v for v in values if isinstance(v, dict)]


def _parse_named(item: dict[str, Any]) -> tuple[str, str] | None:
    item_id = item.get("id")
    name = item.get("name")
    if not isinstance(item_id, str) or not isinstance(name, str):
        return None
    return item_id, name
