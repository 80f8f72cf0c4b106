"""Exception hierarchy.

Library code raises these; only the CLI turns them into exit codes.
"""

from __future__ import annotations


class AdoLinkError(Exception):
    """Base class for every expected failure of a command."""


class UnknownConfigKey(AdoLinkError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Unknown configuration key: {key!r}")
        self.key = key


class ConfigurationMissing(AdoLinkError):
    """Raised when the organization URL or PAT has not been configured."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            f"Missing configuration: {', '.join(missing)}. Run 'ado-link init' first."
        )
        self.missing = missing


class GitError(AdoLinkError):
    """Base class for failures of the local git repository."""


class NotAGitRepository(GitError):
    def __init__(self, path: str) -> None:
        super().__init__(f"The directory {path} isn't a valid git repository.")
        self.path = path


class DetachedHead(GitError):
    def __init__(self) -> None:
        super().__init__("HEAD is detached; check out a branch before linking.")


class GitCommandError(GitError):
    def __init__(self, command: list[str], stderr: str) -> None:
        detail = stderr.strip() or "no output"
        super().__init__(f"git command failed ({' '.join(command)}): {detail}")
        self.command = command
        self.stderr = stderr


class RemoteNotFound(GitError):
    def __init__(self, organization: str) -> None:
        super().__init__(f"Could not find an Azure DevOps remote for organization {organization!r}.")
        self.organization = organization


class RemoteNotRecognized(GitError):
    def __init__(self, url: str) -> None:
        super().__init__(f"Could not read project and repository from remote URL {url!r}.")
        self.url = url


class AzureDevOpsError(AdoLinkError):
    """A call to the Azure DevOps REST API failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationFailed(AzureDevOpsError):
    pass


class WorkItemNotFound(AzureDevOpsError):
    def __init__(self, work_item_id: int) -> None:
        super().__init__(f"Work item {work_item_id} does not exist.", status_code=404)
        self.work_item_id = work_item_id


class ProjectNotFound(AdoLinkError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Could not find Azure DevOps project ({name}) based on current remote.")
        self.name = name


class RepositoryNotFound(AdoLinkError):
    def __init__(self, name: str) -> None:
        super().__init__(
            f"Could not find Azure DevOps repository ({name}) based on current remote."
        )
        self.name = name
