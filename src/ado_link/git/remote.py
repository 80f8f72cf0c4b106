"""Local git repository access and Azure DevOps remote resolution.

Talks to git by running the `git` executable; nothing here touches the network
except `GitRepository.fetch`.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

from ado_link.errors import (
    DetachedHead,
    GitCommandError,
    NotAGitRepository,
    RemoteNotFound,
    RemoteNotRecognized,
)

logger = logging.getLogger(__name__)

PREFERRED_REMOTE = "origin"
_GIT_PATH_MARKER = "_git"


@dataclass(frozen=True, slots=True)
class Remote:
    name: str
    urls: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class LocalRepository:
    """What the working copy tells us about its Azure DevOps counterpart."""

    remote_name: str
    remote_url: str
    project_name: str
    repository_name: str
    branch_name: str


class GitRepository:
    """Small wrapper around the git CLI for one working copy."""

    def __init__(self, root: Path, *, timeout_seconds: float = 60.0) -> None:
        self._root = root
        self._timeout = timeout_seconds

    @classmethod
    def open(cls, path: Path) -> GitRepository:
        """Open the working copy containing `path`.

        Raises:
            NotAGitRepository: `path` is not inside a work tree (or git is missing).
        """
        try:
            proc = subprocess.run(
                ["git", "rev-parse", "--show-toplevel"],
                cwd=path,
                capture_output=True,
                text=True,
                check=False,
                timeout=60,
            )
        except (FileNotFoundError, NotADirectoryError) as e:
            raise NotAGitRepository(str(path)) from e

        if proc.returncode != 0 or not proc.stdout.strip():
            raise NotAGitRepository(str(path))

        root = Path(proc.stdout.strip())
        logger.debug("Opened git repository", extra={"root": str(root)})
        return cls(root)

    @property
    def root(self) -> Path:
        return self._root

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        cmd = ["git", *args]
        proc = subprocess.run(
            cmd,
            cwd=self._root,
            capture_output=True,
            text=True,
            check=False,
            timeout=self._timeout,
        )
        if check and proc.returncode != 0:
            raise GitCommandError(cmd, proc.stderr)
        return proc

    def current_branch(self) -> str:
        proc = self._git("symbolic-ref", "--quiet", "--short", "HEAD", check=False)
        branch = proc.stdout.strip()
        if proc.returncode != 0 or not branch:
            raise DetachedHead()
        return branch

    def remotes(self) -> list[Remote]:
        names = [n.strip() for n in self._git("remote").stdout.splitlines() if n.strip()]
        remotes: list[Remote] = []
        for name in names:
            proc = self._git("remote", "get-url", "--all", name, check=False)
            urls = tuple(u.strip() for u in proc.stdout.splitlines() if u.strip())
            remotes.append(Remote(name=name, urls=urls))
        return remotes

    def fetch(self, remote: str) -> None:
        logger.info("Fetching remote", extra={"remote": remote})
        self._git("fetch", "--quiet", remote)

    def ref_exists(self, ref: str) -> bool:
        proc = self._git("rev-parse", "--verify", "--quiet", ref, check=False)
        return proc.returncode == 0

    def remote_default_branch(self, remote: str) -> str:
        """Return the remote's default branch as `<remote>/<branch>`."""
        proc = self._git(
            "symbolic-ref", "--quiet", "--short", f"refs/remotes/{remote}/HEAD", check=False
        )
        ref = proc.stdout.strip()
        if proc.returncode == 0 and ref:
            return ref

        for candidate in (f"{remote}/main", f"{remote}/master"):
            if self.ref_exists(f"refs/remotes/{candidate}"):
                return candidate

        raise GitCommandError(
            ["git", "symbolic-ref", f"refs/remotes/{remote}/HEAD"],
            f"cannot determine the default branch of remote {remote!r}",
        )

    def create_branch(self, name: str, start_point: str | None = None) -> None:
        """Create `name` and check it out."""
        args = ["checkout", "--quiet", "-b", name]
        if start_point:
            args = ["checkout", "--quiet", "--no-track", "-b", name, start_point]
        self._git(*args)
        logger.info("Created branch", extra={"branch": name, "start_point": start_point})


def remote_pattern(organization: str) -> re.Pattern[str]:
    """Pattern matching remote URLs that belong to `organization`.

    Covers `dev.azure.com/<org>/...` (HTTPS), `ssh.dev.azure.com:v3/<org>/...`,
    `<org>.visualstudio.com/...` and `vs-ssh.visualstudio.com:v3/<org>/...`.
    """

    org = re.escape(organization)
    return re.compile(
        rf"(dev\.azure\.com(:v\d)?/{org}/"
        rf"|//([^/@]+@)?{org}\.visualstudio\.com/"
        rf"|vs-ssh\.visualstudio\.com(:v\d)?/{org}/)",
        re.IGNORECASE,
    )


def _remote_host_and_path(url: str) -> tuple[str, str]:
    if "://" in url:
        parsed = urlparse(url)
        return (parsed.hostname or "").lower(), parsed.path
    # scp-like syntax: user@host:path
    host, sep, path = url.partition(":")
    if not sep:
        return "", url
    return host.rpartition("@")[2].lower(), path


def split_remote_url(url: str) -> tuple[str, str]:
    """Return `(project, repository)` from an Azure DevOps remote URL.

    These are the last two path segments; the `_git` segment of HTTPS URLs
    (`.../<project>/_git/<repo>`) is skipped. A project's default repository
    can be cloned without the project segment (`dev.azure.com/<org>/_git/<repo>`,
    `<org>.visualstudio.com/_git/<repo>`); it carries the project's name.
    """

    host, path = _remote_host_and_path(url.strip())
    segments = [unquote(s) for s in path.split("/") if s]
    if _GIT_PATH_MARKER in segments:
        marker = segments.index(_GIT_PATH_MARKER)
        if marker == len(segments) - 2:
            repository = segments[-1]
            org_segments = 1 if host == "dev.azure.com" else 0
            project = segments[marker - 1] if marker > org_segments else repository
            return project, repository
        segments = segments[:marker] + segments[marker + 1 :]

    if len(segments) < 2:
        raise RemoteNotRecognized(url)
    return segments[-2], segments[-1]


def _ordered(remotes: list[Remote]) -> list[Remote]:
    preferred = [r for r in remotes if r.name == PREFERRED_REMOTE]
    others = [r for r in remotes if r.name != PREFERRED_REMOTE]
    return preferred + others


def find_remote(remotes: list[Remote], organization: str) -> tuple[Remote, str]:
    """Pick the remote (and URL) pointing at `organization`.

    `origin` is tried first, then the rest in the order given.

    Raises:
        RemoteNotFound: no URL of any remote matches.
    """

    pattern = remote_pattern(organization)
    for remote in _ordered(remotes):
        for url in remote.urls:
            if pattern.search(url):
                return remote, url
    raise RemoteNotFound(organization)


def resolve_local_repository(git: GitRepository, organization: str) -> LocalRepository:
    """Read branch and Azure DevOps identity of the working copy."""

    branch = git.current_branch()
    remote, url = find_remote(git.remotes(), organization)
    project, repository = split_remote_url(url)

    logger.info(
        "Resolved remote",
        extra={"remote": remote.name, "url": url, "project": project, "repository": repository},
    )
    return LocalRepository(
        remote_name=remote.name,
        remote_url=url,
        project_name=project,
        repository_name=repository,
        branch_name=branch,
    )
