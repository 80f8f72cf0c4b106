"""Unit tests for git remote resolution."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from ado_link.errors import (
    DetachedHead,
    NotAGitRepository,
    RemoteNotFound,
    RemoteNotRecognized,
)
from ado_link.git.remote import (
    GitRepository,
    Remote,
    find_remote,
    remote_pattern,
    resolve_local_repository,
    split_remote_url,
)
from conftest import run_git


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("git@ssh.dev.azure.com:v3/contoso/Fabrikam/web-app", ("Fabrikam", "web-app")),
        ("https://contoso@dev.azure.com/contoso/Fabrikam/_git/web-app", ("Fabrikam", "web-app")),
        ("https://dev.azure.com/contoso/Fabrikam/web-app", ("Fabrikam", "web-app")),
        ("https://dev.azure.com/contoso/Fabrikam/web-app/", ("Fabrikam", "web-app")),
        ("https://contoso.visualstudio.com/Fabrikam/_git/web-app", ("Fabrikam", "web-app")),
        (
            "https://contoso.visualstudio.com/DefaultCollection/Fabrikam/_git/web-app",
            ("Fabrikam", "web-app"),
        ),
        ("contoso@vs-ssh.visualstudio.com:v3/contoso/Fabrikam/web-app", ("Fabrikam", "web-app")),
        ("https://dev.azure.com/contoso/My%20Project/_git/My%20Repo", ("My Project", "My Repo")),
        ("https://dev.azure.com/contoso/_git/Fabrikam", ("Fabrikam", "Fabrikam")),
        ("https://contoso@dev.azure.com/contoso/_git/Fabrikam", ("Fabrikam", "Fabrikam")),
        ("https://contoso.visualstudio.com/_git/Fabrikam", ("Fabrikam", "Fabrikam")),
    ],
)
def test_split_remote_url(url: str, expected: tuple[str, str]) -> None:
    assert split_remote_url(url) == expected


def test_split_remote_url_takes_last_two_segments() -> None:
    assert split_remote_url("https://dev.azure.com/org/a/b/c/project/repo") == ("project", "repo")


def test_split_remote_url_rejects_short_paths() -> None:
    with pytest.raises(RemoteNotRecognized):
        split_remote_url("https://dev.azure.com/")


@pytest.mark.parametrize(
    "url",
    [
        "git@ssh.dev.azure.com:v3/contoso/Fabrikam/web-app",
        "https://contoso@dev.azure.com/contoso/Fabrikam/_git/web-app",
        "https://DEV.AZURE.COM/Contoso/Fabrikam/_git/web-app",
        "https://contoso.visualstudio.com/Fabrikam/_git/web-app",
        "contoso@vs-ssh.visualstudio.com:v3/contoso/Fabrikam/web-app",
    ],
)
def test_remote_pattern_matches_organization(url: str) -> None:
    assert remote_pattern("contoso").search(url)


@pytest.mark.parametrize(
    "url",
    [
        "git@github.com:contoso/web-app.git",
        "https://dev.azure.com/contosoltd/Fabrikam/_git/web-app",
        "https://dev.azure.com/other/contoso/_git/web-app",
        "https://notcontoso.visualstudio.com/Fabrikam/_git/web-app",
    ],
)
def test_remote_pattern_ignores_other_hosts_and_organizations(url: str) -> None:
    assert not remote_pattern("contoso").search(url)


def test_find_remote_prefers_origin() -> None:
    remotes = [
        Remote(name="backup", urls=("https://dev.azure.com/contoso/Old/_git/old-repo",)),
        Remote(name="origin", urls=("https://dev.azure.com/contoso/Fabrikam/_git/web-app",)),
    ]

    remote, url = find_remote(remotes, "contoso")

    assert remote.name == "origin"
    assert url == "https://dev.azure.com/contoso/Fabrikam/_git/web-app"


def test_find_remote_falls_back_to_first_matching_remote() -> None:
    remotes = [
        Remote(name="github", urls=("git@github.com:contoso/web-app.git",)),
        Remote(name="azure", urls=("https://dev.azure.com/contoso/Fabrikam/_git/web-app",)),
        Remote(name="mirror", urls=("https://dev.azure.com/contoso/Mirror/_git/web-app",)),
        Remote(name="origin", urls=("git@github.com:contoso/web-app.git",)),
    ]

    remote, _ = find_remote(remotes, "contoso")

    assert remote.name == "azure"


def test_find_remote_raises_without_match() -> None:
    remotes = [Remote(name="origin", urls=("git@github.com:contoso/web-app.git",))]

    with pytest.raises(RemoteNotFound):
        find_remote(remotes, "contoso")


def test_open_outside_repository_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    plain = tmp_path / "plain"
    plain.mkdir()

    with pytest.raises(NotAGitRepository):
        GitRepository.open(plain)


def test_resolve_local_repository(git_repo: Path) -> None:
    run_git(git_repo, "remote", "add", "github", "git@github.com:contoso/web-app.git")
    run_git(
        git_repo,
        "remote",
        "add",
        "origin",
        "https://contoso@dev.azure.com/contoso/Fabrikam/_git/web-app",
    )
    run_git(git_repo, "checkout", "--quiet", "-b", "feature/login")

    git = GitRepository.open(git_repo)
    local = resolve_local_repository(git, "contoso")

    assert git.root.resolve() == git_repo.resolve()
    assert local.remote_name == "origin"
    assert local.project_name == "Fabrikam"
    assert local.repository_name == "web-app"
    assert local.branch_name == "feature/login"


def test_open_from_subdirectory_finds_root(git_repo: Path) -> None:
    sub = git_repo / "src" / "pkg"
    sub.mkdir(parents=True)

    assert GitRepository.open(sub).root.resolve() == git_repo.resolve()


def test_remotes_lists_all_urls(git_repo: Path) -> None:
    run_git(git_repo, "remote", "add", "origin", "git@ssh.dev.azure.com:v3/contoso/Fabrikam/web-app")

    remotes = GitRepository.open(git_repo).remotes()

    assert remotes == [
        Remote(name="origin", urls=("git@ssh.dev.azure.com:v3/contoso/Fabrikam/web-app",))
    ]


def test_current_branch_detached_head_raises(git_repo: Path) -> None:
    run_git(git_repo, "checkout", "--quiet", "--detach")

    with pytest.raises(DetachedHead):
        GitRepository.open(git_repo).current_branch()


def test_create_branch_from_remote_default_branch(git_repo: Path, tmp_path: Path) -> None:
    upstream = tmp_path / "upstream.git"
    subprocess.run(
        ["git", "clone", "--quiet", "--bare", str(git_repo), str(upstream)],
        check=True,
        capture_output=True,
    )
    run_git(git_repo, "remote", "add", "upstream", str(upstream))
    run_git(git_repo, "commit", "--allow-empty", "--quiet", "-m", "local only")

    git = GitRepository.open(git_repo)
    git.fetch("upstream")
    start = git.remote_default_branch("upstream")
    git.create_branch("feature/clean", start)

    assert start == "upstream/main"
    assert git.current_branch() == "feature/clean"
    head = run_git(git_repo, "rev-parse", "HEAD").strip()
    upstream_main = run_git(git_repo, "rev-parse", "upstream/main").strip()
    assert head == upstream_main
    assert git.ref_exists("refs/heads/feature/clean")
