"""Test configuration and fixtures."""

from __future__ import annotations

import json
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import requests

from ado_link.config import MemoryConfigStore

_SETTINGS_ENV = (
    "ADO_LINK_CONFIG_FILE",
    "LOG_LEVEL",
    "ADO_LINK_API_VERSION",
    "ADO_LINK_TIMEOUT_SECONDS",
)


def run_git(cwd: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com",
         "-c", "commit.gpgsign=false", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return proc.stdout


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point settings at a temporary config file and away from any real `.env`."""
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    config_file = tmp_path / "config" / "ado-link.json"
    monkeypatch.setenv("ADO_LINK_CONFIG_FILE", str(config_file))
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    return config_file


@pytest.fixture
def memory_store() -> MemoryConfigStore:
    """Provide a configured in-memory store."""
    return MemoryConfigStore({"org_url": "https://dev.azure.com/contoso", "pat": "secret-pat"})


@pytest.fixture
def git_repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Provide a git working copy on branch `main` with one empty commit."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    repo = tmp_path / "repo"
    repo.mkdir()
    run_git(repo, "init", "--quiet")
    run_git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    run_git(repo, "commit", "--allow-empty", "--quiet", "-m", "init")
    return repo


@pytest.fixture
def make_response() -> Callable[..., requests.Response]:
    """Build real `requests.Response` objects without a server."""

    def _make(
        status_code: int = 200,
        payload: Any = None,
        *,
        headers: dict[str, str] | None = None,
        text: str | None = None,
    ) -> requests.Response:
        resp = requests.Response()
        resp.status_code = status_code
        body = text if text is not None else json.dumps(payload)
        resp._content = body.encode("utf-8")
        resp.encoding = "utf-8"
        resp.headers.update(headers or {})
        return resp

    return _make
