"""Local git plumbing."""

from ado_link.git.remote import (
    GitRepository,
    LocalRepository,
    Remote,
    find_remote,
    resolve_local_repository,
    split_remote_url,
)

__all__ = [
    "GitRepository",
    "LocalRepository",
    "Remote",
    "find_remote",
    "resolve_local_repository",
    "split_remote_url",
]
