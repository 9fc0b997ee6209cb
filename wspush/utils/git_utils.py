"""
Local git inspection (read-only)
"""
from pathlib import Path
from typing import Optional

from git import Repo, InvalidGitRepositoryError, NoSuchPathError

from .logging import vlog


def is_git_repo(path) -> bool:
    """True if *path* is the top level of a git working tree."""
    p = Path(path)
    if not (p / ".git").exists():
        return False
    try:
        Repo(p)
        return True
    except (InvalidGitRepositoryError, NoSuchPathError):
        return False


def get_remote_url(repo_path, remote: str = "origin") -> Optional[str]:
    """
    Return the URL configured for *remote* in the repository at
    *repo_path*, or None if the path is not a repo or the remote is unset.
    """
    try:
        repo = Repo(repo_path)
    except (InvalidGitRepositoryError, NoSuchPathError):
        vlog(f"  [git] {repo_path}: not a git repository")
        return None

    try:
        with repo:
            url = repo.remote(remote).url
    except ValueError:
        vlog(f"  [git] {repo_path}: no remote named {remote!r}")
        return None
    url = (url or "").strip()
    return url or None
