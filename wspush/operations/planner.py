"""
Repository clone planning (local only, no remote interaction)

Turns the workspace's repo entries into RepoClonePlans. Entries that cannot
be cloned become skipped RepoResults right here and never reach the remote
script.
"""
import posixpath
from dataclasses import dataclass
from pathlib import Path

from ..result import RepoResult, STATUS_SKIPPED
from ..errors import InvalidRepoPath
from ..utils.git_utils import get_remote_url, is_git_repo
from ..utils.logging import vlog
from ..utils.shell import FIELD_SEP
from ..workspace import RepoSpec

REPOS_DIR = "repos"


@dataclass(frozen=True)
class RepoClonePlan:
    name: str
    path: str
    remote: str


def safe_repo_path(repo_path: str) -> str:
    """
    Normalize a workspace-relative repo path. Raises InvalidRepoPath for
    empty, ``.``, absolute or upward-escaping paths.
    """
    clean = posixpath.normpath(repo_path.strip()) if repo_path.strip() else ""
    if clean in ("", "."):
        raise InvalidRepoPath("invalid repo path")
    if posixpath.isabs(clean) or clean == ".." or clean.startswith("../"):
        raise InvalidRepoPath(f"invalid repo path: {repo_path}")
    if FIELD_SEP in clean or "\n" in clean:
        raise InvalidRepoPath(f"invalid repo path: {repo_path!r}")
    return clean


def discover_repos(local_path) -> list[RepoSpec]:
    """Git repositories directly under <workspace>/repos/, by name."""
    repos_dir = Path(local_path) / REPOS_DIR
    if not repos_dir.is_dir():
        return []
    found = []
    for entry in sorted(repos_dir.iterdir()):
        if entry.is_dir() and is_git_repo(entry):
            found.append(RepoSpec(name=entry.name, path=f"{REPOS_DIR}/{entry.name}"))
    return found


def _skip(name: str, path: str, message: str) -> RepoResult:
    vlog(f"  [plan] skip {name or '?'} ({message})")
    return RepoResult(name=name, path=path, status=STATUS_SKIPPED, message=message)


def resolve_repo_clones(local_path, workspace,
                        get_remote=get_remote_url) -> tuple[list[RepoClonePlan], list[RepoResult]]:
    """
    Returns (plans, preflight_results).

    A repo without an explicit remote falls back to the local checkout's
    ``origin``. *get_remote* is the local git inspector (injectable for tests).
    """
    repos = list(workspace.repos) if workspace is not None else []
    if not repos:
        repos = discover_repos(local_path)

    plans: list[RepoClonePlan] = []
    results: list[RepoResult] = []

    for repo in repos:
        if not repo.path.strip():
            results.append(_skip(repo.name, repo.path, "missing repo path"))
            continue

        try:
            clean = safe_repo_path(repo.path)
        except InvalidRepoPath as exc:
            results.append(_skip(repo.name, repo.path, str(exc)))
            continue

        if FIELD_SEP in repo.name or "\n" in repo.name:
            results.append(_skip(repo.name, clean, "invalid repo name"))
            continue

        remote = (repo.remote or "").strip()
        if not remote:
            remote = (get_remote(Path(local_path) / clean) or "").strip()
        if not remote:
            results.append(_skip(repo.name, clean, "missing remote"))
            continue
        if "\n" in remote:
            results.append(_skip(repo.name, clean, "invalid remote"))
            continue

        plans.append(RepoClonePlan(name=repo.name, path=clean, remote=remote))

    return plans, results
