"""Operations (transfer, clone planning, clone, remote lock)"""
from .transfer import remote_path_exists, create_remote_dir, push_workspace
from .planner import RepoClonePlan, resolve_repo_clones, safe_repo_path
from .clone import build_clone_script, parse_clone_output, clone_repos
from .lock import remote_lock

__all__ = [
    "remote_path_exists", "create_remote_dir", "push_workspace",
    "RepoClonePlan", "resolve_repo_clones", "safe_repo_path",
    "build_clone_script", "parse_clone_output", "clone_repos",
    "remote_lock",
]
