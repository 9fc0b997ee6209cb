"""
Workspace descriptor (project.json)

Only the fields the sync engine reads are modelled here:

    {
      "slug": "acme--shop",
      "repos": [
        {"name": "frontend", "path": "repos/frontend", "remote": "git@host:acme/frontend.git"}
      ],
      "sync": {
        "excludes": {"add": ["data/"], "remove": ["bin/"]},
        "include_env": false
      }
    }
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .config import PROJECT_FILE
from .errors import WorkspaceError


@dataclass(frozen=True)
class RepoSpec:
    name: str
    path: str
    remote: Optional[str] = None


@dataclass(frozen=True)
class SyncPrefs:
    excludes_add: tuple[str, ...] = ()
    excludes_remove: tuple[str, ...] = ()
    include_env: bool = False


@dataclass(frozen=True)
class Workspace:
    slug: str
    repos: tuple[RepoSpec, ...] = ()
    sync: SyncPrefs = field(default_factory=SyncPrefs)


def _str_list(value, what: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise WorkspaceError(f"{what} must be a list of strings")
    return tuple(value)


_TYPE_NAMES = {list: "a list", dict: "an object", bool: "a boolean"}


def _get(obj: dict, key: str, kind: type, default, where: str = ""):
    """obj[key] if present and of *kind*; *default* when absent or null."""
    value = obj.get(key)
    if value is None:
        return default
    if not isinstance(value, kind):
        raise WorkspaceError(f"project.json: {where}{key} must be {_TYPE_NAMES[kind]}")
    return value


def parse_workspace(data: dict, default_slug: str = "") -> Workspace:
    if not isinstance(data, dict):
        raise WorkspaceError("project.json: top level must be an object")

    repos_raw = _get(data, "repos", list, [])
    repos = []
    for i, raw in enumerate(repos_raw):
        if not isinstance(raw, dict):
            raise WorkspaceError(f"project.json: repos[{i}] must be an object")
        remote = raw.get("remote")
        repos.append(RepoSpec(
            name=str(raw.get("name") or ""),
            path=str(raw.get("path") or ""),
            remote=str(remote) if remote else None,
        ))

    sync_raw = _get(data, "sync", dict, {})
    excludes_raw = _get(sync_raw, "excludes", dict, {}, where="sync.")
    prefs = SyncPrefs(
        excludes_add=_str_list(excludes_raw.get("add"), "sync.excludes.add"),
        excludes_remove=_str_list(excludes_raw.get("remove"), "sync.excludes.remove"),
        # a string such as "false" must not turn off the .env excludes
        include_env=_get(sync_raw, "include_env", bool, False, where="sync."),
    )
    return Workspace(slug=str(data.get("slug") or default_slug),
                     repos=tuple(repos), sync=prefs)


def load_workspace(local_path) -> Workspace:
    """Load <local_path>/project.json."""
    root = Path(local_path)
    project_path = root / PROJECT_FILE
    try:
        data = json.loads(project_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise WorkspaceError(f"{PROJECT_FILE} required for sync: {project_path} not found")
    except (OSError, ValueError) as exc:
        raise WorkspaceError(f"cannot load {project_path}: {exc}") from exc
    return parse_workspace(data, default_slug=root.name)


def list_workspaces(code_root) -> list[str]:
    """Slugs of every directory under *code_root* that holds a project.json."""
    root = Path(code_root)
    if not root.is_dir():
        return []
    return sorted(
        p.name for p in root.iterdir()
        if p.is_dir() and not p.name.startswith((".", "_")) and (p / PROJECT_FILE).is_file()
    )
