"""
Per-invocation sync options
"""
from dataclasses import dataclass, replace
from typing import Optional

from ..utils.excludes import FORCE_EXCLUDE_PATTERNS, ExcludeList, resolve_excludes
from ..workspace import Workspace


@dataclass(frozen=True)
class SyncOptions:
    """
    Everything one sync call needs besides the paths and the server.
    Built once (by the CLI or a caller) and never mutated.
    """
    force: bool = False
    dry_run: bool = False
    # exclude .git directories from the bulk copy (repos are cloned regardless)
    no_git: bool = False
    include_env: bool = False
    exclude_patterns: tuple[str, ...] = ()
    exclude_from: Optional[str] = None
    workspace_add: tuple[str, ...] = ()
    workspace_remove: tuple[str, ...] = ()
    # the caller already curated an exhaustive exclude set (interactive picker)
    skip_default_excludes: bool = False
    force_exclude_patterns: tuple[str, ...] = FORCE_EXCLUDE_PATTERNS
    timeout: Optional[float] = None
    workspace: Optional[Workspace] = None

    def with_workspace(self, workspace: Workspace) -> "SyncOptions":
        """Attach *workspace* and fold in its sync preferences."""
        prefs = workspace.sync
        return replace(
            self,
            workspace=workspace,
            workspace_add=prefs.excludes_add,
            workspace_remove=prefs.excludes_remove,
            include_env=self.include_env or prefs.include_env,
        )

    def build_excludes(self) -> ExcludeList:
        return resolve_excludes(self)
