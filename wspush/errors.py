"""
Exception hierarchy for wspush

Errors scoped to a single repository never show up here: the planner and the
clone orchestrator record them as skipped RepoResults instead.
"""
from typing import Optional


class WspushError(Exception):
    """Base class for every error wspush raises on purpose."""


class ConfigError(WspushError):
    """The global config file exists but cannot be used."""


class WorkspaceError(WspushError):
    """The workspace descriptor (project.json) is missing or malformed."""


class ExcludeFileError(WspushError):
    """An --exclude-from file could not be read."""


class InvalidRepoPath(WspushError, ValueError):
    """A repository path is empty, absolute, or escapes the workspace."""


class SyncTimeout(WspushError):
    """The per-invocation deadline expired while waiting on a remote step."""


class RemoteCommandError(WspushError):
    """A remote command exited non-zero."""

    def __init__(self, cmd: str, exit_code: int, output: str = ""):
        self.cmd = cmd
        self.exit_code = exit_code
        self.output = output
        msg = f"remote command exited {exit_code}: {cmd!r}"
        if output.strip():
            msg += f"\n{output.strip()}"
        super().__init__(msg)


class TransportError(WspushError):
    """One bulk-copy transport failed."""


class TransportUnavailable(TransportError):
    """The transport's local binary is not installed."""


# ── pipeline-level failures ─────────────────────────────────────────────────

class SyncError(WspushError):
    """
    A fatal failure of one sync pipeline.

    ``result`` is the partial SyncResult at the point of failure, with its
    ``error`` field already filled in; callers render it just like a
    successful one.
    """

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result


class RemoteCheckError(SyncError):
    """The remote existence check failed for a reason other than "absent"."""


class TransferError(SyncError):
    """Both the primary and the fallback transport failed."""


class RemoteLockError(SyncError):
    """Another sync holds the lock for this remote path."""


class CloneError(SyncError):
    """The remote clone script exited non-zero."""

    def __init__(self, message: str, results: Optional[list] = None,
                 output: str = "", result=None):
        super().__init__(message, result=result)
        self.results = list(results or [])
        self.output = output
