"""
Sync results: per-repository outcomes, the per-workspace report, and their
JSON / text renderings
"""
import time
from dataclasses import dataclass, field
from typing import Optional

# action_taken values
ACTION_SKIPPED = "skipped"
ACTION_DRY_RUN = "dry_run"
ACTION_SYNCED = "synced"
ACTION_FORCED_SYNC = "forced_sync"

# RepoResult.status values
STATUS_CLONED = "cloned"
STATUS_SKIPPED = "skipped"


@dataclass
class RepoResult:
    name: str
    path: str
    status: str
    remote: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "remote": self.remote,
            "status": self.status,
            "message": self.message,
        }


@dataclass
class SyncResult:
    remote_exists: bool = False
    action_taken: str = ""
    duration_ms: int = 0
    error: Optional[str] = None
    excludes: list[str] = field(default_factory=list)
    repo_results: list[RepoResult] = field(default_factory=list)
    transport: Optional[str] = None
    started: float = field(default_factory=time.monotonic, repr=False, compare=False)

    def finish(self, action: Optional[str] = None) -> "SyncResult":
        """Stamp the action (if given) and the elapsed time since creation."""
        if action is not None:
            self.action_taken = action
        self.duration_ms = int((time.monotonic() - self.started) * 1000)
        return self

    def fail(self, exc: BaseException) -> "SyncResult":
        self.error = str(exc)
        return self.finish()

    def counts(self) -> tuple[int, int]:
        cloned = sum(1 for r in self.repo_results if r.status == STATUS_CLONED)
        skipped = sum(1 for r in self.repo_results if r.status == STATUS_SKIPPED)
        return cloned, skipped

    def to_dict(self) -> dict:
        return {
            "remote_exists": self.remote_exists,
            "action_taken": self.action_taken,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "excludes": list(self.excludes),
            "repo_results": [r.to_dict() for r in self.repo_results],
            "transport": self.transport,
        }


@dataclass
class BatchEntry:
    """One workspace of a sync-batch run."""
    slug: str
    result: Optional[SyncResult] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "slug": self.slug,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
        }


def format_result(result: SyncResult) -> str:
    lines = [
        f"Action: {result.action_taken}",
        f"Remote existed: {result.remote_exists}",
    ]
    if result.repo_results:
        cloned, skipped = result.counts()
        lines.append(f"Repos cloned: {cloned}, skipped: {skipped}")
    lines.append(f"Duration: {result.duration_ms}ms")
    if result.error:
        lines.append(f"Error: {result.error}")
    return "\n".join(lines) + "\n"


def format_repo_results(result: SyncResult) -> str:
    """One line per repository, skip reasons in parentheses."""
    if not result.repo_results:
        return ""
    width = max(len(r.name) for r in result.repo_results)
    lines = []
    for r in result.repo_results:
        line = f"  {r.status:<8} {r.name:<{width}}  {r.path}"
        if r.message:
            line += f" ({r.message})"
        lines.append(line)
    return "\n".join(lines) + "\n"
