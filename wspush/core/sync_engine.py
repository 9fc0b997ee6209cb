"""
Workspace sync pipeline

    excludes → clone plan → remote exists? → (skip | dry-run)
             → lock → mkdir → rsync / tar fallback → clone → report

Stages run strictly in order; nothing here runs in parallel.
"""
from pathlib import Path

import paramiko

from ..errors import CloneError, RemoteCommandError, SyncError, TransferError, WspushError
from ..operations.clone import clone_repos
from ..operations.lock import remote_lock
from ..operations.planner import resolve_repo_clones
from ..operations.transfer import create_remote_dir, push_workspace, remote_path_exists
from ..utils.deadline import Deadline
from ..utils.git_utils import get_remote_url
from ..utils.logging import log, vlog
from ..result import (ACTION_DRY_RUN, ACTION_FORCED_SYNC, ACTION_SKIPPED,
                      ACTION_SYNCED, BatchEntry, SyncResult)
from ..workspace import load_workspace
from .options import SyncOptions
from .ssh_manager import SSHManager


def sync_workspace(local_path, server, slug: str, options: SyncOptions,
                   ssh=None, get_remote=get_remote_url) -> SyncResult:
    """
    Sync one workspace to ``<server.code_root>/<slug>``.

    Returns the SyncResult. Fatal failures raise a SyncError subclass whose
    ``result`` attribute holds the partial report (``error`` filled in).
    """
    result = SyncResult()
    own_ssh = ssh is None
    if own_ssh:
        ssh = SSHManager(server)

    try:
        _run(result, Path(local_path), server, slug, options, ssh, get_remote)
    except SyncError as exc:
        exc.result = result.fail(exc)
        raise
    except WspushError as exc:
        raise SyncError(str(exc), result=result.fail(exc)) from exc
    except (paramiko.SSHException, OSError) as exc:
        raise SyncError(f"ssh session failed: {exc}", result=result.fail(exc)) from exc
    finally:
        if own_ssh:
            ssh.close()
    return result


def _run(result: SyncResult, local_path: Path, server, slug: str,
         options: SyncOptions, ssh, get_remote):
    deadline = Deadline(options.timeout)
    remote_path = server.remote_path(slug)
    log(f"[sync] {slug} → {server.ssh}:{remote_path}")

    # ── 1. Local preparation (no remote contact yet) ────────────────────────
    if options.workspace is None:
        options = options.with_workspace(load_workspace(local_path))

    excludes = options.build_excludes()
    result.excludes = list(excludes)
    vlog(f"[excludes] {len(excludes)} pattern(s)")

    plans, preflight = resolve_repo_clones(local_path, options.workspace, get_remote=get_remote)
    result.repo_results.extend(preflight)
    vlog(f"[plan] {len(plans)} repo(s) to clone, {len(preflight)} skipped locally")

    # ── 2. Existence check ──────────────────────────────────────────────────
    exists = remote_path_exists(ssh, remote_path, deadline=deadline)
    result.remote_exists = exists

    if exists and not options.force:
        log(f"[sync] {remote_path} already exists on {server.ssh}; skipping")
        result.finish(ACTION_SKIPPED)
        return
    if options.dry_run:
        log("[sync] dry-run: stopping before any remote change")
        result.finish(ACTION_DRY_RUN)
        return

    # ── 3. Mutating stages, under the remote lock ───────────────────────────
    with remote_lock(ssh, server.code_root, slug, deadline=deadline):
        try:
            create_remote_dir(ssh, remote_path, deadline=deadline)
        except RemoteCommandError as exc:
            raise TransferError(f"failed to create {remote_path}: {exc}") from exc

        result.transport = push_workspace(ssh, local_path, server, remote_path,
                                          excludes, deadline=deadline)

        try:
            cloned = clone_repos(ssh, remote_path, plans, deadline=deadline)
        except CloneError as exc:
            result.repo_results.extend(exc.results)
            raise
        result.repo_results.extend(cloned)

    result.finish(ACTION_FORCED_SYNC if exists else ACTION_SYNCED)
    log(f"[sync] {slug}: {result.action_taken} via {result.transport} ✓")


def sync_batch(slugs, server, options: SyncOptions, workspace_path,
               ssh=None, get_remote=get_remote_url) -> list[BatchEntry]:
    """
    Sync several workspaces one after another over a single SSH session.
    *workspace_path* maps a slug to its local directory. A failing workspace
    is recorded and the batch moves on.
    """
    entries: list[BatchEntry] = []
    own_ssh = ssh is None
    if own_ssh:
        ssh = SSHManager(server)

    try:
        for slug in slugs:
            try:
                local_path = workspace_path(slug)
                workspace = load_workspace(local_path)
                result = sync_workspace(local_path, server, slug,
                                        options.with_workspace(workspace),
                                        ssh=ssh, get_remote=get_remote)
                entries.append(BatchEntry(slug=slug, result=result))
            except SyncError as exc:
                entries.append(BatchEntry(slug=slug, result=exc.result, error=str(exc)))
            except WspushError as exc:
                entries.append(BatchEntry(slug=slug, error=str(exc)))
    finally:
        if own_ssh:
            ssh.close()
    return entries
