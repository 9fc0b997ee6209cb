"""
Bulk transfer of the workspace tree (everything except excluded paths)

Primary transport is rsync over the system ssh (incremental, keeps modes
and mtimes, --partial). If rsync is missing or fails, the tree is streamed
as a tar.gz straight into a remote ``tar -x`` over the paramiko session.
"""
import shlex
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path

import paramiko

from ..config import ServerConfig
from ..errors import (RemoteCheckError, SyncTimeout, TransferError,
                      TransportError, TransportUnavailable)
from ..utils.excludes import ExcludeList
from ..utils.logging import log, vlog, warn, is_verbose
from ..utils.shell import remote_path_expr

TRANSPORT_RSYNC = "rsync"
TRANSPORT_TAR = "tar"

STDERR_TAIL = 2000


def _tail(text: str) -> str:
    text = (text or "").strip()
    return text[-STDERR_TAIL:]


# ── remote directory ────────────────────────────────────────────────────────

def remote_path_exists(ssh, remote_path: str, deadline=None) -> bool:
    """
    ``test -d``: exit 0 → exists, exit 1 → absent. Anything else (including
    a failed connection) raises RemoteCheckError; it is never read as
    "absent".
    """
    cmd = f"test -d {remote_path_expr(remote_path)}"
    try:
        rc, output = ssh.run(cmd, deadline=deadline)
    except (paramiko.SSHException, OSError) as exc:
        raise RemoteCheckError(f"failed to check remote path {remote_path}: {exc}") from exc
    if rc == 0:
        return True
    if rc == 1:
        return False
    raise RemoteCheckError(
        f"failed to check remote path {remote_path}: exit {rc}: {_tail(output)}")


def create_remote_dir(ssh, remote_path: str, deadline=None):
    ssh.exec(f"mkdir -p {remote_path_expr(remote_path)}", deadline=deadline)


# ── primary: rsync ──────────────────────────────────────────────────────────

def rsync_command(local_path, server: ServerConfig, remote_path: str,
                  excludes: ExcludeList, io_timeout=None) -> list[str]:
    ssh_cmd = ["ssh"]
    if server.port:
        ssh_cmd += ["-p", str(server.port)]
    if server.ssh_key:
        ssh_cmd += ["-i", server.ssh_key]

    args = ["rsync", "-az", "--partial"]
    if io_timeout:
        args.append(f"--timeout={max(int(io_timeout), 1)}")
    args += ["-e", shlex.join(ssh_cmd)]
    args += excludes.to_rsync_args()
    args.append(str(local_path).rstrip("/") + "/")
    args.append(f"{server.ssh}:{remote_path.rstrip('/')}/")
    return args


def rsync_push(local_path, server: ServerConfig, remote_path: str,
               excludes: ExcludeList, deadline=None):
    if shutil.which("rsync") is None:
        raise TransportUnavailable("rsync not found on PATH")

    timeout = deadline.remaining("rsync") if deadline else None
    args = rsync_command(local_path, server, remote_path, excludes, io_timeout=timeout)
    log(f"[push] rsync {local_path} → {server.ssh}:{remote_path}")
    vlog(f"  $ {shlex.join(args)}")
    try:
        proc = subprocess.run(
            args,
            stdout=sys.stderr if is_verbose() else subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise SyncTimeout("rsync exceeded the sync deadline")
    except OSError as exc:
        raise TransportUnavailable(f"cannot run rsync: {exc}") from exc
    if proc.returncode != 0:
        raise TransportError(f"rsync exited {proc.returncode}: {_tail(proc.stderr)}")


# ── fallback: tar | ssh tar -x ──────────────────────────────────────────────

def tar_push(ssh, local_path, remote_path: str, excludes: ExcludeList, deadline=None):
    """
    Stream ``tar -czf - …`` from the local tree into ``tar -xzf - -C <remote>``.
    Both sides run concurrently; failures of either (or both) are reported
    together.
    """
    if shutil.which("tar") is None:
        raise TransportUnavailable("tar not found on PATH")

    tar_args = ["tar", "-czf", "-", *excludes.to_tar_args(), "-C", str(local_path), "."]
    extract_cmd = f"tar -xzf - -C {remote_path_expr(remote_path)}"
    log(f"[push] tar stream {local_path} → remote:{remote_path}")
    vlog(f"  $ {shlex.join(tar_args)} | ssh … {extract_cmd}")

    with tempfile.TemporaryFile() as tar_stderr:
        try:
            proc = subprocess.Popen(tar_args, stdout=subprocess.PIPE, stderr=tar_stderr)
        except OSError as exc:
            raise TransportUnavailable(f"cannot run tar: {exc}") from exc

        try:
            remote_rc, remote_out = ssh.run_streaming(extract_cmd, proc.stdout, deadline=deadline)
        except (paramiko.SSHException, OSError) as exc:
            proc.kill()
            proc.wait()
            raise TransportError(f"tar stream over ssh failed: {exc}") from exc
        except BaseException:
            proc.kill()
            proc.wait()
            raise
        finally:
            proc.stdout.close()

        try:
            local_rc = proc.wait(timeout=deadline.remaining("local tar") if deadline else None)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
            raise SyncTimeout("local tar exceeded the sync deadline")

        tar_stderr.seek(0)
        local_err = tar_stderr.read().decode("utf-8", errors="replace")

    problems = []
    if local_rc != 0:
        problems.append(f"local tar exited {local_rc}: {_tail(local_err)}")
    if remote_rc != 0:
        problems.append(f"remote tar exited {remote_rc}: {_tail(remote_out)}")
    if problems:
        raise TransportError("; ".join(problems))


def push_workspace(ssh, local_path, server: ServerConfig, remote_path: str,
                   excludes: ExcludeList, deadline=None) -> str:
    """
    Copy the workspace tree to the remote. Returns the transport that
    succeeded. Raises TransferError when both fail; whatever the failed
    rsync left behind is not cleaned up (tar overwrites it).
    """
    local_path = Path(local_path)
    try:
        rsync_push(local_path, server, remote_path, excludes, deadline=deadline)
        return TRANSPORT_RSYNC
    except TransportError as exc:
        primary = exc
        warn(f"[push] rsync unavailable or failed ({exc}); falling back to tar over ssh")

    try:
        tar_push(ssh, local_path, remote_path, excludes, deadline=deadline)
    except TransportError as exc:
        raise TransferError(f"rsync failed: {primary}; tar fallback failed: {exc}") from exc
    return TRANSPORT_TAR
