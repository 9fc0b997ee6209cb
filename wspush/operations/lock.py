"""
Remote sync lock

Two syncs of the same slug to the same server would race on one directory.
The lock is a sibling directory ``<code_root>/.<slug>.wspush-lock`` created
with a single ``mkdir`` (atomic on POSIX filesystems).
"""
import contextlib

from ..errors import RemoteLockError
from ..utils.logging import vlog, warn
from ..utils.shell import remote_path_expr, shell_quote

LOCK_SUFFIX = ".wspush-lock"


def lock_path(code_root: str, slug: str) -> str:
    return f"{code_root.rstrip('/')}/.{slug}{LOCK_SUFFIX}"


def acquire_lock(ssh, code_root: str, slug: str, deadline=None) -> str:
    path = lock_path(code_root, slug)
    cmd = (
        f"mkdir -p {remote_path_expr(code_root)} && "
        f"if mkdir {remote_path_expr(path)} 2>/dev/null; then echo LOCKED; else echo BUSY; fi"
    )
    output = ssh.exec(cmd, deadline=deadline)
    if "LOCKED" not in output.split():
        raise RemoteLockError(
            f"another sync of {slug} appears to be running (lock {path} exists); "
            f"remove it with: rmdir {shell_quote(path)}"
        )
    vlog(f"  [lock] acquired {path}")
    return path


def release_lock(ssh, path: str, deadline=None):
    ssh.exec(f"rmdir {remote_path_expr(path)}", deadline=deadline)
    vlog(f"  [lock] released {path}")


@contextlib.contextmanager
def remote_lock(ssh, code_root: str, slug: str, deadline=None):
    path = acquire_lock(ssh, code_root, slug, deadline=deadline)
    try:
        yield path
    finally:
        # released without the deadline
        try:
            release_lock(ssh, path)
        except Exception as exc:
            warn(f"[lock] could not release {path}: {exc}")
