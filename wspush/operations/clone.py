"""
Remote repository materialization

All plans are rendered into one shell program, which runs over a single
``sh -s`` session. The program prints one machine-readable line per repo:

    CLONED|<name>|<rel path>|<url>
    SKIP|<name>|<rel path>|exists
"""
from ..result import RepoResult, STATUS_CLONED, STATUS_SKIPPED
from ..errors import CloneError
from ..utils.logging import log, vlog
from ..utils.shell import (CLONED_TAG, SKIP_TAG, FIELD_SEP,
                           CloneIfAbsent, EnsureDir, render_script)
from .planner import REPOS_DIR


def build_clone_script(remote_root: str, plans) -> str:
    actions = [EnsureDir(""), EnsureDir(REPOS_DIR)]
    actions += [CloneIfAbsent(name=p.name, rel=p.path, url=p.remote) for p in plans]
    return render_script(remote_root, actions)


def parse_clone_output(output: str) -> list[RepoResult]:
    """Pick the CLONED / SKIP lines out of the script output; ignore the rest."""
    results: list[RepoResult] = []
    for line in output.splitlines():
        line = line.strip()
        if line.startswith(CLONED_TAG + FIELD_SEP):
            parts = line.split(FIELD_SEP, 3)
            if len(parts) == 4:
                results.append(RepoResult(name=parts[1], path=parts[2],
                                          remote=parts[3], status=STATUS_CLONED))
        elif line.startswith(SKIP_TAG + FIELD_SEP):
            parts = line.split(FIELD_SEP, 3)
            if len(parts) == 4:
                results.append(RepoResult(name=parts[1], path=parts[2],
                                          status=STATUS_SKIPPED, message=parts[3]))
    return results


def clone_repos(ssh, remote_root: str, plans, deadline=None) -> list[RepoResult]:
    """
    Clone every planned repo that is missing under *remote_root*.

    Raises CloneError if the script exits non-zero; the results parsed up to
    that point travel on the exception.
    """
    if not plans:
        return []

    script = build_clone_script(remote_root, plans)
    log(f"[clone] materializing {len(plans)} repo(s) on remote …")
    rc, output = ssh.run("sh -s", input_data=script, deadline=deadline)
    results = parse_clone_output(output)

    for r in results:
        vlog(f"  [{r.status.upper()}] {r.name} → {r.path}")

    if rc != 0:
        raise CloneError(
            f"clone repos failed: remote script exited {rc}: {output.strip()}",
            results=results,
            output=output,
        )
    return results
