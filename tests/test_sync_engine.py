"""
Pipeline tests for sync_workspace / sync_batch against a fake session.

Tests:
  - skip when the remote exists (twice, no clone attempts)
  - dry-run stops before any remote change
  - end-to-end: frontend cloned, backend skipped for a missing remote
  - forced sync, lock handling, clone failure with partial results
  - fatal errors carry the partial SyncResult
  - batches continue past a failing workspace
"""
import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fakes import FakeSSH
from wspush.config import ServerConfig
from wspush.core.options import SyncOptions
from wspush.core.sync_engine import sync_batch, sync_workspace
from wspush.errors import (CloneError, ExcludeFileError, RemoteCheckError,
                           RemoteLockError, SyncError)

SERVER = ServerConfig(name="devbox", ssh="me@devbox", code_root="~/Code")

PROJECT = {
    "slug": "acme",
    "repos": [
        {"name": "frontend", "path": "repos/frontend", "remote": "git@host:org/frontend.git"},
        {"name": "backend", "path": "repos/backend", "remote": ""},
    ],
}

FRONTEND_CLONED = "CLONED|frontend|repos/frontend|git@host:org/frontend.git\n"


def no_remote(path):
    return None


def write_workspace(root: Path, slug: str, project=None) -> Path:
    ws = root / slug
    ws.mkdir(parents=True)
    (ws / "project.json").write_text(json.dumps(project or PROJECT), encoding="utf-8")
    return ws


class SyncTestCase(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)
        self.ws = write_workspace(self.root, "acme")
        patcher = mock.patch("wspush.core.sync_engine.push_workspace", return_value="rsync")
        self.push = patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        self.tmpdir.cleanup()

    def sync(self, ssh, **opts):
        return sync_workspace(self.ws, SERVER, "acme", SyncOptions(**opts),
                              ssh=ssh, get_remote=no_remote)


# ── Tests: existence gate ─────────────────────────────────────────────────────

class TestExistenceGate(SyncTestCase):

    def test_skipped_twice_without_clone(self):
        for _ in range(2):
            ssh = FakeSSH(exists=True)
            result = self.sync(ssh)
            self.assertEqual(result.action_taken, "skipped")
            self.assertTrue(result.remote_exists)
            self.assertEqual(ssh.ran("sh -s"), [])
            self.assertEqual(ssh.commands, ["test -d \"$HOME\"/'Code/acme'"])
        self.push.assert_not_called()

    def test_dry_run(self):
        ssh = FakeSSH(exists=False)
        result = self.sync(ssh, dry_run=True)
        self.assertEqual(result.action_taken, "dry_run")
        self.assertFalse(result.remote_exists)
        self.assertEqual(len(ssh.commands), 1)
        self.push.assert_not_called()
        # the report still shows what would be excluded and skipped
        self.assertIn("repos/", result.excludes)
        self.assertEqual([r.name for r in result.repo_results], ["backend"])

    def test_dry_run_with_existing_remote_and_force(self):
        ssh = FakeSSH(exists=True)
        result = self.sync(ssh, dry_run=True, force=True)
        self.assertEqual(result.action_taken, "dry_run")
        self.assertTrue(result.remote_exists)
        self.push.assert_not_called()

    def test_check_error_is_fatal(self):
        ssh = FakeSSH(test_rc=255)
        with self.assertRaises(RemoteCheckError) as ctx:
            self.sync(ssh)
        result = ctx.exception.result
        self.assertIsNotNone(result)
        self.assertIn("exit 255", result.error)
        self.assertEqual(result.action_taken, "")
        self.push.assert_not_called()


# ── Tests: full sync ──────────────────────────────────────────────────────────

class TestFullSync(SyncTestCase):

    def test_end_to_end(self):
        ssh = FakeSSH(exists=False, clone_output=FRONTEND_CLONED)
        result = self.sync(ssh)

        self.assertEqual(result.action_taken, "synced")
        self.assertFalse(result.remote_exists)
        self.assertIsNone(result.error)
        self.assertEqual(result.transport, "rsync")
        by_name = {r.name: r for r in result.repo_results}
        self.assertEqual(by_name["frontend"].status, "cloned")
        self.assertEqual(by_name["backend"].status, "skipped")
        self.assertEqual(by_name["backend"].message, "missing remote")

        # only the planned repo reaches the remote script
        script = ssh.scripts[0]
        self.assertIn("name='frontend'", script)
        self.assertNotIn("backend", script)

        # the bulk copy never carries repos/
        excludes = self.push.call_args[0][4]
        self.assertIn("repos/", excludes)

    def test_stage_order(self):
        ssh = FakeSSH(exists=False, clone_output=FRONTEND_CLONED)
        self.sync(ssh)
        kinds = []
        for cmd in ssh.commands:
            if cmd.startswith("test -d"):
                kinds.append("check")
            elif "echo LOCKED" in cmd:
                kinds.append("lock")
            elif cmd.startswith("mkdir -p"):
                kinds.append("mkdir")
            elif cmd == "sh -s":
                kinds.append("clone")
            elif cmd.startswith("rmdir"):
                kinds.append("unlock")
        self.assertEqual(kinds, ["check", "lock", "mkdir", "clone", "unlock"])

    def test_forced_sync(self):
        ssh = FakeSSH(exists=True, clone_output="SKIP|frontend|repos/frontend|exists\n")
        result = self.sync(ssh, force=True)
        self.assertEqual(result.action_taken, "forced_sync")
        self.assertTrue(result.remote_exists)
        self.push.assert_called_once()
        frontend = [r for r in result.repo_results if r.name == "frontend"][0]
        self.assertEqual((frontend.status, frontend.message), ("skipped", "exists"))

    def test_no_repos_no_clone_session(self):
        ws = write_workspace(self.root, "solo", {"slug": "solo"})
        ssh = FakeSSH()
        result = sync_workspace(ws, SERVER, "solo", SyncOptions(), ssh=ssh, get_remote=no_remote)
        self.assertEqual(result.action_taken, "synced")
        self.assertEqual(result.repo_results, [])
        self.assertEqual(ssh.ran("sh -s"), [])

    def test_lock_busy(self):
        ssh = FakeSSH(lock_busy=True)
        with self.assertRaises(RemoteLockError) as ctx:
            self.sync(ssh)
        self.assertIsNotNone(ctx.exception.result.error)
        self.push.assert_not_called()
        self.assertEqual(ssh.ran("rmdir"), [])

    def test_clone_failure_keeps_partial_results(self):
        ssh = FakeSSH(clone_rc=128,
                      clone_output=FRONTEND_CLONED + "fatal: could not read from remote\n")
        with self.assertRaises(CloneError) as ctx:
            self.sync(ssh)
        result = ctx.exception.result
        statuses = {r.name: r.status for r in result.repo_results}
        self.assertEqual(statuses, {"backend": "skipped", "frontend": "cloned"})
        self.assertIn("clone repos failed", result.error)
        self.assertEqual(len(ssh.ran("rmdir")), 1)

    def test_transfer_failure_releases_lock(self):
        from wspush.errors import TransferError

        self.push.side_effect = TransferError("rsync failed: x; tar fallback failed: y")
        ssh = FakeSSH()
        with self.assertRaises(TransferError):
            self.sync(ssh)
        self.assertEqual(ssh.ran("sh -s"), [])
        self.assertEqual(len(ssh.ran("rmdir")), 1)

    def test_exclude_file_error_before_remote_contact(self):
        ssh = FakeSSH()
        with self.assertRaises(SyncError) as ctx:
            self.sync(ssh, exclude_from=str(self.root / "nope.txt"))
        self.assertIsInstance(ctx.exception.__cause__, ExcludeFileError)
        self.assertEqual(ssh.commands, [])
        self.assertIn("nope.txt", ctx.exception.result.error)

    def test_missing_project_json(self):
        empty = self.root / "empty"
        empty.mkdir()
        ssh = FakeSSH()
        with self.assertRaises(SyncError) as ctx:
            sync_workspace(empty, SERVER, "empty", SyncOptions(), ssh=ssh)
        self.assertIn("project.json", str(ctx.exception))
        self.assertEqual(ssh.commands, [])

    def test_injected_session_not_closed(self):
        ssh = FakeSSH(exists=True)
        self.sync(ssh)
        self.assertFalse(ssh.closed)

    def test_duration_recorded(self):
        result = self.sync(FakeSSH(exists=True))
        self.assertGreaterEqual(result.duration_ms, 0)
        self.assertIsInstance(result.duration_ms, int)


# ── Tests: batches ────────────────────────────────────────────────────────────

class TestSyncBatch(SyncTestCase):

    def test_continues_past_failures(self):
        write_workspace(self.root, "beta", {"slug": "beta"})
        (self.root / "broken").mkdir()
        ssh = FakeSSH(clone_output=FRONTEND_CLONED)

        entries = sync_batch(["acme", "broken", "beta"], SERVER, SyncOptions(),
                             lambda slug: self.root / slug, ssh=ssh, get_remote=no_remote)

        self.assertEqual([e.slug for e in entries], ["acme", "broken", "beta"])
        self.assertEqual(entries[0].result.action_taken, "synced")
        self.assertIsNone(entries[0].error)
        self.assertIsNone(entries[1].result)
        self.assertIn("project.json", entries[1].error)
        self.assertEqual(entries[2].result.action_taken, "synced")
        self.assertFalse(ssh.closed)

    def test_malformed_descriptor_recorded(self):
        write_workspace(self.root, "odd", {"repos": 5})
        ssh = FakeSSH()
        entries = sync_batch(["odd", "acme"], SERVER, SyncOptions(),
                             lambda slug: self.root / slug, ssh=ssh, get_remote=no_remote)
        self.assertIn("repos must be a list", entries[0].error)
        self.assertIsNone(entries[1].error)

    def test_sync_error_keeps_result(self):
        ssh = FakeSSH(test_rc=255)
        entries = sync_batch(["acme"], SERVER, SyncOptions(),
                             lambda slug: self.root / slug, ssh=ssh, get_remote=no_remote)
        self.assertIsNotNone(entries[0].result)
        self.assertEqual(entries[0].error, entries[0].result.error)
        self.assertEqual(entries[0].to_dict()["slug"], "acme")


if __name__ == "__main__":
    unittest.main()
