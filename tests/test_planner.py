"""
Tests for repository clone planning and local git inspection.
"""
import tempfile
import unittest
from pathlib import Path

from wspush.errors import InvalidRepoPath
from wspush.operations.planner import discover_repos, resolve_repo_clones, safe_repo_path
from wspush.utils.git_utils import get_remote_url, is_git_repo
from wspush.workspace import RepoSpec, Workspace


def no_remote(path):
    return None


def plan(repos, local_path="/nonexistent", get_remote=no_remote):
    ws = Workspace(slug="acme", repos=tuple(repos))
    return resolve_repo_clones(local_path, ws, get_remote=get_remote)


# ── Tests: path safety ────────────────────────────────────────────────────────

class TestSafeRepoPath(unittest.TestCase):

    def test_normalizes(self):
        self.assertEqual(safe_repo_path("repos/./app/"), "repos/app")
        self.assertEqual(safe_repo_path(" repos/a/../b "), "repos/b")

    def test_rejects_escapes(self):
        for bad in ["..", "../x", "repos/../../x", "/etc", "/", ".", "", "   "]:
            with self.subTest(path=bad):
                with self.assertRaises(InvalidRepoPath):
                    safe_repo_path(bad)

    def test_rejects_field_separator(self):
        with self.assertRaises(InvalidRepoPath):
            safe_repo_path("repos/a|b")


# ── Tests: resolve_repo_clones ────────────────────────────────────────────────

class TestResolveRepoClones(unittest.TestCase):

    def test_valid_repo_planned(self):
        plans, results = plan([RepoSpec("app", "repos/app", "git@host:o/app.git")])
        self.assertEqual(results, [])
        self.assertEqual(len(plans), 1)
        self.assertEqual((plans[0].name, plans[0].path, plans[0].remote),
                         ("app", "repos/app", "git@host:o/app.git"))

    def test_unsafe_paths_become_skips(self):
        plans, results = plan([
            RepoSpec("up", "..", "u"),
            RepoSpec("abs", "/srv/x", "u"),
            RepoSpec("esc", "repos/../../x", "u"),
        ])
        self.assertEqual(plans, [])
        self.assertEqual([r.status for r in results], ["skipped"] * 3)
        for r in results:
            self.assertTrue(r.message.startswith("invalid repo path"), r.message)

    def test_missing_path(self):
        plans, results = plan([RepoSpec("app", "", "u")])
        self.assertEqual(plans, [])
        self.assertEqual(results[0].message, "missing repo path")

    def test_missing_remote(self):
        plans, results = plan([RepoSpec("backend", "repos/backend", "")])
        self.assertEqual(plans, [])
        self.assertEqual(results[0].name, "backend")
        self.assertEqual(results[0].path, "repos/backend")
        self.assertEqual(results[0].message, "missing remote")

    def test_remote_from_local_checkout(self):
        seen = []

        def get_remote(path):
            seen.append(Path(path))
            return "https://example.com/o/app.git\n"

        plans, results = plan([RepoSpec("app", "repos/app")], local_path="/ws",
                              get_remote=get_remote)
        self.assertEqual(seen, [Path("/ws/repos/app")])
        self.assertEqual(plans[0].remote, "https://example.com/o/app.git")

    def test_invalid_name(self):
        plans, results = plan([RepoSpec("a|b", "repos/a", "u")])
        self.assertEqual(plans, [])
        self.assertEqual(results[0].message, "invalid repo name")

    def test_invalid_remote(self):
        plans, results = plan([RepoSpec("a", "repos/a", "u\nrm -rf /")])
        self.assertEqual(plans, [])
        self.assertEqual(results[0].message, "invalid remote")

    def test_order_preserved(self):
        plans, _ = plan([RepoSpec("b", "repos/b", "u"), RepoSpec("a", "repos/a", "u")])
        self.assertEqual([p.name for p in plans], ["b", "a"])


# ── Tests: local git inspection ───────────────────────────────────────────────

class TestGitDiscovery(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)

    def tearDown(self):
        self.tmpdir.cleanup()

    def _init(self, rel, origin=None):
        from git import Repo

        path = self.root / rel
        path.mkdir(parents=True)
        repo = Repo.init(path)
        if origin:
            repo.create_remote("origin", origin)
        repo.close()
        return path

    def test_get_remote_url(self):
        path = self._init("repos/app", origin="git@host:o/app.git")
        self.assertTrue(is_git_repo(path))
        self.assertEqual(get_remote_url(path), "git@host:o/app.git")

    def test_get_remote_url_without_origin(self):
        path = self._init("repos/app")
        self.assertIsNone(get_remote_url(path))

    def test_get_remote_url_not_a_repo(self):
        (self.root / "plain").mkdir()
        self.assertFalse(is_git_repo(self.root / "plain"))
        self.assertIsNone(get_remote_url(self.root / "plain"))
        self.assertIsNone(get_remote_url(self.root / "missing"))

    def test_discover_repos(self):
        self._init("repos/web", origin="git@host:o/web.git")
        self._init("repos/api")
        (self.root / "repos" / "notes").mkdir()
        found = discover_repos(self.root)
        self.assertEqual([(r.name, r.path) for r in found],
                         [("api", "repos/api"), ("web", "repos/web")])

    def test_discovered_repos_planned_with_local_remote(self):
        self._init("repos/web", origin="git@host:o/web.git")
        self._init("repos/api")
        plans, results = resolve_repo_clones(self.root, Workspace(slug="acme"))
        self.assertEqual([(p.name, p.remote) for p in plans], [("web", "git@host:o/web.git")])
        self.assertEqual([(r.name, r.message) for r in results], [("api", "missing remote")])

    def test_no_repos_dir(self):
        self.assertEqual(discover_repos(self.root), [])


if __name__ == "__main__":
    unittest.main()
