import shutil
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from ghminer.pipeline.git_history import GitHistoryWalker
from ghminer.pipeline.languages import PythonProfile
from ghminer.services.pipeline_exceptions import GitCloneError, MissingGitObjectError
from tests.helpers import GitRepoBuilder

APP_V1 = "def f():\n    return 1\n"
APP_V2 = "def f():\n    # two now\n    return 2\n"
TESTS_V1 = "def test_a():\n    assert f() == 1\n"
TESTS_V2 = TESTS_V1 + "\n\ndef test_b():\n    assert f() == 2\n"


class TestGitHistoryWalker(unittest.TestCase):
    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        self.repos_dir = self.test_dir / "repos"
        self.builder = GitRepoBuilder(self.repos_dir / "octo" / "hello")

        self.c1 = self.builder.commit(
            "Initial",
            {"app.py": APP_V1, "tests/test_app.py": TESTS_V1, "README.md": "# hello\n"},
            date="2024-01-01 10:00:00 +0000",
        )
        self.c2 = self.builder.commit(
            "Second test",
            {"app.py": APP_V2, "tests/test_app.py": TESTS_V2},
            date="2024-01-11 10:00:00 +0000",
        )
        self.c3 = self.builder.commit(
            "Much later",
            {"app.py": APP_V1},
            date="2024-06-01 10:00:00 +0000",
        )

        self.walker = GitHistoryWalker(self.repos_dir, "octo", "hello")
        self.walker.clone_or_update(update=False)

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_commit_lookup(self):
        self.assertTrue(self.walker.commit_exists(self.c1))
        self.assertFalse(self.walker.commit_exists("0123456789abcdef0123456789abcdef01234567"))
        with self.assertRaises(MissingGitObjectError):
            self.walker.lookup("not-a-ref")

    def test_commit_time_is_naive_utc(self):
        self.assertEqual(self.walker.commit_time(self.c1), datetime(2024, 1, 1, 10, 0, 0))

    def test_commit_author(self):
        self.assertEqual(self.walker.commit_author(self.c1), ("Test User", "test@example.com"))

    def test_repository_confounds(self):
        self.assertEqual(self.walker.commit_count(self.c3), 3)
        self.assertEqual(self.walker.commit_count(self.c1), 1)
        self.assertEqual(self.walker.commit_age(self.c3), 152.0)
        self.assertEqual(self.walker.commit_age(self.c1), 0.0)

    def test_confounds_on_unknown_commit_fall_back(self):
        unknown = "0123456789abcdef0123456789abcdef01234567"
        self.assertEqual(self.walker.commit_count(unknown), 1)
        self.assertEqual(self.walker.commit_age(unknown), 0.0)

    def test_first_parent(self):
        self.assertIsNone(self.walker.first_parent(self.c1))
        self.assertEqual(self.walker.first_parent(self.c2), self.c1)

    def test_root_commit_files_are_added(self):
        files = {f["filename"]: f for f in self.walker.commit_file_patches(self.c1)}
        self.assertEqual(set(files), {"app.py", "tests/test_app.py", "README.md"})
        self.assertTrue(all(f["status"] == "added" for f in files.values()))
        self.assertIn("+def f():", files["app.py"]["patch"])

    def test_modified_files(self):
        files = {f["filename"]: f for f in self.walker.commit_file_patches(self.c2)}
        self.assertEqual(files["app.py"]["status"], "modified")
        self.assertEqual(self.walker.files_changed(self.c2), {"app.py", "tests/test_app.py"})

    def test_diff_test_counts(self):
        profile = PythonProfile()
        self.assertEqual(
            self.walker.diff_test_counts(self.c1, self.c2, profile),
            {"tests_added": 1, "tests_deleted": 0},
        )
        self.assertEqual(
            self.walker.diff_test_counts(None, self.c1, profile),
            {"tests_added": 1, "tests_deleted": 0},
        )
        self.assertEqual(
            self.walker.diff_test_counts(self.c2, self.c1, profile),
            {"tests_added": 0, "tests_deleted": 1},
        )

    def test_commits_on_files_touched(self):
        self.assertEqual(self.walker.commits_on_files_touched(self.c2, 3), 2)
        # c1 and c2 are more than three months before c3
        self.assertEqual(self.walker.commits_on_files_touched(self.c3, 3), 1)
        self.assertEqual(self.walker.commits_on_files_touched(self.c3, 6), 3)

    def test_files_at_commit_and_blobs(self):
        profile = PythonProfile()
        sources = self.walker.files_at_commit(self.c2, profile.is_source_file)
        tests = self.walker.files_at_commit(self.c2, profile.is_test_file)

        self.assertEqual([f.path for f in sources], ["app.py"])
        self.assertEqual([f.path for f in tests], ["tests/test_app.py"])
        self.assertEqual(self.walker.read_blob(sources[0].blob_sha), APP_V2)


class TestCloneOrUpdate(unittest.TestCase):
    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_clones_missing_checkout(self):
        upstream = GitRepoBuilder(self.test_dir / "upstream" / "octo" / "hello.git")
        sha = upstream.commit("Initial", {"app.py": APP_V1})

        walker = GitHistoryWalker(
            self.test_dir / "mirror", "octo", "hello", clone_url_base=f"{self.test_dir / 'upstream'}/"
        )
        walker.clone_or_update()

        self.assertTrue((self.test_dir / "mirror" / "octo" / "hello" / ".git").exists())
        self.assertTrue(walker.commit_exists(sha))

        # A second call pulls instead of cloning
        sha2 = upstream.commit("More", {"app.py": APP_V2})
        walker.clone_or_update()
        self.assertTrue(walker.commit_exists(sha2))

    def test_clone_failure_raises(self):
        walker = GitHistoryWalker(
            self.test_dir / "mirror",
            "octo",
            "missing",
            clone_url_base=f"{self.test_dir / 'nowhere'}/",
            max_clone_retries=1,
        )
        with self.assertRaises(GitCloneError):
            walker.clone_or_update()
        self.assertFalse((self.test_dir / "mirror" / "octo" / "missing").exists())


if __name__ == "__main__":
    unittest.main()
