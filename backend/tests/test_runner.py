import shutil
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock

from sqlalchemy import create_engine

from ghminer.database.schema import commits, create_schema, project_commits, projects, users, workflow_runs
from ghminer.pipeline.runner import CI_BUILDS, BuildExtractionRunner, build_key
from ghminer.repositories.project_store import ProjectStore
from ghminer.services.github.exceptions import GithubAuthError
from ghminer.services.pipeline_exceptions import ProjectNotFoundError
from tests.helpers import GitRepoBuilder, InMemoryPersister, make_settings

APP_V1 = "def f():\n    return 1\n"
APP_V2 = "def f():\n    # two now\n    return 2\n"
TESTS_V1 = "def test_a():\n    assert f() == 1\n"
TESTS_V2 = TESTS_V1 + "\n\ndef test_b():\n    assert f() == 2\n"


class TestBuildExtractionRunner(unittest.TestCase):
    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        self.repos_dir = self.test_dir / "repos"

        builder = GitRepoBuilder(self.repos_dir / "octo" / "hello")
        self.c1 = builder.commit(
            "Initial",
            {"app.py": APP_V1, "tests/test_app.py": TESTS_V1, "README.md": "# hello\n"},
            date="2024-01-01 10:00:00 +0000",
        )
        self.c2 = builder.commit(
            "Second test",
            {"app.py": APP_V2, "tests/test_app.py": TESTS_V2},
            date="2024-01-11 10:00:00 +0000",
        )

        self.engine = create_engine(
            f"sqlite:///{self.test_dir / 'project.db'}", connect_args={"check_same_thread": False}
        )
        create_schema(self.engine)
        with self.engine.begin() as conn:
            conn.execute(
                users.insert(),
                [
                    {"id": 1, "login": "octo", "email": "octo@example.com", "fake": False},
                    {"id": 2, "login": "tester", "email": "test@example.com", "fake": False},
                ],
            )
            conn.execute(projects.insert(), [{"id": 1, "owner_id": 1, "name": "hello", "language": "Python"}])
            conn.execute(
                commits.insert(),
                [{"id": 1, "sha": self.c2, "author_id": 2, "committer_id": 2, "project_id": 1,
                  "created_at": datetime(2024, 1, 11, 10, 0)}],
            )
            conn.execute(project_commits.insert(), [{"project_id": 1, "commit_id": 1}])

        self.persister = InMemoryPersister()
        self.settings = make_settings(REPOS_DIR=str(self.repos_dir), EXTRACTOR_THREADS=2)
        self.runner = BuildExtractionRunner(
            self.settings, ProjectStore(self.engine), self.persister, update_clone=False
        )

    def tearDown(self):
        self.engine.dispose()
        shutil.rmtree(self.test_dir)

    def add_run(self, github_id, sha, conclusion="success", branch="main",
                started=datetime(2024, 1, 11, 10, 5), updated=datetime(2024, 1, 11, 10, 15)):
        with self.engine.begin() as conn:
            conn.execute(
                workflow_runs.insert(),
                [{"github_id": github_id, "project_id": 1, "head_branch": branch, "head_sha": sha,
                  "status": "completed", "conclusion": conclusion,
                  "run_started_at": started, "updated_at": updated}],
            )

    def test_extracts_one_record_per_run(self):
        self.add_run(5000, self.c2)

        result = self.runner.run("octo", "hello")

        self.assertEqual(result, {"status": "success", "message": "Extracted and saved 1 builds"})
        records = self.persister.find(CI_BUILDS, {})
        self.assertEqual(len(records), 1)
        record = records[0]

        self.assertEqual(record["gh_project_name"], "octo/hello")
        self.assertEqual(record["git_branch"], "main")
        self.assertEqual(record["git_all_built_commits"], self.c2)
        self.assertEqual(record["git_trigger_commit"], self.c2)
        self.assertEqual(record["gh_lang"], "Python")
        self.assertEqual(record["build_duration"], 600)
        self.assertEqual(record["build_failed"], "passed")
        self.assertEqual(record["gh_build_started_at"], "01/11/2024 10:05:00")
        self.assertEqual(record["github_run_id"], 5000)

        self.assertEqual(record["git_diff_src_churn"], 3)
        self.assertEqual(record["git_diff_test_churn"], 4)
        self.assertEqual(record["gh_diff_files_modified"], 2)
        self.assertEqual(record["gh_diff_tests_added"], 1)
        self.assertEqual(record["gh_diff_tests_deleted"], 0)

        self.assertEqual(record["gh_sloc"], 2)
        self.assertEqual(record["gh_test_lines_per_kloc"], 2000.0)
        self.assertEqual(record["gh_test_cases_per_kloc"], 1000.0)
        self.assertEqual(record["gh_asserts_cases_per_kloc"], 1000.0)

        self.assertEqual(record["gh_team_size"], 1)
        self.assertTrue(record["gh_by_core_team_member"])
        self.assertFalse(record["gh_is_pr"])
        self.assertEqual(record["gh_repo_num_commits"], 2)
        self.assertEqual(record["gh_repo_age"], 10.0)
        self.assertEqual(record["gh_num_commits_on_files_touched"], 2)

    def test_failed_run_and_missing_branch(self):
        self.add_run(5001, self.c2, conclusion="failure", branch=None)
        self.runner.run("octo", "hello")
        record = self.persister.find(CI_BUILDS, {})[0]
        self.assertEqual(record["build_failed"], "failed")
        self.assertEqual(record["git_branch"], "unknown")

    def test_rerun_overwrites_by_business_key(self):
        self.add_run(5000, self.c2)
        self.runner.run("octo", "hello")
        self.runner.run("octo", "hello")
        self.assertEqual(len(self.persister.find(CI_BUILDS, {})), 1)

    def test_unknown_commit_is_skipped_without_failing_the_batch(self):
        self.add_run(5000, self.c2)
        self.add_run(5002, "f" * 40, branch="feature")

        result = self.runner.run("octo", "hello")

        self.assertEqual(result["status"], "success")
        self.assertEqual(len(self.persister.find(CI_BUILDS, {})), 1)

    def test_no_runs_is_an_error_result(self):
        result = self.runner.run("octo", "hello")
        self.assertEqual(result, {"status": "error", "message": "No data extracted"})

    def test_unknown_project_raises(self):
        with self.assertRaises(ProjectNotFoundError):
            self.runner.run("octo", "missing")

    def test_auth_failure_stops_extraction(self):
        self.add_run(5000, self.c2)
        extractor = MagicMock()
        extractor.process_run.side_effect = GithubAuthError("Bad credentials")
        runner = BuildExtractionRunner(
            self.settings, ProjectStore(self.engine), self.persister, extractor=extractor, update_clone=False
        )
        with self.assertRaises(GithubAuthError):
            runner.run("octo", "hello")
        self.assertTrue(runner.stopped)

    def test_stopped_runner_extracts_nothing(self):
        self.add_run(5000, self.c2)
        self.runner.stop()
        self.assertEqual(self.runner.run("octo", "hello")["status"], "error")


class TestBuildKey(unittest.TestCase):
    def test_key_fields(self):
        record = {
            "gh_project_name": "octo/hello",
            "git_all_built_commits": "abc",
            "git_branch": "main",
            "build_duration": 5,
        }
        self.assertEqual(
            build_key(record),
            {"gh_project_name": "octo/hello", "git_all_built_commits": "abc", "git_branch": "main"},
        )


if __name__ == "__main__":
    unittest.main()
