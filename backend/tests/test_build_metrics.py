import unittest
from datetime import datetime, timedelta
from unittest.mock import MagicMock

from pydantic import ValidationError

from ghminer.entities import BuildOutcome, CiBuild
from ghminer.pipeline.build_metrics import (
    BuildMetricsExtractor,
    StrippedFileCache,
    build_duration,
    count_patch_lines,
    per_kloc,
)
from ghminer.pipeline.context import ExtractionContext
from ghminer.pipeline.languages import PythonProfile
from ghminer.services.pipeline_exceptions import MissingGitObjectError
from tests.helpers import InMemoryPersister


class TestBuildDuration(unittest.TestCase):
    def setUp(self):
        self.start = datetime(2024, 1, 1, 10, 0, 0)

    def test_seconds_between_start_and_update(self):
        self.assertEqual(build_duration(self.start, self.start + timedelta(seconds=600)), 600)

    def test_accepts_api_timestamps(self):
        self.assertEqual(build_duration("2024-01-01T10:00:00Z", "2024-01-01T10:01:30Z"), 90)

    def test_out_of_range_is_zero(self):
        self.assertEqual(build_duration(self.start, self.start + timedelta(seconds=100000)), 0)
        self.assertEqual(build_duration(self.start, self.start - timedelta(seconds=5)), 0)

    def test_boundary_is_kept(self):
        self.assertEqual(build_duration(self.start, self.start + timedelta(seconds=86400)), 86400)

    def test_missing_timestamps_are_zero(self):
        self.assertEqual(build_duration(None, self.start), 0)
        self.assertEqual(build_duration(self.start, None), 0)


class TestBuildOutcome(unittest.TestCase):
    def test_conclusion_mapping(self):
        self.assertEqual(BuildOutcome.from_conclusion("success"), BuildOutcome.PASSED)
        self.assertEqual(BuildOutcome.from_conclusion("failure"), BuildOutcome.FAILED)
        for conclusion in ("cancelled", "skipped", "timed_out", None):
            self.assertEqual(BuildOutcome.from_conclusion(conclusion), BuildOutcome.OTHERS)

    def test_record_rejects_duration_over_a_day(self):
        with self.assertRaises(ValidationError):
            CiBuild(
                git_branch="main",
                git_all_built_commits="a",
                git_trigger_commit="a",
                gh_project_name="o/r",
                gh_lang="Python",
                build_failed=BuildOutcome.PASSED,
                build_duration=90000,
                github_run_id=1,
            )

    def test_record_stores_outcome_value(self):
        record = CiBuild(
            git_branch="main",
            git_all_built_commits="a",
            git_trigger_commit="a",
            gh_project_name="o/r",
            gh_lang="Python",
            build_failed=BuildOutcome.FAILED,
            github_run_id=1,
        )
        doc = record.to_mongo()
        self.assertEqual(doc["build_failed"], "failed")
        self.assertNotIn("_id", doc)
        self.assertEqual(
            record.business_key(),
            {"gh_project_name": "o/r", "git_all_built_commits": "a", "git_branch": "main"},
        )


class TestHelpers(unittest.TestCase):
    def test_count_patch_lines_ignores_headers(self):
        patch = "--- a/x.py\n+++ b/x.py\n@@ -1,2 +1,2 @@\n-old\n+new\n+more\n context\n"
        self.assertEqual(count_patch_lines(patch), (2, 1))

    def test_per_kloc(self):
        self.assertEqual(per_kloc(5, 0), 0.0)
        self.assertEqual(per_kloc(5, 2000), 2.5)

    def test_stripped_cache_loads_once(self):
        cache = StrippedFileCache()
        loader = MagicMock(return_value="text")
        self.assertEqual(cache.get("k", loader), "text")
        self.assertEqual(cache.get("k", loader), "text")
        loader.assert_called_once_with()
        self.assertEqual(len(cache), 1)

    def test_stripped_cache_loads_outside_the_lock(self):
        cache = StrippedFileCache()
        # A loader that reads another entry would deadlock if run under the lock
        outer = cache.get("outer", lambda: cache.get("inner", lambda: "in") + "+out")
        self.assertEqual(outer, "in+out")
        self.assertEqual(len(cache), 2)

    def test_stripped_cache_evicts_least_recently_used(self):
        cache = StrippedFileCache(max_entries=2)
        cache.get("a", lambda: "A")
        cache.get("b", lambda: "B")
        cache.get("a", lambda: "unused")
        cache.get("c", lambda: "C")

        self.assertEqual(len(cache), 2)
        reloaded = MagicMock(return_value="B2")
        self.assertEqual(cache.get("b", reloaded), "B2")
        reloaded.assert_called_once_with()
        self.assertEqual(cache.get("c", MagicMock()), "C")


class TestBuildMetricsExtractor(unittest.TestCase):
    def make_ctx(self, persister=None, retriever=None):
        walker = MagicMock()
        project_store = MagicMock()
        return ExtractionContext(
            owner="octo",
            repo="hello",
            project_id=1,
            language="Python",
            profile=PythonProfile(),
            walker=walker,
            project_store=project_store,
            persister=persister or InMemoryPersister(),
            stripped_cache=StrippedFileCache(),
            retriever=retriever,
        )

    def test_unknown_commit_is_skipped(self):
        ctx = self.make_ctx()
        ctx.project_store.find_commit.return_value = None
        ctx.walker.commit_author.side_effect = MissingGitObjectError("f" * 40)

        result = BuildMetricsExtractor().process_run({"github_id": 1, "head_sha": "f" * 40}, ctx)

        self.assertIsNone(result)

    def test_commit_missing_from_clone_is_skipped(self):
        ctx = self.make_ctx()
        ctx.project_store.find_commit.return_value = {"created_at": datetime(2024, 1, 1), "author_id": 2}
        ctx.walker.commit_exists.return_value = False

        result = BuildMetricsExtractor().process_run({"github_id": 1, "head_sha": "e" * 40}, ctx)

        self.assertIsNone(result)

    def test_build_stats_prefer_mirrored_commit(self):
        persister = InMemoryPersister()
        persister.store(
            "commits",
            {
                "sha": "abc",
                "parents": [{"sha": "p"}],
                "files": [
                    {"filename": "pkg/app.py", "status": "modified", "patch": "@@\n-a\n+b\n+c"},
                    {"filename": "tests/test_app.py", "status": "added", "patch": "@@\n+def test_x():\n+    assert 1"},
                    {"filename": "docs/index.md", "status": "modified", "patch": "@@\n+words"},
                    {"filename": "setup.cfg", "status": "removed", "patch": "@@\n-x"},
                ],
            },
        )
        ctx = self.make_ctx(persister=persister)

        stats = BuildMetricsExtractor().calc_build_stats(ctx, ["abc"])

        ctx.walker.commit_file_patches.assert_not_called()
        self.assertEqual(stats["src_lines_added"], 2)
        self.assertEqual(stats["src_lines_deleted"], 1)
        self.assertEqual(stats["test_lines_added"], 2)
        self.assertEqual(stats["test_lines_deleted"], 0)
        self.assertEqual(stats["files_added"], 1)
        self.assertEqual(stats["files_modified"], 2)
        self.assertEqual(stats["files_deleted"], 1)
        self.assertEqual(stats["src_files"], 2)
        self.assertEqual(stats["doc_files"], 1)
        self.assertEqual(stats["other_files"], 1)

    def test_build_stats_fall_back_to_api_then_git(self):
        retriever = MagicMock()
        retriever.retrieve_commit.return_value = None
        ctx = self.make_ctx(retriever=retriever)
        ctx.walker.commit_file_patches.return_value = [
            {"filename": "app.py", "status": "added", "patch": "@@\n+x = 1"}
        ]

        stats = BuildMetricsExtractor().calc_build_stats(ctx, ["abc"])

        retriever.retrieve_commit.assert_called_once_with("octo", "hello", "abc")
        self.assertEqual(stats["src_lines_added"], 1)
        self.assertEqual(stats["files_added"], 1)

    def test_pr_metrics_window(self):
        ctx = self.make_ctx()
        opened = datetime(2024, 1, 1)
        commit_time = datetime(2024, 1, 5)
        ctx.project_store.num_commit_comments.return_value = 3
        ctx.project_store.pr_info_for_commit.return_value = {"id": 7, "created_at": opened}
        ctx.project_store.num_issue_comments.return_value = 2
        ctx.project_store.num_pr_comments.return_value = 4

        result = BuildMetricsExtractor().pr_metrics(ctx, "abc", commit_time)

        self.assertTrue(result["gh_is_pr"])
        self.assertEqual(result["gh_pr_created_at"], "2024-01-01T00:00:00")
        self.assertEqual(result["gh_num_commit_comments"], 3)
        self.assertEqual(result["gh_num_issue_comments"], 2)
        self.assertEqual(result["gh_num_pr_comments"], 4)
        ctx.project_store.num_pr_comments.assert_called_once_with(7, opened, commit_time)

    def test_team_metrics(self):
        ctx = self.make_ctx()
        ctx.project_store.main_team.return_value = {"alice", "bob"}
        commit_time = datetime(2024, 1, 5)

        result = BuildMetricsExtractor().team_metrics(ctx, {"author_login": "alice"}, commit_time)

        self.assertEqual(result, {"gh_team_size": 2, "gh_by_core_team_member": True})
        ctx.project_store.main_team.assert_called_once_with("octo", "hello", commit_time, 3)
        outsider = BuildMetricsExtractor().team_metrics(ctx, {"author_login": None}, commit_time)
        self.assertFalse(outsider["gh_by_core_team_member"])


if __name__ == "__main__":
    unittest.main()
