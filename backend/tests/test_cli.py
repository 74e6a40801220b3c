import os
import unittest
from unittest.mock import patch

from ghminer.cli import build_parser, main


class TestParser(unittest.TestCase):
    def test_retrieve_repo_arguments(self):
        args = build_parser().parse_args(["retrieve-repo", "octo", "hello", "-t", "tok", "-l", "50"])
        self.assertEqual((args.owner, args.repo, args.token, args.req_limit), ("octo", "hello", "tok", 50))

    def test_process_request_arguments(self):
        args = build_parser().parse_args(["-v", "process-request", "https://github.com/octo/hello"])
        self.assertTrue(args.verbose)
        self.assertEqual(args.url, "https://github.com/octo/hello")
        self.assertIsNone(args.request_id)

    def test_command_is_required(self):
        with self.assertRaises(SystemExit):
            build_parser().parse_args([])


@patch("ghminer.cli._install_interrupt_handler")
@patch("ghminer.cli.setup_logging")
class TestMain(unittest.TestCase):
    def test_bad_url_exits_with_usage_error(self, setup_logging, install_handler):
        self.assertEqual(main(["process-request", "https://gitlab.com/octo/hello"]), 2)
        install_handler.assert_not_called()

    def test_invalid_configuration(self, setup_logging, install_handler):
        with patch.dict(os.environ, {"EXTRACTOR_THREADS": "0"}):
            self.assertEqual(main(["extract-builds", "octo", "hello"]), 1)
        setup_logging.assert_not_called()

    def test_extraction_needs_relational_store(self, setup_logging, install_handler):
        with patch.dict(os.environ, {"SQL_DATABASE_URL": "", "PERSISTER": "noop"}):
            self.assertEqual(main(["extract-builds", "octo", "hello"]), 1)

    def test_verbose_sets_debug_level(self, setup_logging, install_handler):
        main(["-v", "process-request", "not a url"])
        self.assertEqual(setup_logging.call_args[0][0], "DEBUG")


if __name__ == "__main__":
    unittest.main()
