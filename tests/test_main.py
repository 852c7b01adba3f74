"""
Tests for the launcher's configuration handling.
"""
import json
import logging
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import main


class TestLauncherConfig(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self):
        self.temp_dir.cleanup()

    def write(self, text: str) -> Path:
        path = self.root / "config.json"
        path.write_text(text, encoding='utf-8')
        return path

    def test_read_config(self):
        path = self.write(json.dumps({"bot": {"token": "abc"}}))
        self.assertEqual(main.read_config(path)["bot"]["token"], "abc")

    def test_missing_config(self):
        with self.assertRaises(main.LaunchError):
            main.read_config(self.root / "absent.json")

    def test_invalid_json(self):
        with self.assertRaises(main.LaunchError):
            main.read_config(self.write("{broken"))

    def test_non_object_config(self):
        with self.assertRaises(main.LaunchError):
            main.read_config(self.write("[1, 2]"))

    def test_environment_token_wins(self):
        config = {"bot": {"token": "from-file"}}
        self.assertEqual(main.resolve_token(config, {"DISCORD_BOT_TOKEN": "from-env"}), "from-env")
        self.assertEqual(main.resolve_token(config, {}), "from-file")

    def test_placeholder_token_rejected(self):
        with self.assertRaises(main.LaunchError):
            main.resolve_token({"bot": {"token": main.TOKEN_PLACEHOLDER}}, {})

    def test_main_reports_bad_config(self):
        with patch('builtins.print') as mock_print:
            self.assertEqual(main.main([str(self.root / "absent.json")]), 1)
        mock_print.assert_called_once()

    def test_configure_logging_creates_directory(self):
        log_directory = self.root / "logs" / "nested"
        with patch('main.logging.basicConfig') as mock_basic_config:
            log_file = main.configure_logging({"logging": {"level": "debug", "log_directory": str(log_directory)}})

        self.assertTrue(log_directory.is_dir())
        self.assertEqual(log_file.name, main.LOG_FILE_NAME)
        self.assertEqual(mock_basic_config.call_args.kwargs['level'], logging.DEBUG)
        for handler in mock_basic_config.call_args.kwargs['handlers']:
            handler.close()


if __name__ == '__main__':
    unittest.main()
