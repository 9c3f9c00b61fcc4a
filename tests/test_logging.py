"""Tests for the logger implementations of mdnotes.utils.logging"""

import logging
import tempfile
import unittest
from pathlib import Path

from mdnotes.utils.logging import (
    ConsoleLogger,
    ExceptionConsoleLogger,
    FileLogger,
    LoglistLogger,
    get_logger,
    set_log_level,
)


class TestLoglistLogger(unittest.TestCase):

    def setUp(self):
        self.logger = LoglistLogger()
        self.logger.info("loaded")
        self.logger.warning("large file")
        self.logger.error("missing file")
        self.logger.critical("cannot continue")

    def test_levels(self):
        self.assertListEqual(
            self.logger.get_logs(),
            [
                "INFO - loaded",
                "WARNING - large file",
                "ERROR - missing file",
                "CRITICAL - cannot continue",
            ],
        )
        self.assertEqual(self.logger.count_logs(1), 3)
        self.assertListEqual(
            self.logger.get_logs(2),
            ["ERROR - missing file", "CRITICAL - cannot continue"],
        )

    def test_set_level(self):
        self.logger.clear_logs()
        self.logger.set_level(logging.WARNING)
        self.assertEqual(self.logger.get_level(), logging.WARNING)
        self.logger.info("hidden")
        self.logger.warning("shown")
        self.assertListEqual(self.logger.get_logs(), ["WARNING - shown"])

    def test_clear(self):
        self.logger.clear_logs()
        self.assertEqual(self.logger.count_logs(), 0)


class TestConsoleLoggers(unittest.TestCase):

    def test_console_logger(self):
        logger = ConsoleLogger("mdnotes.test_console")
        self.assertEqual(len(logger.logger.handlers), 1)
        # a second logger with the same name does not add handlers
        ConsoleLogger("mdnotes.test_console")
        self.assertEqual(len(logger.logger.handlers), 1)
        with self.assertLogs("mdnotes.test_console", level="WARNING") as cm:
            logger.warning("careful")
        self.assertIn("careful", cm.output[0])

    def test_set_log_level(self):
        logger = get_logger("mdnotes.test_level")
        set_log_level(logger, verbose=False)
        self.assertEqual(logger.get_level(), logging.WARNING)
        set_log_level(logger, verbose=True)
        self.assertEqual(logger.get_level(), logging.INFO)

    def test_exception_logger(self):
        logger = ExceptionConsoleLogger("test_logging")
        logger.set_level(logging.CRITICAL + 1)
        logger.warning("no exception")
        with self.assertRaises(RuntimeError):
            logger.error("failed")
        with self.assertRaises(RuntimeError):
            logger.critical("failed badly")


class TestFileLogger(unittest.TestCase):

    def test_file_logger(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_file = Path(tmpdir) / "check.log"
            logger = FileLogger("mdnotes.test_file", log_file)
            logger.info("scan started")
            logger.error("broken link")
            logger.close()
            content = log_file.read_text(encoding='utf-8')
        self.assertIn("INFO - scan started", content)
        self.assertIn("ERROR - broken link", content)


if __name__ == "__main__":
    unittest.main()
