import unittest
import tempfile
import shutil
from pathlib import Path

from mdnotes.utils.ioutils import (
    string_to_path_or_string,
    validate_file,
    validate_dir,
)
from mdnotes.utils.logging import LoglistLogger


class TestPathValidation(unittest.TestCase):
    """Unit tests for the path validation helpers."""

    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        self.note = self.test_dir / "notes.md"
        self.note.write_text("# Notes\n", encoding='utf-8')
        self.logger = LoglistLogger()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_string_to_path(self):
        self.assertEqual(string_to_path_or_string(str(self.note)), self.note)
        self.assertEqual(
            string_to_path_or_string(str(self.note) + "\n"), self.note
        )

    def test_string_stays_string(self):
        for text in ["# Title\n\ntext", "not/a/file.md", ""]:
            self.assertEqual(string_to_path_or_string(text), text)

    def test_validate_file(self):
        self.assertEqual(validate_file(self.note, self.logger), self.note)
        self.assertIsNone(validate_file("", self.logger))
        self.assertIsNone(validate_file(self.test_dir, self.logger))
        self.assertListEqual(
            self.logger.get_logs(),
            ["WARNING - No file given", f"ERROR - Not a file: {self.test_dir}"],
        )

    def test_validate_dir(self):
        self.assertEqual(
            validate_dir(self.test_dir, self.logger), self.test_dir.resolve()
        )
        self.assertIsNone(validate_dir(self.note, self.logger))
        self.assertIsNone(validate_dir(self.test_dir / "missing", self.logger))
        logs = self.logger.get_logs(2)
        self.assertEqual(len(logs), 2)
        self.assertIn("Not a directory", logs[0])
        self.assertIn("Directory does not exist", logs[1])


if __name__ == "__main__":
    unittest.main()
