# flake8: noqa

import tempfile
import unittest
from pathlib import Path

from mdnotes.config.config import CheckSettings, IndexSettings
from mdnotes.corpus.checks import check_corpus
from mdnotes.corpus.corpus import load_corpus
from mdnotes.corpus.index import build_index, save_index, topic_title
from mdnotes.markdown.parse_markdown import serialize_blocks
from mdnotes.utils.logging import LoglistLogger

expected_index = """---
title: Study notes
---

# Study notes

## Day 1: day1

- [Chat models](day1/models.md)
  - [Invoke](day1/models.md#invoke)
  - [Stream \\[x\\]](day1/models.md#stream-x)

## Day 2: day 2

- [Chains](day%202/my%20chains.md)

## General

- [Welcome](README.md)
"""


class TestIndex(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)
        notes = {
            "README.md": "# Welcome\n",
            "day1/models.md": (
                "---\ntitle: Chat models\n---\n\n# Chat models\n\n"
                "## Invoke\n\n### Details\n\n## Stream [x]\n"
            ),
            "day 2/my chains.md": "# Chains\n\nText.\n",
        }
        for relpath, content in notes.items():
            path = self.root / relpath
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding='utf-8')
        self.logger = LoglistLogger()

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_topic_title(self):
        self.assertEqual(topic_title("", None), "General")
        self.assertEqual(topic_title("extras", None), "extras")
        self.assertEqual(topic_title("day3", 3), "Day 3: day3")

    def test_build(self):
        corpus = load_corpus(self.root, logger=self.logger)
        blocks = build_index(corpus)
        self.assertEqual(serialize_blocks(blocks), expected_index)

    def test_depth(self):
        corpus = load_corpus(self.root, logger=self.logger)
        text = serialize_blocks(build_index(corpus, IndexSettings(toc_depth=3)))
        self.assertIn("    - [Details](day1/models.md#details)", text)
        text = serialize_blocks(build_index(corpus, IndexSettings(toc_depth=0)))
        self.assertNotIn("#invoke", text)

    def test_title(self):
        corpus = load_corpus(self.root, logger=self.logger)
        blocks = build_index(corpus, title="LangChain in 30 days")
        self.assertEqual(blocks[0].get_key('title'), "LangChain in 30 days")
        self.assertEqual(blocks[1].get_content(), "LangChain in 30 days")

    def test_saved_index_passes_checks(self):
        corpus = load_corpus(self.root, logger=self.logger)
        path = save_index(corpus, logger=self.logger)
        self.assertEqual(path, corpus.root / "index.md")
        self.assertEqual(path.read_text(encoding='utf-8'), expected_index)

        corpus = load_corpus(self.root, logger=self.logger)
        self.assertIsNotNone(corpus.find_note("index.md"))
        report = check_corpus(corpus, CheckSettings(), logger=self.logger)
        self.assertListEqual(report.issues, [])

        # the index does not list itself
        text = serialize_blocks(build_index(corpus))
        self.assertEqual(text, expected_index)

    def test_index_in_subdirectory(self):
        corpus = load_corpus(self.root, logger=self.logger)
        path = save_index(
            corpus, dest=corpus.root / "day1" / "toc.md", logger=self.logger
        )
        text = path.read_text(encoding='utf-8')
        self.assertIn("- [Chat models](models.md)", text)
        self.assertIn("- [Chains](../day%202/my%20chains.md)", text)
        self.assertIn("- [Welcome](../README.md)", text)

        report = check_corpus(
            load_corpus(self.root, logger=self.logger), logger=self.logger
        )
        self.assertListEqual(report.issues, [])

    def test_destination_outside_corpus(self):
        corpus = load_corpus(self.root, logger=self.logger)
        with tempfile.TemporaryDirectory() as other:
            path = save_index(
                corpus, dest=Path(other) / "index.md", logger=self.logger
            )
        self.assertIsNone(path)
        self.assertIn("must be inside the corpus", self.logger.get_logs(2)[0])


if __name__ == "__main__":
    unittest.main()
