# flake8: noqa

import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

from mdnotes.config.config import CheckSettings
from mdnotes.corpus.checks import (
    CheckReport,
    Issue,
    check_corpus,
    check_note,
    probe_url,
)
from mdnotes.corpus.corpus import load_corpus
from mdnotes.utils.logging import LoglistLogger

models_note = """# Chat models

![arch](img/arch.png) and ![missing](img/nope.png)

See [chains](../day2/chains.md#lcel-basics), [bad](../day2/chains.md#nowhere),
[self](#Chat-Models), [self bad](#other), [up](../../outside.md), [empty]().

Read [the docs][docs] and [undefined][nolabel].

[docs]: https://example.com/docs
"""

chains_note = """# Chains

## LCEL basics

Back to [models](../day1/models.md).

![architecture](/day1/img/arch.png)
"""


def response(status: int) -> MagicMock:
    mock = MagicMock()
    mock.status_code = status
    return mock


class CorpusTestCase(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)
        for relpath, content in [
            ("day1/models.md", models_note),
            ("day2/chains.md", chains_note),
        ]:
            path = self.root / relpath
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding='utf-8')
        (self.root / "day1" / "img").mkdir()
        (self.root / "day1" / "img" / "arch.png").write_bytes(b"\x89PNG")
        (self.root / "day1" / "img" / "unused.png").write_bytes(b"\x89PNG")
        self.logger = LoglistLogger()

    def tearDown(self):
        self.tmpdir.cleanup()

    def load(self):
        return load_corpus(self.root, logger=self.logger)


class TestCheckCorpus(CorpusTestCase):

    def test_issues(self):
        report = check_corpus(self.load(), logger=self.logger)
        self.assertListEqual(
            [(i.path, i.line, i.code) for i in report.issues],
            [
                ("day1/img/unused.png", 0, 'orphan-asset'),
                ("day1/models.md", 3, 'missing-image'),
                ("day1/models.md", 5, 'broken-anchor'),
                ("day1/models.md", 6, 'broken-anchor'),
                ("day1/models.md", 6, 'empty-link'),
                ("day1/models.md", 6, 'outside-corpus'),
                ("day1/models.md", 8, 'undefined-reference'),
            ],
        )

    def test_messages(self):
        report = check_corpus(self.load(), logger=self.logger)
        messages = [i.message for i in report.issues]
        self.assertIn("Image day1/img/nope.png does not exist", messages)
        self.assertIn(
            "No heading or anchor '#nowhere' in day2/chains.md", messages
        )
        self.assertIn("No heading or anchor '#other' in this note", messages)
        self.assertIn("No definition for reference label 'nolabel'", messages)
        self.assertIn("Empty link target ('empty')", messages)

    def test_report(self):
        report = check_corpus(self.load(), logger=self.logger)
        self.assertEqual(report.notes_checked, 2)
        self.assertEqual(report.references_checked, 12)
        self.assertEqual(len(report.errors()), 4)
        self.assertEqual(len(report.warnings()), 3)
        self.assertFalse(report.ok())
        self.assertEqual(
            report.summary(), "2 notes, 12 references: 4 errors, 3 warnings"
        )
        self.assertEqual(report.count_by_code()['broken-anchor'], 2)
        self.assertIn(report.summary(), self.logger.get_logs()[-1])

    def test_format(self):
        report = check_corpus(self.load(), logger=self.logger)
        self.assertEqual(
            report.issues[1].format(),
            "day1/models.md:3: error [missing-image] "
            "Image day1/img/nope.png does not exist",
        )
        self.assertEqual(
            report.issues[0].format(),
            "day1/img/unused.png: warning [orphan-asset] "
            "Asset day1/img/unused.png is not used by any note",
        )

    def test_settings(self):
        settings = CheckSettings(
            check_anchors=False,
            report_orphans=False,
            ignore_targets=["../../", "img/nope"],
        )
        report = check_corpus(self.load(), settings, logger=self.logger)
        self.assertListEqual(
            [i.code for i in report.issues],
            ['empty-link', 'undefined-reference'],
        )
        self.assertEqual(len(report.errors()), 1)

    def test_clean_corpus(self):
        (self.root / "day1" / "models.md").write_text(
            "# Chat models\n\n![arch](img/arch.png)\n", encoding='utf-8'
        )
        (self.root / "day1" / "img" / "unused.png").unlink()
        report = check_corpus(self.load(), logger=self.logger)
        self.assertListEqual(report.issues, [])
        self.assertTrue(report.ok(strict=True))

    def test_parse_errors(self):
        path = self.root / "day2" / "draft.md"
        path.write_text("# Draft\n\n```python\nunfinished\n", encoding='utf-8')
        corpus = self.load()
        note = corpus.find_note("day2/draft.md")
        issues = check_note(note, corpus)
        self.assertEqual(len(issues), 1)
        self.assertEqual(issues[0].code, 'parse-error')
        self.assertEqual(issues[0].severity, 'error')
        self.assertEqual(issues[0].line, 3)

    def test_rules_between_sections(self):
        (self.root / "day1" / "runnables.md").write_text(
            "# Runnables\n\nIntro text.\n\n---\n## Second part\n\nBody...\n\n"
            "---\n## Third part\n\nSee [second](#second-part).\n",
            encoding='utf-8',
        )
        corpus = self.load()
        note = corpus.find_note("day1/runnables.md")
        self.assertListEqual(check_note(note, corpus), [])

    def test_escaped_image_targets(self):
        (self.root / "day2" / "img").mkdir()
        (self.root / "day2" / "img" / "my_diagram.png").write_bytes(b"\x89PNG")
        (self.root / "day2" / "diagrams.md").write_text(
            "# Diagrams\n\n![diagram](img/my\\_diagram.png)\n\n"
            "![gone](img/gone\\_too.png)\n",
            encoding='utf-8',
        )
        report = check_corpus(self.load(), logger=self.logger)
        self.assertListEqual(
            [
                (i.path, i.line, i.code, i.target)
                for i in report.issues
                if i.path.startswith("day2/")
            ],
            [("day2/diagrams.md", 5, 'missing-image', "img/gone_too.png")],
        )

    def test_report_json(self):
        report = check_corpus(self.load(), logger=self.logger)
        reloaded = CheckReport.model_validate_json(report.model_dump_json())
        self.assertEqual(reloaded, report)


class TestExternalLinks(CorpusTestCase):

    def test_probe_ok(self):
        session = MagicMock()
        session.head.return_value = response(200)
        self.assertEqual(probe_url("https://example.com", 5, session), "")
        session.get.assert_not_called()

    def test_probe_head_refused(self):
        session = MagicMock()
        session.head.return_value = response(405)
        get_response = response(200)
        session.get.return_value = get_response
        self.assertEqual(probe_url("https://example.com", 5, session), "")
        get_response.close.assert_called_once()

    def test_probe_not_found(self):
        session = MagicMock()
        session.head.return_value = response(404)
        self.assertEqual(
            probe_url("https://example.com/x", 5, session), "HTTP status 404"
        )

    def test_probe_exception(self):
        session = MagicMock()
        session.head.side_effect = requests.ConnectionError("refused")
        self.assertEqual(
            probe_url("https://example.com", 5, session),
            "ConnectionError: refused",
        )

    def test_check_external(self):
        (self.root / "day2" / "links.md").write_text(
            "# Links\n\n<https://example.com/docs>\n\n"
            "[gone](https://gone.example.org/page)\n",
            encoding='utf-8',
        )

        def head(url, **kwargs):
            return response(404 if "gone" in url else 200)

        session = MagicMock()
        session.head.side_effect = head
        settings = CheckSettings(check_external=True, report_orphans=False)
        report = check_corpus(self.load(), settings, session, self.logger)

        external = [
            i for i in report.issues if i.code == 'external-unreachable'
        ]
        self.assertEqual(len(external), 1)
        self.assertEqual(external[0].path, "day2/links.md")
        self.assertEqual(external[0].line, 5)
        self.assertIn("HTTP status 404", external[0].message)
        self.assertEqual(external[0].severity, 'warning')
        # each URL is probed once
        probed = sorted(c.args[0] for c in session.head.call_args_list)
        self.assertListEqual(
            probed,
            ["https://example.com/docs", "https://gone.example.org/page"],
        )

    def test_session_per_worker(self):
        (self.root / "day2" / "links.md").write_text(
            "# Links\n\n"
            + "\n".join(f"<https://example.com/{n}>" for n in range(6))
            + "\n",
            encoding='utf-8',
        )
        created: list[MagicMock] = []

        def new_session():
            session = MagicMock()
            session.head.return_value = response(200)
            created.append(session)
            return session

        settings = CheckSettings(
            check_external=True, report_orphans=False, external_workers=2
        )
        with patch("mdnotes.corpus.checks.requests.Session", new_session):
            report = check_corpus(self.load(), settings, logger=self.logger)

        self.assertFalse(
            [i for i in report.issues if i.code == 'external-unreachable']
        )
        self.assertGreaterEqual(len(created), 1)
        self.assertLessEqual(len(created), 2)
        self.assertEqual(sum(s.head.call_count for s in created), 7)
        for session in created:
            session.close.assert_called_once()

    def test_external_off_by_default(self):
        session = MagicMock()
        check_corpus(self.load(), session=session, logger=self.logger)
        session.head.assert_not_called()


class TestIssue(unittest.TestCase):

    def test_severity(self):
        issue = Issue.create('empty-link', "a.md", "Empty link target")
        self.assertEqual(issue.severity, 'warning')
        self.assertEqual(issue.format(), "a.md: warning [empty-link] Empty link target")
        issue = Issue.create('broken-link', "a.md", "Missing", line=4)
        self.assertEqual(issue.severity, 'error')

    def test_strict_report(self):
        report = CheckReport(
            issues=[Issue.create('orphan-asset', "img/a.png", "Unused")]
        )
        self.assertTrue(report.ok())
        self.assertFalse(report.ok(strict=True))


if __name__ == "__main__":
    unittest.main()
