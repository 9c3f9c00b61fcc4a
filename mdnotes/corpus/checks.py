"""
Content-integrity checks of a notes corpus.

The checks verify that what a reader of the notes would click on or
expect to see is there:

    parse-error          a note contains markdown that cannot be parsed
    missing-image        an image refers to a file that does not exist
    broken-link          a link refers to a file that does not exist
    broken-anchor        a link refers to a heading that does not exist
    undefined-reference  a reference-style link has no definition
    empty-link           a link or image has an empty target
    outside-corpus       a link leaves the corpus directory
    orphan-asset         an image in the corpus is used by no note
    external-unreachable an external link does not respond (optional)

The first five are errors, the others warnings. Problems are returned
as Issue objects in a CheckReport; nothing is raised for the content
of the corpus.

Main functions:
    check_note      the checks of a single note
    check_corpus    all checks, producing a CheckReport
"""

import os
import threading
from collections import Counter
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Literal

import requests
from pydantic import BaseModel, ConfigDict, Field

from mdnotes.config.config import CheckSettings
from mdnotes.markdown.references import Reference
from .corpus import Corpus
from .notes import Note

from mdnotes.utils.logging import get_logger, LoggerBase  # fmt: skip
logger: LoggerBase = get_logger(__name__)

Severity = Literal['error', 'warning']
IssueCode = Literal[
    'parse-error',
    'missing-image',
    'broken-link',
    'broken-anchor',
    'undefined-reference',
    'empty-link',
    'outside-corpus',
    'orphan-asset',
    'external-unreachable',
]

SEVERITY: dict[str, Severity] = {
    'parse-error': 'error',
    'missing-image': 'error',
    'broken-link': 'error',
    'broken-anchor': 'error',
    'undefined-reference': 'error',
    'empty-link': 'warning',
    'outside-corpus': 'warning',
    'orphan-asset': 'warning',
    'external-unreachable': 'warning',
}

USER_AGENT = "mdnotes-linkcheck"


class Issue(BaseModel):
    """A problem found in the corpus.

    Attributes:
        code: the kind of problem
        severity: 'error' or 'warning'
        path: the note (or asset) concerned, relative to the root
        line: the line in the note, 0 if not applicable
        target: the link target concerned, if any
        message: a description of the problem
    """

    code: IssueCode
    severity: Severity
    path: str
    line: int = 0
    target: str = ""
    message: str = ""

    model_config = ConfigDict(frozen=True)

    @staticmethod
    def create(
        code: IssueCode,
        path: str,
        message: str,
        line: int = 0,
        target: str = "",
    ) -> 'Issue':
        return Issue(
            code=code,
            severity=SEVERITY[code],
            path=path,
            line=line,
            target=target,
            message=message,
        )

    def format(self) -> str:
        location = f"{self.path}:{self.line}" if self.line else self.path
        return f"{location}: {self.severity} [{self.code}] {self.message}"


class CheckReport(BaseModel):
    """The result of checking a corpus."""

    root: str = ""
    notes_checked: int = 0
    references_checked: int = 0
    issues: list[Issue] = Field(default_factory=list)

    def errors(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == 'error']

    def warnings(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == 'warning']

    def count_by_code(self) -> dict[str, int]:
        return dict(Counter(i.code for i in self.issues))

    def ok(self, strict: bool = False) -> bool:
        """True if there are no errors (and no warnings, if strict)."""
        if strict:
            return not self.issues
        return not self.errors()

    def summary(self) -> str:
        return (
            f"{self.notes_checked} notes, {self.references_checked} "
            f"references: {len(self.errors())} errors, "
            f"{len(self.warnings())} warnings"
        )


def _is_ignored(target: str, settings: CheckSettings) -> bool:
    return any(target.startswith(t) for t in settings.ignore_targets if t)


def resolve_target(
    note: Note, reference: Reference, root: Path
) -> Path:
    """The file system path of an internal reference. Paths starting
    with '/' are rooted at the corpus root."""
    target = reference.get_path()
    if not target:
        return note.path
    if target.startswith('/'):
        base = root / target.lstrip('/')
    else:
        base = note.path.parent / target
    return Path(os.path.normpath(base))


def _check_anchor(
    note: Note,
    reference: Reference,
    anchors: set[str],
    target_name: str,
) -> Issue | None:
    fragment = reference.get_fragment()
    if not fragment or fragment in anchors:
        return None
    # renderers match fragments case-insensitively in practice
    if fragment.lower() in {a.lower() for a in anchors}:
        return None
    return Issue.create(
        'broken-anchor',
        note.relpath,
        f"No heading or anchor '#{fragment}' in {target_name}",
        line=reference.line,
        target=reference.target,
    )


def check_reference(
    note: Note,
    reference: Reference,
    corpus: Corpus,
    settings: CheckSettings,
    used_assets: set[str] | None = None,
) -> Issue | None:
    """Check a single internal, anchor-only, or reference-style
    reference of a note. External references are not probed here.

    Args:
        note: the note containing the reference
        reference: the reference to check
        corpus: the corpus of the note
        settings: the check settings
        used_assets: if given, collects the assets the reference
            points to (relative paths)

    Returns:
        an Issue, or None if the reference is valid
    """
    if not reference.resolved:
        return Issue.create(
            'undefined-reference',
            note.relpath,
            f"No definition for reference label '{reference.label}'",
            line=reference.line,
        )

    match reference.target_kind():
        case 'empty':
            return Issue.create(
                'empty-link',
                note.relpath,
                f"Empty {reference.kind} target"
                + (f" ('{reference.text}')" if reference.text else ""),
                line=reference.line,
            )
        case 'external':
            return None
        case 'anchor':
            if not settings.check_anchors:
                return None
            return _check_anchor(note, reference, note.anchors, "this note")
        case _:
            pass

    path = resolve_target(note, reference, corpus.root)
    relpath = corpus.relative(path)
    if relpath is None:
        return Issue.create(
            'outside-corpus',
            note.relpath,
            f"Target {reference.target} is outside the corpus",
            line=reference.line,
            target=reference.target,
        )

    if not path.exists():
        code: IssueCode = (
            'missing-image' if reference.kind == 'image' else 'broken-link'
        )
        what = "Image" if reference.kind == 'image' else "Link target"
        return Issue.create(
            code,
            note.relpath,
            f"{what} {relpath} does not exist",
            line=reference.line,
            target=reference.target,
        )

    if used_assets is not None and corpus.is_asset(path):
        used_assets.add(relpath)

    if settings.check_anchors and reference.get_fragment():
        target_note = corpus.find_note(path)
        if target_note is not None:
            return _check_anchor(
                note, reference, target_note.anchors, target_note.relpath
            )
    return None


def check_note(
    note: Note,
    corpus: Corpus,
    settings: CheckSettings | None = None,
    used_assets: set[str] | None = None,
) -> list[Issue]:
    """Parse errors and reference problems of a note."""
    settings = settings or CheckSettings()
    issues: list[Issue] = [
        Issue.create(
            'parse-error',
            note.relpath,
            error.content,
            line=error.line,
        )
        for error in note.get_errors()
    ]
    for reference in note.references:
        if _is_ignored(reference.target, settings):
            continue
        issue = check_reference(
            note, reference, corpus, settings, used_assets
        )
        if issue is not None:
            issues.append(issue)
    return issues


def probe_url(
    url: str,
    timeout: float = 10.0,
    session: requests.Session | None = None,
) -> str:
    """Probe an external URL with HEAD, falling back to GET for
    servers that refuse HEAD.

    Returns:
        an empty string if the URL responds, the problem otherwise
    """
    http = session or requests.Session()
    headers = {'User-Agent': USER_AGENT}
    try:
        response = http.head(
            url, timeout=timeout, allow_redirects=True, headers=headers
        )
        if response.status_code in (403, 405, 501):
            response = http.get(
                url,
                timeout=timeout,
                allow_redirects=True,
                headers=headers,
                stream=True,
            )
            response.close()
    except requests.RequestException as e:
        return f"{type(e).__name__}: {e}"
    finally:
        if session is None:
            http.close()

    if response.status_code >= 400:
        return f"HTTP status {response.status_code}"
    return ""


def check_external(
    references: Iterable[tuple[Note, Reference]],
    settings: CheckSettings,
    session: requests.Session | None = None,
    logger: LoggerBase = logger,
) -> list[Issue]:
    """Probe the http(s) targets of the references. Each URL is
    probed once, concurrently, and every reference to an unreachable
    URL gives an issue.

    Without a session, each worker thread opens its own
    requests.Session, closed when all probes are done. A session
    given by the caller is shared by the workers, and must be safe
    to use from several threads."""
    by_url: dict[str, list[tuple[Note, Reference]]] = {}
    for note, reference in references:
        target = reference.target.strip()
        if target.startswith('//'):
            target = 'https:' + target
        if target.lower().startswith(('http://', 'https://')):
            by_url.setdefault(target, []).append((note, reference))
    if not by_url:
        return []

    logger.info(f"Probing {len(by_url)} external links")
    urls = list(by_url)
    local = threading.local()
    opened: list[requests.Session] = []

    def _probe(url: str) -> str:
        http = session
        if http is None:
            http = getattr(local, 'session', None)
            if http is None:
                http = local.session = requests.Session()
                opened.append(http)
        return probe_url(url, settings.external_timeout, http)

    try:
        with ThreadPoolExecutor(
            max_workers=settings.external_workers
        ) as pool:
            results = list(pool.map(_probe, urls))
    finally:
        for http in opened:
            http.close()

    issues: list[Issue] = []
    for url, problem in zip(urls, results):
        if not problem:
            continue
        for note, reference in by_url[url]:
            issues.append(
                Issue.create(
                    'external-unreachable',
                    note.relpath,
                    f"{url} is unreachable ({problem})",
                    line=reference.line,
                    target=reference.target,
                )
            )
    return issues


def check_corpus(
    corpus: Corpus,
    settings: CheckSettings | None = None,
    session: requests.Session | None = None,
    logger: LoggerBase = logger,
) -> CheckReport:
    """Run the integrity checks on the corpus.

    Args:
        corpus: a loaded corpus
        settings: the check settings (defaults apply if None)
        session: the HTTP session used to probe external links, when
            settings.check_external is set
        logger: the logger receiving progress messages

    Returns:
        a report with the issues sorted by path and line
    """
    settings = settings or CheckSettings()
    used_assets: set[str] = set()
    issues: list[Issue] = []
    references_checked = 0

    for note in corpus.notes:
        issues.extend(check_note(note, corpus, settings, used_assets))
        references_checked += len(note.references)

    if settings.report_orphans:
        for asset in corpus.assets:
            if asset in used_assets or _is_ignored(asset, settings):
                continue
            issues.append(
                Issue.create(
                    'orphan-asset',
                    asset,
                    f"Asset {asset} is not used by any note",
                )
            )

    if settings.check_external:
        external = [
            (note, reference)
            for note in corpus.notes
            for reference in note.references
            if reference.is_external()
            and not _is_ignored(reference.target, settings)
        ]
        issues.extend(check_external(external, settings, session, logger))

    issues.sort(key=lambda i: (i.path, i.line, i.code, i.target))
    report = CheckReport(
        root=str(corpus.root),
        notes_checked=len(corpus.notes),
        references_checked=references_checked,
        issues=issues,
    )
    logger.info(report.summary())
    return report
