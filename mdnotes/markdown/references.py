"""
Extraction of links and images from the blocks of a note.

The following forms are recognized in text blocks:
- inline links and images: [text](target "title"), ![alt](src),
    targets optionally enclosed in <...>
- reference-style links and images: [text][label], [label][], and
    [label] when a definition '[label]: target' exists in the note
- autolinks: <https://...>, and bare http(s) URLs
- raw HTML: <img src="..."> and <a href="...">, parsed with
    BeautifulSoup

Inline code spans, escaped characters and fenced code blocks are not
searched. Backslash escapes in targets and texts are removed, so that
img/my\_chart.png refers to img/my_chart.png. Footnotes ([^1]) are not
references.

Main functions:
    extract_references      all references of a block list
    collect_definitions     the reference definitions of a block list
"""

import re
from typing import Literal
from urllib.parse import unquote

from bs4 import BeautifulSoup
from pydantic import BaseModel

from .parse_markdown import Block, TextBlock

ReferenceKind = Literal['link', 'image']
TargetKind = Literal['empty', 'external', 'anchor', 'internal']

# one level of nested brackets, enough for [![alt](img)](link)
_TEXT = r'(?:[^\[\]\n]|\[[^\[\]\n]*\])*'
_DEST = r'(<[^<>\n]*>|[^\s()<>]*(?:\([^\s()]*\)[^\s()<>]*)*)'
_TITLE = r'(?:\s+(?:"[^"\n]*"|\'[^\'\n]*\'|\([^()\n]*\)))?'

_INLINE_RE = re.compile(
    r'(!?)\[(' + _TEXT + r')\]\(\s*' + _DEST + _TITLE + r'\s*\)'
)
_FULL_REF_RE = re.compile(r'(!?)\[(' + _TEXT + r')\]\[([^\[\]\n]*)\]')
_SHORTCUT_REF_RE = re.compile(r'(!?)\[(' + _TEXT + r')\](?![\[(:])')
_DEFINITION_RE = re.compile(
    r'^ {0,3}\[([^\]\^][^\]]*)\]:[ \t]*(<[^<>\n]*>|\S+)'
    + r'(?:[ \t]+(?:"[^"\n]*"|\'[^\'\n]*\'|\([^()\n]*\)))?[ \t]*$',
    re.MULTILINE,
)
_AUTOLINK_RE = re.compile(r'<([a-zA-Z][a-zA-Z0-9+.-]{1,31}:[^\s<>]*)>')
_BARE_URL_RE = re.compile(r'(?<![\w<(\["\'=/])https?://[^\s<>()\[\]]+')
_HTML_TAG_RE = re.compile(r'<[a-zA-Z]')
_CODE_SPAN_RE = re.compile(r'(`+)(?!`).+?(?<!`)\1(?!`)', re.DOTALL)
_ESCAPE_RE = re.compile(r'\\[!-/:-@\[-`{-~]')
_SCHEME_RE = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]+:')

# stands for escaped characters in the text that is matched
_ESCAPED = '\x00'


class Reference(BaseModel):
    """A link or an image found in a note.

    Attributes:
        kind: 'link' or 'image'
        target: the destination as written (angle brackets removed)
        text: link text or alt text
        line: line number in the note
        label: the label of reference-style links
        resolved: False for reference-style links whose label has no
            definition
        html: True if found in a raw HTML tag
    """

    kind: ReferenceKind
    target: str = ""
    text: str = ""
    line: int = 0
    label: str = ""
    resolved: bool = True
    html: bool = False

    def target_kind(self) -> TargetKind:
        target = self.target.strip()
        if not target:
            return 'empty'
        if _SCHEME_RE.match(target) or target.startswith('//'):
            return 'external'
        if target.startswith('#'):
            return 'anchor'
        return 'internal'

    def is_external(self) -> bool:
        return self.target_kind() == 'external'

    def get_path(self) -> str:
        """The path part of an internal target, percent-decoded."""
        if self.target_kind() != 'internal':
            return ""
        path = re.split(r'[#?]', self.target.strip(), maxsplit=1)[0]
        return unquote(path)

    def get_fragment(self) -> str:
        """The fragment of the target, without '#', percent-decoded."""
        _, sep, fragment = self.target.strip().partition('#')
        return unquote(fragment) if sep else ""


def normalize_label(label: str) -> str:
    """Reference labels match case-insensitively, with collapsed
    whitespace."""
    return ' '.join(label.split()).casefold()


def _blank(match: re.Match[str]) -> str:
    # keep offsets and newlines
    return re.sub(r'[^\n]', ' ', match.group(0))


def _mask_code(text: str) -> str:
    text = _ESCAPE_RE.sub(lambda m: _ESCAPED * 2, text)
    return _CODE_SPAN_RE.sub(_blank, text)


def _unescape(text: str) -> str:
    return _ESCAPE_RE.sub(lambda m: m.group(0)[1], text)


def _strip_angles(target: str) -> str:
    target = target.strip()
    if target.startswith('<') and target.endswith('>'):
        return target[1:-1].strip()
    return target


def parse_html(text: str) -> BeautifulSoup | None:
    """Parse the raw HTML of a text, or None if it contains no tags.
    The html.parser builder records the line and column of each tag."""
    if not _HTML_TAG_RE.search(text):
        return None
    return BeautifulSoup(text, "html.parser")


def collect_definitions(blocks: list[Block]) -> dict[str, str]:
    """Collect the reference definitions '[label]: target' of the
    text blocks. The first definition of a label wins.

    Returns:
        a dictionary from normalized label to target
    """
    definitions: dict[str, str] = {}
    for block in blocks:
        if not isinstance(block, TextBlock):
            continue
        content = block.content
        for m in _DEFINITION_RE.finditer(_mask_code(content)):
            label = content[m.start(1) : m.end(1)]
            label = normalize_label(_unescape(label))
            if label and label not in definitions:
                target = content[m.start(2) : m.end(2)]
                definitions[label] = _unescape(_strip_angles(target))
    return definitions


class _Scanner:
    """Scans the text of a block, masking what has been matched.
    Matches are found in the masked text; the matched strings are
    taken from the original text, which has the same offsets."""

    def __init__(
        self, text: str, first_line: int, definitions: dict[str, str]
    ) -> None:
        self.original = text
        self.text = _DEFINITION_RE.sub(_blank, _mask_code(text))
        self.first_line = first_line
        self.definitions = definitions
        self.found: list[tuple[int, Reference]] = []

    def _line(self, pos: int) -> int:
        return self.first_line + self.original.count('\n', 0, pos)

    def _group(self, m: re.Match[str], group: int) -> str:
        if m.start(group) < 0:
            return ""
        return _unescape(self.original[m.start(group) : m.end(group)])

    def _add(self, pos: int, reference: Reference) -> None:
        reference.line = self._line(pos)
        self.found.append((pos, reference))

    def _mask(self, start: int, end: int) -> None:
        segment = re.sub(r'[^\n]', ' ', self.text[start:end])
        self.text = self.text[:start] + segment + self.text[end:]

    def scan_inline(self, start: int = 0, end: int | None = None) -> None:
        end = len(self.text) if end is None else end
        for m in list(_INLINE_RE.finditer(self.text, start, end)):
            kind: ReferenceKind = 'image' if m.group(1) else 'link'
            target = self.original[m.start(3) : m.end(3)]
            self._add(
                m.start(),
                Reference(
                    kind=kind,
                    target=_unescape(_strip_angles(target)),
                    text=self._group(m, 2).strip(),
                ),
            )
            # nested image or link in the text of a link
            if '[' in m.group(2):
                self.scan_inline(m.start(2), m.end(2))
            self._mask(m.start(), m.end())

    def scan_references(self) -> None:
        for m in list(_FULL_REF_RE.finditer(self.text)):
            kind: ReferenceKind = 'image' if m.group(1) else 'link'
            text = self._group(m, 2).strip()
            label = self._group(m, 3) or self._group(m, 2)
            key = normalize_label(label)
            if key.startswith('^'):
                continue
            self._add(
                m.start(),
                Reference(
                    kind=kind,
                    target=self.definitions.get(key, ""),
                    text=text,
                    label=label.strip(),
                    resolved=key in self.definitions,
                ),
            )
            self._mask(m.start(), m.end())

        for m in list(_SHORTCUT_REF_RE.finditer(self.text)):
            label = self._group(m, 2).strip()
            key = normalize_label(label)
            if key not in self.definitions:
                # plain brackets, task list items, footnotes
                continue
            kind = 'image' if m.group(1) else 'link'
            self._add(
                m.start(),
                Reference(
                    kind=kind,
                    target=self.definitions[key],
                    text=label,
                    label=label,
                ),
            )
            self._mask(m.start(), m.end())

    def scan_html(self) -> None:
        # raw HTML is literal: escapes are restored, code stays masked
        source = ''.join(
            o if t == _ESCAPED else t
            for t, o in zip(self.text, self.original)
        )
        soup = parse_html(source)
        if soup is None:
            return
        starts = [0] + [i + 1 for i, c in enumerate(source) if c == '\n']
        for tag in soup.find_all(['img', 'a']):
            attr = 'src' if tag.name == 'img' else 'href'
            target = tag.get(attr)
            if target is None:
                continue
            kind: ReferenceKind = 'image' if tag.name == 'img' else 'link'
            pos = starts[(tag.sourceline or 1) - 1] + (tag.sourcepos or 0)
            self._add(
                pos,
                Reference(kind=kind, target=str(target).strip(), html=True),
            )

    def scan_autolinks(self) -> None:
        # backslash escapes do not apply in autolinks
        for m in list(_AUTOLINK_RE.finditer(self.text)):
            target = self.original[m.start(1) : m.end(1)]
            self._add(m.start(), Reference(kind='link', target=target))
            self._mask(m.start(), m.end())
        for m in list(_BARE_URL_RE.finditer(self.text)):
            url = self._group(m, 0).rstrip('.,;:!?*_~\'"')
            self._add(m.start(), Reference(kind='link', target=url))

    def run(self) -> list[Reference]:
        self.scan_inline()
        self.scan_references()
        self.scan_html()
        self.scan_autolinks()
        self.found.sort(key=lambda x: x[0])
        return [ref for _, ref in self.found]


def extract_block_references(
    block: TextBlock, definitions: dict[str, str] | None = None
) -> list[Reference]:
    """Extract the references of a single text block, in order of
    appearance."""
    return _Scanner(block.content, block.line, definitions or {}).run()


def extract_references(blocks: list[Block]) -> list[Reference]:
    """Extract all links and images of a note.

    Args:
        blocks: the block list of the note

    Returns:
        the references, in order of appearance
    """
    definitions = collect_definitions(blocks)
    references: list[Reference] = []
    for block in blocks:
        if isinstance(block, TextBlock):
            references.extend(extract_block_references(block, definitions))
    return references
