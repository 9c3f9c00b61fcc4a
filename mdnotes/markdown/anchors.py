"""
Anchor identifiers of a note, as generated by Markdown renderers for
in-page navigation.

Headings get an identifier from the explicit attribute {#id}, if
given, or else from their text: inline markup is removed, the text is
lower-cased, characters other than letters, digits, spaces, '-' and
'_' are dropped, and spaces become '-'. A repeated identifier gets a
numeric suffix: 'setup', 'setup-1', 'setup-2'. Explicit identifiers
count as taken. HTML elements with an 'id' or a 'name' attribute in
the text of the note are anchors too.
"""

import re

from .parse_markdown import Block, HeadingBlock, TextBlock
from .references import parse_html


def slugify(text: str) -> str:
    """The anchor identifier generated from the text of a heading."""
    # images and links keep their text
    text = re.sub(r'!?\[([^\]]*)\]\([^)]*\)', r'\1', text)
    text = re.sub(r'<[^>]+>', '', text)
    text = re.sub(r'[`*~]', '', text)
    # emphasis underscores, not those inside words
    text = re.sub(r'(?<!\w)_+|_+(?!\w)', '', text)
    text = text.strip().lower()
    text = re.sub(r'[^\w\- ]', '', text)
    return text.replace(' ', '-')


def heading_anchors(
    blocks: list[Block],
) -> list[tuple[HeadingBlock, str]]:
    """Pair each heading of the note with its anchor identifier.
    Headings whose text yields no identifier are paired with ''."""
    anchors: list[tuple[HeadingBlock, str]] = []
    counts: dict[str, int] = {}
    for block in blocks:
        if not isinstance(block, HeadingBlock):
            continue
        anchor = block.get_identifier()
        if anchor:
            counts.setdefault(anchor, 0)
        else:
            slug = slugify(block.get_content())
            if slug:
                anchor = slug
                if slug in counts:
                    counts[slug] += 1
                    anchor = f"{slug}-{counts[slug]}"
                    while anchor in counts:
                        counts[slug] += 1
                        anchor = f"{slug}-{counts[slug]}"
                counts.setdefault(anchor, 0)
        anchors.append((block, anchor))
    return anchors


def html_anchors(blocks: list[Block]) -> list[str]:
    """Identifiers declared by HTML elements in the text blocks."""
    found: list[str] = []
    for block in blocks:
        if not isinstance(block, TextBlock):
            continue
        soup = parse_html(block.content)
        if soup is None:
            continue
        for tag in soup.find_all(True):
            for attr in ('id', 'name'):
                value = tag.get(attr)
                if value:
                    found.append(str(value).strip())
    return [a for a in found if a]


def collect_anchors(blocks: list[Block]) -> set[str]:
    """All the anchor identifiers that a link to the note may use."""
    anchors = {a for _, a in heading_anchors(blocks) if a}
    anchors.update(html_anchors(blocks))
    return anchors
