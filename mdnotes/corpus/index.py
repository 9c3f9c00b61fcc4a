"""
Generation of a reading index for the corpus: a markdown note that
lists the topics in day order, and under each topic the notes with
the outline of their headings, as links.

The index is built as a block list, so that it can be saved with
save_blocks or further edited. Its links are relative to the location
of the index file, percent-encoded, and point to the anchors computed
by mdnotes.markdown.anchors, so that the index passes check_corpus.
"""

import os
import re
from pathlib import Path
from urllib.parse import quote

from mdnotes.config.config import IndexSettings
from mdnotes.markdown.parse_markdown import (
    Block,
    HeaderBlock,
    HeadingBlock,
    TextBlock,
    save_blocks,
)
from .corpus import Corpus
from .notes import Note

from mdnotes.utils.logging import get_logger, LoggerBase  # fmt: skip
logger: LoggerBase = get_logger(__name__)

ROOT_TOPIC_TITLE = "General"


def _link_text(text: str) -> str:
    # links in the text of a link are not allowed: keep their text
    text = re.sub(r'!?\[([^\]]*)\]\([^)]*\)', r'\1', text)
    return text.replace('[', '\\[').replace(']', '\\]')


def _link_target(relpath: str, start: str, anchor: str = "") -> str:
    target = os.path.relpath(relpath, start or ".")
    target = quote(Path(target).as_posix(), safe="/-_.~")
    return target + ("#" + quote(anchor, safe="-_.~") if anchor else "")


def topic_title(topic: str, day: int | None) -> str:
    """The heading of a topic in the index."""
    if not topic:
        return ROOT_TOPIC_TITLE
    return topic if day is None else f"Day {day}: {topic}"


def note_outline(
    note: Note, start: str, toc_depth: int
) -> list[str]:
    """The markdown list of a note and of its headings."""
    lines = [
        f"- [{_link_text(note.title)}]"
        f"({_link_target(note.relpath, start)})"
    ]
    headings = [
        (h, a)
        for h, a in note.get_headings()
        if a and h.level <= toc_depth
    ]
    # the heading that gives the title is the note itself
    if (
        headings
        and headings[0][0].level == 1
        and headings[0][0].get_content() == note.title
    ):
        headings = headings[1:]
    if not headings:
        return lines

    top = min(h.level for h, _ in headings)
    for heading, anchor in headings:
        indent = "  " * (heading.level - top + 1)
        lines.append(
            f"{indent}- [{_link_text(heading.get_content())}]"
            f"({_link_target(note.relpath, start, anchor)})"
        )
    return lines


def build_index(
    corpus: Corpus,
    settings: IndexSettings | None = None,
    title: str | None = None,
) -> list[Block]:
    """Build the index of the corpus.

    Args:
        corpus: a loaded corpus
        settings: the index settings (defaults apply if None)
        title: the title of the index (defaults to the corpus title)

    Returns:
        the blocks of the index note
    """
    settings = settings or IndexSettings()
    title = title or corpus.settings.title
    index_relpath = corpus.relative(settings.file_name) or settings.file_name
    start = Path(index_relpath).parent.as_posix()
    start = "" if start == "." else start

    blocks: list[Block] = [
        HeaderBlock.from_title(title),
        HeadingBlock(level=1, content=title),
    ]
    for topic in corpus.topics():
        notes = [
            n
            for n in corpus.notes_in_topic(topic)
            if n.relpath != index_relpath
        ]
        if not notes:
            continue
        blocks.append(
            HeadingBlock(level=2, content=topic_title(topic, notes[0].day))
        )
        lines: list[str] = []
        for note in notes:
            lines.extend(note_outline(note, start, settings.toc_depth))
        blocks.append(TextBlock(content="\n".join(lines)))
    return blocks


def save_index(
    corpus: Corpus,
    settings: IndexSettings | None = None,
    dest: str | Path | None = None,
    title: str | None = None,
    logger: LoggerBase = logger,
) -> Path | None:
    """Build the index and save it. The destination defaults to
    settings.file_name in the corpus root.

    Returns:
        the path of the saved index, or None on failure
    """
    settings = settings or IndexSettings()
    if dest is not None:
        dest = Path(dest).absolute()
        relpath = corpus.relative(dest)
        if relpath is None:
            logger.error(f"The index {dest} must be inside the corpus")
            return None
        settings = settings.model_copy(update={'file_name': relpath})
    path = corpus.root / settings.file_name

    blocks = build_index(corpus, settings, title)
    if not save_blocks(path, blocks, logger):
        return None
    logger.info(f"Index saved to {path}")
    return path
