"""
A note of the corpus: a markdown file parsed into blocks, together
with the information needed to check it and to index it.

The topic of a note is the directory that contains it, relative to
the corpus root. Study notes are usually organized by day, and the
day number is read from the topic name when it contains a marker
such as 'day1', 'Day-02', 'd3', or a leading number ('05-chains').
"""

import re
from pathlib import Path

from pydantic import BaseModel, Field

from mdnotes.markdown.parse_markdown import (
    Block,
    ErrorBlock,
    HeaderBlock,
    HeadingBlock,
    parse_markdown_text,
)
from mdnotes.markdown.parse_yaml import MetadataDict
from mdnotes.markdown.ioutils import load_markdown, report_error_blocks
from mdnotes.markdown.references import Reference, extract_references
from mdnotes.markdown.anchors import collect_anchors, heading_anchors

from mdnotes.utils.logging import get_logger, LoggerBase  # fmt: skip
logger: LoggerBase = get_logger(__name__)

_DAY_RE = re.compile(r'(?:^|[^a-z])(?:day|d)[\s_-]*(\d+)', re.IGNORECASE)
_LEADING_NUMBER_RE = re.compile(r'^(\d+)(?:[\s_.-]|$)')


def topic_day(topic: str) -> int | None:
    """The day number of a topic, or None. Path components are
    examined from the innermost one."""
    for name in reversed(topic.replace('\\', '/').split('/')):
        m = _DAY_RE.search(name) or _LEADING_NUMBER_RE.match(name)
        if m:
            return int(m.group(1))
    return None


class Note(BaseModel):
    """A parsed note.

    Attributes:
        path: the absolute path of the file
        relpath: the path relative to the corpus root, with '/'
        topic: the directory of the note relative to the root ('' at
            the root)
        day: the day number of the topic, if any
        title: front matter title, or first level-1 heading, or the
            file stem
        blocks: the parsed blocks, error blocks included
        anchors: the identifiers that links to this note may use
        references: the links and images of the note
    """

    path: Path
    relpath: str
    topic: str = ""
    day: int | None = None
    title: str = ""
    blocks: list[Block] = Field(default_factory=list)
    anchors: set[str] = Field(default_factory=set)
    references: list[Reference] = Field(default_factory=list)

    def get_metadata(self) -> MetadataDict:
        """The front matter of the note."""
        if self.blocks and isinstance(self.blocks[0], HeaderBlock):
            return self.blocks[0].get_content()
        return {}

    def get_headings(self) -> list[tuple[HeadingBlock, str]]:
        """The headings of the note with their anchor identifiers."""
        return heading_anchors(self.blocks)

    def get_errors(self) -> list[ErrorBlock]:
        return [b for b in self.blocks if isinstance(b, ErrorBlock)]

    def has_errors(self) -> bool:
        return bool(self.get_errors())


def note_title(blocks: list[Block], default: str) -> str:
    """Title from the front matter, the first level-1 heading, or the
    default."""
    if blocks and isinstance(blocks[0], HeaderBlock):
        title = blocks[0].get_key('title', None)
        if isinstance(title, (str, int, float)) and str(title).strip():
            return str(title).strip()
    for block in blocks:
        if isinstance(block, HeadingBlock) and block.level == 1:
            return block.get_content()
    return default


def note_from_text(
    content: str, path: Path, root: Path
) -> Note:
    """Build a note from its markdown text."""
    relative = path.relative_to(root)
    topic = relative.parent.as_posix()
    topic = "" if topic == "." else topic
    blocks = parse_markdown_text(content)
    return Note(
        path=path,
        relpath=relative.as_posix(),
        topic=topic,
        day=topic_day(topic),
        title=note_title(blocks, path.stem),
        blocks=blocks,
        anchors=collect_anchors(blocks),
        references=extract_references(blocks),
    )


def load_note(
    path: str | Path,
    root: str | Path,
    logger: LoggerBase = logger,
    max_size_mb: float = 50.0,
    warn_size_mb: float = 10.0,
) -> Note:
    """Load and parse a note. A file that cannot be read gives a note
    without blocks, after reporting the problem to the logger; parse
    errors are reported and kept in the blocks.

    Args:
        path: the markdown file
        root: the corpus root, a parent directory of path
        logger: the logger receiving I/O and parse problems

    Raises:
        ValueError: if path is not inside root
    """
    path = Path(path).absolute()
    root = Path(root).absolute()
    if not path.is_relative_to(root):
        raise ValueError(f"{path} is not inside the corpus {root}")

    content = ""
    if path.is_file() and path.stat().st_size == 0:
        # empty notes are legitimate placeholders
        logger.info(f"Empty note: {path}")
    else:
        content = load_markdown(
            path,
            logger=logger,
            max_size_mb=max_size_mb,
            warn_size_mb=warn_size_mb,
        )
    note = note_from_text(content, path, root)
    report_error_blocks(note.blocks, logger=logger, source=note.relpath)
    return note
