"""This module contains a parser for the Markdown used in study notes,
converting it into a list of blocks.

The parser creates a list of blocks of the following types:
HeaderBlock, MetadataBlock, HeadingBlock, CodeBlock, TextBlock, and
ErrorBlock. Everything that is not parsed as one of the first four
becomes a TextBlock.

The supported markdown follows pandoc/GitHub conventions with the
following simplifications:
- a YAML block at the start of the file is the front matter of the
    note, and is parsed as a header
- YAML blocks are marked with three dashes, and closed by three
    dashes or three dots. A '---' line followed by a blank line (or
    by the end of the file) is a horizontal rule, not a YAML block.
    In the body of the note, so is a '---' line followed by text that
    is not YAML, such as a heading
- setext-style headings are not supported (they remain text)
- a blank line is required before a heading only when the heading
    follows text
- fenced code blocks (``` or ~~~) may interrupt text, and nothing
    inside them is parsed

Each block records the 1-based line number where it starts, so that
problems found in a note can be reported at their position.
"""

# Definition of the grammar (informal). The lexemes are entire lines.
# document -> block [blank]+ block
# block    -> metadata | heading | code | content
# metadata -> metadata_marker content+ (metadata_marker | metadata_end)
# code     -> fence .* closing_fence
# heading  -> #{1,6} followed by one space and the heading content
# blank    -> one or more blank lines
# content  -> .*     # everything else

# pyright: reportPrivateUsage=false

from collections import deque
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Literal
import re

from pydantic import BaseModel, ValidationError
import yaml

from . import parse_yaml as pya
from .parse_yaml import MetadataDict
from mdnotes.utils.logging import LoggerBase


class MetadataBlock(BaseModel):
    """A YAML block in the body of a note.

    Important functions:
    serialize()     reconstitute a text representation of the metadata
    get_content()   the metadata
    get_key(key, default) a metadata value indexed by key
    """

    content: MetadataDict = {}
    comment: str = ""
    private_: list[object] = []
    line: int = 0
    type: Literal['metadata'] = 'metadata'

    def serialize(self) -> str:
        """A parsable textual representation of the block."""
        strrep = "---"
        if self.comment:
            strrep = strrep + " # " + self.comment
        content: str = pya.serialize_yaml_parse(
            (self.content, self.private_)
        )
        return strrep + '\n' + content + "---\n"

    def get_info(self) -> str:
        info = f"\n-------------\n{self.type.capitalize()} block"
        info += f" # {self.comment}\n" if self.comment else "\n"
        info += (
            pya.dump_yaml(self.content) if self.content else "<empty>"
        )
        if self.private_:
            info += "\n\nAdditional data:\n" + pya.dump_yaml(
                self.private_
            )
        return info

    def get_content(self) -> MetadataDict:
        return self.content

    def get_key(self, key: str, default: Any = "") -> Any:
        return self.content.get(key, default)

    def deep_copy(self) -> 'MetadataBlock':
        return self.model_copy(deep=True)

    @classmethod
    def _from_tokens(
        cls,
        stack: list['Line'],
    ) -> 'MetadataBlock | ErrorBlock':
        if not stack:
            # this is a programming error
            raise ValueError(
                "Invalid call to _from_tokens with empty list."
            )

        origin = '\n'.join([y for (_, y, _) in stack])
        lineno = stack[0][2]

        comment_match = stack[0][1].strip().split('#', 1)
        comment = (
            comment_match[1].strip() if len(comment_match) > 1 else ''
        )

        # first and last lines are the markers
        content = '\n'.join([y for (_, y, _) in stack[1:-1]])
        try:
            yamldata: Any = yaml.safe_load(content)
        except yaml.YAMLError as e:
            return ErrorBlock(
                content="YAML parse error in metadata block.",
                errormsg=str(e),
                origin=origin,
                line=lineno,
            )

        try:
            part, whole = pya.split_yaml_parse(yamldata)
        except ValueError as e:
            return ErrorBlock(
                content="Invalid metadata block.",
                errormsg=str(e),
                origin=origin,
                line=lineno,
            )

        if not part and not whole:
            return ErrorBlock(
                content="Invalid or empty metadata block.",
                origin=origin,
                line=lineno,
            )

        try:
            return cls(
                content=part,
                private_=whole,
                comment=comment,
                line=lineno,
            )
        except ValidationError:
            # nesting deeper than MetadataValue allows
            return cls(
                content={},
                private_=[part] + whole,
                comment=comment,
                line=lineno,
            )


class HeaderBlock(MetadataBlock):
    """The front matter of a note. It is the first block of the block
    list, when the note starts with a YAML block.
    """

    type: Literal['header'] = 'header'  # type: ignore

    def deep_copy(self) -> 'HeaderBlock':
        return self.model_copy(deep=True)

    @staticmethod
    def from_title(title: str) -> 'HeaderBlock':
        """Instantiate a header block with a title."""
        return HeaderBlock(content={'title': title or "Title"})


class HeadingBlock(BaseModel):
    """A heading of the note: a single line starting with one to six
    '#' characters followed by a space, and the title text. Pandoc
    attributes in braces at the end of the line are kept apart.
    """

    level: int
    content: str
    attributes: str = ""
    line: int = 0
    type: Literal['heading'] = 'heading'

    def serialize(self) -> str:
        """A parsable textual representation of the block."""
        strrep = "#" * self.level + " " + self.content
        if self.attributes:
            strrep = strrep + " {" + self.attributes + "}"
        return strrep + "\n"

    def get_info(self) -> str:
        info = f"\n-------------\nHeading block (level {self.level})\n"
        info += str(self.content) if self.content else "<empty>"
        return info

    def get_content(self) -> str:
        return self.content

    def get_identifier(self) -> str:
        """The explicit identifier in the attributes ({#id}), if any."""
        m = re.search(r'(?:^|\s)#([^\s}]+)', self.attributes)
        return m.group(1) if m else ""

    def deep_copy(self) -> 'HeadingBlock':
        return self.model_copy(deep=True)

    @staticmethod
    def _from_tokens(
        stack: list['Line'],
    ) -> 'HeadingBlock | ErrorBlock':
        if len(stack) != 1:
            raise RuntimeError(
                "Unexpected token stack: Heading block should only "
                + "contain one line"
            )

        _, content, lineno = stack[0]
        origin = content

        if re.match(r'^#{1,6}\s*#*\s*$', content):
            return ErrorBlock(
                content="Empty heading content",
                origin=origin,
                line=lineno,
            )

        # attributes: text delimited by '{' '}' at end of line
        m = re.search(r'\s+\{(.*?)\}\s*$', content)
        if m:
            content = content[: m.start()].strip()
            attr_text = m.group(1).strip()
        else:
            attr_text = ""

        # optional closing sequence of '#'
        content = re.sub(r'\s+#+\s*$', '', content)

        m = re.search(r'^(#{1,6})\s+(.+)', content)
        if not m:
            return ErrorBlock(
                content=(
                    "The heading specifies attributes, but "
                    + "there is no heading text"
                    if attr_text
                    else "Cannot parse heading content"
                ),
                origin=origin,
                line=lineno,
            )
        return HeadingBlock(
            level=len(m.group(1)),
            content=m.group(2).strip(),
            attributes=attr_text,
            line=lineno,
        )


class CodeBlock(BaseModel):
    """A fenced code block. The content excludes the fences.

    Important functions:
    serialize()     reconstitutes the fenced text
    get_content()   the code
    get_language()  the first word of the info string
    """

    content: str = ""
    fence: str = "```"
    info: str = ""
    line: int = 0
    type: Literal['code'] = 'code'

    def serialize(self) -> str:
        strrep = self.fence + self.info + "\n"
        if self.content:
            strrep += self.content + "\n"
        return strrep + self.fence.strip() + "\n"

    def get_info(self) -> str:
        language = self.get_language() or "plain"
        nlines = len(self.content.splitlines())
        return (
            f"\n-------------\nCode block ({language}, "
            + f"{nlines} lines)"
        )

    def get_content(self) -> str:
        return self.content

    def get_language(self) -> str:
        words = self.info.split()
        return words[0].strip('{}.') if words else ""

    def deep_copy(self) -> 'CodeBlock':
        return self.model_copy(deep=True)

    @staticmethod
    def _from_tokens(stack: list['Line']) -> 'CodeBlock':
        # first and last lines are the fences
        m = _FENCE_RE.match(stack[0][1])
        if not m:
            raise RuntimeError(
                "Unexpected token stack: code block must open "
                + "with a fence"
            )
        return CodeBlock(
            content='\n'.join([y for (_, y, _) in stack[1:-1]]),
            fence=m.group(1) + m.group(2),
            info=m.group(3),
            line=stack[0][2],
        )


class TextBlock(BaseModel):
    """A text block from the note. The text block starts after a
    heading, a metadata block, a code block or a blank line, and ends
    with a blank line or the end of the document.
    """

    content: str
    line: int = 0
    type: Literal['text'] = 'text'

    def serialize(self) -> str:
        """A parsable textual representation of the block."""
        return self.content + "\n"

    def get_info(self) -> str:
        info = "\n-------------\nText block\n"
        content = self.content.split()
        if len(content) > 12:
            content = content[:11] + ["..."]
        info += " ".join(content) if content else "<empty>"
        return info

    def get_word_count(self) -> int:
        return len(self.content.split())

    def get_content(self) -> str:
        return self.content

    def is_empty(self) -> bool:
        return not self.content

    def deep_copy(self) -> 'TextBlock':
        return self.model_copy(deep=True)

    @staticmethod
    def _from_tokens(stack: list['Line']) -> 'TextBlock':
        return TextBlock(
            content='\n'.join([y for (_, y, _) in stack]),
            line=stack[0][2],
        )

    @staticmethod
    def from_text(text: str) -> 'TextBlock':
        return TextBlock(content=text)


class ErrorBlock(BaseModel):
    """A portion of the note that gave rise to parsing errors.

    Important functions:
    serialize()     the original markdown text
    get_content()   the string with the error description
    self.origin     the markdown text that gave rise to the error
    """

    content: str = ""
    errormsg: str = ""
    origin: str = ""
    line: int = 0
    type: Literal['error'] = 'error'

    def serialize(self) -> str:
        """The text that gave rise to the error, so that saving a
        block list does not alter the offending content."""
        return self.origin + "\n" if self.origin else ""

    def get_info(self) -> str:
        info = "\n-------------\nError block\n"
        info += self.content if self.content else "empty error block"
        if self.errormsg:
            info += "\n" + self.errormsg
        return info

    def get_content(self) -> str:
        return self.content

    def deep_copy(self) -> 'ErrorBlock':
        return self.model_copy(deep=True)


Block = (
    MetadataBlock
    | HeaderBlock
    | HeadingBlock
    | CodeBlock
    | TextBlock
    | ErrorBlock
)


# Tokens are defined at the granularity of single lines.
class Token(Enum):
    UNDEFINED = 0
    METADATA_MARKER = 1
    METADATA_END = 2
    HEADING = 3
    FENCE = 4
    BLANK = 5
    TEXT_CONTENT = 6


# token, line text, line number
Line = tuple[Token, str, int]

_FENCE_RE = re.compile(r'^( {0,3})(`{3,}|~{3,})(.*)$')
_TOKEN_PATTERNS: list[tuple[re.Pattern[str], Token]] = [
    (re.compile(r'^---(\s+#.*)?\s*$'), Token.METADATA_MARKER),
    (re.compile(r'^\.{3}(\s+#.*)?\s*$'), Token.METADATA_END),
    (re.compile(r'^(#{1,6})(\s+.*)?$'), Token.HEADING),
    (_FENCE_RE, Token.FENCE),
    (re.compile(r'^\s*$'), Token.BLANK),
    (re.compile(r'.*'), Token.TEXT_CONTENT),
]


def _tokenizer(lines: list[str]) -> list[Line]:
    """Classify each line of the note. The matching always succeeds,
    since TEXT_CONTENT matches any line not matched before.

    Args:
        lines: the lines of the markdown text

    Returns:
        A list of (token, line, line number) tuples
    """

    tokens: list[Line] = []
    for lineno, line in enumerate(lines, start=1):
        for regex, token_type in _TOKEN_PATTERNS:
            if regex.match(line):
                tokens.append((token_type, line, lineno))
                break
    return tokens


def _closes_fence(opening: str, line: str) -> bool:
    m_open = _FENCE_RE.match(opening)
    m_close = re.match(r'^ {0,3}(`{3,}|~{3,})\s*$', line)
    if not (m_open and m_close):
        return False
    fence_open, fence_close = m_open.group(2), m_close.group(1)
    return fence_close[0] == fence_open[0] and len(fence_close) >= len(
        fence_open
    )


_METADATA_KEY_RE = re.compile(r'^[A-Za-z_][\w-]*\s*:(\s|$)')


def _is_metadata(lines: list[Line]) -> bool:
    """Decide if the lines following a '---' in the body of a note are
    a YAML block. They are if they load as a mapping or a list of
    mappings, or if they fail to load but start with a 'key:' line."""
    content = '\n'.join([y for (_, y, _) in lines])
    try:
        data: Any = yaml.safe_load(content)
    except yaml.YAMLError:
        first = next((y for (_, y, _) in lines if y.strip()), "")
        return bool(_METADATA_KEY_RE.match(first))
    if isinstance(data, dict):
        return True
    return (
        isinstance(data, list)
        and bool(data)
        and all(isinstance(x, dict) for x in data)
    )


def _parser(tokens: list[Line]) -> list[Block]:
    """Parse a list of tokens into a list of blocks.

    Shift-reduce parser keyed on the first token of the block being
    built (the bottom of the stack):
    - METADATA_MARKER: shift until a closing marker, then reduce to a
        header (first block) or metadata block. A marker followed by a
        blank line is a horizontal rule, reduced to text. In the body
        of the note, a marker followed by lines that are not YAML is
        also a horizontal rule: the lines are put back in the input.
    - FENCE: shift everything until the closing fence, then reduce to
        a code block. Blank lines are kept.
    - TEXT_CONTENT: shift until a blank line or a fence. Headings and
        markers following text without a blank line are text.
    - HEADING: reduced immediately.

    Args:
        tokens: the output of _tokenizer

    Returns:
        A list of blocks
    """

    document: list[Block] = []
    stack: list[Line] = []
    queue: deque[Line] = deque(tokens)

    def _reduce_text() -> None:
        if stack:
            document.append(TextBlock._from_tokens(stack))
            stack.clear()

    def _reduce_rule() -> None:
        queue.extendleft(reversed(stack[1:]))
        del stack[1:]
        _reduce_text()

    while queue:
        token = queue.popleft()
        token_type, line, lineno = token
        bottom: Token = stack[0][0] if stack else Token.UNDEFINED

        if bottom == Token.FENCE:
            stack.append(token)
            if _closes_fence(stack[0][1], line):
                document.append(CodeBlock._from_tokens(stack))
                stack.clear()
            continue

        if bottom == Token.METADATA_MARKER:
            if len(stack) == 1 and token_type == Token.BLANK:
                # horizontal rule
                _reduce_text()
                continue
            stack.append(token)
            closed = token_type in (
                Token.METADATA_MARKER,
                Token.METADATA_END,
            )
            if not document:
                if closed:
                    document.append(HeaderBlock._from_tokens(stack))
                    stack.clear()
            elif closed:
                if _is_metadata(stack[1:-1]):
                    document.append(MetadataBlock._from_tokens(stack))
                    stack.clear()
                else:
                    _reduce_rule()
            elif not queue and not _is_metadata(stack[1:]):
                # unclosed at the end of the note
                _reduce_rule()
            continue

        # the stack is empty or contains text
        match token_type:
            case Token.BLANK:
                _reduce_text()
            case Token.FENCE:
                _reduce_text()
                stack.append(token)
            case Token.HEADING if not stack:
                document.append(HeadingBlock._from_tokens([token]))
            case Token.METADATA_MARKER if not stack:
                stack.append(token)
            case _:
                stack.append((Token.TEXT_CONTENT, line, lineno))

    if stack:
        match stack[0][0]:
            case Token.TEXT_CONTENT:
                _reduce_text()
            case Token.METADATA_MARKER if len(stack) == 1:
                _reduce_text()
            case Token.METADATA_MARKER:
                document.append(
                    ErrorBlock(
                        content="Unclosed metadata block",
                        origin="\n".join([y for (_, y, _) in stack]),
                        line=stack[0][2],
                    )
                )
            case Token.FENCE:
                document.append(
                    ErrorBlock(
                        content="Unclosed code fence",
                        origin="\n".join([y for (_, y, _) in stack]),
                        line=stack[0][2],
                    )
                )
            case _:
                # this should not happen
                raise RuntimeError(
                    "Unexpected token stack: " + str(stack)
                )

    return document


def parse_markdown_text(content: str) -> list[Block]:
    """Parse a markdown string into structured blocks.

    Args:
        content: a string containing markdown content.

    Returns:
        List of Block objects representing the parsed content.

    Related functions:
        - serialize_blocks: Recreates Markdown text from blocks
        - blocklist_haserrors: Checks if parsing was successful
        - blocklist_errors: Returns list of error blocks
    """

    if not content:
        return []

    lines = (
        content.replace('\r\n', '\n').replace('\r', '\n').split('\n')
    )
    return _parser(_tokenizer(lines))


def serialize_blocks(blocks: list[Block]) -> str:
    """Convert a list of Block objects to a markdown string.

    Blocks are separated by a blank line, except after metadata blocks
    in the body of the note, which annotate the block that follows.
    The result ends with a single newline.
    """
    content = ""
    glue = False
    for block in blocks:
        text = block.serialize()
        if not text:
            continue
        if content and not glue:
            content += "\n"
        content += text
        glue = block.type == 'metadata'
    return content


def blocklist_copy(blocks: list[Block]) -> list[Block]:
    """Return a deep copy of the blocklist."""
    return [b.deep_copy() for b in blocks]


# info functions on block lists---------------------------------


def blocklist_errors(blocks: list[Block]) -> list[ErrorBlock]:
    """Return a list of errors in the block list."""
    return [
        block.deep_copy()
        for block in blocks
        if isinstance(block, ErrorBlock)
    ]


def blocklist_haserrors(blocks: list[Block]) -> bool:
    """Check if the block list contains errors."""
    return any(isinstance(b, ErrorBlock) for b in blocks)


def blocklist_map(
    blocks: list[Block],
    map_func: Callable[[Block], Block],
    filter_func: Callable[[Block], bool] = lambda _: True,
) -> list[Block]:
    """Apply map_func to copies of the blocks that satisfy the
    predicate filter_func"""
    return [map_func(b.deep_copy()) for b in blocks if filter_func(b)]


def blocklist_get_info(blocks: list[Block]) -> str:
    """Collect info on all blocks in the list"""
    return "\n".join([x.get_info() for x in blocks])


# utilities-----------------------------------------------------


def load_blocks(
    source: str | Path, logger: LoggerBase | None = None
) -> list[Block]:
    """Load a markdown file into structured blocks. Error blocks are
    reported to the logger and kept in the list.

    Args:
        source: Path to a markdown file.
        logger: a LoggerBase object (defaults to console)

    Returns:
        List of Block objects, or an empty list if the file could not
        be read.
    """
    from .ioutils import load_markdown, report_error_blocks
    from .ioutils import logger as default_logger

    logger = logger or default_logger
    content = load_markdown(source, logger=logger)
    if not content:
        return []

    blocks = parse_markdown_text(content)
    report_error_blocks(blocks, logger=logger, source=source)
    return blocks


def save_blocks(
    file_name: str | Path,
    blocks: list[Block],
    logger: LoggerBase | None = None,
) -> bool:
    """Write a list of Block objects to a markdown file."""
    from .ioutils import save_markdown
    from .ioutils import logger as default_logger

    return save_markdown(
        file_name, serialize_blocks(blocks), logger or default_logger
    )
