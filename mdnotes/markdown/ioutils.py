"""
Utilities to read/write markdown files to/from disc, reporting
problems consistently through a LoggerBase object.

A notes corpus is usually written by hand over many days, with
different editors; files may come with different encodings or be
accidentally large (pasted outputs, embedded data). The functions
here never raise on these conditions: they report to the logger and
return an empty value, so that a scan over the corpus goes on.

Logger usage:
    >>> from mdnotes.utils.logging import LoglistLogger
    >>> logger = LoglistLogger()
    >>> content = load_markdown("day1/notes.md", logger=logger)
    >>> errors = logger.get_logs(level=2)

    Use an ExceptionConsoleLogger to turn reported errors into
    exceptions.
"""

from pathlib import Path

import chardet

from mdnotes.utils.ioutils import validate_file
from mdnotes.utils.ioutils import string_to_path_or_string
from .parse_markdown import Block, ErrorBlock
from .parse_markdown import serialize_blocks, blocklist_errors

from mdnotes.utils.logging import get_logger, LoggerBase  # fmt: skip
logger: LoggerBase = get_logger(__name__)

FALLBACK_ENCODINGS = ['utf-8', 'cp1252', 'latin-1']


def _check_file_size(
    file_path: Path,
    max_size_mb: float,
    warn_size_mb: float,
    logger: LoggerBase,
) -> bool:
    """
    Check file size against limits. Non-positive limits disable the
    corresponding check.

    Returns:
        True if file size is acceptable, False if it exceeds max_size_mb
    """
    try:
        file_size_mb = file_path.stat().st_size / (1024 * 1024)
    except OSError as e:
        logger.error(f"Could not check file size for {file_path}: {e}")
        return False

    if max_size_mb > 0 and file_size_mb > max_size_mb:
        logger.error(
            f"File {file_path} is too large ({file_size_mb:.1f}MB). "
            f"Maximum allowed size is {max_size_mb}MB."
        )
        return False
    if warn_size_mb > 0 and file_size_mb > warn_size_mb:
        logger.warning(
            f"File {file_path} is large ({file_size_mb:.1f}MB)."
        )
    return True


def _detect_encoding(file_path: Path, logger: LoggerBase) -> str:
    """
    Detect file encoding: UTF-8 first, then chardet on a sample, then
    a list of fallback encodings.
    """
    raw_data = file_path.read_bytes()[:10240]
    try:
        raw_data.decode('utf-8')
        return 'utf-8'
    except UnicodeDecodeError as e:
        # a multibyte sequence cut at the end of the sample
        if e.start >= len(raw_data) - 3:
            return 'utf-8'

    result = chardet.detect(raw_data)
    if result['encoding'] and result['confidence'] > 0.7:
        logger.info(
            f"File {file_path} detected as {result['encoding']} "
            f"encoding (confidence: {result['confidence']:.2f})"
        )
        return result['encoding']

    for encoding in FALLBACK_ENCODINGS:
        try:
            raw_data.decode(encoding)
        except UnicodeDecodeError:
            continue
        logger.info(f"File {file_path} using fallback encoding: {encoding}")
        return encoding

    logger.warning(
        f"Could not detect encoding for {file_path}, "
        "using UTF-8 with error replacement"
    )
    return 'utf-8'


def load_markdown(
    source: str | Path,
    logger: LoggerBase = logger,
    max_size_mb: float = 50.0,
    warn_size_mb: float = 10.0,
    encoding: str | None = None,
) -> str:
    """
    Loads a markdown file.

    Args:
        source: the source file. If the source is a multiline string,
            or a string that does not name a file, returns the string
            itself.
        logger: a logger object (defaults to console).
        max_size_mb: maximum file size in MB.
        warn_size_mb: file size in MB that triggers a warning.
        encoding: the encoding of the file. If None, the encoding is
            detected.

    Returns:
        The content of the file, or an empty string on failure.
    """

    if isinstance(source, str):
        source = string_to_path_or_string(source)
        if isinstance(source, str):
            return source

    if validate_file(source, logger) is None:
        return ""
    if not _check_file_size(source, max_size_mb, warn_size_mb, logger):
        return ""

    try:
        file_encoding = encoding or _detect_encoding(source, logger)
        return source.read_text(encoding=file_encoding, errors='replace')
    except LookupError as e:
        logger.error(f"Unknown encoding for file {source}: {e}")
    except OSError as e:
        logger.error(f"I/O error reading file {source}: {e}")
    return ""


def save_markdown(
    dest: str | Path,
    content: list[Block] | str,
    logger: LoggerBase = logger,
) -> bool:
    """
    Save markdown text or blocks to a file, creating the parent
    directories.

    Returns:
        a boolean indicating success or failure.
    """
    if isinstance(content, list):
        content = serialize_blocks(content)
    if not content:
        logger.warning(f"Empty markdown, {dest} not written")
        return False

    try:
        save_path = Path(dest)
        save_path.parent.mkdir(parents=True, exist_ok=True)
        save_path.write_text(content, encoding='utf-8')
    except OSError as e:
        logger.error(f"I/O error saving markdown to {dest}: {str(e)}")
        return False

    return True


def report_error_blocks(
    blocks: list[Block],
    logger: LoggerBase = logger,
    source: str | Path = "",
) -> list[Block]:
    """
    Report the error blocks of a block list to the logger.

    Args:
        blocks: the block list to check for error blocks
        logger: a logger object, defaulting to a console logger
        source: the file the blocks were loaded from, for the messages

    Returns:
        a list without error blocks.
    """
    errblocks: list[ErrorBlock] = blocklist_errors(blocks)
    if not errblocks:
        return blocks

    location = f"{source}:" if source else "line "
    for block in errblocks:
        error_parts = [f"{location}{block.line}: {block.content}"]
        if block.errormsg:
            error_parts.append(block.errormsg)
        if block.origin.strip():
            error_parts.extend(
                [
                    " Offending content:",
                    "------------",
                    block.origin,
                    "------------",
                ]
            )
        logger.warning("\n".join(error_parts))
    return [b for b in blocks if not isinstance(b, ErrorBlock)]
