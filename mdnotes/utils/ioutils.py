"""
Utilities to validate paths before reading. Errors are not
propagated: functions report to a logger and return None.
"""

from pathlib import Path

from .logging import get_logger, LoggerBase  # fmt: skip
logger: LoggerBase = get_logger(__name__)


def string_to_path_or_string(input_string: str) -> Path | str:
    """
    If the string is one line and names an existing file, returns a
    Path object for that file. Otherwise, it returns the string.

    A string is considered one line if it contains no newlines, or if
    it only has a single trailing newline character.
    """
    stripped_string = input_string.rstrip('\n\r')
    if '\n' in stripped_string or '\r' in stripped_string:
        return input_string

    try:
        potential_path = Path(stripped_string.strip())
        if potential_path.is_file():
            return potential_path
    except (OSError, ValueError):
        # invalid path characters
        pass

    return input_string


def validate_file(
    source: str | Path, logger: LoggerBase = logger
) -> Path | None:
    """Returns: None for failure, Path object otherwise"""
    if not source:
        logger.warning("No file given")
        return None
    try:
        source_path = Path(source)
        if not source_path.exists():
            logger.error(f"File does not exist: {source}")
            return None
        if not source_path.is_file():
            logger.error(f"Not a file: {source}")
            return None
        if source_path.stat().st_size == 0:
            logger.warning(f"File is empty: {source}")
            return None
    except OSError as e:
        logger.error(f"Error accessing file {source}: {str(e)}")
        return None

    return source_path


def validate_dir(
    source: str | Path, logger: LoggerBase = logger
) -> Path | None:
    """Returns: None for failure, the resolved directory otherwise"""
    if not source:
        logger.warning("No directory given")
        return None
    try:
        source_path = Path(source)
        if not source_path.exists():
            logger.error(f"Directory does not exist: {source}")
            return None
        if not source_path.is_dir():
            logger.error(f"Not a directory: {source}")
            return None
        return source_path.resolve()
    except OSError as e:
        logger.error(f"Error accessing directory {source}: {str(e)}")
        return None
