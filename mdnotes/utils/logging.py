"""
Logging layer for the mdnotes package.

Functions that touch the file system or scan a notes corpus do not
raise on I/O problems: they report them through a LoggerBase object
that the caller may pass in. The implementation chosen by the caller
decides what happens to the message.

Usage:
    ```python
    from mdnotes.utils.logging import get_logger, LoglistLogger

    logger = get_logger(__name__)          # console
    recorder = LoglistLogger()             # in-memory, for tests
    strict = ExceptionConsoleLogger()      # raises on errors
    ```
"""

import logging
import sys
from pathlib import Path
from abc import ABC, abstractmethod


LOG_FORMAT = '%(levelname)s - %(message)s'
FILE_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


class LoggerBase(ABC):
    """
    Abstract interface for logging functionality.
    """

    @abstractmethod
    def set_level(self, level: int) -> None:
        """Set the logging level for the logger."""
        pass

    @abstractmethod
    def get_level(self) -> int:
        """Get the current logging level"""
        pass

    @abstractmethod
    def info(self, msg: str) -> None:
        pass

    @abstractmethod
    def error(self, msg: str) -> None:
        pass

    @abstractmethod
    def warning(self, msg: str) -> None:
        pass

    @abstractmethod
    def critical(self, msg: str) -> None:
        pass


class ConsoleLogger(LoggerBase):
    """
    A console logger delegating to logging.Logger. Messages go to
    stderr, so that the output of commands can be piped.
    """

    def __init__(self, name: str | None = None) -> None:
        self.logger = logging.getLogger(name or "mdnotes")
        self.logger.setLevel(logging.INFO)

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            self.logger.addHandler(handler)
            self.logger.propagate = False

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)

    def get_level(self) -> int:
        return self.logger.level

    def info(self, msg: str) -> None:
        self.logger.info(msg)

    def error(self, msg: str) -> None:
        self.logger.error(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)

    def critical(self, msg: str) -> None:
        self.logger.critical(msg, stack_info=True)


class FileLogger(LoggerBase):
    """
    A file logger implementation that uses logging.Logger as a
    delegate.
    """

    def __init__(
        self, name: str = "", log_file: str | Path = "mdnotes.log"
    ) -> None:
        """
        Args:
            name: The name of the logger, typically __name__
            log_file: Path to the log file where messages will be
                written
        """
        self.logger = logging.getLogger(f"{name}_file")
        self.logger.setLevel(logging.INFO)

        # Clear any existing handlers to avoid duplicates
        self.logger.handlers.clear()

        handler = logging.FileHandler(log_file, encoding='utf-8')
        handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        self.logger.addHandler(handler)
        self.logger.propagate = False

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)

    def get_level(self) -> int:
        return self.logger.level

    def info(self, msg: str) -> None:
        self.logger.info(msg)

    def error(self, msg: str) -> None:
        self.logger.error(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)

    def critical(self, msg: str) -> None:
        self.logger.critical(msg, stack_info=True)

    def close(self) -> None:
        """Release the file handlers."""
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)


class LoglistLogger(LoggerBase):
    """
    Maintains a list of logged messages that can be inspected by the
    object creator.
    """

    def __init__(self) -> None:
        self.logs: list[dict[str, str]] = []
        self.level: int = logging.INFO

    def set_level(self, level: int) -> None:
        self.level = level

    def get_level(self) -> int:
        return self.level

    def info(self, msg: str) -> None:
        if self.level <= logging.INFO:
            self.logs.append({'info': msg})

    def error(self, msg: str) -> None:
        self.logs.append({'error': msg})

    def warning(self, msg: str) -> None:
        if self.level <= logging.WARNING:
            self.logs.append({'warning': msg})

    def critical(self, msg: str) -> None:
        self.logs.append({'critical': msg})

    def get_logs(self, level: int = 0) -> list[str]:
        """
        Returns a list of strings with the log messages.

        Args:
           level: a filter on the logs. Possible values:
                0 or less: returns all messages
                1: omit info
                2 or more: only errors and critical
        """
        logs: list[str] = []
        for entry in self.logs:
            match entry:
                case {'info': msg}:
                    if level < 1:
                        logs.append("INFO - " + msg)
                case {'warning': msg}:
                    if level < 2:
                        logs.append("WARNING - " + msg)
                case {'error': msg}:
                    logs.append("ERROR - " + msg)
                case {'critical': msg}:
                    logs.append("CRITICAL - " + msg)
                case _:
                    logs.append(str(entry))
        return logs

    def count_logs(self, level: int = 0) -> int:
        """The number of recorded logs at or above level."""
        return len(self.get_logs(level))

    def clear_logs(self) -> None:
        self.logs.clear()


class ExceptionConsoleLogger(ConsoleLogger):
    """
    A console logger that raises RuntimeError on error and critical
    calls, after logging the message. Use it to make the reporting
    functions of the package strict.
    """

    def __init__(self, name: str = "") -> None:
        super().__init__(f"{name or 'mdnotes'}_exception")

    def error(self, msg: str) -> None:
        self.logger.error(msg)
        raise RuntimeError(f"Error: {msg}")

    def critical(self, msg: str) -> None:
        self.logger.critical(msg)
        raise RuntimeError(f"Critical error: {msg}")


def get_logger(name: str) -> LoggerBase:
    """
    Get a console logger with the specified name.

    Args:
        name: The name of the logger, typically __name__

    Returns:
        A configured logger instance
    """
    return ConsoleLogger(name)


def set_log_level(logger: LoggerBase, verbose: bool) -> None:
    """Switch a logger between informational and warning output."""
    logger.set_level(logging.INFO if verbose else logging.WARNING)
