"""
The notes corpus: a root directory with one subdirectory per topic or
day, containing markdown notes and their image assets.

Main functions:
    load_corpus     scan a directory and parse all its notes
"""

import fnmatch
import os
import re
from pathlib import Path

from pydantic import BaseModel, Field

from mdnotes.config.config import CorpusSettings
from mdnotes.utils.ioutils import validate_dir
from .notes import Note, load_note

from mdnotes.utils.logging import get_logger, LoggerBase  # fmt: skip
logger: LoggerBase = get_logger(__name__)


def natural_key(name: str) -> tuple[object, ...]:
    """Sort key ordering '2-intro' before '10-chains'."""
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part.casefold())
        for part in re.split(r'(\d+)', name)
        if part
    )


class Corpus(BaseModel):
    """The notes and assets found under a root directory.

    Attributes:
        root: the absolute path of the corpus root
        notes: the notes, in scanning order
        assets: the paths of the image assets relative to the root,
            with '/'
        settings: the settings used to scan the corpus
    """

    root: Path
    notes: list[Note] = Field(default_factory=list)
    assets: list[str] = Field(default_factory=list)
    settings: CorpusSettings = Field(default_factory=CorpusSettings)

    def topics(self) -> list[str]:
        """The topics of the corpus, ordered by day number, then by
        name. Topics without a day come last."""
        days: dict[str, int | None] = {}
        for note in self.notes:
            days.setdefault(note.topic, note.day)
        return sorted(
            days,
            key=lambda t: (
                days[t] is None,
                days[t] or 0,
                natural_key(t),
            ),
        )

    def notes_in_topic(self, topic: str) -> list[Note]:
        """The notes of a topic, in natural order of file name."""
        return sorted(
            [n for n in self.notes if n.topic == topic],
            key=lambda n: natural_key(n.path.name),
        )

    def relative(self, path: str | Path) -> str | None:
        """The path relative to the root, with '/', or None if the
        path is outside the corpus."""
        path = Path(path)
        if not path.is_absolute():
            path = self.root / path
        path = Path(os.path.normpath(path))
        if not path.is_relative_to(self.root):
            return None
        return path.relative_to(self.root).as_posix()

    def find_note(self, path: str | Path) -> Note | None:
        """The note at path (absolute, or relative to the root)."""
        relpath = self.relative(path)
        if relpath is None:
            return None
        for note in self.notes:
            if note.relpath == relpath:
                return note
        return None

    def is_note_file(self, path: str | Path) -> bool:
        name = Path(path).name
        return any(
            fnmatch.fnmatch(name, pattern)
            for pattern in self.settings.note_patterns
        )

    def is_asset(self, path: str | Path) -> bool:
        return (
            Path(path).suffix.lower() in self.settings.asset_extensions
        )


def load_corpus(
    root: str | Path,
    settings: CorpusSettings | None = None,
    logger: LoggerBase = logger,
) -> Corpus:
    """Scan a directory tree and load its notes.

    Directories named in settings.exclude_dirs are not entered.
    Problems reading or parsing notes are reported to the logger and
    do not stop the scan.

    Args:
        root: the corpus directory
        settings: the corpus settings (defaults apply if None)
        logger: the logger receiving the problems

    Returns:
        the corpus. If root is not a directory, the problem is
        reported and the corpus is empty.
    """
    settings = settings or CorpusSettings()
    root_path = validate_dir(root, logger)
    if root_path is None:
        return Corpus(root=Path(root).absolute(), settings=settings)

    corpus = Corpus(root=root_path, settings=settings)
    excluded = set(settings.exclude_dirs)
    for dirpath, dirnames, filenames in os.walk(root_path):
        # prune in place, sorted for a deterministic scan
        dirnames[:] = sorted(d for d in dirnames if d not in excluded)
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if corpus.is_note_file(path):
                corpus.notes.append(
                    load_note(
                        path,
                        root_path,
                        logger=logger,
                        max_size_mb=settings.max_size_mb,
                        warn_size_mb=settings.warn_size_mb,
                    )
                )
            elif corpus.is_asset(path):
                corpus.assets.append(
                    path.relative_to(root_path).as_posix()
                )

    logger.info(
        f"Loaded {len(corpus.notes)} notes and {len(corpus.assets)}"
        f" assets from {root_path}"
    )
    return corpus
