"""A langchain document loader for the notes corpus.

Each section of a note (the content under a heading, down to the next
heading) becomes a Document, annotated with metadata that locate it
in the corpus: the note, its topic and day, the path of headings
leading to the section, and the anchor of the section heading.
Sections may be further split with a langchain text splitter; the
chunks inherit the metadata of the section.

Main classes:
    NotesLoader         the document loader
    NullTextSplitter    a splitter that does not split

Main functions:
    note_sections       the sections of a note as documents
"""

from collections.abc import Iterator

from langchain_core.document_loaders import BaseLoader
from langchain_core.documents import Document
from langchain_text_splitters import (
    RecursiveCharacterTextSplitter,
    TextSplitter,
)

from mdnotes.config.config import LoaderSettings
from mdnotes.markdown.parse_markdown import (
    CodeBlock,
    HeadingBlock,
    TextBlock,
)
from .corpus import Corpus
from .notes import Note

HEADING_SEPARATOR = " > "


class NullTextSplitter(TextSplitter):
    """A langchain text splitter that does not split"""

    def split_text(self, text: str) -> list[str]:
        return [text]


def make_splitter(settings: LoaderSettings) -> TextSplitter:
    """The splitter configured by the settings. A chunk size of zero
    gives a NullTextSplitter."""
    if settings.chunk_size == 0:
        return NullTextSplitter()
    return RecursiveCharacterTextSplitter(
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        add_start_index=False,
    )


def _note_metadata(note: Note) -> dict[str, str | int]:
    metadata: dict[str, str | int] = {
        'source': note.relpath,
        'topic': note.topic,
        'title': note.title,
    }
    if note.day is not None:
        metadata['day'] = note.day
    return metadata


def note_sections(note: Note, include_code: bool = True) -> list[Document]:
    """Split a note into one document per section. Text preceding
    the first heading forms a section with an empty heading path.
    Sections without text are skipped."""

    documents: list[Document] = []
    headings = iter(note.get_headings())
    path: list[tuple[int, str]] = []
    anchor = ""
    parts: list[str] = []

    def _flush() -> None:
        if not parts:
            return
        metadata = _note_metadata(note)
        metadata['heading'] = HEADING_SEPARATOR.join(t for _, t in path)
        metadata['anchor'] = anchor
        documents.append(
            Document(page_content="\n\n".join(parts), metadata=metadata)
        )
        parts.clear()

    for block in note.blocks:
        match block:
            case HeadingBlock():
                _flush()
                _, anchor = next(headings)
                while path and path[-1][0] >= block.level:
                    path.pop()
                path.append((block.level, block.get_content()))
            case TextBlock():
                parts.append(block.get_content())
            case CodeBlock() if include_code:
                parts.append(block.serialize().rstrip("\n"))
            case _:
                # front matter, metadata, errors
                pass
    _flush()
    return documents


class NotesLoader(BaseLoader):
    """Load the notes of a corpus as langchain documents, in reading
    order (topics by day, notes by name, sections in order).

    Example:
        ```python
        corpus = load_corpus("notes/")
        docs = NotesLoader(corpus).load()
        ```
    """

    def __init__(
        self,
        corpus: Corpus,
        settings: LoaderSettings | None = None,
        text_splitter: TextSplitter | None = None,
    ) -> None:
        self.corpus = corpus
        self.settings = settings or LoaderSettings()
        self.text_splitter = text_splitter or make_splitter(self.settings)

    def lazy_load(self) -> Iterator[Document]:
        for topic in self.corpus.topics():
            for note in self.corpus.notes_in_topic(topic):
                yield from self.load_note(note)

    def load_note(self, note: Note) -> list[Document]:
        """The documents of a single note, split into chunks."""
        documents: list[Document] = []
        for section in note_sections(note, self.settings.include_code):
            chunks = self.text_splitter.split_documents([section])
            for index, chunk in enumerate(chunks):
                chunk.metadata['chunk'] = index
                documents.append(chunk)
        return documents
