# pyright: reportUnusedImport=false
# flake8: noqa

from .notes import (
    Note,
    load_note,
    note_from_text,
    topic_day,
)

from .corpus import (
    Corpus,
    load_corpus,
)

from .checks import (
    Issue,
    CheckReport,
    check_note,
    check_corpus,
    probe_url,
)

from .index import (
    build_index,
    save_index,
)

from .loader import (
    NotesLoader,
    NullTextSplitter,
    note_sections,
)
