# pyright: reportUnusedImport=false
# flake8: noqa

from .parse_yaml import (
    MetadataDict,
    MetadataPrimitive,
    MetadataValue,
    is_metadata_dict,
    is_metadata_primitive,
)

from .parse_markdown import (
    Block,
    MetadataBlock,
    HeaderBlock,
    HeadingBlock,
    CodeBlock,
    TextBlock,
    ErrorBlock,
    parse_markdown_text,
    serialize_blocks,
    blocklist_copy,
    blocklist_errors,
    blocklist_get_info,
    blocklist_haserrors,
    blocklist_map,
    load_blocks,
    save_blocks,
)

from .ioutils import (
    load_markdown,
    save_markdown,
    report_error_blocks,
)

from .references import (
    Reference,
    collect_definitions,
    extract_references,
)

from .anchors import (
    slugify,
    heading_anchors,
    collect_anchors,
)
