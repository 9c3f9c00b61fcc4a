"""
Interface to the pyyaml package for the front matter of notes.

The front matter of a note is a YAML object. The parts of it that the
rest of the package uses (title, tags, date, and the like) are
dictionaries with string keys and primitive values. Everything else
the author may have written in the block is kept aside so that the
block can be written back unchanged.

A parsed YAML object is therefore split into a tuple (part, whole):
'part' is the conformant dictionary, 'whole' a list with the rest.
YAML objects consisting of a bare literal raise ValueError, as the
author most likely forgot the property name.
"""

# pyright: reportUnknownVariableType=false
# pyright: reportUnknownArgumentType=false

from typing import Any, Mapping, TypeGuard
import re

import yaml

MetadataPrimitive = str | int | bool | float

MetadataValue = (
    None
    | MetadataPrimitive
    | list[MetadataPrimitive]
    | dict[str, MetadataPrimitive | list[MetadataPrimitive]]
)
MetadataDict = dict[str, MetadataValue]
ParsedYaml = tuple[MetadataDict, list[object]]


def _is_metadata_type(value: object) -> TypeGuard[MetadataValue]:
    match value:
        case str() | int() | bool() | float() | None:
            return True
        case list():
            return all(_is_metadata_type(x) for x in value)
        case dict():
            return is_metadata_dict(value)
        case _:
            # dates parsed by yaml, bytes, sets
            return False


def is_metadata_primitive(
    value: object,
) -> TypeGuard[MetadataPrimitive]:
    return isinstance(value, (int, float, str, bool))


def _is_string_dict(data: object) -> TypeGuard[dict[str, object]]:
    return isinstance(data, dict) and all(
        isinstance(k, str) for k in data.keys()
    )


def is_metadata_dict(data: object) -> TypeGuard[MetadataDict]:
    if not _is_string_dict(data):
        return False
    return all(_is_metadata_type(value) for value in data.values())


def _split_metadata_dict(
    values: dict[str, object],
) -> tuple[MetadataDict, list[object]]:
    conformant: MetadataDict = {}
    rest: dict[str, object] = {}
    for key, value in values.items():
        if _is_metadata_type(value):
            conformant[key] = value
        else:
            rest[key] = value
    return (conformant, [rest]) if rest else (conformant, [])


def split_yaml_parse(yamldata: object | None) -> ParsedYaml:
    """
    Split the output of yaml.safe_load into a conformant dictionary
    and a list of the remaining data.

    Args:
        yamldata: the output of yaml.safe_load()

    Returns:
        a tuple (part, whole)

    Raises:
        ValueError: if the YAML object is a literal
    """

    part: MetadataDict = {}
    whole: list[object] = []
    match yamldata:
        case None | [] | [None] | [{}] | [[]]:
            pass
        case list() if is_metadata_dict(yamldata[0]):
            part = yamldata[0]
            whole = list(yamldata[1:])
        case list() if _is_string_dict(yamldata[0]):
            part, rest = _split_metadata_dict(yamldata[0])
            whole = rest + list(yamldata[1:])
        case list():
            whole = list(yamldata)
        case dict() if _is_string_dict(yamldata):
            part, whole = _split_metadata_dict(yamldata)
        case dict():
            whole = [yamldata]
        case str() | int() | float() | bool():
            raise ValueError(
                "Data in the front matter must follow a property.\n"
                + "Specify the data like this:\n"
                + f"property_name: {yamldata}"
            )
        case _:
            raise ValueError(
                "Invalid YAML object type for front matter (not"
                + " a dict or list)"
            )

    return part, whole


def desplit_yaml_parse(
    split_parse: tuple[Mapping[str, MetadataValue], list[object]]
    | None,
) -> Any:
    """Reconstitute the yaml object split by split_yaml_parse."""
    if split_parse is None:
        return None
    part, whole = split_parse
    if not part and not whole:
        return None
    if not whole:
        return dict(part)
    if not part:
        return whole[0] if len(whole) == 1 else whole
    return [dict(part)] + whole


def serialize_yaml_parse(
    split_parse: tuple[Mapping[str, MetadataValue], list[object]]
    | None,
) -> str:
    """A yaml string from the tuple constructed by split_yaml_parse."""
    return dump_yaml(desplit_yaml_parse(split_parse))


def dump_yaml(x: Any) -> str:
    if x is None:
        return ""

    y: str = yaml.safe_dump(
        x,
        default_flow_style=False,
        width=float("Inf"),
        allow_unicode=True,
        indent=1,
        sort_keys=False,
    )
    return re.sub(r"\n\.\.\.\n$", "\n", y)
