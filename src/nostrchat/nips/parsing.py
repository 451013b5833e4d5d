"""
Declarative field parsing for JSON-in-content event payloads.

Kind-0 profiles and kind-40 channel definitions carry their metadata as a
JSON object serialized into ``content``. Authors publish whatever they like
there, so each payload model declares a [FieldSpec][nostrchat.nips.parsing.FieldSpec]
and [parse_fields][nostrchat.nips.parsing.parse_fields] keeps only the values
that have the expected type.

Supported field types: ``str`` (stripped, empty dropped), ``list[str]``
and ``int``.

See Also:
    [nostrchat.nips.base.BaseData][nostrchat.nips.base.BaseData]: Base class
        that uses ``FieldSpec`` and ``parse_fields``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from collections.abc import Callable


_SKIP: Any = object()


def _parse_int(value: Any) -> Any:
    return value if isinstance(value, int) and not isinstance(value, bool) else _SKIP


def _parse_str(value: Any) -> Any:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return _SKIP


def _parse_str_list(value: Any) -> Any:
    if isinstance(value, list):
        items = [s.strip() for s in value if isinstance(s, str) and s.strip()]
        if items:
            return items
    return _SKIP


_FIELD_PARSERS: tuple[tuple[str, Callable[[Any], Any]], ...] = (
    ("int_fields", _parse_int),
    ("str_fields", _parse_str),
    ("str_list_fields", _parse_str_list),
)


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Declarative specification of expected field types.

    Attributes:
        int_fields: Fields expected as ``int`` (``bool`` excluded).
        str_fields: Fields expected as non-blank ``str``; values are stripped.
        str_list_fields: Fields expected as ``list[str]`` (invalid elements filtered).
        aliases: Alternate source keys mapped to a canonical field name. The
            canonical key wins when both are present.
    """

    int_fields: frozenset[str] = field(default_factory=frozenset)
    str_fields: frozenset[str] = field(default_factory=frozenset)
    str_list_fields: frozenset[str] = field(default_factory=frozenset)
    aliases: tuple[tuple[str, str], ...] = ()


def parse_fields(data: dict[str, Any], spec: FieldSpec) -> dict[str, Any]:
    """Parse a dictionary according to a ``FieldSpec``, dropping invalid values.

    Keys not present in any field set are ignored.

    Args:
        data: Raw dictionary to parse.
        spec: [FieldSpec][nostrchat.nips.parsing.FieldSpec] type specification.

    Returns:
        A new dictionary containing only valid, type-checked fields.
    """
    dispatch: dict[str, Callable[[Any], Any]] = {}
    for attr_name, parser in _FIELD_PARSERS:
        for name in getattr(spec, attr_name):
            dispatch[name] = parser

    result: dict[str, Any] = {}
    for key, value in data.items():
        handler = dispatch.get(key)
        if handler is not None:
            parsed = handler(value)
            if parsed is not _SKIP:
                result[key] = parsed

    for alias, canonical in spec.aliases:
        if canonical in result or alias not in data:
            continue
        parsed = dispatch[canonical](data[alias])
        if parsed is not _SKIP:
            result[canonical] = parsed

    return result


def parse_json_object(content: str) -> dict[str, Any]:
    """Decode event content that must hold a JSON object.

    Raises:
        ValueError: If *content* is not valid JSON or not an object.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError(f"content is not valid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise ValueError(f"content must be a JSON object, got {type(data).__name__}")
    return data


__all__ = ["FieldSpec", "parse_fields", "parse_json_object"]
