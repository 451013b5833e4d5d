"""
Shared base class for JSON-in-content payload models.

[BaseData][nostrchat.nips.base.BaseData] is the decoded, strongly typed form
of an event's ``content`` for kinds whose content is a JSON object. Decoding
happens once at the reducer boundary; anything that fails is dropped there.

See Also:
    [nostrchat.nips.parsing][nostrchat.nips.parsing]: The declarative field
        parsing engine used by [BaseData][nostrchat.nips.base.BaseData].
    [nostrchat.nips.nip01.ProfileData][nostrchat.nips.nip01.ProfileData]: Kind-0 payload.
    [nostrchat.nips.nip28.ChannelData][nostrchat.nips.nip28.ChannelData]: Kind-40 payload.
"""

from __future__ import annotations

import json
from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict

from .parsing import FieldSpec, parse_fields, parse_json_object


class BaseData(BaseModel):
    """Frozen payload model with declarative field parsing.

    Subclasses declare a ``_FIELD_SPEC`` class variable mapping field names to
    their expected types. ``parse()`` coerces raw data into constructor
    arguments, silently dropping values that fail type checks, so a profile
    with one bad field still yields the good ones.
    """

    model_config = ConfigDict(frozen=True)

    _FIELD_SPEC: ClassVar[FieldSpec] = FieldSpec()

    @classmethod
    def parse(cls, data: Any) -> dict[str, Any]:
        """Parse arbitrary data into validated constructor arguments."""
        if not isinstance(data, dict):
            return {}
        return parse_fields(data, cls._FIELD_SPEC)

    @classmethod
    def from_content(cls, content: str) -> Self:
        """Decode an event ``content`` string.

        Raises:
            ValueError: If the content is not a JSON object. Individual
                invalid fields are dropped, not reported.
        """
        return cls.model_validate(cls.parse(parse_json_object(content)))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create an instance from a dictionary with strict validation."""
        return cls.model_validate(data)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary, excluding fields with ``None`` values."""
        return self.model_dump(exclude_none=True)

    def to_content(self) -> str:
        """Serialize to the compact JSON stored in an event's ``content``."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)
