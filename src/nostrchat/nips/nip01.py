"""NIP-01 kind-0 profile metadata payload."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from nostrchat.models.directory import Profile

from .base import BaseData
from .parsing import FieldSpec


if TYPE_CHECKING:
    from nostrchat.models.event import Event


class ProfileData(BaseData):
    """Decoded content of a kind-0 event.

    Only the fields the chat client displays or resolves mentions against are
    kept. The legacy ``displayName`` key is accepted as ``display_name``.
    Blank strings are treated as absent, so ``to_content()`` only carries
    non-empty trimmed fields.
    """

    _FIELD_SPEC: ClassVar[FieldSpec] = FieldSpec(
        str_fields=frozenset({"name", "display_name", "nip05", "about", "picture"}),
        aliases=(("displayName", "display_name"),),
    )

    name: str | None = None
    display_name: str | None = None
    nip05: str | None = None
    about: str | None = None
    picture: str | None = None

    def to_profile(self, pubkey: str, created_at: int) -> Profile:
        return Profile(
            pubkey=pubkey,
            created_at=created_at,
            name=self.name,
            display_name=self.display_name,
            nip05=self.nip05,
            about=self.about,
            picture=self.picture,
        )


def decode_profile(event: Event) -> Profile:
    """Decode a kind-0 event into a [Profile][nostrchat.models.directory.Profile].

    Raises:
        ValueError: If the content is not a JSON object.
    """
    return ProfileData.from_content(event.content).to_profile(event.pubkey, event.created_at)
