"""Pure frozen dataclasses with zero I/O for events and chat state.

The models layer is the foundation of the diamond DAG. It has **no dependencies**
on any other nostrchat package, only the standard library and ``nostr_sdk``
(which [Event][nostrchat.models.event.Event] wraps). Every model
uses ``@dataclass(frozen=True, slots=True)`` and validates in ``__post_init__``
so invalid instances never escape the constructor.

Attributes:
    Event: Immutable wrapper of ``nostr_sdk.Event`` with tag helpers.
    Context: Hashable conversational context descriptor.
    Message: Materialized entry of a context message list.
    Profile: Latest kind-0 metadata of an author.
    Contact: Followed peer from the viewer's contact list.
    Channel: Public channel identified by its kind-40 event id.
    EventKind: Recognized event kinds.
    ContextType: Context discriminator.

See Also:
    [nostrchat.nips][]: Payload decoding and event building on top of these models.
    [nostrchat.engine][]: Reducers and routing over these models.
"""

from .constants import MESSAGE_CONTEXTS, ContextType, EventKind
from .context import Context
from .directory import Channel, Contact, Profile, short_key
from .event import Event, Tags
from .message import Message


__all__ = [
    "MESSAGE_CONTEXTS",
    "Channel",
    "Contact",
    "Context",
    "ContextType",
    "Event",
    "EventKind",
    "Message",
    "Profile",
    "Tags",
    "short_key",
]
