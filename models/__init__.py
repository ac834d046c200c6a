from .status import Platform, MediaType, UnifiedMedia, UnifiedMention, UnifiedAuthor, UnifiedPost
from .identity import stable_identity, parse_identity, ParsedIdentity
from .timeline import Normal, Boost, Reply, EntryKind, TimelineEntry, TimelineState, ordered
from .actions import PostActionState
from .capabilities import SearchScope, CapabilitySupport, SearchCapabilities
from .relationship import RelationshipState
from .search import NetworkSelection, SavedSearch
from .chat import (
    ConversationUpdateKind,
    NewMessage,
    DeletedMessage,
    ConversationUpdate,
    ReadReceipt,
    ReactionAdded,
    ReactionRemoved,
    TypingIndicator,
    UnifiedChatEvent,
    route,
    dedupe_key,
)
