"""Unified post representation for multi-platform support."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class Platform(str, Enum):
    """Backends the engine knows how to normalize. The value is the identity tag."""
    MASTODON = 'mastodon'
    BLUESKY = 'bluesky'


class MediaType(str, Enum):
    IMAGE = 'image'
    VIDEO = 'video'
    AUDIO = 'audio'
    ANIMATED_GIF = 'animatedGIF'
    UNKNOWN = 'unknown'

    @classmethod
    def from_native(cls, value: Optional[str]) -> 'MediaType':
        """Map a platform media type string ('gifv', 'image', ...) to a MediaType."""
        if not value:
            return cls.UNKNOWN
        value = str(value).lower()
        if value in ('gifv', 'gif', 'animatedgif'):
            return cls.ANIMATED_GIF
        for member in (cls.IMAGE, cls.VIDEO, cls.AUDIO):
            if value == member.value:
                return member
        return cls.UNKNOWN


@dataclass(frozen=True)
class UnifiedMedia:
    """Unified media attachment representation."""
    type: MediaType
    url: str
    preview_url: Optional[str] = None
    description: Optional[str] = None  # alt text


@dataclass(frozen=True)
class UnifiedMention:
    """Unified mention representation."""
    id: str
    acct: str
    username: str
    url: Optional[str] = None


@dataclass(frozen=True)
class UnifiedAuthor:
    """Author of a post as far as the timeline needs to know."""
    id: str
    handle: str
    name: str
    avatar: Optional[str] = None


@dataclass(frozen=True)
class UnifiedPost:
    """Platform-agnostic post.

    Values are immutable; a refetch of the same native post produces a new
    value that compares equal by identity (``id``), and equal as a whole
    only if nothing about it changed.
    """
    id: str  # stable identity, see models.identity
    native_id: str
    platform: Platform
    account_id: str
    author: UnifiedAuthor
    content: str  # raw content as delivered (HTML on Mastodon)
    text: str  # plain text
    created_at: datetime
    url: Optional[str] = None
    attachments: Tuple[UnifiedMedia, ...] = field(default_factory=tuple)
    mentions: Tuple[UnifiedMention, ...] = field(default_factory=tuple)
    tags: Tuple[str, ...] = field(default_factory=tuple)
    in_reply_to_id: Optional[str] = None  # stable identity of the parent

    # Server-observed engagement, used to seed PostActionState
    like_count: int = 0
    repost_count: int = 0
    reply_count: int = 0
    is_liked: bool = False
    is_reposted: bool = False
