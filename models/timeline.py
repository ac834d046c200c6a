"""Timeline entries and the ordered timeline value."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple, Union

from .status import UnifiedPost


@dataclass(frozen=True)
class Normal:
    pass


@dataclass(frozen=True)
class Boost:
    boosted_by: str


@dataclass(frozen=True)
class Reply:
    parent_id: Optional[str] = None


EntryKind = Union[Normal, Boost, Reply]


@dataclass(frozen=True)
class TimelineEntry:
    """A single display-ready item in the timeline.

    ``id`` is the identity of the timeline item: ``post.id`` for normal posts
    and replies, the identity of the boost wrapper for boosts. ``created_at``
    is the ordering time, which for a boost is when it was boosted.
    ``is_read`` is only ever changed by the timeline engine.
    """
    id: str
    post: UnifiedPost
    kind: EntryKind = field(default_factory=Normal)
    created_at: Optional[datetime] = None
    is_read: bool = False

    def __post_init__(self):
        if self.created_at is None:
            object.__setattr__(self, 'created_at', self.post.created_at)

    @classmethod
    def from_post(cls, post: UnifiedPost, is_read: bool = False) -> 'TimelineEntry':
        """Wrap a post that is not a boost, deriving the kind from its reply parent."""
        kind = Reply(post.in_reply_to_id) if post.in_reply_to_id else Normal()
        return cls(id=post.id, post=post, kind=kind, created_at=post.created_at, is_read=is_read)

    @property
    def boosted_by(self) -> Optional[str]:
        if isinstance(self.kind, Boost):
            return self.kind.boosted_by
        return None

    @property
    def parent_id(self) -> Optional[str]:
        if isinstance(self.kind, Reply):
            return self.kind.parent_id
        return None


def ordered(entries):
    """Order entries newest first, ties broken by identity ascending."""
    by_id = sorted(entries, key=lambda e: e.id)
    # list.sort is stable with reverse=True, so equal timestamps keep id order
    by_id.sort(key=lambda e: e.created_at, reverse=True)
    return by_id


@dataclass(frozen=True)
class TimelineState:
    """Ordered, deduplicated timeline plus position bookkeeping.

    ``restore_anchor_id`` is set by a position-preserving merge: the caller
    keeps that entry at its prior viewport offset. ``None`` means jump to top.
    """
    entries: Tuple[TimelineEntry, ...] = ()
    scroll_anchor_id: Optional[str] = None
    last_known_top_id: Optional[str] = None
    restore_anchor_id: Optional[str] = None

    @property
    def unread_count(self) -> int:
        return sum(1 for entry in self.entries if not entry.is_read)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(entry.id for entry in self.entries)

    def entry(self, entry_id: str) -> Optional[TimelineEntry]:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    def __contains__(self, entry_id) -> bool:
        return self.entry(entry_id) is not None

    def __len__(self) -> int:
        return len(self.entries)
