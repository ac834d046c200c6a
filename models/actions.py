"""Per-post engagement snapshot."""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict

from .status import Platform, UnifiedPost


@dataclass(frozen=True)
class PostActionState:
    """Lightweight representation of a post's interaction state."""
    stable_id: str
    platform: Platform
    is_liked: bool
    is_reposted: bool
    like_count: int
    repost_count: int
    reply_count: int
    last_updated_at: datetime

    @classmethod
    def from_post(cls, post: UnifiedPost, timestamp: datetime) -> 'PostActionState':
        """Snapshot the engagement a server reported on ``post``, observed at ``timestamp``."""
        return cls(
            stable_id=post.id,
            platform=post.platform,
            is_liked=post.is_liked,
            is_reposted=post.is_reposted,
            like_count=post.like_count,
            repost_count=post.repost_count,
            reply_count=post.reply_count,
            last_updated_at=timestamp,
        )

    def updated(self, timestamp: datetime) -> 'PostActionState':
        return replace(self, last_updated_at=timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'stable_id': self.stable_id,
            'platform': self.platform.value,
            'is_liked': self.is_liked,
            'is_reposted': self.is_reposted,
            'like_count': self.like_count,
            'repost_count': self.repost_count,
            'reply_count': self.reply_count,
            'last_updated_at': self.last_updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PostActionState':
        return cls(
            stable_id=data['stable_id'],
            platform=Platform(data['platform']),
            is_liked=bool(data.get('is_liked', False)),
            is_reposted=bool(data.get('is_reposted', False)),
            like_count=int(data.get('like_count', 0)),
            repost_count=int(data.get('repost_count', 0)),
            reply_count=int(data.get('reply_count', 0)),
            last_updated_at=datetime.fromisoformat(data['last_updated_at']),
        )
