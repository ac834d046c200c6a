"""Saved search queries."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .capabilities import SearchScope


class NetworkSelection(str, Enum):
    ALL = 'all'
    MASTODON = 'mastodon'
    BLUESKY = 'bluesky'


@dataclass
class SavedSearch:
    """A saved/pinned search query."""
    query: str
    scope: SearchScope = SearchScope.POSTS
    network_selection: NetworkSelection = NetworkSelection.ALL
    name: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    sort_order: int = 0

    @property
    def display_name(self) -> str:
        return self.name or self.query

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'query': self.query,
            'scope': self.scope.value,
            'networkSelection': self.network_selection.value,
            'name': self.name,
            'createdAt': self.created_at.isoformat(),
            'sortOrder': self.sort_order,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SavedSearch':
        return cls(
            id=data['id'],
            query=data['query'],
            scope=SearchScope(data.get('scope', 'posts')),
            network_selection=NetworkSelection(data.get('networkSelection', 'all')),
            name=data.get('name'),
            created_at=datetime.fromisoformat(data['createdAt']),
            sort_order=int(data.get('sortOrder', 0)),
        )
