"""Search capability knowledge learned per account."""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class SearchScope(str, Enum):
    POSTS = 'posts'
    USERS = 'users'
    TAGS = 'tags'


class CapabilitySupport(str, Enum):
    """Level of support for a search capability.

    Not a total order: each transition is rule-driven and every value can be
    re-entered on new evidence, ``yes`` and ``no`` included.
    """
    UNKNOWN = 'unknown'
    LIKELY = 'likely'
    LIKELY_NO = 'likelyNo'
    YES = 'yes'
    NO = 'no'

    @property
    def display_name(self) -> str:
        return {
            'unknown': 'Unknown',
            'likely': 'Likely',
            'likelyNo': 'Likely Not',
            'yes': 'Yes',
            'no': 'No',
        }[self.value]

    @property
    def is_supported(self) -> bool:
        return self in (CapabilitySupport.YES, CapabilitySupport.LIKELY)


@dataclass(frozen=True)
class SearchCapabilities:
    supports_account_search: CapabilitySupport = CapabilitySupport.UNKNOWN
    supports_hashtag_search: CapabilitySupport = CapabilitySupport.UNKNOWN
    supports_status_search: CapabilitySupport = CapabilitySupport.UNKNOWN
    supports_trends: bool = False
    instance_domain: Optional[str] = None
    last_checked: Optional[datetime] = None

    def updated(self, scope: SearchScope, has_results: bool, has_other_results: bool,
                now: datetime) -> 'SearchCapabilities':
        """Return the capabilities after observing one executed search.

        Post search is the only scope where an empty result is ambiguous: a
        backend that returns nothing anywhere may simply have had no matches,
        so that case leaves the state alone. Users and tags are treated as
        deterministic, so an empty result counts as a negative.
        """
        scope = SearchScope(scope)
        changes: Dict[str, Any] = {'last_checked': now}
        if scope is SearchScope.POSTS:
            if has_results:
                changes['supports_status_search'] = CapabilitySupport.YES
            elif has_other_results:
                changes['supports_status_search'] = CapabilitySupport.LIKELY_NO
        elif scope is SearchScope.USERS:
            changes['supports_account_search'] = CapabilitySupport.YES if has_results else CapabilitySupport.NO
        else:
            changes['supports_hashtag_search'] = CapabilitySupport.YES if has_results else CapabilitySupport.NO
        return replace(self, **changes)

    @property
    def should_show_status_search_warning(self) -> bool:
        return self.supports_status_search in (CapabilitySupport.LIKELY_NO, CapabilitySupport.NO)

    def support_for(self, scope: SearchScope) -> CapabilitySupport:
        scope = SearchScope(scope)
        if scope is SearchScope.POSTS:
            return self.supports_status_search
        if scope is SearchScope.USERS:
            return self.supports_account_search
        return self.supports_hashtag_search

    def to_dict(self) -> Dict[str, Any]:
        return {
            'supportsAccountSearch': self.supports_account_search.value,
            'supportsHashtagSearch': self.supports_hashtag_search.value,
            'supportsStatusSearch': self.supports_status_search.value,
            'supportsTrends': self.supports_trends,
            'instanceDomain': self.instance_domain,
            'lastChecked': self.last_checked.isoformat() if self.last_checked else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SearchCapabilities':
        last_checked = data.get('lastChecked')
        return cls(
            supports_account_search=CapabilitySupport(data.get('supportsAccountSearch', 'unknown')),
            supports_hashtag_search=CapabilitySupport(data.get('supportsHashtagSearch', 'unknown')),
            supports_status_search=CapabilitySupport(data.get('supportsStatusSearch', 'unknown')),
            supports_trends=bool(data.get('supportsTrends', False)),
            instance_domain=data.get('instanceDomain'),
            last_checked=datetime.fromisoformat(last_checked) if last_checked else None,
        )
