"""Per-account search capability learning.

Backends do not advertise which search modes they support, so the table is
learned from outcomes: every executed search reports what it found and the
pure transition in SearchCapabilities.updated decides the new state.
"""

import json
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, Mapping, Optional

from logging_config import get_logger
from models import SearchCapabilities, SearchScope

_logger = get_logger('capabilities')

CAPABILITIES_KEY_PREFIX = 'searchCapabilities_'


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CapabilityStore:
    """Capability table backed by a key-value store, cached in memory."""

    def __init__(self, store, clock: Callable[[], datetime] = utcnow, lock=None):
        self._store = store
        self._clock = clock
        self._lock = lock or threading.RLock()
        self._cache: Dict[str, SearchCapabilities] = {}

    @staticmethod
    def key_for(account_id: str) -> str:
        return CAPABILITIES_KEY_PREFIX + account_id

    def get(self, account_id: str) -> SearchCapabilities:
        """Capabilities for an account, all ``unknown`` on first query."""
        with self._lock:
            cached = self._cache.get(account_id)
            if cached is not None:
                return cached
            capabilities = self._load(account_id)
            self._cache[account_id] = capabilities
            return capabilities

    def _load(self, account_id: str) -> SearchCapabilities:
        raw = self._store.load(self.key_for(account_id))
        if not raw:
            return SearchCapabilities()
        try:
            return SearchCapabilities.from_dict(json.loads(raw.decode('utf-8')))
        except (ValueError, KeyError, TypeError) as e:
            _logger.warning(f"Resetting unreadable capabilities for {account_id}: {e}")
            return SearchCapabilities()

    def save(self, account_id: str, capabilities: SearchCapabilities) -> None:
        with self._lock:
            self._cache[account_id] = capabilities
            self._store.save(self.key_for(account_id), json.dumps(capabilities.to_dict()).encode('utf-8'))

    def update(self, account_id: str, scope: SearchScope, has_results: bool,
               has_other_results: bool) -> SearchCapabilities:
        """Apply one search outcome and persist the result."""
        with self._lock:
            before = self.get(account_id)
            after = before.updated(scope, has_results, has_other_results, self._clock())
            self.save(account_id, after)
            scope = SearchScope(scope)
            if before.support_for(scope) != after.support_for(scope):
                _logger.info(
                    f"{account_id} {scope.value} search: "
                    f"{before.support_for(scope).value} -> {after.support_for(scope).value}"
                )
            return after

    def record_search(self, account_id: str, scope: SearchScope,
                      results_by_scope: Mapping[SearchScope, int]) -> SearchCapabilities:
        """Report a search from its per-scope result counts.

        ``has_other_results`` is true when any sibling scope returned something.
        """
        scope = SearchScope(scope)
        counts = {SearchScope(k): v for k, v in results_by_scope.items()}
        has_results = counts.get(scope, 0) > 0
        has_other_results = any(count > 0 for other, count in counts.items() if other is not scope)
        return self.update(account_id, scope, has_results, has_other_results)

    def set_instance_domain(self, account_id: str, domain: Optional[str]) -> SearchCapabilities:
        with self._lock:
            capabilities = replace(self.get(account_id), instance_domain=domain)
            self.save(account_id, capabilities)
            return capabilities

    def set_trends_support(self, account_id: str, supported: bool) -> SearchCapabilities:
        with self._lock:
            capabilities = replace(self.get(account_id), supports_trends=supported)
            self.save(account_id, capabilities)
            return capabilities

    def should_show_status_search_warning(self, account_id: str) -> bool:
        return self.get(account_id).should_show_status_search_warning
