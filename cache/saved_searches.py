"""Persistence of saved searches."""

import json
import threading
from typing import List

from logging_config import get_logger
from models import SavedSearch

_logger = get_logger('cache')

SAVED_SEARCHES_KEY = 'savedSearches'


class SavedSearchStorage:
    """Saved searches as one JSON list in the key-value store."""

    def __init__(self, store):
        self._store = store
        self._lock = threading.RLock()

    def get_saved_searches(self) -> List[SavedSearch]:
        """All saved searches ordered by ``sort_order``."""
        with self._lock:
            raw = self._store.load(SAVED_SEARCHES_KEY)
            if not raw:
                return []
            try:
                searches = [SavedSearch.from_dict(item) for item in json.loads(raw.decode('utf-8'))]
            except (ValueError, KeyError, TypeError) as e:
                _logger.error(f"Discarding unreadable saved searches: {e}")
                return []
            return sorted(searches, key=lambda s: s.sort_order)

    def save_search(self, search: SavedSearch) -> None:
        """Insert or replace a search by id."""
        with self._lock:
            searches = self.get_saved_searches()
            for index, existing in enumerate(searches):
                if existing.id == search.id:
                    searches[index] = search
                    break
            else:
                searches.append(search)
            self._write(searches)

    def delete_search(self, search_id: str) -> None:
        with self._lock:
            self._write([s for s in self.get_saved_searches() if s.id != search_id])

    def update_sort_order(self, searches: List[SavedSearch]) -> None:
        """Persist ``searches`` in the given order, renumbering ``sort_order``."""
        with self._lock:
            for index, search in enumerate(searches):
                search.sort_order = index
            self._write(searches)

    def _write(self, searches: List[SavedSearch]) -> None:
        payload = json.dumps([s.to_dict() for s in searches]).encode('utf-8')
        self._store.save(SAVED_SEARCHES_KEY, payload)
