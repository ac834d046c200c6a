"""In-memory link preview cache with expiry.

Fetching previews is someone else's job; this only remembers the results.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

DEFAULT_TTL = 24 * 60 * 60


class LinkPreviewCache:

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, url: str) -> Optional[Any]:
        """Cached metadata for ``url``, or None if missing or expired."""
        with self._lock:
            cached = self._entries.get(url)
            if cached is None:
                return None
            metadata, stored_at = cached
            if self._clock() - stored_at > self.ttl:
                del self._entries[url]
                return None
            return metadata

    def __contains__(self, url: str) -> bool:
        return self.get(url) is not None

    def put(self, url: str, metadata: Any) -> None:
        with self._lock:
            self._entries[url] = (metadata, self._clock())

    def invalidate(self, url: str) -> None:
        with self._lock:
            self._entries.pop(url, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self):
        with self._lock:
            return len(self._entries)
