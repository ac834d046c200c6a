"""Optimistic engagement state reconciled against server snapshots.

Every write, local or authoritative, goes through ``reconcile``: the
snapshot with the newest ``last_updated_at`` wins wholesale. Fields are
never mixed between snapshots, so an old ``is_liked`` can never end up
next to a newer ``like_count`` that already reflects an unlike.
"""

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Set

from diagnostics import Diagnostics
from errors import StaleOverwriteSuppressed
from logging_config import get_logger
from models import PostActionState, UnifiedPost

_logger = get_logger('actions')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def reconcile(current: Optional[PostActionState], incoming: PostActionState,
              on_stale: Optional[Callable[[StaleOverwriteSuppressed], None]] = None) -> PostActionState:
    """Pick the snapshot to keep.

    Ties go to ``incoming``. A strictly older incoming snapshot is dropped and
    reported through ``on_stale``; it is never an error.
    """
    if current is None or incoming.last_updated_at >= current.last_updated_at:
        return incoming
    if on_stale is not None:
        on_stale(StaleOverwriteSuppressed(current.stable_id, current.last_updated_at, incoming.last_updated_at))
    return current


class ActionStateStore:
    """Table of PostActionState keyed by stable identity."""

    def __init__(self, clock: Callable[[], datetime] = utcnow, lock=None,
                 diagnostics: Optional[Diagnostics] = None):
        self._clock = clock
        self._lock = lock or threading.RLock()
        self._actions: Dict[str, PostActionState] = {}
        # Keys with an optimistic change the server has not answered yet
        self._pending: Set[str] = set()
        self.diagnostics = diagnostics or Diagnostics()

    def is_pending(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    @property
    def stale_suppressed_count(self) -> int:
        return self.diagnostics.count(StaleOverwriteSuppressed)

    def state(self, key: str) -> Optional[PostActionState]:
        with self._lock:
            return self._actions.get(key)

    def __len__(self):
        with self._lock:
            return len(self._actions)

    def apply(self, incoming: PostActionState) -> PostActionState:
        """Feed any snapshot (server refresh or optimistic change) through reconcile."""
        with self._lock:
            current = self._actions.get(incoming.stable_id)
            kept = reconcile(current, incoming, self.diagnostics.emit)
            self._actions[incoming.stable_id] = kept
            return kept

    def ensure_state(self, post: UnifiedPost, observed_at: Optional[datetime] = None) -> PostActionState:
        """Seed or refresh state from the engagement the server reported on ``post``.

        ``observed_at`` is when the fetch that produced ``post`` was answered;
        a fetch that started before a local toggle loses to the toggle. While a
        toggle is pending the server copy is ignored altogether; the action
        response settles it through ``confirm`` or ``revert``.
        """
        with self._lock:
            current = self._actions.get(post.id)
            if current is not None and post.id in self._pending:
                _logger.debug(f"Skipping refresh of {post.id}, optimistic change pending")
                return current
            return self.apply(PostActionState.from_post(post, observed_at or self._clock()))

    # Optimistic mutations. Each returns the previous snapshot (for revert),
    # or None when there was no state or nothing to change.

    def _mutate(self, key: str, **changes) -> Optional[PostActionState]:
        with self._lock:
            previous = self._actions.get(key)
            if previous is None:
                _logger.debug(f"Optimistic change without state for {key}")
                return None
            self.apply(replace(previous, last_updated_at=self._clock(), **changes))
            self._pending.add(key)
            return previous

    def optimistic_like(self, key: str) -> Optional[PostActionState]:
        with self._lock:
            current = self._actions.get(key)
            if current is None or current.is_liked:
                return None
            return self._mutate(key, is_liked=True, like_count=current.like_count + 1)

    def optimistic_unlike(self, key: str) -> Optional[PostActionState]:
        with self._lock:
            current = self._actions.get(key)
            if current is None or not current.is_liked:
                return None
            return self._mutate(key, is_liked=False, like_count=max(current.like_count - 1, 0))

    def optimistic_repost(self, key: str) -> Optional[PostActionState]:
        with self._lock:
            current = self._actions.get(key)
            if current is None or current.is_reposted:
                return None
            return self._mutate(key, is_reposted=True, repost_count=current.repost_count + 1)

    def optimistic_unrepost(self, key: str) -> Optional[PostActionState]:
        with self._lock:
            current = self._actions.get(key)
            if current is None or not current.is_reposted:
                return None
            return self._mutate(key, is_reposted=False, repost_count=max(current.repost_count - 1, 0))

    def toggle_like(self, key: str) -> Optional[PostActionState]:
        with self._lock:
            current = self._actions.get(key)
            if current is None:
                return None
            return self.optimistic_unlike(key) if current.is_liked else self.optimistic_like(key)

    def toggle_repost(self, key: str) -> Optional[PostActionState]:
        with self._lock:
            current = self._actions.get(key)
            if current is None:
                return None
            return self.optimistic_unrepost(key) if current.is_reposted else self.optimistic_repost(key)

    def register_local_reply(self, key: str) -> Optional[PostActionState]:
        with self._lock:
            current = self._actions.get(key)
            if current is None:
                return None
            return self._mutate(key, reply_count=current.reply_count + 1)

    def confirm(self, key: str, snapshot: Optional[PostActionState] = None) -> Optional[PostActionState]:
        """The server accepted the change. ``snapshot`` is its answer, if it sent one."""
        with self._lock:
            self._pending.discard(key)
            if snapshot is not None:
                return self.apply(snapshot)
            return self._actions.get(key)

    def revert(self, previous: PostActionState) -> PostActionState:
        """Restore a snapshot after the server rejected an optimistic change."""
        with self._lock:
            self._pending.discard(previous.stable_id)
            return self.apply(previous.updated(self._clock()))

    def forget(self, key: str) -> None:
        with self._lock:
            self._actions.pop(key, None)
            self._pending.discard(key)
