"""The engine facade: timeline, action table and capability table behind one lock.

Fetch completions, stream events and UI actions may arrive on any thread;
every state change takes ``FusionEngine.lock`` so they are applied one at a
time and readers only ever see whole snapshots.
"""

import threading
from datetime import datetime
from typing import Iterable, Mapping, Optional

from actions import ActionStateStore, utcnow
from cache import LinkPreviewCache, MemoryStore
from capabilities import CapabilityStore
from config import DEFAULTS
from diagnostics import Diagnostics
from logging_config import get_logger
from models import PostActionState, SearchCapabilities, SearchScope, TimelineEntry, TimelineState
from platforms import normalize_batch
from sources import BlueskyTimelineSource, MastodonTimelineSource
from streaming import EventFanIn
from timeline import BufferSnapshot, TimelineBuffer, UnifiedTimeline

_logger = get_logger('engine')


class FusionEngine:
    """Owns all reconciled state for one signed-in user.

    ``prefs`` is any mapping with the keys of ``config.DEFAULTS`` (usually
    the Config returned by ``load_prefs``); missing keys fall back to the
    defaults. ``store`` keeps capabilities, read marks and the scroll
    position; without one they live only as long as the engine.
    """

    def __init__(self, store=None, prefs: Optional[Mapping] = None, clock=utcnow):
        prefs = prefs if prefs is not None else {}
        store = store if store is not None else MemoryStore()
        self.clock = clock
        self.preserve_position = prefs.get('preserve_position', DEFAULTS['preserve_position'])
        self.fetch_limit = prefs.get('fetch_limit', DEFAULTS['fetch_limit'])
        self.lock = threading.RLock()
        self.diagnostics = Diagnostics()
        self.timeline = UnifiedTimeline(lock=self.lock, diagnostics=self.diagnostics, store=store)
        self.buffer = TimelineBuffer()
        self.actions = ActionStateStore(clock=clock, lock=self.lock, diagnostics=self.diagnostics)
        self.capabilities = CapabilityStore(store, clock=clock, lock=self.lock)
        self.events = EventFanIn(window=prefs.get('event_dedupe_window', DEFAULTS['event_dedupe_window']))
        self.link_previews = LinkPreviewCache(ttl=prefs.get('link_preview_ttl', DEFAULTS['link_preview_ttl']))

    @property
    def state(self) -> TimelineState:
        return self.timeline.state

    def mastodon_source(self, api, account_id: str) -> MastodonTimelineSource:
        return MastodonTimelineSource(api, account_id, limit=self.fetch_limit, clock=self.clock)

    def bluesky_source(self, client, account_id: str) -> BlueskyTimelineSource:
        return BlueskyTimelineSource(client, account_id, limit=self.fetch_limit, clock=self.clock)

    def ingest(self, entries: Iterable[TimelineEntry], preserve_position: Optional[bool] = None,
               replace_all: bool = False, observed_at: Optional[datetime] = None) -> TimelineState:
        """Merge a batch and refresh engagement state from the posts it carries.

        ``observed_at`` is when the request that produced the batch was sent.
        """
        entries = list(entries)
        if preserve_position is None:
            preserve_position = self.preserve_position
        with self.lock:
            state = self.timeline.merge(entries, preserve_position=preserve_position, replace_all=replace_all)
            self.buffer.remove_visible(entry.id for entry in entries)
            self._seed_actions(entries, observed_at)
            return state

    def _seed_actions(self, entries, observed_at):
        for entry in entries:
            self.actions.ensure_state(entry.post, observed_at)

    def ingest_native(self, items, platform, account_id: str, observed_at: Optional[datetime] = None,
                      **kwargs) -> TimelineState:
        """Normalize a native batch, skipping bad items, and merge it."""
        return self.ingest(normalize_batch(items, platform, account_id), observed_at=observed_at, **kwargs)

    def ingest_page(self, page) -> TimelineState:
        """Sink for FetchCoordinator pages.

        While the reader is scrolled away from the top, entries the timeline
        does not show yet are held in ``buffer`` instead of being inserted
        above them; entries already shown are refreshed in place.
        """
        _logger.debug(
            f"Ingesting {len(page.entries)} {page.platform.value} entries for {page.account_id}"
        )
        with self.lock:
            if not self.preserve_position or self.timeline.is_at_top():
                return self.ingest(page.entries, observed_at=page.requested_at)
            shown = [e for e in page.entries if self.timeline.has_entry(e.id)]
            fresh = [e for e in page.entries if not self.timeline.has_entry(e.id)]
            snapshot = self.buffer.append(fresh, self.timeline.state.ids)
            if snapshot is not None:
                _logger.debug(f"{snapshot.count} new entries waiting above the reader")
            self._seed_actions(fresh, page.requested_at)
            if not shown:
                return self.timeline.state
            return self.ingest(shown, observed_at=page.requested_at)

    @property
    def buffered(self) -> BufferSnapshot:
        return self.buffer.snapshot

    def show_buffered(self) -> TimelineState:
        """Move buffered entries into the timeline (the "N new posts" tap)."""
        with self.lock:
            entries = self.buffer.drain()
            if not entries:
                return self.timeline.state
            return self.timeline.merge(entries, preserve_position=self.preserve_position)

    def action_state(self, post_id: str) -> Optional[PostActionState]:
        return self.actions.state(post_id)

    def entry_action_state(self, entry_id: str) -> Optional[PostActionState]:
        """Engagement for the post an entry shows (a boost shows the boosted post)."""
        with self.lock:
            entry = self.timeline.state.entry(entry_id)
            if entry is None:
                return None
            return self.actions.state(entry.post.id)

    def mark_read(self, entry_id: str) -> TimelineState:
        return self.timeline.mark_read(entry_id)

    def mark_all_read(self) -> TimelineState:
        return self.timeline.mark_all_read()

    def remove_posts(self, entry_ids: Iterable[str]) -> TimelineState:
        """Drop entries and the engagement of posts no remaining entry shows.

        Action state is keyed by post, so removing an original while a boost
        of it stays (or the other way round) keeps the shared state.
        """
        entry_ids = list(entry_ids)
        with self.lock:
            before = self.timeline.state
            post_ids = {e.post.id for e in before.entries if e.id in entry_ids}
            state = self.timeline.remove(entry_ids)
            still_shown = {e.post.id for e in state.entries}
            for post_id in post_ids - still_shown:
                self.actions.forget(post_id)
            return state

    def record_search(self, account_id: str, scope: SearchScope,
                      results_by_scope: Mapping[SearchScope, int]) -> SearchCapabilities:
        return self.capabilities.record_search(account_id, scope, results_by_scope)

    def reset(self) -> None:
        """Forget the timeline (e.g. on sign-out). Capabilities are kept."""
        with self.lock:
            self.timeline.reset()
            self.buffer.clear()
