"""Unified timeline: merging fetched batches, read state and scroll position.

The functions at module level are pure and operate on TimelineState values.
UnifiedTimeline owns one state behind a lock so concurrent fetch
completions are applied one at a time.
"""

import json
import threading
from dataclasses import replace
from datetime import datetime
from typing import Collection, Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Set

from diagnostics import Diagnostics
from errors import AnchorNotFound
from logging_config import get_logger
from models import TimelineEntry, TimelineState, ordered

_logger = get_logger('timeline')

# Read marks kept across restarts
MAX_READ_IDS = 5000


def _with_entries(state, entries, **changes):
	entries = tuple(entries)
	changes.setdefault('last_known_top_id', entries[0].id if entries else None)
	return replace(state, entries=entries, **changes)


def merge(state: TimelineState, incoming: Iterable[TimelineEntry], preserve_position: bool = False,
		replace_all: bool = False, diagnostics: Optional[Diagnostics] = None,
		read_ids: Optional[Collection[str]] = None) -> TimelineState:
	"""Fold a batch of entries into the timeline.

	Incoming content replaces stored content for the same identity, but the
	stored read flag always survives. Entries missing from the batch are kept
	unless ``replace_all`` marks the batch as the complete timeline. A new
	entry whose id is in ``read_ids`` (marks saved before a restart) arrives
	read. The result is sorted by the ordering key, so applying a batch twice,
	or two batches in either order, gives the same timeline.

	With ``preserve_position`` the returned state's ``restore_anchor_id`` names
	the entry to keep pinned. If the anchor vanished, the anchor is cleared and
	the caller jumps to top.
	"""
	existing: Dict[str, TimelineEntry] = {entry.id: entry for entry in state.entries}
	merged: Dict[str, TimelineEntry] = {} if replace_all else dict(existing)

	for entry in incoming:
		stored = existing.get(entry.id)
		if stored is not None:
			if stored.is_read != entry.is_read:
				entry = replace(entry, is_read=stored.is_read)
		elif read_ids and not entry.is_read and entry.id in read_ids:
			entry = replace(entry, is_read=True)
		merged[entry.id] = entry

	anchor = state.scroll_anchor_id
	restore = None
	if preserve_position and anchor is not None:
		if anchor in merged:
			restore = anchor
		else:
			signal = AnchorNotFound(anchor)
			if diagnostics is not None:
				diagnostics.emit(signal)
			else:
				_logger.debug(str(signal))
			anchor = None

	return _with_entries(state, ordered(merged.values()), scroll_anchor_id=anchor, restore_anchor_id=restore)


def mark_read(state: TimelineState, entry_id: str) -> TimelineState:
	"""Mark one entry read. Unknown ids and already-read entries are no-ops."""
	entry = state.entry(entry_id)
	if entry is None or entry.is_read:
		return state
	return _with_entries(state, (replace(e, is_read=True) if e.id == entry_id else e for e in state.entries))


def mark_unread(state: TimelineState, entry_id: str) -> TimelineState:
	entry = state.entry(entry_id)
	if entry is None or not entry.is_read:
		return state
	return _with_entries(state, (replace(e, is_read=False) if e.id == entry_id else e for e in state.entries))


def mark_all_read(state: TimelineState) -> TimelineState:
	if state.unread_count == 0:
		return state
	return _with_entries(state, (e if e.is_read else replace(e, is_read=True) for e in state.entries))


def remove(state: TimelineState, entry_ids: Iterable[str]) -> TimelineState:
	"""Drop entries, e.g. for posts deleted upstream.

	The scroll anchor is left alone; a later position-preserving merge notices
	it is gone and falls back to top.
	"""
	doomed = set(entry_ids)
	if not doomed.intersection(state.ids):
		return state
	return _with_entries(state, (e for e in state.entries if e.id not in doomed))


class UnifiedTimeline(object):
	"""Stateful owner of one merged timeline.

	All mutations go through ``self._lock``; readers get immutable
	TimelineState snapshots, so partially applied merges are never visible.

	With a ``store`` the ids of read entries and the scroll anchor are saved
	under ``<key_prefix>_read_posts`` and ``<key_prefix>_scroll_position`` and
	loaded back on construction, so a restart keeps both.
	"""

	def __init__(self, lock=None, diagnostics: Optional[Diagnostics] = None, store=None,
			key_prefix: str = 'timeline'):
		self._lock = lock or threading.RLock()
		self._state = TimelineState()
		self.diagnostics = diagnostics or Diagnostics()
		self._store = store
		self.read_key = f"{key_prefix}_read_posts"
		self.position_key = f"{key_prefix}_scroll_position"
		# Insertion ordered, oldest first, so the cap drops the oldest marks
		self._read_ids: Dict[str, None] = {}
		self._load_persisted()

	def _load_persisted(self):
		if self._store is None:
			return
		raw = self._store.load(self.read_key)
		if raw:
			try:
				ids = json.loads(raw.decode('utf-8'))
				self._read_ids = dict.fromkeys(str(i) for i in ids[-MAX_READ_IDS:])
			except (ValueError, TypeError) as e:
				_logger.warning(f"Ignoring unreadable read state under {self.read_key}: {e}")
		raw = self._store.load(self.position_key)
		if raw:
			self._state = replace(self._state, scroll_anchor_id=raw.decode('utf-8'))
			_logger.debug(f"Restored scroll position {self._state.scroll_anchor_id}")

	def _remember_read(self, entry_ids, read=True):
		changed = False
		for entry_id in entry_ids:
			if read and entry_id not in self._read_ids:
				self._read_ids[entry_id] = None
				changed = True
			elif not read and entry_id in self._read_ids:
				del self._read_ids[entry_id]
				changed = True
		if not changed:
			return
		while len(self._read_ids) > MAX_READ_IDS:
			del self._read_ids[next(iter(self._read_ids))]
		if self._store is not None:
			self._store.save(self.read_key, json.dumps(list(self._read_ids)).encode('utf-8'))

	@property
	def state(self) -> TimelineState:
		with self._lock:
			return self._state

	@property
	def entries(self):
		return self.state.entries

	@property
	def unread_count(self) -> int:
		return self.state.unread_count

	@property
	def read_ids(self) -> FrozenSet[str]:
		with self._lock:
			return frozenset(self._read_ids)

	def has_entry(self, entry_id: str) -> bool:
		return entry_id in self.state

	def merge(self, incoming: Iterable[TimelineEntry], preserve_position: bool = False, replace_all: bool = False) -> TimelineState:
		incoming = list(incoming)
		with self._lock:
			before = len(self._state)
			anchor = self._state.scroll_anchor_id
			self._state = merge(self._state, incoming, preserve_position, replace_all, self.diagnostics, self._read_ids)
			if anchor is not None and self._state.scroll_anchor_id is None and self._store is not None:
				self._store.delete(self.position_key)
			_logger.debug(
				f"Merged {len(incoming)} entries ({before} -> {len(self._state)}), "
				f"{self._state.unread_count} unread"
			)
			return self._state

	def mark_read(self, entry_id: str) -> TimelineState:
		with self._lock:
			state = mark_read(self._state, entry_id)
			if state is not self._state:
				self._remember_read([entry_id])
			self._state = state
			return self._state

	def mark_unread(self, entry_id: str) -> TimelineState:
		with self._lock:
			state = mark_unread(self._state, entry_id)
			if state is not self._state:
				self._remember_read([entry_id], read=False)
			self._state = state
			return self._state

	def mark_all_read(self) -> TimelineState:
		with self._lock:
			unread = [e.id for e in self._state.entries if not e.is_read]
			self._state = mark_all_read(self._state)
			self._remember_read(unread)
			return self._state

	def remove(self, entry_ids: Iterable[str]) -> TimelineState:
		with self._lock:
			self._state = remove(self._state, entry_ids)
			return self._state

	def save_scroll_position(self, entry_id: str) -> None:
		"""Set the scroll anchor, even to an entry that is not loaded yet."""
		with self._lock:
			self._state = replace(self._state, scroll_anchor_id=entry_id)
			if self._store is not None:
				self._store.save(self.position_key, entry_id.encode('utf-8'))

	def get_restore_scroll_position(self) -> Optional[str]:
		return self.state.scroll_anchor_id

	def clear_scroll_position(self) -> None:
		with self._lock:
			self._state = replace(self._state, scroll_anchor_id=None, restore_anchor_id=None)
			if self._store is not None:
				self._store.delete(self.position_key)

	def is_at_top(self) -> bool:
		"""True unless the reader is anchored below the newest entry."""
		state = self.state
		return state.scroll_anchor_id is None or state.scroll_anchor_id == state.last_known_top_id

	def reset(self) -> None:
		"""Drop entries, read marks and the saved position."""
		with self._lock:
			self._state = TimelineState()
			self._read_ids = {}
			if self._store is not None:
				self._store.delete(self.read_key)
				self._store.delete(self.position_key)


class BufferSnapshot(NamedTuple):
	count: int
	earliest: Optional[datetime]
	sources: frozenset


class TimelineBuffer(object):
	"""Holds newly fetched entries while the reader is away from the top.

	The UI shows "N new posts" from the snapshot and drains the buffer into
	the timeline when the reader asks for them. Entries are keyed by entry id,
	so a boost and its original are buffered separately.
	"""

	def __init__(self):
		self._entries: Dict[str, TimelineEntry] = {}
		self._lock = threading.Lock()

	@property
	def snapshot(self) -> BufferSnapshot:
		with self._lock:
			return self._snapshot()

	def _snapshot(self) -> BufferSnapshot:
		entries = self._entries.values()
		return BufferSnapshot(
			count=len(self._entries),
			earliest=min((e.created_at for e in entries), default=None),
			sources=frozenset(e.post.platform for e in entries),
		)

	def __len__(self):
		with self._lock:
			return len(self._entries)

	def __contains__(self, entry_id):
		with self._lock:
			return entry_id in self._entries

	def append(self, incoming: Iterable[TimelineEntry], visible_ids: Iterable[str]) -> Optional[BufferSnapshot]:
		"""Buffer entries not already visible.

		A buffered entry that arrives again has its content refreshed.
		Returns None if no new entry was added.
		"""
		with self._lock:
			visible: Set[str] = set(visible_ids)
			added = False
			for entry in incoming:
				if entry.id in visible:
					continue
				if entry.id not in self._entries:
					added = True
				self._entries[entry.id] = entry
			if not added:
				return None
			return self._snapshot()

	def remove_visible(self, visible_ids: Iterable[str]) -> BufferSnapshot:
		with self._lock:
			for entry_id in visible_ids:
				self._entries.pop(entry_id, None)
			return self._snapshot()

	def drain(self) -> List[TimelineEntry]:
		"""Empty the buffer, returning its entries in timeline order."""
		with self._lock:
			entries = ordered(self._entries.values())
			self._entries = {}
			return entries

	def clear(self) -> BufferSnapshot:
		with self._lock:
			self._entries = {}
			return self._snapshot()
