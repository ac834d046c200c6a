"""Fetch collaborators: timeline pages from each backend, and a coordinator
that runs them concurrently and hands the results over one at a time."""

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from atproto.exceptions import AtProtocolError
from mastodon import MastodonError

from actions import utcnow
from logging_config import get_logger
from models import Platform, TimelineEntry
from platforms import normalize_batch
from platforms.common import get_attr

_logger = get_logger('sources')

DEFAULT_FETCH_LIMIT = 40
# Bluesky max is 100
BLUESKY_MAX_LIMIT = 100


@dataclass(frozen=True)
class FetchPage:
	"""One normalized batch from one source."""
	platform: Platform
	account_id: str
	entries: Sequence[TimelineEntry] = field(default_factory=tuple)
	has_next_page: bool = False
	next_page_token: Optional[str] = None
	generation: int = 0
	# When the request was sent; engagement on the entries is as of this moment
	requested_at: Optional[datetime] = None


class MastodonTimelineSource(object):
	"""Home timeline of one Mastodon account.

	``since`` and ``before`` are native status ids (Mastodon's since_id and
	max_id).
	"""

	platform = Platform.MASTODON

	def __init__(self, api, account_id: str, limit: int = DEFAULT_FETCH_LIMIT, clock=utcnow):
		self.api = api
		self.account_id = account_id
		self.limit = limit
		self.clock = clock

	def fetch(self, since: Optional[str] = None, before: Optional[str] = None) -> Optional[FetchPage]:
		requested_at = self.clock()
		try:
			statuses = self.api.timeline_home(limit=self.limit, since_id=since, max_id=before)
		except MastodonError:
			_logger.error(f"Home timeline fetch failed for {self.account_id}", exc_info=True)
			return None
		statuses = list(statuses or [])
		entries = normalize_batch(statuses, self.platform, self.account_id)
		# Oldest wrapper id is the next max_id
		next_token = str(get_attr(statuses[-1], 'id')) if statuses else None
		return FetchPage(
			platform=self.platform,
			account_id=self.account_id,
			entries=tuple(entries),
			has_next_page=len(statuses) >= self.limit,
			next_page_token=next_token,
			requested_at=requested_at,
		)


class BlueskyTimelineSource(object):
	"""Following feed of one Bluesky account.

	Bluesky pages with opaque cursors, so ``before`` is the cursor returned
	as the previous page's ``next_page_token``. ``since`` is not supported
	by the API and is ignored; a refresh fetches the first page.
	"""

	platform = Platform.BLUESKY

	def __init__(self, client, account_id: str, limit: int = DEFAULT_FETCH_LIMIT, clock=utcnow):
		self.client = client
		self.account_id = account_id
		self.limit = min(limit, BLUESKY_MAX_LIMIT)
		self.clock = clock

	def fetch(self, since: Optional[str] = None, before: Optional[str] = None) -> Optional[FetchPage]:
		requested_at = self.clock()
		try:
			response = self.client.get_timeline(limit=self.limit, cursor=before)
		except AtProtocolError:
			_logger.error(f"Following feed fetch failed for {self.account_id}", exc_info=True)
			return None
		cursor = getattr(response, 'cursor', None)
		entries = normalize_batch(getattr(response, 'feed', None) or [], self.platform, self.account_id)
		return FetchPage(
			platform=self.platform,
			account_id=self.account_id,
			entries=tuple(entries),
			has_next_page=cursor is not None,
			next_page_token=cursor,
			requested_at=requested_at,
		)


class FetchCoordinator(object):
	"""Runs one thread per source and delivers pages to ``sink`` serially.

	Every ``refresh`` starts a new generation. A page that arrives after a
	newer refresh started is discarded, so a slow response can never
	overwrite the results of a later one.
	"""

	def __init__(self, sources, sink: Callable[[FetchPage], None]):
		self.sources = list(sources)
		self.sink = sink
		self._lock = threading.Lock()
		self._deliver_lock = threading.Lock()
		self._generation = 0
		self._threads: List[threading.Thread] = []
		self.discarded = 0

	@property
	def generation(self) -> int:
		with self._lock:
			return self._generation

	def refresh(self, since: Optional[str] = None, before: Optional[str] = None) -> int:
		"""Start fetching from every source. Returns the new generation."""
		with self._lock:
			self._generation += 1
			generation = self._generation
			threads = [
				threading.Thread(target=self._fetch, args=(source, generation, since, before), daemon=True)
				for source in self.sources
			]
			self._threads = threads
		for thread in threads:
			thread.start()
		return generation

	def _fetch(self, source, generation, since, before):
		try:
			page = source.fetch(since=since, before=before)
		except Exception:
			_logger.exception(f"Unexpected error fetching from {source.platform.value}")
			return
		if page is None:
			return
		self.deliver(replace(page, generation=generation))

	def deliver(self, page: FetchPage) -> bool:
		"""Hand a page to the sink unless its generation was superseded."""
		with self._deliver_lock:
			if page.generation != self.generation:
				self.discarded += 1
				_logger.debug(
					f"Discarding {page.platform.value} page from generation {page.generation} "
					f"(current {self.generation})"
				)
				return False
			self.sink(page)
			return True

	def wait(self, timeout: Optional[float] = None) -> None:
		"""Block until the threads of the latest refresh finish."""
		with self._lock:
			threads = list(self._threads)
		for thread in threads:
			thread.join(timeout)
