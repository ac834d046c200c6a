from .store import MemoryStore, SqliteStore
from .link_preview import LinkPreviewCache
from .saved_searches import SavedSearchStorage
