"""
Tests package for fusionfeed

Test organization:
- test_normalize.py: identities and Mastodon/Bluesky conversion
- test_timeline.py: merge properties, read state, scroll anchor, buffer
- test_actions.py: engagement reconciliation and optimistic updates
- test_capabilities.py: search capability learning and persistence
- test_streaming.py: chat event fan-in and stream adapters
- test_cache.py: key-value stores, link previews, saved searches
- test_sources.py: fetch sources and the fetch coordinator
- test_engine.py: the engine facade
- test_config.py: preferences and logging setup
- conftest.py: Shared fixtures and test utilities
"""
