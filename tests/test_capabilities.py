"""
Tests for search capability learning
"""

import json

import pytest

from cache import MemoryStore, SqliteStore
from capabilities import CapabilityStore
from models import CapabilitySupport, SearchCapabilities, SearchScope

from .conftest import at

U = CapabilitySupport.UNKNOWN
YES = CapabilitySupport.YES
NO = CapabilitySupport.NO
LIKELY_NO = CapabilitySupport.LIKELY_NO


class TestTransitions:
    """The pure transition in SearchCapabilities.updated"""

    @pytest.mark.parametrize("start, has_results, has_other, expected", [
        (U, True, False, YES),
        (U, True, True, YES),
        (U, False, True, LIKELY_NO),
        (U, False, False, U),
        (YES, False, True, LIKELY_NO),
        (LIKELY_NO, True, True, YES),
        (LIKELY_NO, False, False, LIKELY_NO),
    ])
    def test_posts_scope(self, start, has_results, has_other, expected):
        capabilities = SearchCapabilities(supports_status_search=start)

        after = capabilities.updated(SearchScope.POSTS, has_results, has_other, at(0))

        assert after.supports_status_search is expected

    @pytest.mark.parametrize("scope, field", [
        (SearchScope.USERS, "supports_account_search"),
        (SearchScope.TAGS, "supports_hashtag_search"),
    ])
    def test_deterministic_scopes(self, scope, field):
        capabilities = SearchCapabilities()

        found = capabilities.updated(scope, True, False, at(0))
        empty = found.updated(scope, False, True, at(1))

        assert getattr(found, field) is YES
        assert getattr(empty, field) is NO
        assert getattr(empty.updated(scope, True, False, at(2)), field) is YES

    def test_unknown_then_likely_no_then_yes(self):
        capabilities = SearchCapabilities()

        capabilities = capabilities.updated(SearchScope.POSTS, False, True, at(0))
        assert capabilities.supports_status_search is LIKELY_NO
        assert capabilities.should_show_status_search_warning is True

        capabilities = capabilities.updated(SearchScope.POSTS, True, True, at(1))
        assert capabilities.supports_status_search is YES
        assert capabilities.should_show_status_search_warning is False

    def test_other_scopes_untouched(self):
        after = SearchCapabilities().updated(SearchScope.USERS, True, False, at(0))

        assert after.supports_status_search is U
        assert after.supports_hashtag_search is U
        assert after.last_checked == at(0)

    def test_inconclusive_still_stamps_last_checked(self):
        after = SearchCapabilities().updated(SearchScope.POSTS, False, False, at(3))
        assert after.last_checked == at(3)

    def test_dict_uses_persisted_key_names(self):
        data = SearchCapabilities(supports_status_search=LIKELY_NO, instance_domain="example.social").to_dict()

        assert data["supportsStatusSearch"] == "likelyNo"
        assert data["instanceDomain"] == "example.social"
        assert SearchCapabilities.from_dict(data).supports_status_search is LIKELY_NO

    def test_display_name(self):
        assert LIKELY_NO.display_name == "Likely Not"
        assert CapabilitySupport.LIKELY.is_supported


class TestCapabilityStore:
    """Persistence and the search-report boundary"""

    def test_defaults_to_unknown(self, clock):
        store = CapabilityStore(MemoryStore(), clock=clock)
        assert store.get("acct-1") == SearchCapabilities()

    def test_update_persists(self, clock):
        backing = MemoryStore()
        CapabilityStore(backing, clock=clock).update("acct-1", SearchScope.POSTS, False, True)

        reloaded = CapabilityStore(backing, clock=clock).get("acct-1")

        assert reloaded.supports_status_search is LIKELY_NO
        assert reloaded.last_checked == clock()
        assert backing.keys("searchCapabilities_") == ["searchCapabilities_acct-1"]

    def test_accounts_are_independent(self, clock):
        store = CapabilityStore(MemoryStore(), clock=clock)
        store.update("a", SearchScope.USERS, True, False)

        assert store.get("b").supports_account_search is U

    def test_record_search_derives_other_results(self, clock):
        store = CapabilityStore(MemoryStore(), clock=clock)

        after = store.record_search("acct-1", SearchScope.POSTS, {
            SearchScope.POSTS: 0,
            SearchScope.USERS: 3,
            SearchScope.TAGS: 0,
        })

        assert after.supports_status_search is LIKELY_NO
        assert store.should_show_status_search_warning("acct-1") is True

    def test_record_search_with_nothing_anywhere(self, clock):
        store = CapabilityStore(MemoryStore(), clock=clock)

        after = store.record_search("acct-1", "posts", {"posts": 0, "users": 0})

        assert after.supports_status_search is U

    def test_unreadable_payload_resets(self, clock):
        backing = MemoryStore()
        backing.save(CapabilityStore.key_for("acct-1"), b"{not json")

        assert CapabilityStore(backing, clock=clock).get("acct-1") == SearchCapabilities()

    def test_instance_domain_and_trends(self, clock):
        store = CapabilityStore(MemoryStore(), clock=clock)
        store.set_instance_domain("acct-1", "example.social")
        store.set_trends_support("acct-1", True)

        stored = json.loads(store._store.load(CapabilityStore.key_for("acct-1")).decode("utf-8"))

        assert stored["instanceDomain"] == "example.social"
        assert stored["supportsTrends"] is True

    def test_sqlite_backing(self, tmp_path, clock):
        backing = SqliteStore(str(tmp_path / "state.db"))
        CapabilityStore(backing, clock=clock).update("acct-1", SearchScope.TAGS, True, False)
        backing.close()

        reopened = SqliteStore(str(tmp_path / "state.db"))
        assert CapabilityStore(reopened, clock=clock).get("acct-1").supports_hashtag_search is YES
        reopened.close()
