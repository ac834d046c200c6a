"""Shared pytest fixtures and configuration

Factories build native payloads the way the client libraries deliver them
(plain dicts stand in for Mastodon.py's AttribAccessDict and for raw XRPC
JSON) and unified values for the engine tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from models import Boost, Platform, TimelineEntry, UnifiedAuthor, UnifiedPost, stable_identity

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
ACCOUNT_ID = "acct-1"


def at(minutes):
    """BASE_TIME shifted by ``minutes``."""
    return BASE_TIME + timedelta(minutes=minutes)


class FakeClock:
    """Deterministic clock; call it for the time, ``advance`` to move it."""

    def __init__(self, start=BASE_TIME):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds=1):
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeMonotonic:
    """Monotonic seconds clock for TTL tests."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


# ==================== Clocks ====================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


# ==================== Unified values ====================


@pytest.fixture
def make_post():
    """Factory for UnifiedPost values keyed by a short native id."""

    def _make(native_id, minutes=0, platform=Platform.MASTODON, account_id=ACCOUNT_ID, text=None, **kwargs):
        body = text if text is not None else f"post {native_id}"
        return UnifiedPost(
            id=stable_identity(platform, native_id, account_id),
            native_id=native_id,
            platform=platform,
            account_id=account_id,
            author=UnifiedAuthor(id="1", handle="alice", name="Alice"),
            content=body,
            text=body,
            created_at=at(minutes),
            **kwargs
        )

    return _make


@pytest.fixture
def make_entry(make_post):
    """Factory for TimelineEntry values; ``boosted_by`` makes a boost entry."""

    def _make(native_id, minutes=0, is_read=False, boosted_by=None, **kwargs):
        post = make_post(native_id, minutes, **kwargs)
        if boosted_by:
            return TimelineEntry(
                id=stable_identity(post.platform, f"boost-{native_id}", post.account_id),
                post=post,
                kind=Boost(boosted_by),
                is_read=is_read,
            )
        return TimelineEntry.from_post(post, is_read=is_read)

    return _make


# ==================== Native payloads ====================


@pytest.fixture
def mastodon_account():
    def _make(acct="alice@example.social", account_id="101", display_name="Alice"):
        return {
            "id": account_id,
            "acct": acct,
            "username": acct.split("@")[0],
            "display_name": display_name,
            "avatar": "https://example.social/avatars/alice.png",
        }

    return _make


@pytest.fixture
def mastodon_status(mastodon_account):
    """Factory for Mastodon statuses as returned by Mastodon.timeline_home."""

    def _make(status_id, minutes=0, account=None, reblog=None, **overrides):
        status = {
            "id": status_id,
            "created_at": at(minutes),
            "account": account if account is not None else mastodon_account(),
            "content": f"<p>Hello from {status_id}</p>",
            "url": f"https://example.social/@alice/{status_id}",
            "in_reply_to_id": None,
            "media_attachments": [],
            "mentions": [],
            "tags": [],
            "favourites_count": 0,
            "reblogs_count": 0,
            "replies_count": 0,
            "favourited": False,
            "reblogged": False,
            "reblog": reblog,
        }
        status.update(overrides)
        return status

    return _make


@pytest.fixture
def bluesky_feed_item():
    """Factory for app.bsky.feed.defs#feedViewPost items in XRPC JSON form."""

    def _make(rkey, minutes=0, handle="bob.bsky.social", did="did:plc:bob", reason=None, **post_overrides):
        uri = f"at://{did}/app.bsky.feed.post/{rkey}"
        post = {
            "uri": uri,
            "cid": f"cid-{rkey}",
            "author": {"did": did, "handle": handle, "displayName": "Bob"},
            "record": {
                "$type": "app.bsky.feed.post",
                "text": f"skeet {rkey}",
                "createdAt": at(minutes).isoformat().replace("+00:00", "Z"),
            },
            "indexedAt": at(minutes).isoformat().replace("+00:00", "Z"),
            "likeCount": 0,
            "repostCount": 0,
            "replyCount": 0,
        }
        post.update(post_overrides)
        item = {"post": post}
        if reason is not None:
            item["reason"] = reason
        return item

    return _make
