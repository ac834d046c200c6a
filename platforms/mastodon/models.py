"""Conversion functions from Mastodon objects to unified models."""

from typing import Optional

from errors import NormalizationError
from models import (
    Platform,
    MediaType,
    UnifiedAuthor,
    UnifiedMedia,
    UnifiedMention,
    UnifiedPost,
    TimelineEntry,
    Boost,
    RelationshipState,
    NewMessage,
    stable_identity,
)
from platforms.common import get_attr, parse_datetime, strip_html

PLATFORM = Platform.MASTODON


def mastodon_user_to_author(user) -> UnifiedAuthor:
    """Convert a Mastodon account to UnifiedAuthor."""
    acct = get_attr(user, 'acct', default='')
    if not acct:
        raise NormalizationError(PLATFORM.value, "author has no acct")
    return UnifiedAuthor(
        id=str(get_attr(user, 'id', default='')),
        handle=acct,
        name=get_attr(user, 'display_name', default='') or get_attr(user, 'username', default='') or acct,
        avatar=get_attr(user, 'avatar', default=None),
    )


def mastodon_media_to_unified(media) -> UnifiedMedia:
    """Convert a Mastodon media attachment to UnifiedMedia."""
    return UnifiedMedia(
        type=MediaType.from_native(get_attr(media, 'type', default='unknown')),
        url=get_attr(media, 'url', 'remote_url', default=''),
        preview_url=get_attr(media, 'preview_url', default=None),
        description=get_attr(media, 'description', default=None),
    )


def mastodon_mention_to_unified(mention) -> UnifiedMention:
    """Convert a Mastodon mention to UnifiedMention."""
    return UnifiedMention(
        id=str(get_attr(mention, 'id', default='')),
        acct=get_attr(mention, 'acct', default=''),
        username=get_attr(mention, 'username', default=''),
        url=get_attr(mention, 'url', default=None),
    )


def mastodon_status_to_unified(status, account_id: str) -> UnifiedPost:
    """Convert a Mastodon status to UnifiedPost.

    A reblog wrapper converts to the post it boosts; the wrapper itself only
    matters for the timeline entry (see mastodon_status_to_entry).
    """
    reblog = get_attr(status, 'reblog', default=None)
    if reblog:
        status = reblog

    native_id = str(get_attr(status, 'id', default='') or '')
    if not native_id:
        raise NormalizationError(PLATFORM.value, "status has no id")
    account = get_attr(status, 'account', default=None)
    if account is None:
        raise NormalizationError(PLATFORM.value, "status has no account", native_id)
    try:
        author = mastodon_user_to_author(account)
    except NormalizationError as e:
        raise NormalizationError(PLATFORM.value, e.reason, native_id) from e

    created_at = parse_datetime(get_attr(status, 'created_at'))
    if created_at is None:
        raise NormalizationError(PLATFORM.value, "status has no usable created_at", native_id)

    content = get_attr(status, 'content', default='') or ''
    parent = get_attr(status, 'in_reply_to_id', default=None)

    return UnifiedPost(
        id=stable_identity(PLATFORM, native_id, account_id),
        native_id=native_id,
        platform=PLATFORM,
        account_id=account_id,
        author=author,
        content=content,
        text=strip_html(content),
        created_at=created_at,
        url=get_attr(status, 'url', 'uri', default=None),
        attachments=tuple(mastodon_media_to_unified(m) for m in get_attr(status, 'media_attachments', default=[])),
        mentions=tuple(mastodon_mention_to_unified(m) for m in get_attr(status, 'mentions', default=[])),
        tags=tuple(get_attr(t, 'name', default='') for t in get_attr(status, 'tags', default=[]) if get_attr(t, 'name')),
        in_reply_to_id=stable_identity(PLATFORM, str(parent), account_id) if parent else None,
        like_count=get_attr(status, 'favourites_count', default=0),
        repost_count=get_attr(status, 'reblogs_count', default=0),
        reply_count=get_attr(status, 'replies_count', default=0),
        is_liked=bool(get_attr(status, 'favourited', default=False)),
        is_reposted=bool(get_attr(status, 'reblogged', default=False)),
    )


def mastodon_status_to_entry(status, account_id: str) -> TimelineEntry:
    """Convert a Mastodon status to a TimelineEntry, keeping boosts distinct."""
    post = mastodon_status_to_unified(status, account_id)
    if not get_attr(status, 'reblog', default=None):
        return TimelineEntry.from_post(post)

    wrapper_id = str(get_attr(status, 'id', default='') or '')
    if not wrapper_id:
        raise NormalizationError(PLATFORM.value, "reblog has no id", post.native_id)
    booster = get_attr(status, 'account', default=None)
    return TimelineEntry(
        id=stable_identity(PLATFORM, wrapper_id, account_id),
        post=post,
        kind=Boost(boosted_by=get_attr(booster, 'acct', default='') or post.author.handle),
        created_at=parse_datetime(get_attr(status, 'created_at')) or post.created_at,
    )


def mastodon_relationship_to_unified(relationship) -> RelationshipState:
    """Convert a Mastodon Relationship to RelationshipState."""
    return RelationshipState(
        is_following=bool(get_attr(relationship, 'following', default=False)),
        is_followed_by=bool(get_attr(relationship, 'followed_by', default=False)),
        is_muting=bool(get_attr(relationship, 'muting', default=False)),
        is_blocking=bool(get_attr(relationship, 'blocking', default=False)),
        follow_requested=bool(get_attr(relationship, 'requested', default=False)),
    )


def mastodon_conversation_to_event(conversation) -> Optional[NewMessage]:
    """Convert a direct-message Conversation to the chat event for its last status."""
    last_status = get_attr(conversation, 'last_status', default=None)
    conversation_id = get_attr(conversation, 'id', default=None)
    if not last_status or conversation_id is None:
        return None
    status_id = get_attr(last_status, 'id', default=None)
    sender = get_attr(last_status, 'account', default=None)
    if status_id is None or sender is None:
        return None
    return NewMessage(
        id=str(status_id),
        conversation_id=str(conversation_id),
        sender_id=str(get_attr(sender, 'id', default='')),
        sender_display_name=get_attr(sender, 'display_name', default='') or get_attr(sender, 'acct', default=''),
        text=strip_html(get_attr(last_status, 'content', default='')),
        sent_at=parse_datetime(get_attr(last_status, 'created_at')),
        platform=PLATFORM,
    )
