"""Conversion functions from Bluesky (atproto) objects to unified models.

Inputs may be atproto SDK models (snake_case attributes, ``py_type``) or
the raw XRPC JSON (camelCase keys, ``$type``); every read goes through
``get_attr`` with both spellings.
"""

from typing import List, Optional

from atproto import AtUri

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
    ConversationUpdateKind,
    ConversationUpdate,
    DeletedMessage,
    NewMessage,
    ReactionAdded,
    ReactionRemoved,
    ReadReceipt,
    UnifiedChatEvent,
    stable_identity,
)
from platforms.common import get_attr, parse_datetime, type_of

PLATFORM = Platform.BLUESKY

POST_URL_TEMPLATE = 'https://bsky.app/profile/{handle}/post/{rkey}'

_REASON_REPOST = 'app.bsky.feed.defs#reasonRepost'
_FACET_TAG = 'app.bsky.richtext.facet#tag'
_FACET_MENTION = 'app.bsky.richtext.facet#mention'
_LOG_PREFIX = 'chat.bsky.convo.defs#'


def parse_post_uri(uri: str) -> AtUri:
    """Parse an AT-URI, raising NormalizationError when it is malformed."""
    try:
        parsed = AtUri.from_str(uri)
    except Exception as e:
        raise NormalizationError(PLATFORM.value, f"invalid AT-URI: {e}", uri) from e
    if not parsed.rkey:
        raise NormalizationError(PLATFORM.value, "AT-URI has no record key", uri)
    return parsed


def extract_rkey_from_uri(uri: str) -> str:
    """Record key (last path segment) of an AT-URI."""
    return parse_post_uri(uri).rkey


def bluesky_profile_to_author(profile) -> UnifiedAuthor:
    """Convert a Bluesky profile view to UnifiedAuthor."""
    handle = get_attr(profile, 'handle', default='')
    if not handle:
        raise NormalizationError(PLATFORM.value, "author has no handle")
    return UnifiedAuthor(
        id=get_attr(profile, 'did', default=''),
        handle=handle,
        name=get_attr(profile, 'display_name', 'displayName', default='') or handle,
        avatar=get_attr(profile, 'avatar', default=None),
    )


def _embed_to_media(embed) -> List[UnifiedMedia]:
    """Extract attachments from an embed view."""
    if embed is None:
        return []
    embed_type = type_of(embed)
    if embed_type.startswith('app.bsky.embed.recordWithMedia'):
        return _embed_to_media(get_attr(embed, 'media', default=None))
    if embed_type.startswith('app.bsky.embed.images'):
        return [
            UnifiedMedia(
                type=MediaType.IMAGE,
                url=get_attr(image, 'fullsize', default=''),
                preview_url=get_attr(image, 'thumb', default=None),
                description=get_attr(image, 'alt', default=None) or None,
            )
            for image in get_attr(embed, 'images', default=[])
        ]
    if embed_type.startswith('app.bsky.embed.video'):
        return [UnifiedMedia(
            type=MediaType.VIDEO,
            url=get_attr(embed, 'playlist', default=''),
            preview_url=get_attr(embed, 'thumbnail', default=None),
            description=get_attr(embed, 'alt', default=None) or None,
        )]
    if embed_type.startswith('app.bsky.embed.external'):
        external = get_attr(embed, 'external', default=None)
        uri = get_attr(external, 'uri', default='') or ''
        # GIF pickers post GIFs as external links
        if uri.lower().split('?', 1)[0].endswith('.gif'):
            return [UnifiedMedia(
                type=MediaType.ANIMATED_GIF,
                url=uri,
                preview_url=get_attr(external, 'thumb', default=None),
                description=get_attr(external, 'description', default=None) or None,
            )]
    return []


def _facets(record):
    tags = []
    mentions = []
    for facet in get_attr(record, 'facets', default=[]):
        for feature in get_attr(facet, 'features', default=[]):
            feature_type = type_of(feature)
            if feature_type == _FACET_TAG:
                tag = get_attr(feature, 'tag', default='')
                if tag:
                    tags.append(tag)
            elif feature_type == _FACET_MENTION:
                did = get_attr(feature, 'did', default='')
                if did:
                    mentions.append(UnifiedMention(id=did, acct=did, username=did))
    return tuple(tags), tuple(mentions)


def bluesky_post_to_unified(post, account_id: str) -> UnifiedPost:
    """Convert a Bluesky post view (or a feed item wrapping one) to UnifiedPost."""
    inner = get_attr(post, 'post', default=None)
    if inner is not None:
        post = inner

    uri = get_attr(post, 'uri', default='')
    if not uri:
        raise NormalizationError(PLATFORM.value, "post has no uri")
    at_uri = parse_post_uri(uri)

    author_data = get_attr(post, 'author', default=None)
    if author_data is None:
        raise NormalizationError(PLATFORM.value, "post has no author", uri)
    try:
        author = bluesky_profile_to_author(author_data)
    except NormalizationError as e:
        raise NormalizationError(PLATFORM.value, e.reason, uri) from e

    record = get_attr(post, 'record', default=None)
    created_at = parse_datetime(get_attr(record, 'created_at', 'createdAt')) \
        or parse_datetime(get_attr(post, 'indexed_at', 'indexedAt'))
    if created_at is None:
        raise NormalizationError(PLATFORM.value, "post has no usable timestamp", uri)

    text = get_attr(record, 'text', default='') or ''
    tags, mentions = _facets(record)
    reply = get_attr(record, 'reply', default=None)
    parent_uri = get_attr(get_attr(reply, 'parent', default=None), 'uri', default=None)
    viewer = get_attr(post, 'viewer', default=None)

    return UnifiedPost(
        id=stable_identity(PLATFORM, uri, account_id),
        native_id=uri,
        platform=PLATFORM,
        account_id=account_id,
        author=author,
        content=text,
        text=text,
        created_at=created_at,
        url=POST_URL_TEMPLATE.format(handle=author.handle, rkey=at_uri.rkey),
        attachments=tuple(_embed_to_media(get_attr(post, 'embed', default=None))),
        mentions=mentions,
        tags=tags,
        in_reply_to_id=stable_identity(PLATFORM, parent_uri, account_id) if parent_uri else None,
        like_count=get_attr(post, 'like_count', 'likeCount', default=0),
        repost_count=get_attr(post, 'repost_count', 'repostCount', default=0),
        reply_count=get_attr(post, 'reply_count', 'replyCount', default=0),
        is_liked=bool(get_attr(viewer, 'like', default=None)),
        is_reposted=bool(get_attr(viewer, 'repost', default=None)),
    )


def bluesky_feed_item_to_entry(item, account_id: str) -> TimelineEntry:
    """Convert a feed view post to a TimelineEntry, keeping reposts distinct.

    A repost entry is keyed by the repost record's URI. Older appviews omit
    that URI, in which case the key is the post URI plus the reposter's DID.
    """
    post = bluesky_post_to_unified(item, account_id)
    reason = get_attr(item, 'reason', default=None)
    if reason is None or type_of(reason) != _REASON_REPOST:
        return TimelineEntry.from_post(post)

    by = get_attr(reason, 'by', default=None)
    by_did = get_attr(by, 'did', default='')
    native_id = get_attr(reason, 'uri', default=None) or f"{post.native_id}#repost-{by_did}"
    return TimelineEntry(
        id=stable_identity(PLATFORM, native_id, account_id),
        post=post,
        kind=Boost(boosted_by=get_attr(by, 'handle', default='') or by_did),
        created_at=parse_datetime(get_attr(reason, 'indexed_at', 'indexedAt')) or post.created_at,
    )


def bluesky_viewer_to_relationship(viewer) -> RelationshipState:
    """Convert a profile's viewer state to RelationshipState.

    Bluesky reports follows and blocks as record URIs, so presence is the flag.
    """
    return RelationshipState(
        is_following=bool(get_attr(viewer, 'following', default=None)),
        is_followed_by=bool(get_attr(viewer, 'followed_by', 'followedBy', default=None)),
        is_muting=bool(get_attr(viewer, 'muted', default=False)),
        is_blocking=bool(get_attr(viewer, 'blocking', default=None)),
        follow_requested=False,
    )


_CONVO_KINDS = {
    'logBeginConvo': ConversationUpdateKind.BEGAN,
    'logAcceptConvo': ConversationUpdateKind.ACCEPTED,
    'logLeaveConvo': ConversationUpdateKind.LEFT,
    'logMuteConvo': ConversationUpdateKind.MUTED,
    'logUnmuteConvo': ConversationUpdateKind.UNMUTED,
}


def bluesky_log_to_event(log, account_id: str) -> Optional[UnifiedChatEvent]:
    """Map one ``chat.bsky.convo.getLog`` entry to a chat event.

    Returns None for log types the fan-in does not model.
    """
    log_type = type_of(log)
    if not log_type.startswith(_LOG_PREFIX):
        return None
    name = log_type[len(_LOG_PREFIX):]
    convo_id = get_attr(log, 'convo_id', 'convoId', default='')
    message = get_attr(log, 'message', default=None)
    message_id = get_attr(message, 'id', default='')

    if name == 'logCreateMessage':
        sender = get_attr(message, 'sender', default=None)
        return NewMessage(
            id=message_id,
            conversation_id=convo_id,
            sender_id=get_attr(sender, 'did', default=''),
            sender_display_name=get_attr(sender, 'display_name', 'displayName', 'handle', 'did', default=''),
            text=get_attr(message, 'text', default=''),
            sent_at=parse_datetime(get_attr(message, 'sent_at', 'sentAt')),
            platform=PLATFORM,
        )
    if name == 'logDeleteMessage':
        return DeletedMessage(message_id=message_id, conversation_id=convo_id, platform=PLATFORM)
    if name == 'logReadMessage':
        return ReadReceipt(conversation_id=convo_id, account_id=account_id, platform=PLATFORM)
    if name in _CONVO_KINDS:
        return ConversationUpdate(conversation_id=convo_id, kind=_CONVO_KINDS[name], platform=PLATFORM)
    if name in ('logAddReaction', 'logRemoveReaction'):
        reaction = get_attr(log, 'reaction', default=None)
        value = get_attr(reaction, 'value', default=None) or get_attr(log, 'value', default='')
        sender = get_attr(reaction, 'sender', default=None) or get_attr(log, 'sender', default=None)
        event_cls = ReactionAdded if name == 'logAddReaction' else ReactionRemoved
        return event_cls(
            message_id=message_id,
            conversation_id=convo_id,
            value=value,
            sender_id=get_attr(sender, 'did', default=''),
            platform=PLATFORM,
        )
    return None
