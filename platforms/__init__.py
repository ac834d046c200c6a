"""Platform dispatch for normalization.

Each backend contributes a small table of pure functions instead of a
subclass; adding a backend means adding one row to each table below.
"""

from typing import Iterable, List

from errors import NormalizationError
from logging_config import get_logger
from models import Platform, RelationshipState, TimelineEntry, UnifiedPost
from platforms.bluesky import (
    bluesky_feed_item_to_entry,
    bluesky_post_to_unified,
    bluesky_viewer_to_relationship,
)
from platforms.mastodon import (
    mastodon_relationship_to_unified,
    mastodon_status_to_entry,
    mastodon_status_to_unified,
)

_logger = get_logger('normalize')

_POST_CONVERTERS = {
    Platform.MASTODON: mastodon_status_to_unified,
    Platform.BLUESKY: bluesky_post_to_unified,
}

_ENTRY_CONVERTERS = {
    Platform.MASTODON: mastodon_status_to_entry,
    Platform.BLUESKY: bluesky_feed_item_to_entry,
}

_RELATIONSHIP_CONVERTERS = {
    Platform.MASTODON: mastodon_relationship_to_unified,
    Platform.BLUESKY: bluesky_viewer_to_relationship,
}


def _platform(platform) -> Platform:
    try:
        return Platform(platform)
    except ValueError:
        raise NormalizationError(str(platform), "unsupported platform")


def _convert(table, native, platform, account_id):
    platform = _platform(platform)
    if not account_id:
        raise NormalizationError(platform.value, "account id is required")
    try:
        return table[platform](native, str(account_id))
    except NormalizationError:
        raise
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise NormalizationError(platform.value, f"malformed item: {e}") from e


def normalize(native_post, platform, account_id: str) -> UnifiedPost:
    """Convert a platform-native post to a UnifiedPost.

    Pure: the same input always yields an equal value. Raises
    NormalizationError when the native id or author handle is missing.
    """
    return _convert(_POST_CONVERTERS, native_post, platform, account_id)


def normalize_entry(native_item, platform, account_id: str) -> TimelineEntry:
    """Convert a native timeline item (status, feed item) to a TimelineEntry."""
    return _convert(_ENTRY_CONVERTERS, native_item, platform, account_id)


def normalize_batch(items: Iterable, platform, account_id: str) -> List[TimelineEntry]:
    """Normalize a fetched batch, skipping items that cannot be normalized."""
    entries = []
    skipped = 0
    for item in items or []:
        try:
            entries.append(normalize_entry(item, platform, account_id))
        except NormalizationError as e:
            skipped += 1
            _logger.warning(f"Skipping item: {e}")
    if skipped:
        _logger.info(f"Normalized {len(entries)} {getattr(platform, 'value', platform)} items, skipped {skipped}")
    return entries


def relationship_from_native(native, platform) -> RelationshipState:
    """Convert a backend's relationship payload to RelationshipState."""
    platform = _platform(platform)
    return _RELATIONSHIP_CONVERTERS[platform](native)
