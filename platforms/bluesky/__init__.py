from .models import (
    bluesky_post_to_unified,
    bluesky_feed_item_to_entry,
    bluesky_viewer_to_relationship,
    bluesky_log_to_event,
    extract_rkey_from_uri,
)
