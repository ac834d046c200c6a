from .models import (
    mastodon_status_to_unified,
    mastodon_status_to_entry,
    mastodon_relationship_to_unified,
    mastodon_conversation_to_event,
)
