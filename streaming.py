# -*- coding: utf-8 -*-
"""Fan-in of live chat events from several backends into one keyed stream."""

import threading
from collections import OrderedDict, deque
from typing import Callable, Deque, Dict, List, Optional, Tuple

from mastodon import StreamListener

from logging_config import get_logger
from models import (
    DeletedMessage,
    Platform,
    ReactionAdded,
    ReactionRemoved,
    ReadReceipt,
    TypingIndicator,
    UnifiedChatEvent,
    dedupe_key,
    route,
)
from platforms.mastodon import mastodon_conversation_to_event

_logger = get_logger('streaming')

DEFAULT_DEDUPE_WINDOW = 5000

# Only the latest of these matters, so a redelivery replaces the stored one
_KEYED_STATE_EVENTS = (ReadReceipt, TypingIndicator)


def _counterpart_key(event) -> Optional[str]:
    """Key of the opposite reaction event, so add/remove/add is not swallowed."""
    if isinstance(event, ReactionAdded):
        other = ReactionRemoved
    elif isinstance(event, ReactionRemoved):
        other = ReactionAdded
    else:
        return None
    return other(
        message_id=event.message_id,
        conversation_id=event.conversation_id,
        value=event.value,
        sender_id=event.sender_id,
        platform=event.platform,
    ).dedupe_key


class EventFanIn:
    """Unifies chat events from any number of backend streams.

    Append-only events (messages, deletions, conversation updates, reactions)
    are delivered once per dedupe key. The remembered keys and the event
    history are both bounded by ``window``; the oldest go first. Read receipts and typing indicators are keyed state: each
    delivery overwrites the previous value for its key.
    """

    def __init__(self, window: int = DEFAULT_DEDUPE_WINDOW):
        self.window = window
        self._lock = threading.RLock()
        self._seen: "OrderedDict[str, None]" = OrderedDict()
        self._log: Deque[Tuple[str, UnifiedChatEvent]] = deque()
        self._by_conversation: Dict[str, Deque[UnifiedChatEvent]] = {}
        self._keyed_state: Dict[str, UnifiedChatEvent] = {}
        self._subscribers = []
        self.duplicates_dropped = 0

    def accept(self, event: UnifiedChatEvent) -> bool:
        """Route and record an event. Returns False if it was a duplicate delivery."""
        key = dedupe_key(event)
        conversation_id = route(event)
        with self._lock:
            if isinstance(event, _KEYED_STATE_EVENTS):
                self._keyed_state[key] = event
            else:
                if key in self._seen:
                    self.duplicates_dropped += 1
                    _logger.debug(f"Dropped duplicate event {key}")
                    return False
                self._remember(key)
                counterpart = _counterpart_key(event)
                if counterpart is not None:
                    self._seen.pop(counterpart, None)
                self._record(conversation_id, event)
            subscribers = [cb for cb, convo in self._subscribers if convo is None or convo == conversation_id]

        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                _logger.exception(f"Chat event subscriber failed for {key}")
        return True

    def _record(self, conversation_id: str, event: UnifiedChatEvent) -> None:
        self._log.append((conversation_id, event))
        self._by_conversation.setdefault(conversation_id, deque()).append(event)
        while len(self._log) > self.window:
            oldest_conversation, _ = self._log.popleft()
            # Arrival order is shared, so the evicted event heads its conversation too
            history = self._by_conversation[oldest_conversation]
            history.popleft()
            if not history:
                del self._by_conversation[oldest_conversation]

    def _remember(self, key: str) -> None:
        self._seen[key] = None
        while len(self._seen) > self.window:
            self._seen.popitem(last=False)

    def subscribe(self, callback: Callable[[UnifiedChatEvent], None],
                  conversation_id: Optional[str] = None) -> Callable[[], None]:
        """Register a callback, optionally for one conversation. Returns an unsubscribe function."""
        entry = (callback, conversation_id)
        with self._lock:
            self._subscribers.append(entry)

        def unsubscribe():
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)
        return unsubscribe

    def events(self, conversation_id: Optional[str] = None) -> List[UnifiedChatEvent]:
        """Accepted append-only events in arrival order."""
        with self._lock:
            if conversation_id is None:
                return [event for _, event in self._log]
            return list(self._by_conversation.get(conversation_id, ()))

    def read_receipts(self, conversation_id: str) -> List[ReadReceipt]:
        with self._lock:
            return [e for e in self._keyed_state.values()
                    if isinstance(e, ReadReceipt) and e.conversation_id == conversation_id]

    def typing(self, conversation_id: str) -> List[TypingIndicator]:
        with self._lock:
            return [e for e in self._keyed_state.values()
                    if isinstance(e, TypingIndicator) and e.conversation_id == conversation_id]

    def clear_typing(self, conversation_id: str, sender_id: str, platform: Platform) -> None:
        key = TypingIndicator(conversation_id, sender_id, platform).dedupe_key
        with self._lock:
            self._keyed_state.pop(key, None)


class MastodonChatStreamListener(StreamListener):
    """Feeds direct-message events from a Mastodon user stream into an EventFanIn.

    Mastodon has no native chat; a direct conversation's ``conversation``
    event carries its newest status, which becomes a NewMessage.
    """

    def __init__(self, fan_in: EventFanIn):
        super(MastodonChatStreamListener, self).__init__()
        self.fan_in = fan_in
        # status id -> conversation id, so deletes can be routed
        self._message_conversations: Dict[str, str] = {}

    def on_conversation(self, conversation):
        """Called when a direct message conversation is updated"""
        try:
            event = mastodon_conversation_to_event(conversation)
            if event is None:
                return
            self._message_conversations[event.id] = event.conversation_id
            self.fan_in.accept(event)
        except Exception:
            _logger.exception("Stream conversation")

    def on_delete(self, status_id):
        """Called when a status is deleted"""
        status_id = str(status_id)
        conversation_id = self._message_conversations.pop(status_id, None)
        if conversation_id is None:
            # Not a direct message we have seen
            return
        self.fan_in.accept(DeletedMessage(
            message_id=status_id,
            conversation_id=conversation_id,
            platform=Platform.MASTODON,
        ))

    def handle_heartbeat(self):
        pass

    def on_abort(self, err):
        """Called when stream is aborted - reconnect handled by the caller"""
        _logger.warning(f"Mastodon chat stream aborted: {err}")

    def on_unknown_event(self, name, data=None):
        _logger.debug(f"Ignoring unknown stream event {name}")
