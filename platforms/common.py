"""Helpers shared by the platform converters."""

import html
import re
from datetime import datetime, timezone

# HTML tag pattern for stripping
_html_tag_re = re.compile(r'<[^>]+>')
_block_end_re = re.compile(r'</p>|<br\s*/?>', re.IGNORECASE)


def get_attr(obj, *names, default=None):
    """Read the first present attribute from a dict or an object.

    Client libraries hand back model objects with snake_case attributes,
    while raw JSON payloads use camelCase keys, so callers pass both spellings.
    """
    if obj is None:
        return default
    for name in names:
        if isinstance(obj, dict):
            value = obj.get(name)
        else:
            value = getattr(obj, name, None)
        if value is not None:
            return value
    return default


def type_of(obj) -> str:
    """Lexicon type of an atproto object (``py_type`` on models, ``$type`` in JSON)."""
    return get_attr(obj, 'py_type', '$type', default='') or ''


def parse_datetime(value):
    """Parse a datetime from various formats, always returning an aware UTC value."""
    if value is None:
        return None
    parsed = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value
        # Handle ISO format with Z suffix
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except (ValueError, TypeError):
            for fmt in ('%Y-%m-%dT%H:%M:%S.%f%z', '%Y-%m-%dT%H:%M:%S%z', '%Y-%m-%dT%H:%M:%S.%f', '%Y-%m-%dT%H:%M:%S'):
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except (ValueError, TypeError):
                    continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def strip_html(text: str) -> str:
    """Strip HTML tags and decode entities."""
    if not text:
        return ''
    text = _block_end_re.sub(' ', text)
    text = _html_tag_re.sub('', text)
    text = html.unescape(text)
    text = re.sub(r'\s+', ' ', text).strip()
    return text
