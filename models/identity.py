"""Stable cross-platform identities.

An identity is ``platform:nativeId`` or, when the owning account is known,
``platform:accountId:nativeId``. The account segment is percent-encoded so
that it never contains a raw ``:``; the native id is the verbatim remainder.
That keeps the mapping injective even though Bluesky DIDs and AT-URIs are
full of colons.

Native id namespaces:

* ``mastodon``: the status id string. Ids are snowflakes local to one
  instance, so two accounts on different instances can see the same number
  for unrelated posts. Always pass the account id for Mastodon.
* ``bluesky``: the post AT-URI (``at://<did>/app.bsky.feed.post/<rkey>``),
  which is globally unique on its own.
"""

from typing import NamedTuple, Optional
from urllib.parse import quote, unquote


class ParsedIdentity(NamedTuple):
    platform: str
    account_id: Optional[str]
    native_id: str


def stable_identity(platform, native_id: str, account_id: Optional[str] = None) -> str:
    """Build the stable identity for a native id."""
    tag = getattr(platform, 'value', platform)
    if not tag or ':' in tag:
        raise ValueError(f"Invalid platform tag: {tag!r}")
    if not native_id:
        raise ValueError("Native id must be non-empty")
    if account_id:
        return f"{tag}:{quote(str(account_id), safe='')}:{native_id}"
    return f"{tag}:{native_id}"


def parse_identity(identity: str) -> ParsedIdentity:
    """Split an account-scoped identity back into its parts.

    Only identities built with an account id can be parsed unambiguously;
    this is what every normalizer in this package produces.
    """
    parts = identity.split(':', 2)
    if len(parts) != 3 or not all(parts):
        raise ValueError(f"Not an account-scoped identity: {identity!r}")
    return ParsedIdentity(parts[0], unquote(parts[1]), parts[2])
