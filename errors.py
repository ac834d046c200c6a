"""Error and diagnostic signal types.

Only NormalizationError is ever raised across a module boundary, and even
that one is caught per item by the batch helpers. StaleOverwriteSuppressed
and AnchorNotFound are signal values handed to diagnostics listeners; they
subclass Exception so they print and compare like the rest of the family.
"""

from datetime import datetime
from typing import Optional


class FusionError(Exception):
    """Base class for fusionfeed errors and signals."""


class NormalizationError(FusionError):
    """A platform-native item is missing a field the unified model requires."""

    def __init__(self, platform: str, reason: str, native_id: Optional[str] = None):
        self.platform = platform
        self.reason = reason
        self.native_id = native_id
        where = f" ({native_id})" if native_id else ""
        super().__init__(f"Cannot normalize {platform} item{where}: {reason}")


class StaleOverwriteSuppressed(FusionError):
    """An incoming action snapshot was older than the stored one and was dropped."""

    def __init__(self, stable_id: str, current_at: datetime, incoming_at: datetime):
        self.stable_id = stable_id
        self.current_at = current_at
        self.incoming_at = incoming_at
        super().__init__(
            f"Suppressed stale snapshot for {stable_id}: "
            f"{incoming_at.isoformat()} < {current_at.isoformat()}"
        )


class AnchorNotFound(FusionError):
    """The scroll anchor disappeared during a merge; the timeline jumps to top."""

    def __init__(self, anchor_id: str):
        self.anchor_id = anchor_id
        super().__init__(f"Scroll anchor {anchor_id} is no longer in the timeline")
