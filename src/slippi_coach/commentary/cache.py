"""
Narration cache keyed by batch content and style.

Shared by every match in the process. Entries expire after a TTL and the
cache is bounded: inserting past ``max_entries`` evicts the oldest entry.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections import OrderedDict
from typing import Callable, Optional, Sequence, Tuple

from slippi_coach.events.schema import CandidateEvent, semantic_fields

logger = logging.getLogger(__name__)


def make_key(batch: Sequence[CandidateEvent], style: str) -> str:
    """
    Stable content hash of a batch.

    Built from each event's semantic fields (frame numbers excluded) in
    sorted order plus the style, so two batches describing the same moments
    share a key regardless of when they happened.
    """
    fields = sorted(json.dumps(semantic_fields(e), sort_keys=True) for e in batch)
    payload = json.dumps({"events": fields, "style": style}, sort_keys=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class NarrationCache:
    """
    TTL + size bounded mapping from cache key to narration text.

    ``clock`` returns seconds and is injectable for tests.
    """

    def __init__(
        self,
        ttl_s: float = 30.0,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_s = ttl_s
        self.max_entries = max_entries
        self._clock = clock
        # key -> (text, stored_at); insertion order is age order.
        self._entries: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key, count=False) is not None

    def get(self, key: str, count: bool = True) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is not None:
            text, stored_at = entry
            if self._clock() - stored_at < self.ttl_s:
                if count:
                    self.hits += 1
                return text
            del self._entries[key]
        if count:
            self.misses += 1
        return None

    def put(self, key: str, text: str) -> None:
        # Re-inserting refreshes both the timestamp and the age order.
        self._entries.pop(key, None)
        self._entries[key] = (text, self._clock())
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("evicted narration cache entry %s", evicted[:12])

    def clear(self) -> None:
        self._entries.clear()
