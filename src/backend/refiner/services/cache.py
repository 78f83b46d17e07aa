# [Core: Response Cache]
"""
Response Cache — time-boxed memoization of oracle responses.

Every component that calls the oracle owns one of these and consults it
before invoking the gateway. Entries expire by age only; an expired entry
is evicted lazily on the read that finds it.

Keys combine the operation kind, a few context discriminators and a
fixed-length prefix of the content. Two long inputs sharing a prefix will
collide; a colliding hit only short-circuits an oracle call that would
otherwise have been made fresh, so this is accepted.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_PREFIX_LENGTH = 100


@dataclass(frozen=True)
class CacheEntry:
    value: str
    created_at: float


class ResponseCache:
    """
    Usage:
        cache = ResponseCache(max_age_seconds=3600)
        key = cache.make_key("critique", text)
        cached = cache.get(key)
        if cached is None:
            cache.set(key, await gateway.invoke(request))
    """

    def __init__(
        self,
        max_age_seconds: float,
        max_entries: int = 100,
        prefix_length: int = DEFAULT_PREFIX_LENGTH,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_age_seconds = max_age_seconds
        self.max_entries = max_entries
        self.prefix_length = prefix_length
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.created_at >= self.max_age_seconds:
            del self._entries[key]
            logger.debug(f"Cache entry expired: {key[:60]}")
            return None
        return entry.value

    def set(self, key: str, value: str) -> None:
        if self.max_entries < 1:
            return
        if key not in self._entries and len(self._entries) >= self.max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k].created_at)
            del self._entries[oldest]
        self._entries[key] = CacheEntry(value=value, created_at=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def make_key(
        self,
        kind: str,
        content: str,
        context: Optional[Mapping[str, object]] = None,
    ) -> str:
        ctx = "_".join(str(v) for v in context.values()) if context else ""
        return f"{kind}:{ctx}:{content[: self.prefix_length]}"
