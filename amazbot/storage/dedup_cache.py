# amazbot/storage/dedup_cache.py

"""In-memory TTL cache of recently sent notification fingerprints."""

import logging
import threading
import time

from amazbot.config.settings import Settings
from amazbot.models.prices import ConditionTier

logger = logging.getLogger("amazbot.cache")


def fingerprint(
    destination: str,
    item_id: str,
    tier: ConditionTier,
    price: float,
) -> str:
    """Build the dedup key; the price is rounded to cents."""
    cents = round(price * 100)
    return f"{destination}|{item_id}|{int(tier)}|{cents}"


class DedupCache:
    """Remembers which (destination, item, tier, price) were notified.

    Entries expire after a fixed TTL.  There is no capacity bound: the
    cache is bounded by the number of tracked items and the TTL window.
    """

    def __init__(self, ttl: float | None = None) -> None:
        self._entries: dict[str, float] = {}
        self._ttl: float = (
            Settings.DEDUP_TTL if ttl is None else ttl
        )
        self._lock = threading.Lock()

    def should_notify(
        self,
        destination: str,
        item_id: str,
        tier: ConditionTier,
        price: float,
    ) -> bool:
        """Return True the first time a fingerprint is seen in the TTL.

        A True result records the fingerprint.
        """
        key = fingerprint(destination, item_id, tier, price)
        now = time.time()
        with self._lock:
            self._evict_expired(now)
            if key in self._entries:
                logger.info("Duplicate notification suppressed: %s", key)
                return False
            self._entries[key] = now
        return True

    def clear(self) -> int:
        """Purge all entries.

        Returns the number of entries that were removed.
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Dedup cache purged (%d entries removed)", count)
        return count

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired(time.time())
            return len(self._entries)

    def _evict_expired(self, now: float) -> None:
        """Remove entries older than the TTL threshold."""
        before = len(self._entries)
        self._entries = {
            k: ts
            for k, ts in self._entries.items()
            if now - ts < self._ttl
        }
        evicted = before - len(self._entries)
        if evicted:
            logger.debug(
                "Evicted %d expired dedup entries", evicted
            )
