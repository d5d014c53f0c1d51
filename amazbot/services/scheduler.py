# amazbot/services/scheduler.py

"""Search registry and the polling loop that checks every tracked key."""

import asyncio
import logging
import threading
import time
from collections.abc import Callable

from amazbot.config.settings import Settings
from amazbot.errors import AmazbotError, InvalidSearchKeyError
from amazbot.models.item import Item
from amazbot.models.notification import NotificationEvent
from amazbot.models.search_key import SearchKey
from amazbot.services.tracker import PriceTracker
from amazbot.storage.dedup_cache import DedupCache
from amazbot.storage.kv_store import KVStore

logger = logging.getLogger("amazbot.scheduler")


class SearchRegistry:
    """Thread-safe map of active searches to their last known item.

    Keys are canonical search-key strings, so two spellings of the
    same search share one entry.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[SearchKey, Item | None]] = {}
        self._lock = threading.Lock()

    def add(self, key: SearchKey, item: Item | None = None) -> bool:
        """Register *key*; returns False when it was already active."""
        with self._lock:
            if key.render() in self._entries:
                return False
            self._entries[key.render()] = (key, item)
            return True

    def remove(self, key: SearchKey) -> bool:
        with self._lock:
            return self._entries.pop(key.render(), None) is not None

    def remove_all(self) -> list[SearchKey]:
        """Drop every entry and return the keys that were active."""
        with self._lock:
            keys = [k for k, _ in self._entries.values()]
            self._entries.clear()
        return sorted(keys, key=SearchKey.render)

    def get(self, key: SearchKey) -> Item | None:
        with self._lock:
            entry = self._entries.get(key.render())
        return entry[1] if entry else None

    def update(self, key: SearchKey, item: Item) -> bool:
        """Store *item* for *key* only if the key is still active."""
        with self._lock:
            if key.render() not in self._entries:
                return False
            self._entries[key.render()] = (key, item)
            return True

    def contains(self, key: SearchKey) -> bool:
        with self._lock:
            return key.render() in self._entries

    def snapshot(self) -> list[SearchKey]:
        """Active keys sorted by their canonical string."""
        with self._lock:
            keys = [k for k, _ in self._entries.values()]
        return sorted(keys, key=SearchKey.render)

    def entries(self) -> list[tuple[SearchKey, Item | None]]:
        with self._lock:
            pairs = list(self._entries.values())
        return sorted(pairs, key=lambda pair: pair[0].render())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SearchScheduler:
    """Polls every registered search, one at a time, until stopped."""

    def __init__(
        self,
        registry: SearchRegistry,
        store: KVStore,
        tracker: PriceTracker,
        dedup: DedupCache,
        notify: Callable[[NotificationEvent], None],
        interval: float | None = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.tracker = tracker
        self.dedup = dedup
        self._notify = notify
        self._interval: float = (
            Settings.POLL_INTERVAL if interval is None else interval
        )
        self.last_cycle_seconds: float = 0.0
        # Held across registry changes and their store writes
        self._lock = threading.Lock()

    # ── Registration ─────────────────────────────────────

    def load(self) -> int:
        """Restore persisted searches; returns how many were loaded.

        Keys that no longer parse are logged and skipped but left in
        the store.
        """
        loaded = 0
        for raw in self.store.keys(Settings.SEARCH_BUCKET):
            try:
                key = SearchKey.parse(raw)
            except InvalidSearchKeyError as exc:
                logger.warning("Couldn't parse key %s: %s", raw, exc)
                continue
            data = self.store.get(Settings.SEARCH_BUCKET, raw) or {}
            item = Item.from_dict(data) if isinstance(data, dict) else None
            self.registry.add(key, item)
            loaded += 1
            logger.info("Loaded from db: %s", key)
        return loaded

    def add(self, key: SearchKey) -> bool:
        """Start tracking *key*; returns False if it was already active."""
        with self._lock:
            added = self.registry.add(key)
            if self.store.get(Settings.SEARCH_BUCKET, key.render()) is None:
                self.store.put(Settings.SEARCH_BUCKET, key.render(), {})
        if added:
            logger.info("Searching %s", key)
        return added

    def remove(self, key: SearchKey) -> bool:
        with self._lock:
            removed = self.registry.remove(key)
            self.store.delete(Settings.SEARCH_BUCKET, key.render())
        if removed:
            logger.info("Stopping %s", key)
        return removed

    def remove_all(self) -> list[SearchKey]:
        """Stop every search, across all destinations.

        Sent-notification fingerprints are forgotten as well.
        """
        with self._lock:
            keys = self.registry.remove_all()
            for key in keys:
                self.store.delete(Settings.SEARCH_BUCKET, key.render())
        for key in keys:
            logger.info("Stopping %s", key)
        self.dedup.clear()
        return keys

    # ── Polling ──────────────────────────────────────────

    def process(self, key: SearchKey) -> None:
        """Check one key and dispatch its events.

        Errors are logged and swallowed here so one broken product
        never stops the loop.
        """
        try:
            decision = self.tracker.check(key, self.registry.get(key))
        except AmazbotError as exc:
            logger.warning("%s: %s", key, exc)
            return
        except Exception:
            logger.exception("Unexpected error while checking %s", key)
            return
        if decision is None:
            return
        if not self.registry.contains(key):
            logger.debug("%s was stopped during its check", key)
            return
        if decision.new_minimum:
            logger.info(
                "%s: new minimum %.2f", key, decision.item.min_price,
            )

        for event in decision.events:
            if not self.dedup.should_notify(
                event.destination,
                event.item.item_id,
                event.tier,
                event.price,
            ):
                continue
            try:
                self._notify(event)
            except Exception:
                logger.exception("Couldn't dispatch event for %s", key)

        with self._lock:
            if not self.registry.update(key, decision.item):
                logger.debug("%s was stopped during dispatch", key)
                return
            self.store.put(
                Settings.SEARCH_BUCKET,
                key.render(),
                decision.item.to_dict(),
            )

    async def run(self, stop: threading.Event) -> None:
        """Poll every active key in canonical order until *stop* is set."""
        logger.info("Scheduler started")
        while not stop.is_set():
            start = time.monotonic()
            for key in self.registry.snapshot():
                if stop.is_set():
                    break
                if not self.registry.contains(key):
                    continue
                logger.debug("Searching: %s", key)
                await asyncio.to_thread(self.process, key)
            self.last_cycle_seconds = time.monotonic() - start

            if await asyncio.to_thread(stop.wait, self._interval):
                break
        logger.info("Scheduler finished")
