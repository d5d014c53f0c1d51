# tests/test_scheduler.py

"""Tests for the search registry and the polling scheduler."""

import asyncio
import tempfile
import threading
import unittest
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

from amazbot.errors import CaptchaUnsolvedError
from amazbot.models.item import Item
from amazbot.models.notification import NotificationEvent
from amazbot.models.prices import ConditionTier, PriceVector
from amazbot.models.search_key import SearchKey
from amazbot.services.price_policy import PriceDecision
from amazbot.services.scheduler import SearchRegistry, SearchScheduler
from amazbot.storage.dedup_cache import DedupCache
from amazbot.storage.kv_store import KVStore

KEY_A = SearchKey("@ofertas", "B0000000A1", "es")
KEY_B = SearchKey("@ofertas", "B0000000B2", "de")


def _item(key: SearchKey, new_price: float = 45.0) -> Item:
    return Item(
        item_id=key.product_id,
        domain=key.domain,
        title="Cafetera",
        link=f"https://www.amazon.{key.domain}/dp/{key.product_id}",
        min_price=new_price,
        prices=PriceVector([new_price, 0, 0, 0, 0]),
    )


def _decision(key: SearchKey, with_event: bool = True) -> PriceDecision:
    item = _item(key)
    events = []
    if with_event:
        events.append(NotificationEvent(
            destination=key.destination,
            item=item.copy(),
            tier=ConditionTier.NEW,
            previous_price=50.0,
        ))
    return PriceDecision(item=item, events=events, new_minimum=with_event)


class _GatedStore(KVStore):
    """Store whose item writes wait until the test releases them."""

    def __init__(self, db_path: Path) -> None:
        super().__init__(db_path)
        self.entered = threading.Event()
        self.release = threading.Event()

    def put(self, bucket: str, key: str, value: Any) -> None:
        if isinstance(value, dict) and value.get("id"):
            self.entered.set()
            self.release.wait(5)
        super().put(bucket, key, value)


class TestSearchRegistry(unittest.TestCase):

    def setUp(self) -> None:
        self.registry = SearchRegistry()

    def test_add_is_idempotent(self) -> None:
        self.assertTrue(self.registry.add(KEY_A))
        self.assertFalse(self.registry.add(KEY_A))
        self.assertEqual(len(self.registry), 1)

    def test_equivalent_spellings_share_entry(self) -> None:
        self.registry.add(SearchKey.parse("@Ofertas/b0000000a1.ES"))
        self.assertFalse(self.registry.add(KEY_A))

    def test_snapshot_sorted(self) -> None:
        self.registry.add(KEY_B)
        self.registry.add(KEY_A)
        self.assertEqual(self.registry.snapshot(), [KEY_A, KEY_B])

    def test_update_only_if_present(self) -> None:
        self.assertFalse(self.registry.update(KEY_A, _item(KEY_A)))
        self.registry.add(KEY_A)
        self.assertTrue(self.registry.update(KEY_A, _item(KEY_A)))
        self.assertEqual(self.registry.get(KEY_A), _item(KEY_A))

    def test_remove_all(self) -> None:
        self.registry.add(KEY_A)
        self.registry.add(KEY_B)
        self.assertEqual(self.registry.remove_all(), [KEY_A, KEY_B])
        self.assertFalse(self.registry.contains(KEY_A))


class SchedulerTestCase(unittest.TestCase):

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = KVStore(Path(self._tmp.name) / "test.db")
        self.registry = SearchRegistry()
        self.tracker = MagicMock()
        self.notify = MagicMock()
        self.dedup = DedupCache()
        self.scheduler = SearchScheduler(
            self.registry,
            self.store,
            self.tracker,
            self.dedup,
            self.notify,
            interval=0,
        )

    def tearDown(self) -> None:
        self.store.close()
        self._tmp.cleanup()


class TestSchedulerRegistration(SchedulerTestCase):

    def test_add_persists_placeholder(self) -> None:
        self.scheduler.add(KEY_A)
        self.assertEqual(self.store.get("db", KEY_A.render()), {})

    def test_add_keeps_existing_state(self) -> None:
        self.store.put("db", KEY_A.render(), _item(KEY_A).to_dict())
        self.scheduler.add(KEY_A)
        self.assertEqual(
            self.store.get("db", KEY_A.render())["id"], "B0000000A1",
        )

    def test_remove_deletes_from_store(self) -> None:
        self.scheduler.add(KEY_A)
        self.assertTrue(self.scheduler.remove(KEY_A))
        self.assertIsNone(self.store.get("db", KEY_A.render()))
        self.assertFalse(self.registry.contains(KEY_A))

    def test_remove_all_deletes_every_key(self) -> None:
        other = SearchKey("12345", "B0000000C3", "it")
        for key in (KEY_A, KEY_B, other):
            self.scheduler.add(key)
        removed = self.scheduler.remove_all()
        self.assertEqual(len(removed), 3)
        self.assertEqual(self.store.keys("db"), [])
        self.assertEqual(len(self.registry), 0)

    def test_remove_all_forgets_sent_notifications(self) -> None:
        self.scheduler.add(KEY_A)
        self.tracker.check.return_value = _decision(KEY_A)
        self.scheduler.process(KEY_A)
        self.assertEqual(len(self.dedup), 1)
        self.scheduler.remove_all()
        self.assertEqual(len(self.dedup), 0)

    def test_load_restores_state(self) -> None:
        self.store.put("db", KEY_A.render(), _item(KEY_A).to_dict())
        self.store.put("db", KEY_B.render(), {})
        self.assertEqual(self.scheduler.load(), 2)
        self.assertEqual(self.registry.get(KEY_A), _item(KEY_A))
        self.assertIsNone(self.registry.get(KEY_B))
        self.assertTrue(self.registry.contains(KEY_B))

    def test_load_skips_unparseable_keys(self) -> None:
        """Bad keys are skipped but stay in the store."""
        self.store.put("db", "@ofertas/not a key", {})
        self.store.put("db", KEY_A.render(), {})
        self.assertEqual(self.scheduler.load(), 1)
        self.assertEqual(self.registry.snapshot(), [KEY_A])
        self.assertIn("@ofertas/not a key", self.store.keys("db"))


class TestSchedulerProcess(SchedulerTestCase):

    def test_process_notifies_and_writes_back(self) -> None:
        self.scheduler.add(KEY_A)
        self.tracker.check.return_value = _decision(KEY_A)
        self.scheduler.process(KEY_A)

        self.notify.assert_called_once()
        self.assertEqual(self.registry.get(KEY_A), _item(KEY_A))
        self.assertEqual(
            self.store.get("db", KEY_A.render()), _item(KEY_A).to_dict(),
        )

    def test_process_passes_stored_item(self) -> None:
        self.registry.add(KEY_A, _item(KEY_A, 60.0))
        self.tracker.check.return_value = None
        self.scheduler.process(KEY_A)
        self.tracker.check.assert_called_once_with(KEY_A, _item(KEY_A, 60.0))

    def test_new_minimum_logged(self) -> None:
        self.scheduler.add(KEY_A)
        self.tracker.check.return_value = _decision(KEY_A)
        with self.assertLogs("amazbot.scheduler", level="INFO") as logs:
            self.scheduler.process(KEY_A)
        self.assertTrue(
            any("new minimum 45.00" in line for line in logs.output)
        )

    def test_duplicate_event_suppressed(self) -> None:
        self.scheduler.add(KEY_A)
        self.tracker.check.side_effect = [
            _decision(KEY_A), _decision(KEY_A),
        ]
        self.scheduler.process(KEY_A)
        self.scheduler.process(KEY_A)
        self.notify.assert_called_once()

    def test_state_written_without_events(self) -> None:
        self.scheduler.add(KEY_A)
        self.tracker.check.return_value = _decision(KEY_A, with_event=False)
        self.scheduler.process(KEY_A)
        self.notify.assert_not_called()
        self.assertEqual(
            self.store.get("db", KEY_A.render())["min_price"], 45.0,
        )

    def test_no_write_back_after_removal(self) -> None:
        """A key stopped during its check is not resurrected."""
        self.scheduler.add(KEY_A)

        def check(key: SearchKey, stored: Item | None) -> PriceDecision:
            self.scheduler.remove(key)
            return _decision(key)

        self.tracker.check.side_effect = check
        self.scheduler.process(KEY_A)
        self.assertIsNone(self.store.get("db", KEY_A.render()))
        self.assertFalse(self.registry.contains(KEY_A))

    def test_no_events_for_key_stopped_during_check(self) -> None:
        self.scheduler.add(KEY_A)

        def check(key: SearchKey, stored: Item | None) -> PriceDecision:
            self.scheduler.remove(key)
            return _decision(key)

        self.tracker.check.side_effect = check
        self.scheduler.process(KEY_A)
        self.notify.assert_not_called()

    def test_stop_during_write_back_wins(self) -> None:
        """A stop racing the state write leaves nothing in the store."""
        store = _GatedStore(Path(self._tmp.name) / "gated.db")
        self.addCleanup(store.close)
        scheduler = SearchScheduler(
            SearchRegistry(), store, self.tracker, DedupCache(), self.notify,
        )
        scheduler.add(KEY_A)
        self.tracker.check.return_value = _decision(KEY_A)

        worker = threading.Thread(target=scheduler.process, args=(KEY_A,))
        worker.start()
        self.assertTrue(store.entered.wait(5))
        stopper = threading.Thread(target=scheduler.remove, args=(KEY_A,))
        stopper.start()
        stopper.join(timeout=0.2)
        store.release.set()
        worker.join(5)
        stopper.join(5)

        self.assertIsNone(store.get("db", KEY_A.render()))
        self.assertFalse(scheduler.registry.contains(KEY_A))

    def test_errors_are_contained(self) -> None:
        self.scheduler.add(KEY_A)
        for exc in (CaptchaUnsolvedError("empty"), RuntimeError("boom")):
            with self.subTest(exc=type(exc).__name__):
                self.tracker.check.side_effect = exc
                self.scheduler.process(KEY_A)
        self.notify.assert_not_called()

    def test_notify_failure_still_writes_back(self) -> None:
        self.scheduler.add(KEY_A)
        self.tracker.check.return_value = _decision(KEY_A)
        self.notify.side_effect = RuntimeError("telegram down")
        self.scheduler.process(KEY_A)
        self.assertEqual(
            self.store.get("db", KEY_A.render())["id"], "B0000000A1",
        )


class TestSchedulerRun(SchedulerTestCase):

    def test_run_polls_in_order_until_stopped(self) -> None:
        stop = threading.Event()
        seen: list[SearchKey] = []
        self.scheduler.add(KEY_B)
        self.scheduler.add(KEY_A)

        def check(key: SearchKey, stored: Item | None) -> None:
            seen.append(key)
            if len(seen) == 4:
                stop.set()

        self.tracker.check.side_effect = check
        asyncio.run(self.scheduler.run(stop))
        self.assertEqual(seen, [KEY_A, KEY_B, KEY_A, KEY_B])
        self.assertGreaterEqual(self.scheduler.last_cycle_seconds, 0.0)

    def test_key_removed_mid_cycle_is_skipped(self) -> None:
        stop = threading.Event()
        seen: list[SearchKey] = []
        self.scheduler.add(KEY_A)
        self.scheduler.add(KEY_B)

        def check(key: SearchKey, stored: Item | None) -> None:
            seen.append(key)
            self.scheduler.remove(KEY_B)
            if len(seen) == 2:
                stop.set()

        self.tracker.check.side_effect = check
        asyncio.run(self.scheduler.run(stop))
        self.assertEqual(seen, [KEY_A, KEY_A])

    def test_error_does_not_stop_cycle(self) -> None:
        stop = threading.Event()
        seen: list[SearchKey] = []
        self.scheduler.add(KEY_A)
        self.scheduler.add(KEY_B)

        def check(key: SearchKey, stored: Item | None) -> None:
            seen.append(key)
            if key == KEY_A:
                raise CaptchaUnsolvedError("empty")
            stop.set()

        self.tracker.check.side_effect = check
        asyncio.run(self.scheduler.run(stop))
        self.assertEqual(seen, [KEY_A, KEY_B])

    def test_stopped_scheduler_exits(self) -> None:
        stop = threading.Event()
        stop.set()
        self.scheduler.add(KEY_A)
        asyncio.run(self.scheduler.run(stop))
        self.tracker.check.assert_not_called()


if __name__ == "__main__":
    unittest.main()
