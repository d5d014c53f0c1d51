# tests/test_commands.py

"""Tests for the chat command front-end."""

import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

from amazbot.models.item import Item
from amazbot.models.prices import PriceVector
from amazbot.models.search_key import SearchKey
from amazbot.services.commands import CommandHandler, split_command
from amazbot.services.scheduler import SearchRegistry, SearchScheduler
from amazbot.storage.dedup_cache import DedupCache
from amazbot.storage.kv_store import KVStore

ADMIN = 42
USER = 7


class TestSplitCommand(unittest.TestCase):

    def test_plain(self) -> None:
        self.assertEqual(
            split_command("/search B1.es"), ("search", "B1.es"),
        )

    def test_bot_suffix(self) -> None:
        self.assertEqual(split_command("/Status@amazbot *"), ("status", "*"))

    def test_multiline_args(self) -> None:
        self.assertEqual(
            split_command("/batch\n@a/B1.es\n@a/B2.es"),
            ("batch", "@a/B1.es\n@a/B2.es"),
        )

    def test_not_a_command(self) -> None:
        self.assertEqual(split_command("hola"), ("", ""))


class TestCommandHandler(unittest.TestCase):

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = KVStore(Path(self._tmp.name) / "test.db")
        self.registry = SearchRegistry()
        self.scheduler = SearchScheduler(
            self.registry, self.store, MagicMock(), DedupCache(), MagicMock(),
        )
        self.handler = CommandHandler(
            self.scheduler, self.store, admin_id=ADMIN, user_ids=[USER],
        )

    def tearDown(self) -> None:
        self.store.close()
        self._tmp.cleanup()

    def test_unauthorized_user_ignored(self) -> None:
        self.assertEqual(self.handler.handle(999, "/search B1.es"), [])
        self.assertEqual(len(self.registry), 0)

    def test_default_destination_is_user_id(self) -> None:
        self.assertEqual(
            self.handler.handle(USER, "/chat"),
            ["current chat id for searches: 7"],
        )

    def test_chat_update_persisted(self) -> None:
        self.assertEqual(
            self.handler.handle(USER, "/chat @Ofertas"),
            ["chat id for searches updated: @ofertas"],
        )
        self.assertEqual(self.store.get("config", "7"), "@ofertas")
        reloaded = CommandHandler(
            self.scheduler, self.store, admin_id=ADMIN, user_ids=[USER],
        )
        self.assertEqual(reloaded.user_chats[USER], "@ofertas")

    def test_search_uses_default_destination(self) -> None:
        replies = self.handler.handle(USER, "/search b08n5wrwnw.es")
        self.assertEqual(replies, ["searching 7/B08N5WRWNW.es"])
        self.assertTrue(
            self.registry.contains(SearchKey("7", "B08N5WRWNW", "es"))
        )
        self.assertEqual(self.store.get("db", "7/B08N5WRWNW.es"), {})

    def test_search_explicit_destination(self) -> None:
        self.handler.handle(ADMIN, "/search @canal/B08N5WRWNW.de?1")
        self.assertEqual(
            [k.render() for k in self.registry.snapshot()],
            ["@canal/B08N5WRWNW.de?1"],
        )

    def test_search_without_args(self) -> None:
        self.assertEqual(
            self.handler.handle(USER, "/search"),
            ["search arguments not provided"],
        )

    def test_invalid_key_echoed(self) -> None:
        replies = self.handler.handle(USER, "/search B08N5WRWNW.xx")
        self.assertEqual(len(replies), 1)
        self.assertTrue(replies[0].startswith("B08N5WRWNW.xx: "))
        self.assertEqual(len(self.registry), 0)

    def test_pasted_link_starts_search(self) -> None:
        replies = self.handler.handle(
            USER, "https://www.amazon.es/Cafetera/dp/B08N5WRWNW?th=1",
        )
        self.assertEqual(replies, ["searching 7/B08N5WRWNW.es"])

    def test_plain_text_ignored(self) -> None:
        self.assertEqual(self.handler.handle(USER, "hola"), [])

    def test_stop_one(self) -> None:
        self.handler.handle(USER, "/search B08N5WRWNW.es")
        self.assertEqual(
            self.handler.handle(USER, "/stop B08N5WRWNW.es"),
            ["stopped 7/B08N5WRWNW.es"],
        )
        self.assertEqual(len(self.registry), 0)
        self.assertIsNone(self.store.get("db", "7/B08N5WRWNW.es"))

    def test_stop_unknown(self) -> None:
        self.assertEqual(
            self.handler.handle(USER, "/stop B08N5WRWNW.es"),
            ["not running 7/B08N5WRWNW.es"],
        )

    def test_stop_all(self) -> None:
        self.handler.handle(USER, "/search B08N5WRWNW.es")
        self.handler.handle(ADMIN, "/search @canal/B000000001.de")
        self.assertEqual(self.handler.handle(USER, "/stop *"), ["stopped all"])
        self.assertEqual(len(self.registry), 0)
        self.assertEqual(self.store.keys("db"), [])

    def test_status_filters_by_destination(self) -> None:
        self.handler.handle(USER, "/search B08N5WRWNW.es")
        self.handler.handle(USER, "/search @otro/B000000001.es")
        replies = self.handler.handle(USER, "/status")
        self.assertEqual(replies[0], "status info:")
        self.assertEqual(replies[1], "running B08N5WRWNW.es")
        self.assertTrue(replies[-1].startswith("elapsed: "))
        self.assertEqual(len(replies), 3)

    def test_status_all_with_prices(self) -> None:
        key = SearchKey("@otro", "B000000001", "es")
        self.registry.add(key, Item(
            item_id="B000000001",
            domain="es",
            link="https://www.amazon.es/dp/B000000001",
            min_price=45.0,
            prices=PriceVector([45.0, 0, 30.0, 25.0, 0]),
        ))
        replies = self.handler.handle(USER, "/status *")
        self.assertEqual(
            replies[1],
            "running @otro/B000000001.es "
            "https://www.amazon.es/dp/B000000001 45.00€ 25.00€",
        )

    def test_export_emits_batch(self) -> None:
        self.handler.handle(USER, "/search B08N5WRWNW.es")
        self.handler.handle(USER, "/search @canal/B000000001.de?2")
        self.assertEqual(
            self.handler.handle(USER, "/export"),
            ["/batch 7/B08N5WRWNW.es\n@canal/B000000001.de?2"],
        )

    def test_export_output_reimports(self) -> None:
        """The /export message is itself a valid /batch command."""
        self.handler.handle(USER, "/search B08N5WRWNW.es")
        self.handler.handle(USER, "/search @canal/B000000001.de?2")
        exported = self.handler.handle(USER, "/export")[0]
        self.handler.handle(USER, "/stop *")
        self.handler.handle(ADMIN, exported)
        self.assertEqual(len(self.registry), 2)

    def test_batch_reports_each_line(self) -> None:
        replies = self.handler.handle(
            USER, "/batch B08N5WRWNW.es\n\nnope\n@c/B000000001.it",
        )
        self.assertEqual(replies[0], "searching 7/B08N5WRWNW.es")
        self.assertTrue(replies[1].startswith("nope: "))
        self.assertEqual(replies[2], "searching @c/B000000001.it")
        self.assertEqual(len(self.registry), 2)

    def test_unknown_command_ignored(self) -> None:
        self.assertEqual(self.handler.handle(USER, "/start"), [])


if __name__ == "__main__":
    unittest.main()
