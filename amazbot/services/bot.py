# amazbot/services/bot.py

"""Telegram update loop and the wiring that runs the whole bot."""

import asyncio
import logging
import signal
import threading
from pathlib import Path
from typing import Any

from amazbot.config.domains import validate_domains
from amazbot.config.logging_config import attach_admin_alerts
from amazbot.errors import TelegramError
from amazbot.scrapers.amazon_scraper import AmazonScraper
from amazbot.scrapers.fetcher import DocumentFetcher
from amazbot.scrapers.transport import SessionTransport
from amazbot.services.captcha_client import CaptchaSolver
from amazbot.services.commands import CommandHandler
from amazbot.services.notifier import TelegramNotifier
from amazbot.services.scheduler import SearchRegistry, SearchScheduler
from amazbot.services.telegram_api import TelegramAPI
from amazbot.services.tracker import PriceTracker
from amazbot.storage.dedup_cache import DedupCache
from amazbot.storage.kv_store import KVStore

logger = logging.getLogger("amazbot.bot")

_POLL_ERROR_WAIT = 5.0


class TelegramBot:
    """Long-polls Telegram and routes messages to the command handler."""

    def __init__(
        self,
        api: TelegramAPI,
        commands: CommandHandler,
        notifier: TelegramNotifier,
        me: dict[str, Any] | None = None,
    ) -> None:
        self.api = api
        self.commands = commands
        self.notifier = notifier
        self.me = me or {}
        self._offset = 0

    def poll_once(self) -> int:
        """Fetch and handle one batch of updates; returns its size."""
        updates = self.api.get_updates(self._offset)
        for update in updates:
            self._offset = max(self._offset, int(update["update_id"]) + 1)
            try:
                self.handle_update(update)
            except TelegramError as exc:
                logger.warning("Couldn't handle update: %s", exc)
        return len(updates)

    def handle_update(self, update: dict[str, Any]) -> None:
        message = update.get("message")
        if not message:
            return
        self.announce_chat(message)

        chat_id = int(message["chat"]["id"])
        text = message.get("text") or ""
        for reply in self.commands.handle(chat_id, text):
            self.notifier.send(chat_id, reply, preview=False)

    def announce_chat(self, message: dict[str, Any]) -> None:
        """Tell a group's administrators its chat id when the bot joins."""
        chat = message["chat"]
        if chat.get("type") == "private":
            return
        my_id = self.me.get("id")
        joined = any(
            member.get("id") == my_id
            for member in message.get("new_chat_members") or []
        )
        if not joined:
            return

        admins = self.api.get_chat_administrators(chat["id"])
        text = (
            f"bot added to {chat['id']} "
            f"{chat.get('title', '')} {chat.get('username', '')}"
        ).rstrip()
        for admin in admins:
            user = admin.get("user") or {}
            if user.get("id") and not user.get("is_bot"):
                self.notifier.send(user["id"], text)

    async def run(self, stop: threading.Event) -> None:
        """Poll for updates until *stop* is set."""
        logger.info("Update loop started")
        while not stop.is_set():
            try:
                await asyncio.to_thread(self.poll_once)
            except TelegramError as exc:
                logger.warning("Couldn't get updates: %s", exc)
                await asyncio.to_thread(stop.wait, _POLL_ERROR_WAIT)
        logger.info("Update loop finished")


def _install_signal_handlers(stop: threading.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            signal.signal(sig, lambda *_: stop.set())


async def run_bot(
    token: str,
    db_path: Path,
    captcha_url: str,
    proxy_url: str = "",
    admin_id: int = 0,
    user_ids: list[int] | None = None,
) -> None:
    """Build every component and run the scheduler and update loop.

    Returns when SIGINT/SIGTERM is received.  Configuration problems
    raise :class:`~amazbot.errors.ConfigError` before anything starts.
    """
    validate_domains()
    stop = threading.Event()

    solver = CaptchaSolver(captcha_url)
    transport = SessionTransport(proxy_url, stop=stop)
    api = TelegramAPI(token)
    me = await asyncio.to_thread(api.get_me)

    notifier = TelegramNotifier(api, admin_id)
    attach_admin_alerts(notifier.send_admin)
    if not await asyncio.to_thread(solver.self_test):
        logger.warning("Captcha solver self-test failed, continuing")

    store = KVStore(db_path)
    fetcher = DocumentFetcher(transport, solver)
    tracker = PriceTracker(AmazonScraper(fetcher), fetcher, stop)
    scheduler = SearchScheduler(
        SearchRegistry(), store, tracker, DedupCache(), notifier.notify,
    )
    scheduler.load()
    commands = CommandHandler(scheduler, store, admin_id, user_ids or [])
    bot = TelegramBot(api, commands, notifier, me)

    _install_signal_handlers(stop)
    username = me.get("username", "")
    logger.info(
        "amazbot started, bot %s", username, extra={"notify_admin": True},
    )
    tasks = [
        asyncio.create_task(scheduler.run(stop)),
        asyncio.create_task(bot.run(stop)),
    ]
    try:
        await asyncio.gather(*tasks)
    finally:
        # Let a surviving loop finish its item before closing resources
        stop.set()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(
            "amazbot stopped, bot %s", username,
            extra={"notify_admin": True},
        )
        transport.close()
        api.close()
        store.close()
