# amazbot/services/commands.py

"""Chat command front-end for authorized users."""

import logging
import re
from collections.abc import Callable, Iterable

from amazbot.config.settings import Settings
from amazbot.errors import InvalidSearchKeyError
from amazbot.models.item import Item
from amazbot.models.prices import ConditionTier
from amazbot.models.search_key import SearchKey, item_id_from_link
from amazbot.services.notifier import format_price
from amazbot.services.scheduler import SearchScheduler
from amazbot.storage.kv_store import KVStore

logger = logging.getLogger("amazbot.commands")

STOP_ALL = "*"

_COMMAND_RE = re.compile(r"/(\w+)(?:@\S+)?\s*(.*)", re.DOTALL)


def split_command(text: str) -> tuple[str, str]:
    """Split ``/cmd@bot args`` into ``("cmd", "args")``.

    Returns ``("", "")`` when *text* is not a command.  The arguments
    keep their inner newlines, which ``/batch`` relies on.
    """
    match = _COMMAND_RE.match(text.strip())
    if match is None:
        return "", ""
    return match.group(1).lower(), match.group(2).strip()


class CommandHandler:
    """Turns chat messages into scheduler operations.

    :meth:`handle` returns the reply texts for the sender; messages
    from users outside the admin/user list get no reply at all.
    """

    def __init__(
        self,
        scheduler: SearchScheduler,
        store: KVStore,
        admin_id: int = 0,
        user_ids: Iterable[int] = (),
    ) -> None:
        self.scheduler = scheduler
        self.store = store
        self.user_chats: dict[int, str] = {}
        for user in [*user_ids, admin_id]:
            if not user:
                continue
            self.user_chats[user] = str(user)
            saved = store.get(Settings.CONFIG_BUCKET, str(user))
            if saved:
                self.user_chats[user] = str(saved).strip().lower()
        self._commands: dict[str, Callable[[int, str], list[str]]] = {
            "chat": self._chat,
            "search": self._search,
            "stop": self._stop,
            "status": self._status,
            "export": self._export,
            "batch": self._batch,
        }

    def is_authorized(self, user_id: int) -> bool:
        return user_id in self.user_chats

    def handle(self, user_id: int, text: str) -> list[str]:
        """Process one message from *user_id* and return the replies."""
        if not self.is_authorized(user_id) or not text:
            return []

        command, args = split_command(text)
        if not command:
            item_id = item_id_from_link(text)
            if item_id is None:
                return []
            return self._start(user_id, item_id)

        handler = self._commands.get(command)
        if handler is None:
            logger.debug("Ignoring unknown command /%s", command)
            return []
        logger.info("User %d: /%s %s", user_id, command, args)
        return handler(user_id, args)

    # ── Commands ─────────────────────────────────────────

    def _chat(self, user_id: int, args: str) -> list[str]:
        if not args:
            return [
                f"current chat id for searches: {self.user_chats[user_id]}"
            ]
        chat = args.strip().lower()
        self.user_chats[user_id] = chat
        self.store.put(Settings.CONFIG_BUCKET, str(user_id), chat)
        return [f"chat id for searches updated: {chat}"]

    def _search(self, user_id: int, args: str) -> list[str]:
        if not args:
            return ["search arguments not provided"]
        return self._start(user_id, args)

    def _stop(self, user_id: int, args: str) -> list[str]:
        if not args:
            return ["stop arguments not provided"]
        if args == STOP_ALL:
            keys = self.scheduler.remove_all()
            logger.info(
                "Stopped all searches (%d)", len(keys),
                extra={"notify_admin": True},
            )
            return ["stopped all"]
        try:
            key = self._parse(user_id, args)
        except InvalidSearchKeyError as exc:
            return [f"{args}: {exc}"]
        if self.scheduler.remove(key):
            return [f"stopped {key}"]
        return [f"not running {key}"]

    def _status(self, user_id: int, args: str) -> list[str]:
        show_all = args == STOP_ALL
        prefix = f"{self.user_chats[user_id]}/"
        replies = ["status info:"]
        for key, item in self.scheduler.registry.entries():
            shown = key.render()
            if not show_all:
                if not shown.startswith(prefix):
                    continue
                shown = shown[len(prefix):]
            replies.append(f"running {shown}{_status_prices(item)}")
        replies.append(
            f"elapsed: {self.scheduler.last_cycle_seconds:.1f}s"
        )
        return replies

    def _export(self, user_id: int, args: str) -> list[str]:
        keys = [k.render() for k in self.scheduler.registry.snapshot()]
        return ["/batch " + "\n".join(keys)]

    def _batch(self, user_id: int, args: str) -> list[str]:
        replies: list[str] = []
        for line in args.splitlines():
            if line.strip():
                replies.extend(self._start(user_id, line))
        return replies

    # ── Helpers ──────────────────────────────────────────

    def _parse(self, user_id: int, raw: str) -> SearchKey:
        return SearchKey.parse(raw, self.user_chats[user_id])

    def _start(self, user_id: int, raw: str) -> list[str]:
        try:
            key = self._parse(user_id, raw)
        except InvalidSearchKeyError as exc:
            return [f"{raw.strip()}: {exc}"]
        self.scheduler.add(key)
        return [f"searching {key}"]


def _status_prices(item: Item | None) -> str:
    if item is None:
        return ""
    parts = [item.link] if item.link else []
    new_price = item.prices[ConditionTier.NEW]
    parts.append(format_price(item.domain, new_price))
    used = [
        price for tier, price in item.prices.items()
        if tier != ConditionTier.NEW and price > 0
    ]
    if used:
        parts.append(format_price(item.domain, min(used)))
    return " " + " ".join(parts)
